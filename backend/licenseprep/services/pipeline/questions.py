"""
Exam question generation from handout chunks.

Each chunk is sent with its immediate neighbours as context. The model's
JSON is validated item by item: malformed questions are dropped, a
response that is not JSON at all fails the chunk. Over a whole handout,
one chunk's failure is logged and the loop moves on.
"""

import logging

from pydantic import TypeAdapter, ValidationError

from licenseprep.core.errors import (
    ChunkNotFoundError,
    ConfigurationError,
    HandoutNotFoundError,
    InvalidInputError,
    LicensePrepError,
    QuestionNotFoundError,
    StructuredOutputError,
)
from licenseprep.models.enums import LicenseType
from licenseprep.services.llm.models import GeneratedQuestion
from licenseprep.services.llm.orchestrator import LLMOrchestrator
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import Question
from licenseprep.services.throttle import NoThrottle, Throttle

logger = logging.getLogger(__name__)

QUESTION_SYSTEM_PROMPT = (
    "You are an expert California contractor license exam question writer. "
    "You respond with JSON only."
)

QUESTION_GENERATION_PROMPT = """Generate exam-style multiple choice questions from the following content.

Requirements:
- Create questions with 4 options (A, B, C, D)
- Mix of difficulties: easy (basic recall), medium (application), hard (analysis/synthesis)
- Questions should test practical knowledge for {license_label} contractors
- Include detailed explanations for why the correct answer is right AND why others are wrong
- Reference specific codes, regulations, or standards when applicable
- Make distractors (wrong answers) plausible but clearly incorrect

License Track: {license_label}
- License A (General Engineering): Highways, bridges, dams, pipelines, utilities
- License B (General Building): Residential & commercial structures, framing, concrete

Content to generate questions from:
---
{chunk_content}
---

Additional context from surrounding sections:
---
{surrounding_context}
---

Generate 3-5 questions in this exact JSON format (no markdown, just JSON):
[
  {{
    "question": "Clear, specific question text?",
    "options": ["A. First option", "B. Second option", "C. Third option", "D. Fourth option"],
    "correct_answer": "A",
    "explanation": "A is correct because... B is incorrect because... C is incorrect because... D is incorrect because...",
    "difficulty": "easy",
    "topic_tags": ["relevant", "topic", "tags"]
  }}
]"""

_raw_items = TypeAdapter(list[dict])


def license_label(license_type: LicenseType) -> str:
    if license_type == LicenseType.BOTH:
        return "A & B"
    return f"License {license_type.value}"


def validate_questions(items: list[dict]) -> list[GeneratedQuestion]:
    """Keep only items that are complete, well-formed questions."""
    valid = []
    for position, item in enumerate(items):
        try:
            valid.append(GeneratedQuestion.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "[Generate] Skipping malformed question %d: %s",
                position,
                e.errors()[0]["msg"] if e.errors() else e,
            )
    return valid


class QuestionGenerator:
    def __init__(
        self,
        store: ContentStore,
        llm: LLMOrchestrator | None,
        throttle: Throttle | None = None,
    ):
        self.store = store
        self.llm = llm
        self.throttle = throttle or NoThrottle()

    def _require_llm(self) -> LLMOrchestrator:
        if self.llm is None:
            raise ConfigurationError("OPENAI_API_KEY required for question generation")
        return self.llm

    async def generate_for_chunk(
        self, chunk_id: str, license_type: LicenseType
    ) -> list[GeneratedQuestion]:
        llm = self._require_llm()

        chunk = await self.store.get_chunk(chunk_id)
        if chunk is None:
            raise ChunkNotFoundError(chunk_id)

        neighbors = await self.store.get_neighbor_chunks(chunk)
        surrounding_context = "\n---\n".join(n.content for n in neighbors)

        prompt = QUESTION_GENERATION_PROMPT.format(
            license_label=license_label(license_type),
            chunk_content=chunk.content,
            surrounding_context=surrounding_context,
        )
        items = await llm.complete_json(QUESTION_SYSTEM_PROMPT, prompt, _raw_items)
        return validate_questions(items)

    async def generate_for_handout(
        self, handout_id: str, license_type: LicenseType | None = None
    ) -> int:
        """Generate and store questions for every chunk; returns the number stored."""
        self._require_llm()

        handout = await self.store.get_handout(handout_id)
        if handout is None:
            raise HandoutNotFoundError(handout_id)
        license_type = license_type or handout.license_type

        chunks = await self.store.list_chunks(handout_id)
        if not chunks:
            raise InvalidInputError(f"No chunks found for handout: {handout_id}")

        total = 0
        for position, chunk in enumerate(chunks):
            if position > 0:
                await self.throttle.wait()
            try:
                drafts = await self.generate_for_chunk(chunk.id, license_type)
                stored = await self.store.insert_questions(
                    [
                        Question(
                            question_text=draft.question,
                            options=draft.options,
                            correct_answer=draft.correct_answer,
                            explanation=draft.explanation,
                            difficulty=draft.difficulty,
                            license_type=license_type,
                            topic_tags=draft.topic_tags,
                            is_ai_generated=True,
                            is_verified=False,
                            handout_id=handout_id,
                            source_chunk_id=chunk.id,
                        )
                        for draft in drafts
                    ]
                )
            except LicensePrepError as e:
                logger.warning("[Generate] Error generating questions for chunk %s: %s", chunk.id, e)
                continue
            except Exception:
                logger.exception("[Generate] Unexpected error on chunk %s", chunk.id)
                continue
            total += len(stored)

        logger.info("[Generate] Generated %d questions for handout: %s", total, handout.title)
        return total

    async def regenerate_question(self, question_id: str) -> GeneratedQuestion | None:
        """Draft a replacement for a question from its source chunk."""
        question = await self.store.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        if not question.source_chunk_id:
            return None

        try:
            drafts = await self.generate_for_chunk(
                question.source_chunk_id, question.license_type
            )
        except (ChunkNotFoundError, StructuredOutputError) as e:
            logger.warning("[Generate] Could not regenerate question %s: %s", question_id, e)
            return None
        return drafts[0] if drafts else None
