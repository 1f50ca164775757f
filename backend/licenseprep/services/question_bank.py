"""
Admin review of the question bank.

Manual questions are verified on creation. AI-generated questions start
unverified; verification is one-way, and rejecting a question deletes it.
"""

import logging
from datetime import datetime

from pydantic import ValidationError

from licenseprep.core.errors import InvalidInputError, QuestionNotFoundError
from licenseprep.models.enums import Difficulty, LicenseType
from licenseprep.services.llm.models import GeneratedQuestion
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import (
    EDITABLE_QUESTION_FIELDS,
    Question,
    QuestionFilter,
)

logger = logging.getLogger(__name__)


def _check_question(
    question_text: str,
    options: list[str],
    correct_answer: str,
    explanation: str,
    difficulty: Difficulty | str,
    topic_tags: list[str],
) -> GeneratedQuestion:
    try:
        return GeneratedQuestion(
            question=question_text,
            options=options,
            correct_answer=correct_answer,
            explanation=explanation,
            difficulty=difficulty,
            topic_tags=topic_tags,
        )
    except ValidationError as e:
        raise InvalidInputError(f"Invalid question: {e.errors()[0]['msg']}") from e


class QuestionBank:
    def __init__(self, store: ContentStore):
        self.store = store

    async def create_manual_question(
        self,
        question_text: str,
        options: list[str],
        correct_answer: str,
        explanation: str,
        difficulty: Difficulty,
        license_type: LicenseType,
        topic_tags: list[str] | None = None,
        handout_id: str | None = None,
        created_by: str | None = None,
    ) -> Question:
        checked = _check_question(
            question_text, options, correct_answer, explanation, difficulty, topic_tags or []
        )
        [question] = await self.store.insert_questions(
            [
                Question(
                    question_text=checked.question,
                    options=checked.options,
                    correct_answer=checked.correct_answer,
                    explanation=checked.explanation,
                    difficulty=checked.difficulty,
                    license_type=license_type,
                    topic_tags=checked.topic_tags,
                    is_ai_generated=False,
                    is_verified=True,
                    verified_by=created_by,
                    verified_at=datetime.utcnow(),
                    handout_id=handout_id,
                )
            ]
        )
        return question

    async def update_question(self, question_id: str, changes: dict) -> Question:
        unknown = set(changes) - EDITABLE_QUESTION_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        current = await self.store.get_question(question_id)
        if current is None:
            raise QuestionNotFoundError(question_id)

        merged = {
            "question_text": current.question_text,
            "options": current.options,
            "correct_answer": current.correct_answer,
            "explanation": current.explanation,
            "difficulty": current.difficulty,
            "topic_tags": current.topic_tags,
        }
        merged.update({k: v for k, v in changes.items() if k in merged})
        checked = _check_question(**merged)

        normalized = dict(changes)
        for name, value in (
            ("question_text", checked.question),
            ("options", checked.options),
            ("correct_answer", checked.correct_answer),
            ("explanation", checked.explanation),
            ("difficulty", checked.difficulty),
            ("topic_tags", checked.topic_tags),
        ):
            if name in normalized:
                normalized[name] = value

        updated = await self.store.update_question(question_id, normalized)
        if updated is None:
            raise QuestionNotFoundError(question_id)
        return updated

    async def verify_question(self, question_id: str, verifier: str | None = None) -> Question:
        question = await self.store.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        if question.is_verified:
            return question

        updated = await self.store.update_question(
            question_id,
            {"is_verified": True, "verified_by": verifier, "verified_at": datetime.utcnow()},
        )
        if updated is None:
            raise QuestionNotFoundError(question_id)
        logger.info("[Review] Question %s verified by %s", question_id, verifier or "admin")
        return updated

    async def reject_question(self, question_id: str) -> None:
        if not await self.store.delete_question(question_id):
            raise QuestionNotFoundError(question_id)
        logger.info("[Review] Question %s rejected", question_id)

    async def list_questions(self, filters: QuestionFilter) -> tuple[list[Question], int]:
        if filters.status not in ("verified", "unverified", "all"):
            raise InvalidInputError(f"Unknown status filter: {filters.status}")
        if filters.page < 1 or filters.page_size < 1:
            raise InvalidInputError("page and page_size must be positive")
        return await self.store.list_questions(filters)
