"""
Handout processing job.

Runs the requested steps in order (extract → chunk → embed → generate),
recording one result string per step. A failing step is recorded as
"<step>: failed - <message>" and later steps still run; the handout is
marked processed at the end regardless, so operators can retry single
steps from the status view.
"""

import logging
from dataclasses import dataclass, field

from licenseprep.core.errors import HandoutNotFoundError, InvalidInputError
from licenseprep.services.pipeline.chunking import Chunker
from licenseprep.services.pipeline.embedding import Embedder
from licenseprep.services.pipeline.extraction import Extractor
from licenseprep.services.pipeline.questions import QuestionGenerator
from licenseprep.services.store.base import ContentStore

logger = logging.getLogger(__name__)

ALL_STEPS = ("extract", "chunk", "embed", "generate")


@dataclass
class ProcessingResult:
    handout_id: str
    title: str
    steps: list[str] = field(default_factory=list)
    chunk_count: int | None = None
    embed_count: int | None = None
    question_count: int | None = None


@dataclass
class ProcessingStatus:
    extracted: bool
    chunks: int
    embeddings: int
    questions: int
    is_processed: bool


class HandoutProcessor:
    def __init__(
        self,
        store: ContentStore,
        extractor: Extractor,
        chunker: Chunker,
        embedder: Embedder,
        generator: QuestionGenerator,
    ):
        self.store = store
        self.extractor = extractor
        self.chunker = chunker
        self.embedder = embedder
        self.generator = generator

    async def process(
        self, handout_id: str, steps: list[str] | None = None
    ) -> ProcessingResult:
        if not handout_id:
            raise InvalidInputError("Handout ID required")
        steps_to_run = list(steps) if steps else list(ALL_STEPS)
        unknown = [s for s in steps_to_run if s not in ALL_STEPS]
        if unknown:
            raise InvalidInputError(f"Unknown processing steps: {', '.join(unknown)}")

        handout = await self.store.get_handout(handout_id)
        if handout is None:
            raise HandoutNotFoundError(handout_id)

        result = ProcessingResult(handout_id=handout_id, title=handout.title)

        if "extract" in steps_to_run:
            try:
                await self.extractor.extract_handout(handout_id)
                result.steps.append("extract: success")
            except Exception as e:
                logger.exception("[Process] Extraction error for %s", handout_id)
                result.steps.append(f"extract: failed - {e}")

        if "chunk" in steps_to_run:
            try:
                result.chunk_count = await self.chunker.chunk_handout(handout_id)
                result.steps.append(f"chunk: {result.chunk_count} chunks created")
            except Exception as e:
                logger.exception("[Process] Chunking error for %s", handout_id)
                result.steps.append(f"chunk: failed - {e}")

        if "embed" in steps_to_run:
            try:
                result.embed_count = await self.embedder.embed_handout(handout_id)
                result.steps.append(f"embed: {result.embed_count} embeddings generated")
            except Exception as e:
                logger.exception("[Process] Embedding error for %s", handout_id)
                result.steps.append(f"embed: failed - {e}")

        if "generate" in steps_to_run:
            try:
                result.question_count = await self.generator.generate_for_handout(
                    handout_id, handout.license_type
                )
                result.steps.append(f"generate: {result.question_count} questions generated")
            except Exception as e:
                logger.exception("[Process] Question generation error for %s", handout_id)
                result.steps.append(f"generate: failed - {e}")

        await self.store.mark_processed(handout_id)
        logger.info("[Process] %s: %s", handout.title, "; ".join(result.steps))
        return result

    async def status(self, handout_id: str) -> ProcessingStatus:
        handout = await self.store.get_handout(handout_id)
        if handout is None:
            raise HandoutNotFoundError(handout_id)

        counts = await self.store.handout_counts(handout_id)
        return ProcessingStatus(
            extracted=bool(handout.extracted_text),
            chunks=counts.chunks,
            embeddings=counts.embedded_chunks,
            questions=counts.questions,
            is_processed=handout.is_processed,
        )
