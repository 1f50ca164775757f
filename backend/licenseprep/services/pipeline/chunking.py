"""
Section-aware chunking with sentence overlap.

Token counts are approximated as characters / 4. Within each section,
sentences accumulate until the next one would push the buffer over the
budget; the closed chunk's trailing sentences (up to the overlap budget)
seed the next chunk.
"""

import logging
import math
import re

from licenseprep.core.errors import HandoutNotFoundError, InvalidInputError
from licenseprep.services.llm.models import SectionSpec
from licenseprep.services.pipeline.extraction import Extractor
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import ChunkDraft

logger = logging.getLogger(__name__)

# Text up to and including a run of terminators, or a trailing fragment.
# Every character lands in exactly one sentence.
SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def split_sentences(text: str) -> list[str]:
    sentences = SENTENCE_PATTERN.findall(text)
    return sentences or [text]


def overlap_tail(text: str, overlap_tokens: int) -> str:
    """Whole trailing sentences of ``text`` fitting in the overlap budget."""
    target_chars = overlap_tokens * 4
    overlap = ""
    for sentence in reversed(SENTENCE_PATTERN.findall(text)):
        if len(overlap) + len(sentence) > target_chars:
            break
        overlap = sentence + overlap
    return overlap


def split_with_overlap(text: str, chunk_size: int, overlap: int) -> list[str]:
    chunks = []
    current = ""
    current_tokens = 0

    for sentence in split_sentences(text):
        sentence_tokens = estimate_tokens(sentence)

        if current_tokens + sentence_tokens > chunk_size and current:
            chunks.append(current.strip())
            current = overlap_tail(current, overlap) + sentence
            current_tokens = estimate_tokens(current)
        else:
            current += sentence
            current_tokens += sentence_tokens

    if current.strip():
        chunks.append(current.strip())

    return chunks


def chunk_sections(
    text: str,
    sections: list[SectionSpec],
    chunk_size: int = 1000,
    overlap: int = 100,
) -> list[ChunkDraft]:
    drafts = []
    for section in sections:
        pieces = split_with_overlap(
            text[section.startIndex : section.endIndex], chunk_size, overlap
        )
        for position, content in enumerate(pieces, start=1):
            drafts.append(
                ChunkDraft(
                    content=content,
                    token_count=estimate_tokens(content),
                    section_title=section.title,
                    section_summary=section.summary,
                    chunk_of_section=position,
                    total_section_chunks=len(pieces),
                )
            )
    return drafts


class Chunker:
    def __init__(
        self,
        store: ContentStore,
        extractor: Extractor,
        chunk_size: int = 1000,
        overlap: int = 100,
    ):
        self.store = store
        self.extractor = extractor
        self.chunk_size = chunk_size
        self.overlap = overlap

    async def chunk(self, text: str) -> list[ChunkDraft]:
        sections = await self.extractor.analyze_structure(text)
        return chunk_sections(text, sections, self.chunk_size, self.overlap)

    async def chunk_handout(self, handout_id: str) -> int:
        """Replace all chunks of a handout with a fresh chunking of its text."""
        handout = await self.store.get_handout(handout_id)
        if handout is None:
            raise HandoutNotFoundError(handout_id)
        if not handout.extracted_text:
            raise InvalidInputError(f"Handout has no extracted text: {handout_id}")

        drafts = await self.chunk(handout.extracted_text)
        chunks = await self.store.replace_chunks(handout_id, drafts)
        logger.info("[Chunk] Created %d chunks for: %s", len(chunks), handout.title)
        return len(chunks)
