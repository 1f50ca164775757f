"""
Handout content pipeline: extract → chunk → embed → generate questions.
"""

from licenseprep.services.pipeline.chunking import Chunker, chunk_sections
from licenseprep.services.pipeline.embedding import Embedder
from licenseprep.services.pipeline.extraction import Extractor, ExtractionResult
from licenseprep.services.pipeline.processor import (
    ALL_STEPS,
    HandoutProcessor,
    ProcessingResult,
    ProcessingStatus,
)
from licenseprep.services.pipeline.questions import QuestionGenerator

__all__ = [
    "ALL_STEPS",
    "Chunker",
    "Embedder",
    "ExtractionResult",
    "Extractor",
    "HandoutProcessor",
    "ProcessingResult",
    "ProcessingStatus",
    "QuestionGenerator",
    "chunk_sections",
]
