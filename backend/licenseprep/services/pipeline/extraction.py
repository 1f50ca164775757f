"""
Handout text extraction and structure analysis.

1. EXTRACT  – text files are decoded, PDFs go through PyMuPDF's text layer,
             images (and scanned PDFs) go through the vision model
2. ANALYZE  – the language model partitions the text into titled sections
             with character spans; any failure falls back to one section
             covering the whole document so chunking never blocks here
"""

import asyncio
import logging
import mimetypes
import os
import tempfile
from dataclasses import dataclass

from langchain_community.document_loaders import PyMuPDFLoader
from pydantic import TypeAdapter

from licenseprep.core.errors import (
    ConfigurationError,
    HandoutNotFoundError,
    StructuredOutputError,
    UpstreamError,
)
from licenseprep.models.enums import FileKind
from licenseprep.services.files import FileStorage
from licenseprep.services.llm.models import SectionSpec
from licenseprep.services.llm.orchestrator import LLMOrchestrator
from licenseprep.services.store.base import ContentStore

logger = logging.getLogger(__name__)

FALLBACK_SECTION_TITLE = "Document Content"
FALLBACK_SUMMARY_CHARS = 200

IMAGE_EXTRACTION_SYSTEM_PROMPT = (
    "You transcribe scanned course material for a contractor license exam "
    "study platform."
)

IMAGE_EXTRACTION_PROMPT = """Extract all text from this image. This is a contractor license course handout.

Instructions:
- Preserve the structure and formatting as much as possible
- Include all headings, bullet points, and numbered lists
- Include any tables or diagrams described in text
- Include any code references or regulation numbers
- If there are multiple sections, clearly separate them

Output the extracted text in a clean, readable format."""

STRUCTURE_SYSTEM_PROMPT = (
    "You analyze contractor license course documents and respond with JSON only."
)

STRUCTURE_PROMPT = """Analyze this contractor license course document and identify its logical sections.

Document:
{document}

Return a JSON array with the following structure:
[
  {{
    "title": "Section title",
    "startIndex": 0,
    "endIndex": 500,
    "summary": "Brief 1-2 sentence summary of this section"
  }}
]

startIndex and endIndex are character offsets into the document above.

Focus on identifying:
- Major topic areas
- Code sections or regulations
- Procedures or processes
- Definitions or terminology sections
- Examples or case studies

Return ONLY valid JSON, no other text."""

_sections_adapter = TypeAdapter(list[SectionSpec])


@dataclass
class ExtractionResult:
    text: str
    method: str  # "text" | "vision"
    page_count: int | None = None


def fallback_sections(text: str) -> list[SectionSpec]:
    """A single synthetic section spanning the whole document."""
    return [
        SectionSpec(
            title=FALLBACK_SECTION_TITLE,
            startIndex=0,
            endIndex=len(text),
            summary=text[:FALLBACK_SUMMARY_CHARS],
        )
    ]


def clamp_sections(
    sections: list[SectionSpec], text: str, analyzed_chars: int
) -> list[SectionSpec]:
    """
    Clamp spans to the text and drop empty or inverted ones.

    When only a prefix of the text was analyzed, the last section is
    stretched to the end of the document so no text is left unchunked.
    """
    length = len(text)
    valid = []
    for section in sections:
        start = max(0, min(section.startIndex, length))
        end = max(0, min(section.endIndex, length))
        if end <= start:
            continue
        valid.append(section.model_copy(update={"startIndex": start, "endIndex": end}))

    if not valid:
        return fallback_sections(text)

    if analyzed_chars < length:
        last = max(range(len(valid)), key=lambda i: valid[i].endIndex)
        valid[last] = valid[last].model_copy(update={"endIndex": length})
    return valid


def guess_image_media_type(file_path: str) -> str:
    media_type, _ = mimetypes.guess_type(file_path)
    if media_type and media_type.startswith("image/"):
        return media_type
    return "image/png"


def _load_pdf_text(data: bytes) -> tuple[str, int]:
    """Read the PDF text layer. PyMuPDFLoader needs a path, so go through a temp file."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".pdf") as tmp:
        tmp.write(data)
        tmp_path = tmp.name
    try:
        pages = PyMuPDFLoader(tmp_path).load()
    finally:
        os.unlink(tmp_path)
    return "\n".join(page.page_content for page in pages), len(pages)


class Extractor:
    def __init__(
        self,
        store: ContentStore,
        files: FileStorage,
        llm: LLMOrchestrator | None,
        min_pdf_text_chars: int = 100,
        structure_max_chars: int = 15000,
    ):
        self.store = store
        self.files = files
        self.llm = llm
        self.min_pdf_text_chars = min_pdf_text_chars
        self.structure_max_chars = structure_max_chars

    async def extract_text(
        self,
        data: bytes,
        kind: FileKind,
        title: str,
        media_type: str = "image/png",
    ) -> ExtractionResult:
        if kind == FileKind.PDF:
            return await self.extract_pdf(data, title)
        if kind == FileKind.IMAGE:
            return await self.extract_image(data, media_type)
        return ExtractionResult(text=data.decode("utf-8", errors="replace"), method="text")

    async def extract_pdf(self, data: bytes, title: str) -> ExtractionResult:
        try:
            text, page_count = await asyncio.to_thread(_load_pdf_text, data)
            if len(text.strip()) > self.min_pdf_text_chars:
                return ExtractionResult(text=text, method="text", page_count=page_count)
            logger.info("[Extract] %s has little text (%d chars), needs OCR", title, len(text.strip()))
        except Exception as e:
            logger.warning("[Extract] PDF text extraction failed for %s, falling back to vision: %s", title, e)

        if self.llm is None:
            raise ConfigurationError("OPENAI_API_KEY required for scanned PDF extraction")

        # Rasterizing pages for the vision model is left to an external OCR job
        return ExtractionResult(text=f"[PDF requires OCR processing: {title}]", method="vision")

    async def extract_image(self, data: bytes, media_type: str = "image/png") -> ExtractionResult:
        if self.llm is None:
            raise ConfigurationError("OPENAI_API_KEY required for image extraction")

        text = await self.llm.describe_image(
            image_data=data,
            media_type=media_type,
            system_prompt=IMAGE_EXTRACTION_SYSTEM_PROMPT,
            user_prompt=IMAGE_EXTRACTION_PROMPT,
        )
        return ExtractionResult(text=text, method="vision")

    async def analyze_structure(self, text: str) -> list[SectionSpec]:
        """Partition text into sections; never raises for LLM problems."""
        if self.llm is None:
            return fallback_sections(text)

        analyzed = text[: self.structure_max_chars]
        try:
            sections = await self.llm.complete_json(
                STRUCTURE_SYSTEM_PROMPT,
                STRUCTURE_PROMPT.format(document=analyzed),
                _sections_adapter,
            )
        except (StructuredOutputError, UpstreamError) as e:
            logger.warning("[Extract] Structure analysis failed, using single section: %s", e)
            return fallback_sections(text)

        return clamp_sections(sections, text, len(analyzed))

    async def extract_handout(self, handout_id: str) -> ExtractionResult:
        """Download, extract and persist a handout's text."""
        handout = await self.store.get_handout(handout_id)
        if handout is None:
            raise HandoutNotFoundError(handout_id)

        data = await self.files.read(handout.file_path)
        result = await self.extract_text(
            data,
            handout.file_type,
            handout.title,
            media_type=guess_image_media_type(handout.file_path),
        )
        await self.store.save_extracted_text(handout_id, result.text)
        logger.info(
            "[Extract] Processed handout %s via %s (%d chars)",
            handout.title,
            result.method,
            len(result.text),
        )
        return result
