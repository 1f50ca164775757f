import pytest

from fakes import make_llm
from licenseprep.core.errors import ConfigurationError, HandoutNotFoundError, UpstreamError
from licenseprep.models.enums import FileKind
from licenseprep.services.llm.models import SectionSpec
from licenseprep.services.pipeline import extraction
from licenseprep.services.pipeline.extraction import (
    Extractor,
    clamp_sections,
    fallback_sections,
    guess_image_media_type,
)

DOCUMENT = "Section 1. Permits are required for all structural work. " * 10


async def test_text_files_are_decoded(store, files):
    """Plain text handouts pass through without any model call."""
    extractor = Extractor(store, files, llm=None)
    result = await extractor.extract_text("Ground fault protection.".encode(), FileKind.TEXT, "GFCI")
    assert result.text == "Ground fault protection."
    assert result.method == "text"


async def test_image_without_llm_is_a_configuration_error(store, files):
    extractor = Extractor(store, files, llm=None)
    with pytest.raises(ConfigurationError):
        await extractor.extract_text(b"\x89PNG", FileKind.IMAGE, "Scan")


async def test_image_goes_through_vision_model(store, files):
    llm = make_llm()
    extractor = Extractor(store, files, llm=llm)

    result = await extractor.extract_text(b"\xff\xd8", FileKind.IMAGE, "Scan", "image/jpeg")

    assert result.method == "vision"
    assert result.text == "EXTRACTED IMAGE TEXT"
    assert llm.provider.image_calls[0]["media_type"] == "image/jpeg"


async def test_pdf_with_text_layer_uses_text(store, files, monkeypatch):
    monkeypatch.setattr(extraction, "_load_pdf_text", lambda data: (DOCUMENT, 3))
    extractor = Extractor(store, files, llm=None)

    result = await extractor.extract_pdf(b"%PDF", "Permits")

    assert result.method == "text"
    assert result.page_count == 3
    assert result.text == DOCUMENT


async def test_scanned_pdf_needs_vision(store, files, monkeypatch):
    """A PDF with almost no text layer requires the vision model."""
    monkeypatch.setattr(extraction, "_load_pdf_text", lambda data: ("  p. 1  ", 1))

    with pytest.raises(ConfigurationError):
        await Extractor(store, files, llm=None).extract_pdf(b"%PDF", "Scanned")

    result = await Extractor(store, files, llm=make_llm()).extract_pdf(b"%PDF", "Scanned")
    assert result.method == "vision"
    assert result.text == "[PDF requires OCR processing: Scanned]"


async def test_unreadable_pdf_falls_back_to_vision(store, files, monkeypatch):
    def broken(data):
        raise RuntimeError("cannot open broken document")

    monkeypatch.setattr(extraction, "_load_pdf_text", broken)
    result = await Extractor(store, files, llm=make_llm()).extract_pdf(b"junk", "Broken")
    assert result.method == "vision"


async def test_vision_failure_propagates(store, files):
    llm = make_llm()

    async def failing(**kwargs):
        raise ValueError("rate limited")

    llm.provider.analyze_image = failing
    with pytest.raises(UpstreamError):
        await Extractor(store, files, llm=llm).extract_image(b"img")


def test_fallback_section_spans_whole_text():
    [section] = fallback_sections(DOCUMENT)
    assert section.title == "Document Content"
    assert (section.startIndex, section.endIndex) == (0, len(DOCUMENT))
    assert section.summary == DOCUMENT[:200]


def test_clamp_drops_invalid_spans_and_clamps_overflow():
    text = "x" * 100
    sections = [
        SectionSpec(title="Inverted", startIndex=50, endIndex=10),
        SectionSpec(title="Intro", startIndex=-5, endIndex=40),
        SectionSpec(title="Rest", startIndex=40, endIndex=500),
    ]

    clamped = clamp_sections(sections, text, analyzed_chars=len(text))

    assert [(s.title, s.startIndex, s.endIndex) for s in clamped] == [
        ("Intro", 0, 40),
        ("Rest", 40, 100),
    ]


def test_clamp_with_nothing_valid_falls_back():
    sections = [SectionSpec(title="Empty", startIndex=10, endIndex=10)]
    assert clamp_sections(sections, "abc" * 10, analyzed_chars=30)[0].title == "Document Content"


def test_clamp_stretches_last_section_when_text_was_truncated():
    """Text past the analyzed prefix is attached to the last section."""
    text = "y" * 300
    sections = [
        SectionSpec(title="One", startIndex=0, endIndex=50),
        SectionSpec(title="Two", startIndex=50, endIndex=100),
    ]
    clamped = clamp_sections(sections, text, analyzed_chars=100)
    assert clamped[-1].endIndex == 300
    assert clamped[0].endIndex == 50


async def test_structure_analysis_without_llm_uses_one_section(store, files):
    sections = await Extractor(store, files, llm=None).analyze_structure(DOCUMENT)
    assert len(sections) == 1


async def test_structure_analysis_accepts_fenced_json(store, files):
    reply = (
        "Here are the sections:\n```json\n"
        '[{"title": "Permits", "startIndex": 0, "endIndex": 120, "summary": "When permits apply"}]'
        "\n```"
    )
    llm = make_llm(reply)
    sections = await Extractor(store, files, llm=llm).analyze_structure(DOCUMENT)

    assert [s.title for s in sections] == ["Permits"]
    assert sections[0].summary == "When permits apply"
    assert "Document:\n" + DOCUMENT in llm.provider.chat_calls[0]["messages"][0]["content"]


async def test_structure_analysis_falls_back_after_bad_json(store, files):
    """Malformed output is retried once, then the single-section fallback is used."""
    llm = make_llm("not json at all", '[{"title": "Missing spans"}]')
    sections = await Extractor(store, files, llm=llm).analyze_structure(DOCUMENT)

    assert [s.title for s in sections] == ["Document Content"]
    assert len(llm.provider.chat_calls) == 2


async def test_structure_analysis_only_sends_prefix(store, files):
    text = "z" * 50
    llm = make_llm([{"title": "Z", "startIndex": 0, "endIndex": 20}])
    extractor = Extractor(store, files, llm=llm, structure_max_chars=20)

    sections = await extractor.analyze_structure(text)

    assert "z" * 21 not in llm.provider.chat_calls[0]["messages"][0]["content"]
    assert sections[0].endIndex == 50


async def test_extract_handout_persists_text(store, files):
    handout = store.add_handout(title="Safety", file_path="safety.txt")
    files.files["safety.txt"] = b"Wear fall protection above 6 feet."

    result = await Extractor(store, files, llm=None).extract_handout(handout.id)

    assert result.method == "text"
    stored = await store.get_handout(handout.id)
    assert stored.extracted_text == "Wear fall protection above 6 feet."
    assert stored.is_processed


async def test_extract_handout_unknown_id(store, files):
    with pytest.raises(HandoutNotFoundError):
        await Extractor(store, files, llm=None).extract_handout("nope")


def test_guess_image_media_type():
    assert guess_image_media_type("scans/page1.jpg") == "image/jpeg"
    assert guess_image_media_type("notes.bin") == "image/png"
