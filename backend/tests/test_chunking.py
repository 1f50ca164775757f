import re

import pytest

from fakes import make_llm
from licenseprep.core.errors import HandoutNotFoundError, InvalidInputError
from licenseprep.services.llm.models import SectionSpec
from licenseprep.services.pipeline.chunking import (
    Chunker,
    chunk_sections,
    estimate_tokens,
    overlap_tail,
    split_sentences,
    split_with_overlap,
)
from licenseprep.services.pipeline.extraction import Extractor


def numbered_text(count: int, filler: str = "concrete cures slowly in cold weather") -> str:
    return " ".join(f"Sentence {i} says {filler}." for i in range(count))


def test_estimate_tokens_rounds_up():
    """Tokens are characters / 4, rounded up."""
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_split_sentences_keeps_terminators_and_trailing_fragment():
    """Sentences end at . ! ? and a trailing fragment is kept."""
    assert split_sentences("One. Two! Three? tail") == ["One.", " Two!", " Three?", " tail"]
    assert split_sentences("...") == ["..."]


@pytest.mark.parametrize(
    "text",
    [
        "...and the footing must be 12 inches deep.",
        ". Rebar laps are 40 bar diameters.",
        "Is it load bearing?! Check the plans... then frame",
        "Wait!!! Stop.\n\n?Next",
    ],
)
def test_split_sentences_loses_no_characters(text):
    """Section spans can start mid-punctuation; joining the sentences gives the text back."""
    assert "".join(split_sentences(text)) == text


def test_leading_terminators_survive_chunking():
    assert split_with_overlap("...and the footing must be 12 inches deep.", 1000, 100) == [
        "...and the footing must be 12 inches deep."
    ]


def test_three_short_sentences_make_one_chunk():
    """A three-sentence section under budget yields exactly one chunk."""
    text = "Footings must bear on undisturbed soil. Rebar needs 3 inches of cover. Inspect before pouring."
    sections = [SectionSpec(title="Foundations", startIndex=0, endIndex=len(text))]

    drafts = chunk_sections(text, sections, chunk_size=1000, overlap=100)

    assert len(drafts) == 1
    assert drafts[0].content == text
    assert drafts[0].chunk_of_section == 1
    assert drafts[0].total_section_chunks == 1
    assert drafts[0].section_title == "Foundations"


def test_chunks_respect_budget_unless_single_sentence():
    """No chunk exceeds the budget by more than one sentence."""
    text = numbered_text(60)
    chunks = split_with_overlap(text, chunk_size=50, overlap=10)

    assert len(chunks) > 1
    longest_sentence = max(estimate_tokens(s) for s in split_sentences(text))
    for chunk in chunks:
        assert estimate_tokens(chunk) <= 50 + longest_sentence


def test_consecutive_chunks_share_overlap():
    """Each chunk after the first starts with trailing sentences of the previous one."""
    text = numbered_text(40)
    chunks = split_with_overlap(text, chunk_size=40, overlap=15)

    assert len(chunks) > 2
    for previous, current in zip(chunks, chunks[1:]):
        first_number = re.search(r"Sentence (\d+)", current).group(1)
        assert f"Sentence {first_number} " in previous


def test_chunks_cover_every_sentence_in_order():
    """Concatenating chunks, minus overlaps, recovers the section's sentences."""
    text = numbered_text(50)
    chunks = split_with_overlap(text, chunk_size=45, overlap=12)

    seen = []
    for chunk in chunks:
        for number in re.findall(r"Sentence (\d+)", chunk):
            if not seen or int(number) > seen[-1]:
                seen.append(int(number))
    assert seen == list(range(50))


def test_overlap_tail_takes_whole_sentences_within_budget():
    """The overlap never splits a sentence and never exceeds overlap * 4 chars."""
    text = "Alpha one. Beta two. Gamma three."
    assert overlap_tail(text, overlap_tokens=4) == " Gamma three."
    assert overlap_tail(text, overlap_tokens=1) == ""
    assert overlap_tail(text, overlap_tokens=100) == text


def test_chunk_metadata_numbers_chunks_within_each_section():
    """chunk_of_section is 1-based and total_section_chunks counts the section's chunks."""
    first = numbered_text(30)
    second = "Short closing section."
    text = first + second
    sections = [
        SectionSpec(title="Long", startIndex=0, endIndex=len(first), summary="long one"),
        SectionSpec(title="Short", startIndex=len(first), endIndex=len(text)),
    ]

    drafts = chunk_sections(text, sections, chunk_size=40, overlap=10)

    long_drafts = [d for d in drafts if d.section_title == "Long"]
    assert [d.chunk_of_section for d in long_drafts] == list(range(1, len(long_drafts) + 1))
    assert all(d.total_section_chunks == len(long_drafts) for d in long_drafts)
    assert all(d.section_summary == "long one" for d in long_drafts)
    assert drafts[-1].section_title == "Short"
    assert drafts[-1].metadata()["total_section_chunks"] == 1


async def test_chunk_handout_replaces_previous_chunks(store, files):
    """Chunking twice leaves exactly one generation of chunks."""
    handout = store.add_handout(extracted_text=numbered_text(40))
    chunker = Chunker(store, Extractor(store, files, llm=None), chunk_size=40, overlap=10)

    first = await chunker.chunk_handout(handout.id)
    second = await chunker.chunk_handout(handout.id)

    chunks = await store.list_chunks(handout.id)
    assert first == second == len(chunks)
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.section_title == "Document Content" for c in chunks)


async def test_chunk_handout_uses_llm_sections(store, files):
    """Sections from structure analysis drive the chunk metadata."""
    text = "Permits are required. " * 3 + "Inspections follow each phase. " * 3
    split = len("Permits are required. " * 3)
    llm = make_llm(
        [
            {"title": "Permits", "startIndex": 0, "endIndex": split, "summary": "permits"},
            {"title": "Inspections", "startIndex": split, "endIndex": len(text), "summary": "inspect"},
        ]
    )
    handout = store.add_handout(extracted_text=text)
    chunker = Chunker(store, Extractor(store, files, llm=llm))

    assert await chunker.chunk_handout(handout.id) == 2
    titles = [c.section_title for c in await store.list_chunks(handout.id)]
    assert titles == ["Permits", "Inspections"]


async def test_chunk_handout_requires_extracted_text(store, files):
    chunker = Chunker(store, Extractor(store, files, llm=None))
    handout = store.add_handout(extracted_text=None)

    with pytest.raises(InvalidInputError):
        await chunker.chunk_handout(handout.id)
    with pytest.raises(HandoutNotFoundError):
        await chunker.chunk_handout("missing")
