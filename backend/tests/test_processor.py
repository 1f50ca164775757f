import pytest

from fakes import make_llm, question_item
from licenseprep.core.errors import HandoutNotFoundError, InvalidInputError
from licenseprep.models.enums import LicenseType
from licenseprep.services.pipeline.chunking import Chunker
from licenseprep.services.pipeline.extraction import Extractor
from licenseprep.services.pipeline.processor import HandoutProcessor
from licenseprep.services.pipeline.questions import QuestionGenerator

TEXT = "Excavations deeper than 5 feet need a protective system. Spoil piles stay 2 feet back."


def processor(store, files, embedder, llm):
    extractor = Extractor(store, files, llm)
    return HandoutProcessor(
        store,
        extractor,
        Chunker(store, extractor),
        embedder,
        QuestionGenerator(store, llm),
    )


async def test_full_pipeline(store, files, embedder):
    """Extract, chunk, embed and generate each report a result line."""
    handout = store.add_handout(title="Trenching", file_path="trench.txt", license_type=LicenseType.A)
    files.files["trench.txt"] = TEXT.encode()
    llm = make_llm(
        [{"title": "Trenching", "startIndex": 0, "endIndex": len(TEXT)}],
        [question_item(), question_item(question="How far back do spoil piles sit?")],
    )

    result = await processor(store, files, embedder, llm).process(handout.id)

    assert result.steps == [
        "extract: success",
        "chunk: 1 chunks created",
        "embed: 1 embeddings generated",
        "generate: 2 questions generated",
    ]
    assert (result.chunk_count, result.embed_count, result.question_count) == (1, 1, 2)
    assert all(q.license_type == LicenseType.A for q in store.questions.values())

    status = await processor(store, files, embedder, llm).status(handout.id)
    assert (status.extracted, status.chunks, status.embeddings, status.questions) == (True, 1, 1, 2)
    assert status.is_processed


async def test_failed_step_is_recorded_and_later_steps_run(store, files, embedder):
    handout = store.add_handout(title="Missing file", file_path="gone.pdf")

    result = await processor(store, files, embedder, None).process(handout.id)

    assert result.steps[0] == "extract: failed - File not found: gone.pdf"
    assert result.steps[1].startswith("chunk: failed - Handout has no extracted text")
    assert result.steps[2] == "embed: 0 embeddings generated"
    assert result.steps[3].startswith("generate: failed - OPENAI_API_KEY required")
    assert store.processed_marks == [handout.id]


async def test_selected_steps_only(store, files, embedder):
    handout = store.add_handout(extracted_text=TEXT)

    result = await processor(store, files, embedder, None).process(handout.id, ["chunk", "embed"])

    assert result.steps == ["chunk: 1 chunks created", "embed: 1 embeddings generated"]
    assert result.question_count is None


async def test_rejects_bad_requests(store, files, embedder):
    job = processor(store, files, embedder, None)
    with pytest.raises(InvalidInputError):
        await job.process("")
    with pytest.raises(InvalidInputError):
        await job.process(store.add_handout().id, ["extract", "publish"])
    with pytest.raises(HandoutNotFoundError):
        await job.process("missing")
    with pytest.raises(HandoutNotFoundError):
        await job.status("missing")
    assert store.processed_marks == []
