import asyncio

import pytest

from fakes import drafts
from licenseprep.models.enums import LicenseType
from licenseprep.services.rag.retriever import HybridRetriever, query_terms, reciprocal_rank_fusion
from licenseprep.services.store.records import SearchHit


def hit(chunk_id, score=0.0):
    return SearchHit(
        chunk_id=chunk_id,
        handout_id="h",
        handout_title="Handout",
        content=f"content of {chunk_id}",
        metadata={},
        score=score,
    )


def test_query_terms_drops_short_tokens():
    assert query_terms("What is the R-value of a 2x6 wall?") == ["What", "the", "value", "2x6", "wall"]
    assert query_terms("a to of") == []


def test_rrf_rewards_agreement():
    """A chunk ranked in both lists beats chunks ranked first in only one."""
    semantic = [hit("a"), hit("shared"), hit("b")]
    keyword = [hit("c"), hit("shared")]

    fused = reciprocal_rank_fusion([semantic, keyword], k=60, limit=5)

    assert fused[0].chunk_id == "shared"
    assert fused[0].score == pytest.approx(2 / 62)
    assert {h.chunk_id for h in fused} == {"a", "shared", "b", "c"}


def test_rrf_top_of_both_lists_is_top_fused():
    semantic = [hit("footing"), hit("slab"), hit("rebar")]
    keyword = [hit("footing"), hit("rebar"), hit("anchor")]

    fused = reciprocal_rank_fusion([semantic, keyword], k=60, limit=5)

    assert fused[0].chunk_id == "footing"
    assert fused[0].score == pytest.approx(2 / 61)
    assert fused[1].chunk_id == "rebar"


def test_rrf_never_invents_chunks_and_respects_limit():
    fused = reciprocal_rank_fusion([[hit(str(i)) for i in range(8)], []], limit=5)
    assert [h.chunk_id for h in fused] == ["0", "1", "2", "3", "4"]
    assert reciprocal_rank_fusion([[], []]) == []


def test_rrf_ties_keep_first_seen_order():
    fused = reciprocal_rank_fusion([[hit("x")], [hit("y")]])
    assert [h.chunk_id for h in fused] == ["x", "y"]


def test_rrf_keeps_first_lists_copy():
    semantic = [SearchHit("s", "h", "Semantic title", "semantic text", {}, 0.9)]
    keyword = [SearchHit("s", "h", "Keyword title", "keyword text", {}, 3.0)]
    [fused] = reciprocal_rank_fusion([semantic, keyword])
    assert fused.content == "semantic text"


async def seed(store, embedder):
    a = store.add_handout(title="Highways", license_type=LicenseType.A)
    b = store.add_handout(title="Framing", license_type=LicenseType.B)
    both = store.add_handout(title="Safety", license_type=LicenseType.BOTH)
    await store.replace_chunks(a.id, drafts("Asphalt paving requires compaction testing."))
    await store.replace_chunks(b.id, drafts("Stud framing spacing is 16 inches on center."))
    await store.replace_chunks(both.id, drafts("Fall protection is required above 6 feet."))
    await embedder.embed_all_pending()


async def test_search_combines_both_strategies(store, embedder):
    await seed(store, embedder)
    retriever = HybridRetriever(store, embedder, match_threshold=0.2)

    results = await retriever.search("stud framing spacing")

    assert results[0].handout_title == "Framing"


async def test_license_filter_admits_shared_content(store, embedder):
    """A track filter returns that track's chunks plus chunks marked for both."""
    await seed(store, embedder)
    retriever = HybridRetriever(store, embedder, match_threshold=0.0)

    titles = {h.handout_title for h in await retriever.search("required testing framing", LicenseType.A)}

    assert titles == {"Highways", "Safety"}


async def test_both_means_no_filter(store, embedder):
    await seed(store, embedder)
    retriever = HybridRetriever(store, embedder, match_threshold=0.0)

    results = await retriever.search("required framing", LicenseType.BOTH)

    assert {h.handout_title for h in results} == {"Highways", "Framing", "Safety"}


async def test_failing_strategy_degrades_to_the_other(store, embedder):
    await seed(store, embedder)
    retriever = HybridRetriever(store, embedder)

    async def broken(*args, **kwargs):
        raise RuntimeError("vector index offline")

    retriever.vector_search = broken
    results = await retriever.search("asphalt compaction")

    assert [h.handout_title for h in results] == ["Highways"]


async def test_cancellation_is_not_swallowed(store, embedder):
    retriever = HybridRetriever(store, embedder)

    async def cancelled(*args, **kwargs):
        raise asyncio.CancelledError()

    retriever.keyword_search = cancelled
    with pytest.raises(asyncio.CancelledError):
        await retriever.search("anything at all")
