"""
Hybrid Retriever

Finds handout chunks relevant to a free-text query by running two
independent searches concurrently and fusing their rankings.

How retrieval works:
1. VECTOR  – the query is embedded with the same provider used for chunks;
            the store returns chunks above a similarity threshold
2. LEXICAL – the query is split into terms (short tokens dropped) and
            matched with PostgreSQL full-text search
3. FUSE    – Reciprocal Rank Fusion: each list awards 1 / (K + rank + 1)
            to every chunk in it; scores are summed across lists

RRF only looks at positions within each list, so cosine similarities and
ts_rank scores never need to be on the same scale.
"""

import asyncio
import dataclasses
import logging
import re

from licenseprep.models.enums import LicenseType
from licenseprep.services.pipeline.embedding import Embedder
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import SearchHit

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\w+")


def query_terms(query: str, min_length: int = 3) -> list[str]:
    """Lexical terms of a query, dropping short stopword-like tokens."""
    return [term for term in WORD_PATTERN.findall(query) if len(term) >= min_length]


def reciprocal_rank_fusion(
    ranked_lists: list[list[SearchHit]], k: int = 60, limit: int = 5
) -> list[SearchHit]:
    """
    Fuse ranked lists; returns hits with ``score`` set to the fused score.

    When a chunk appears in several lists, the first list's copy is kept.
    """
    scores: dict[str, float] = {}
    hits: dict[str, SearchHit] = {}

    for ranked in ranked_lists:
        for rank, hit in enumerate(ranked):
            scores[hit.chunk_id] = scores.get(hit.chunk_id, 0.0) + 1.0 / (k + rank + 1)
            hits.setdefault(hit.chunk_id, hit)

    # sorted() is stable, so ties keep first-seen order
    fused = sorted(hits.values(), key=lambda h: scores[h.chunk_id], reverse=True)
    return [dataclasses.replace(h, score=scores[h.chunk_id]) for h in fused[:limit]]


class HybridRetriever:
    def __init__(
        self,
        store: ContentStore,
        embedder: Embedder,
        match_threshold: float = 0.7,
        candidates: int = 10,
        limit: int = 5,
        rrf_k: int = 60,
        min_term_length: int = 3,
    ):
        self.store = store
        self.embedder = embedder
        self.match_threshold = match_threshold
        self.candidates = candidates
        self.limit = limit
        self.rrf_k = rrf_k
        self.min_term_length = min_term_length

    async def vector_search(
        self, query: str, license_filter: LicenseType | None = None
    ) -> list[SearchHit]:
        query_embedding = await self.embedder.embed_query(query)
        return await self.store.match_chunks(
            query_embedding, self.match_threshold, self.candidates, license_filter
        )

    async def keyword_search(
        self, query: str, license_filter: LicenseType | None = None
    ) -> list[SearchHit]:
        terms = query_terms(query, self.min_term_length)
        if not terms:
            return []
        return await self.store.search_chunks_text(terms, self.candidates, license_filter)

    async def search(
        self,
        query: str,
        license_filter: LicenseType | None = None,
        limit: int | None = None,
    ) -> list[SearchHit]:
        # "both" means no restriction; a track filter also admits "both" content
        if license_filter == LicenseType.BOTH:
            license_filter = None

        results = await asyncio.gather(
            self.vector_search(query, license_filter),
            self.keyword_search(query, license_filter),
            return_exceptions=True,
        )

        ranked_lists = []
        for strategy, result in zip(("Semantic", "Keyword"), results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("[RAG] %s search error: %s", strategy, result)
                ranked_lists.append([])
            else:
                ranked_lists.append(result)

        fused = reciprocal_rank_fusion(ranked_lists, k=self.rrf_k, limit=limit or self.limit)
        logger.info(
            "[RAG] %d semantic + %d keyword -> %d fused for: %s",
            len(ranked_lists[0]),
            len(ranked_lists[1]),
            len(fused),
            query[:80],
        )
        return fused
