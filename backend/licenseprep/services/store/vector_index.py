"""
Chunk vector index backed by a persistent ChromaDB collection.

Uses the chromadb client directly: vectors are computed by our own
embedding providers, Chroma only stores and searches them. Each point is
keyed by chunk id and carries handout_id / license_type metadata so that
re-chunking can drop a handout's points and searches can filter by track.
"""

import asyncio
import logging

import chromadb

from licenseprep.models.enums import LicenseType

logger = logging.getLogger(__name__)


class ChromaVectorIndex:
    def __init__(self, persist_dir: str, collection_name: str):
        self.client = chromadb.PersistentClient(path=persist_dir)
        # Cosine space: distance = 1 - cosine similarity
        self.collection = self.client.get_or_create_collection(
            collection_name, metadata={"hnsw:space": "cosine"}
        )
        logger.info(
            "[RAG] Chroma collection %s loaded: %d vectors",
            collection_name,
            self.collection.count(),
        )

    async def upsert(
        self,
        ids: list[str],
        vectors: list[list[float]],
        metadatas: list[dict],
    ) -> None:
        if not ids:
            return
        await asyncio.to_thread(
            self.collection.upsert, ids=ids, embeddings=vectors, metadatas=metadatas
        )

    async def delete_handout(self, handout_id: str) -> None:
        await asyncio.to_thread(self.collection.delete, where={"handout_id": handout_id})

    async def query(
        self,
        vector: list[float],
        count: int,
        license_filter: LicenseType | None = None,
    ) -> list[tuple[str, float]]:
        """Return (chunk_id, similarity) pairs, most similar first."""
        total = await asyncio.to_thread(self.collection.count)
        if total == 0:
            return []

        where_filter = None
        if license_filter is not None:
            where_filter = {
                "license_type": {"$in": [license_filter.value, LicenseType.BOTH.value]}
            }

        result = await asyncio.to_thread(
            self.collection.query,
            query_embeddings=[vector],
            n_results=min(count, total),
            where=where_filter,
            include=["distances"],
        )
        ids = result["ids"][0] if result["ids"] else []
        distances = result["distances"][0] if result["distances"] else []
        return [(chunk_id, 1.0 - distance) for chunk_id, distance in zip(ids, distances)]
