"""
Embedding stage.

Selects only chunks without an embedding, embeds them in provider batches
with pacing between batches, and persists each batch as soon as it
returns. A provider failure aborts the run; batches already saved stay
valid and are skipped on the next run.
"""

import logging

from licenseprep.core.errors import ConfigurationError
from licenseprep.services.embeddings.base import EmbeddingProvider
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import Chunk
from licenseprep.services.throttle import NoThrottle, Throttle

logger = logging.getLogger(__name__)

PENDING_LIMIT = 500


class Embedder:
    def __init__(
        self,
        store: ContentStore,
        provider: EmbeddingProvider | None,
        batch_size: int = 100,
        throttle: Throttle | None = None,
    ):
        self.store = store
        self.provider = provider
        self.batch_size = batch_size
        self.throttle = throttle or NoThrottle()

    def _require_provider(self) -> EmbeddingProvider:
        if self.provider is None:
            raise ConfigurationError(
                "No embedding API key configured. Set VOYAGE_API_KEY or OPENAI_API_KEY"
            )
        return self.provider

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed any number of texts, batching and pacing provider calls."""
        provider = self._require_provider()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            if start > 0:
                await self.throttle.wait()
            vectors.extend(await provider.embed(texts[start : start + self.batch_size]))
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        return (await self._require_provider().embed([text]))[0]

    async def _embed_chunks(self, chunks: list[Chunk]) -> int:
        provider = self._require_provider()
        for start in range(0, len(chunks), self.batch_size):
            if start > 0:
                await self.throttle.wait()
            batch = chunks[start : start + self.batch_size]
            vectors = await provider.embed([c.content for c in batch])
            await self.store.save_embeddings(batch, vectors, provider.model)
        return len(chunks)

    async def embed_handout(self, handout_id: str) -> int:
        chunks = await self.store.chunks_missing_embeddings(handout_id=handout_id)
        if not chunks:
            logger.info("[Embed] No chunks to embed for handout %s", handout_id)
            return 0

        count = await self._embed_chunks(chunks)
        logger.info("[Embed] Generated %d embeddings for handout %s", count, handout_id)
        return count

    async def embed_all_pending(self, limit: int = PENDING_LIMIT) -> int:
        chunks = await self.store.chunks_missing_embeddings(limit=limit)
        if not chunks:
            return 0

        count = await self._embed_chunks(chunks)
        logger.info("[Embed] Generated %d embeddings across pending chunks", count)
        return count
