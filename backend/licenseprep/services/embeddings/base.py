"""
Abstract base class for embedding providers.

Each provider turns a batch of strings into one fixed-length float vector
per string. Callers batch and pace; providers make exactly one upstream
call per ``embed`` invocation.
"""

from abc import ABC, abstractmethod

from licenseprep.core.errors import EmbeddingError


class EmbeddingProvider(ABC):
    """Abstract base class for embedding backends."""

    model: str

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Human-readable provider name for logging."""
        ...

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed a batch of texts.

        Args:
            texts: Strings to embed, at most one provider batch

        Returns:
            One vector per input, in input order, all of the same length

        Raises:
            EmbeddingError: If the upstream call fails or returns an
                unusable batch
        """
        ...

    def _check_batch(self, texts: list[str], vectors: list[list[float]]) -> list[list[float]]:
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"{self.provider_name} returned {len(vectors)} vectors for {len(texts)} texts"
            )
        dimensions = {len(v) for v in vectors}
        if len(dimensions) > 1:
            raise EmbeddingError(
                f"{self.provider_name} returned mixed dimensionality: {sorted(dimensions)}"
            )
        if 0 in dimensions:
            raise EmbeddingError(f"{self.provider_name} returned an empty vector")
        return vectors
