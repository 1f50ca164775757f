"""
Voyage AI embedding provider.

Talks to the Voyage REST API with httpx; a non-200 response aborts the
whole batch.
"""

import httpx

from licenseprep.core.errors import EmbeddingError
from licenseprep.services.embeddings.base import EmbeddingProvider

VOYAGE_API_URL = "https://api.voyageai.com/v1/embeddings"


class VoyageEmbeddingProvider(EmbeddingProvider):
    def __init__(self, api_key: str, model: str = "voyage-2", timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @property
    def provider_name(self) -> str:
        return "Voyage AI"

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    VOYAGE_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={"input": texts, "model": self.model},
                )
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Voyage API request failed: {e}") from e

        if response.status_code != 200:
            raise EmbeddingError(
                f"Voyage API error: {response.status_code} - {response.text[:200]}"
            )

        data = response.json().get("data", [])
        # Voyage tags each item with its input index
        data = sorted(data, key=lambda item: item.get("index", 0))
        return self._check_batch(texts, [item["embedding"] for item in data])
