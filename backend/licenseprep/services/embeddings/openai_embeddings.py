"""
OpenAI embedding provider.

Wraps langchain-openai's ``OpenAIEmbeddings`` (text-embedding-3-small by
default) behind the EmbeddingProvider interface.
"""

from langchain_openai import OpenAIEmbeddings
from openai import OpenAIError

from licenseprep.core.errors import EmbeddingError
from licenseprep.services.embeddings.base import EmbeddingProvider


class OpenAIEmbeddingProvider(EmbeddingProvider):
    def __init__(self, api_key: str, model: str = "text-embedding-3-small"):
        self.model = model
        self.embeddings = OpenAIEmbeddings(model=model, openai_api_key=api_key)

    @property
    def provider_name(self) -> str:
        return "OpenAI Embeddings"

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = await self.embeddings.aembed_documents(texts)
        except OpenAIError as e:
            raise EmbeddingError(f"OpenAI embeddings error: {e}") from e
        return self._check_batch(texts, vectors)
