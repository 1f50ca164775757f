from licenseprep.services.embeddings.base import EmbeddingProvider
from licenseprep.services.embeddings.openai_embeddings import OpenAIEmbeddingProvider
from licenseprep.services.embeddings.registry import create_embedding_provider
from licenseprep.services.embeddings.voyage import VoyageEmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "VoyageEmbeddingProvider",
    "create_embedding_provider",
]
