"""
Embedding provider selection.

``embedding_provider`` may name a backend explicitly; ``auto`` prefers
Voyage when its key is set, then OpenAI. Returns None when no backend has
credentials, leaving it to the embedding stage to fail loudly.
"""

import logging

from licenseprep.core.config import Settings
from licenseprep.core.errors import ConfigurationError
from licenseprep.services.embeddings.base import EmbeddingProvider
from licenseprep.services.embeddings.openai_embeddings import OpenAIEmbeddingProvider
from licenseprep.services.embeddings.voyage import VoyageEmbeddingProvider

logger = logging.getLogger(__name__)


def create_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    choice = settings.embedding_provider.lower()

    if choice == "voyage":
        if not settings.voyage_api_key:
            raise ConfigurationError("EMBEDDING_PROVIDER=voyage requires VOYAGE_API_KEY")
        provider = VoyageEmbeddingProvider(
            settings.voyage_api_key, settings.voyage_embedding_model
        )
    elif choice == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError("EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY")
        provider = OpenAIEmbeddingProvider(
            settings.openai_api_key, settings.openai_embedding_model
        )
    elif choice == "auto":
        if settings.voyage_api_key:
            provider = VoyageEmbeddingProvider(
                settings.voyage_api_key, settings.voyage_embedding_model
            )
        elif settings.openai_api_key:
            provider = OpenAIEmbeddingProvider(
                settings.openai_api_key, settings.openai_embedding_model
            )
        else:
            logger.warning(
                "[Embed] No embedding API key configured. Set VOYAGE_API_KEY or OPENAI_API_KEY"
            )
            return None
    else:
        raise ConfigurationError(f"Unknown embedding provider: {settings.embedding_provider}")

    logger.info("[Embed] Using %s (%s)", provider.provider_name, provider.model)
    return provider
