"""
Models the pipeline and study chat can run on, keyed by the ``LLM_MODEL``
setting. Every entry must read handout images, since extraction sends
photographed pages to the same model.
"""

from licenseprep.services.llm.base import LLMProvider
from licenseprep.services.llm.openai_chat import OpenAIChatProvider
from licenseprep.services.llm.openai_responses import OpenAIResponsesProvider

PROVIDERS: dict[str, type[LLMProvider]] = {
    OpenAIChatProvider.provider_name: OpenAIChatProvider,
    OpenAIResponsesProvider.provider_name: OpenAIResponsesProvider,
}

MODEL_REGISTRY: dict[str, dict] = {
    "gpt-4o": {"provider": "openai_chat", "api_model": "gpt-4o"},
    "gpt-4o-mini": {"provider": "openai_chat", "api_model": "gpt-4o-mini"},
    "gpt-4.1": {"provider": "openai_chat", "api_model": "gpt-4.1"},
    "gpt-5-mini": {"provider": "openai_responses", "api_model": "gpt-5-mini"},
    "gpt-5.2": {"provider": "openai_responses", "api_model": "gpt-5.2"},
}


def get_provider(model_id: str, api_key: str, timeout: float = 60.0) -> tuple[LLMProvider, str]:
    """
    Returns (provider instance, API model name) for a configured model id.

    Raises ValueError for ids missing from ``MODEL_REGISTRY``.
    """
    entry = MODEL_REGISTRY.get(model_id)
    if entry is None:
        raise ValueError(
            f"Unknown model: {model_id}. Available models: {', '.join(MODEL_REGISTRY)}"
        )
    provider_cls = PROVIDERS[entry["provider"]]
    return provider_cls(api_key, timeout=timeout), entry["api_model"]
