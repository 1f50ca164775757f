"""
Language model access for extraction, question generation and study chat.

``create_orchestrator`` reads ``Settings`` and returns an ``LLMOrchestrator``
bound to one registry model, or None when no API key is configured.
"""

from licenseprep.services.llm.models import GeneratedQuestion, SectionSpec
from licenseprep.services.llm.orchestrator import LLMOrchestrator, create_orchestrator
from licenseprep.services.llm.registry import MODEL_REGISTRY, get_provider

__all__ = [
    "GeneratedQuestion",
    "LLMOrchestrator",
    "MODEL_REGISTRY",
    "SectionSpec",
    "create_orchestrator",
    "get_provider",
]
