"""
LLM Orchestrator

Shared logic on top of a provider:
- Uniform error translation (provider failures become UpstreamError)
- JSON extraction from LLM responses
- Strict validation of structured output against a pydantic TypeAdapter
- Bounded retry with a JSON-fix prompt on parse/validation failure

The orchestrator delegates the actual API call to the selected provider,
keeping provider implementations clean and focused on API translation.
"""

import json
import logging
import re
from typing import TypeVar

from openai import OpenAIError
from pydantic import TypeAdapter

from licenseprep.core.config import Settings
from licenseprep.core.errors import StructuredOutputError, UpstreamError
from licenseprep.services.llm.base import LLMProvider
from licenseprep.services.llm.registry import get_provider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LLMOrchestrator:
    """Binds one provider to one model and adds structured-output handling."""

    def __init__(self, provider: LLMProvider, api_model: str, json_fix_retries: int = 1):
        self.provider = provider
        self.api_model = api_model
        self.json_fix_retries = json_fix_retries

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict],
        max_output_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> str:
        """Plain text completion over a message list."""
        try:
            content = await self.provider.chat(
                system_prompt=system_prompt,
                messages=messages,
                model=self.api_model,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
            )
        except (OpenAIError, ValueError) as e:
            raise UpstreamError(f"{self.provider.provider_name} chat failed: {e}") from e

        logger.debug("[LLM] model=%s provider=%s", self.api_model, self.provider.provider_name)
        return content

    async def describe_image(
        self,
        image_data: bytes,
        media_type: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int = 4096,
    ) -> str:
        try:
            return await self.provider.analyze_image(
                image_data=image_data,
                media_type=media_type,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                model=self.api_model,
                max_output_tokens=max_output_tokens,
                temperature=0.0,
            )
        except (OpenAIError, ValueError) as e:
            raise UpstreamError(
                f"{self.provider.provider_name} vision call failed: {e}"
            ) from e

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        adapter: TypeAdapter[T],
        max_output_tokens: int = 4096,
    ) -> T:
        """
        Ask for JSON and validate it against ``adapter``.

        Args:
            system_prompt: The system prompt
            user_prompt: Instructions including the expected JSON shape
            adapter: pydantic TypeAdapter describing the expected structure
            max_output_tokens: Maximum tokens in the response

        Returns:
            The validated value

        Raises:
            StructuredOutputError: If the output is still invalid after
                ``json_fix_retries`` fix attempts
            UpstreamError: If the provider call itself failed
        """
        messages = [{"role": "user", "content": user_prompt}]
        content = await self.complete(
            system_prompt, messages, max_output_tokens=max_output_tokens, temperature=0.2
        )

        attempt = 0
        while True:
            try:
                data = json.loads(self._extract_json(content))
                return adapter.validate_python(data)
            except (json.JSONDecodeError, ValueError) as e:
                if attempt >= self.json_fix_retries:
                    raise StructuredOutputError(
                        f"Invalid structured output: {e}", raw_output=content
                    ) from e
                attempt += 1
                logger.info("[LLM] Invalid JSON, retrying with fix prompt (%d)", attempt)
                content = await self._retry_with_json_fix(
                    system_prompt, messages, content, str(e), max_output_tokens
                )

    def _extract_json(self, content: str) -> str:
        """Extract JSON from response, handling markdown code blocks."""
        # Try to find JSON in code blocks
        code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
        matches = re.findall(code_block_pattern, content)
        if matches:
            return matches[0].strip()

        # Otherwise take the outermost array or object, whichever opens first
        candidates = [
            m for m in (re.search(r"\[[\s\S]*\]", content), re.search(r"\{[\s\S]*\}", content))
            if m is not None
        ]
        if candidates:
            return min(candidates, key=lambda m: m.start()).group(0)

        # Return as-is and let JSON parser handle it
        return content.strip()

    async def _retry_with_json_fix(
        self,
        system_prompt: str,
        messages: list[dict],
        previous_response: str,
        error: str,
        max_output_tokens: int,
    ) -> str:
        """Re-ask with a fix prompt when JSON parsing or validation fails."""
        fix_prompt = (
            f"Your previous response was not valid JSON for the requested format. "
            f"The error was: {error}\n\n"
            f"Please fix the JSON and respond with ONLY valid JSON, no markdown code blocks or explanation.\n"
            f"Your previous response was:\n{previous_response[:500]}...\n\n"
            f"Respond with the corrected JSON only."
        )

        retry_messages = messages + [
            {"role": "assistant", "content": previous_response},
            {"role": "user", "content": fix_prompt},
        ]
        return await self.complete(
            system_prompt, retry_messages, max_output_tokens=max_output_tokens, temperature=0.1
        )


def create_orchestrator(settings: Settings) -> LLMOrchestrator | None:
    """Build the orchestrator for the configured model, or None without credentials."""
    if not settings.openai_api_key:
        logger.warning("[LLM] OPENAI_API_KEY is not set; language model features disabled")
        return None
    provider, api_model = get_provider(
        settings.llm_model, settings.openai_api_key, timeout=settings.llm_timeout_seconds
    )
    return LLMOrchestrator(provider, api_model, json_fix_retries=settings.json_fix_retries)
