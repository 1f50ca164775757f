"""
OpenAI Responses provider (gpt-5 family).

The system prompt goes in ``instructions`` and session turns in ``input``.
These are reasoning models, so temperature is accepted but not sent.
"""

import logging

from openai import AsyncOpenAI

from licenseprep.services.llm.base import LLMProvider, image_data_url

logger = logging.getLogger(__name__)


class OpenAIResponsesProvider(LLMProvider):
    provider_name = "openai_responses"

    def __init__(self, api_key: str, timeout: float = 60.0):
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _respond(
        self, model: str, instructions: str, turns: list[dict], max_output_tokens: int
    ) -> str:
        response = await self.client.responses.create(
            model=model,
            instructions=instructions,
            input=turns,
            max_output_tokens=max_output_tokens,
        )
        if response.status == "incomplete":
            logger.warning(
                "[LLM] %s response incomplete: %s", model, response.incomplete_details
            )
        if not response.output_text:
            raise ValueError(f"{model} returned an empty reply")
        return response.output_text

    async def chat(
        self,
        system_prompt: str,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> str:
        turns = [
            {"role": getattr(m["role"], "value", m["role"]), "content": m["content"]}
            for m in messages
        ]
        return await self._respond(model, system_prompt, turns, max_output_tokens)

    async def analyze_image(
        self,
        image_data: bytes,
        media_type: str,
        system_prompt: str,
        user_prompt: str,
        model: str,
        max_output_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> str:
        page = {
            "role": "user",
            "content": [
                {"type": "input_text", "text": user_prompt},
                {
                    "type": "input_image",
                    "image_url": image_data_url(image_data, media_type),
                    "detail": "high",
                },
            ],
        }
        return await self._respond(model, system_prompt, [page], max_output_tokens)
