"""
OpenAI Chat Completions provider (gpt-4o family).

The system prompt travels as the first message; handout images are sent
as an ``image_url`` part next to the transcription instruction.
"""

import logging

from openai import AsyncOpenAI

from licenseprep.services.llm.base import LLMProvider, conversation, image_data_url

logger = logging.getLogger(__name__)


class OpenAIChatProvider(LLMProvider):
    provider_name = "openai_chat"

    def __init__(self, api_key: str, timeout: float = 60.0):
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _complete(
        self, model: str, turns: list[dict], max_output_tokens: int, temperature: float
    ) -> str:
        response = await self.client.chat.completions.create(
            model=model,
            messages=turns,
            max_completion_tokens=max_output_tokens,
            temperature=temperature,
        )
        choice = response.choices[0]
        if choice.finish_reason == "length":
            logger.warning("[LLM] %s reply cut off at %d tokens", model, max_output_tokens)
        if not choice.message.content:
            raise ValueError(f"{model} returned an empty reply")
        return choice.message.content

    async def chat(
        self,
        system_prompt: str,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> str:
        return await self._complete(
            model, conversation(system_prompt, messages), max_output_tokens, temperature
        )

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
                {"type": "text", "text": user_prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": image_data_url(image_data, media_type), "detail": "high"},
                },
            ],
        }
        return await self._complete(
            model, conversation(system_prompt, [page]), max_output_tokens, temperature
        )
