"""
Provider interface for the language model.

Two call shapes are needed here: grounded chat over a study session's
history, and transcription of a photographed or scanned handout page.
Providers only translate these into their API's wire format; error
translation, JSON extraction and fix retries live in the orchestrator.
"""

import base64
from abc import ABC, abstractmethod


def image_data_url(image_data: bytes, media_type: str) -> str:
    """Inline ``data:`` URL for an image, as accepted by OpenAI vision inputs."""
    return f"data:{media_type};base64,{base64.b64encode(image_data).decode('ascii')}"


def conversation(system_prompt: str, messages: list[dict]) -> list[dict]:
    """System prompt followed by the session turns, roles as plain strings."""
    turns = [{"role": "system", "content": system_prompt}]
    for message in messages:
        role = message["role"]
        turns.append({"role": getattr(role, "value", role), "content": message["content"]})
    return turns


class LLMProvider(ABC):
    provider_name: str = "base"

    @abstractmethod
    async def chat(
        self,
        system_prompt: str,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 1024,
        temperature: float = 0.3,
    ) -> str:
        """
        Reply to a conversation.

        Args:
            system_prompt: Instructions for the assistant
            messages: Turns in order, each a dict with "role" and "content"
            model: API model identifier
            max_output_tokens: Reply length cap
            temperature: Sampling temperature (ignored by reasoning models)

        Returns:
            The reply text; raises ValueError when the API returns nothing
        """

    @abstractmethod
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
        """Send one inline image with an instruction and return the text reply."""
