"""Language-model generation capability: prompt in, streamed text increments out."""

import logging
from collections.abc import AsyncIterator
from typing import Protocol

from openai import AsyncOpenAI

from ..core.config import Settings

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def stream_complete(self, prompt: str) -> AsyncIterator[str]: ...


class OpenAIGenerator:
    """Streams chat completions from the OpenAI API."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        system_prompt: str = "",
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ):
        self.client = client
        self.model = model
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def stream_complete(self, prompt: str) -> AsyncIterator[str]:
        """
        Yield non-empty content deltas in the order the API produces them.

        Errors from the API propagate to the caller unchanged.
        """
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.debug(f"Sending request to {self.model}")

        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=True,
        )

        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content


def build_generator(settings: Settings) -> OpenAIGenerator | None:
    """
    Create the generation capability, or None when no API key is configured.

    A missing generator is an explicit "unavailable" state that the QA service
    checks before doing any work.
    """
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; answer generation is unavailable")
        return None

    return OpenAIGenerator(
        AsyncOpenAI(api_key=settings.OPENAI_API_KEY),
        model=settings.LLM_MODEL,
        system_prompt=settings.SYSTEM_PROMPT,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
    )
