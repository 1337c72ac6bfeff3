"""OpenAI LLM provider."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from internflow.llm.base import LLMProvider

logger = logging.getLogger(__name__)


async def chat_fragments(client: Any, **kwargs: Any) -> AsyncIterator[str]:
    """Yield content deltas from an OpenAI-compatible streaming chat completion."""
    response = await client.chat.completions.create(stream=True, **kwargs)
    async for chunk in response:
        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta.content
        if delta:
            yield delta


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def stream(
        self,
        text: str,
        *,
        system: str,
        model: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        api_key = self.require_api_key()

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for the OpenAI provider. "
                "Install with: pip install 'internflow[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.AsyncOpenAI(api_key=api_key)
        use_model = model or self.default_model

        kwargs: dict[str, Any] = {
            "model": use_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        logger.info("Streaming from OpenAI API (%s)...", use_model)
        return chat_fragments(client, **kwargs)
