"""Anthropic Claude LLM provider."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from internflow.llm.base import LLMProvider

logger = logging.getLogger(__name__)

_MAX_TOKENS = 8192


class AnthropicProvider(LLMProvider):
    """LLM provider using the Anthropic Messages API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

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
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for the Anthropic provider. "
                "Install with: pip install 'internflow[anthropic]'"
            )
            raise ImportError(msg) from None

        client = anthropic.AsyncAnthropic(api_key=api_key)
        use_model = model or self.default_model

        kwargs: dict[str, Any] = {
            "model": use_model,
            "max_tokens": _MAX_TOKENS,
            "system": system,
            "messages": [{"role": "user", "content": text}],
        }
        if temperature is not None:
            kwargs["temperature"] = min(temperature, 1.0)

        logger.info("Streaming from Claude API (%s)...", use_model)
        return self._fragments(client, kwargs)

    async def _fragments(self, client: Any, kwargs: dict[str, Any]) -> AsyncIterator[str]:
        async with client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text
