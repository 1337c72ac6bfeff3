"""Ollama local LLM provider (OpenAI-compatible API)."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from internflow.llm.base import LLMProvider
from internflow.llm.openai import chat_fragments

logger = logging.getLogger(__name__)

_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(LLMProvider):
    """LLM provider using a local Ollama instance via OpenAI-compatible API."""

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def stream(
        self,
        text: str,
        *,
        system: str,
        model: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for Ollama (OpenAI-compatible API). "
                "Install with: pip install 'internflow[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.AsyncOpenAI(base_url=_OLLAMA_BASE_URL, api_key="ollama")
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

        logger.info("Streaming from Ollama (%s)...", use_model)
        return chat_fragments(client, **kwargs)
