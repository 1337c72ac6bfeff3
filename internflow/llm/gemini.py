"""Google Gemini LLM provider (google-genai SDK)."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from internflow.llm.base import LLMProvider

logger = logging.getLogger(__name__)


class GeminiProvider(LLMProvider):
    """LLM provider using the Google Gemini API (google-genai SDK)."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

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
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            msg = (
                "google-genai is required for the Gemini provider. "
                "Install with: pip install 'internflow[gemini]'"
            )
            raise ImportError(msg) from None

        use_model = model or self.default_model
        client = genai.Client(api_key=api_key)
        config = genai_types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json",
            temperature=temperature,
        )
        logger.info("Streaming from Gemini API (%s)...", use_model)
        return self._fragments(client, use_model, text, config)

    async def _fragments(
        self, client: Any, model: str, text: str, config: Any,
    ) -> AsyncIterator[str]:
        response = await client.aio.models.generate_content_stream(
            model=model,
            contents=text,
            config=config,
        )
        async for chunk in response:
            if chunk.text:
                yield chunk.text
