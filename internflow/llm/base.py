"""Abstract base class for streaming LLM providers and shared logic."""

import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class LLMProvider(ABC):
    """Base class that every LLM provider must implement.

    ``stream`` checks credentials and imports the SDK eagerly, so a missing
    key or package fails before any fragment is requested.
    """

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'gemini')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @abstractmethod
    def stream(
        self,
        text: str,
        *,
        system: str,
        model: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Send text to the LLM and return an async iterator of text fragments.

        Args:
            text: User content (the raw job postings).
            system: System instruction.
            model: Override the provider's default model. None uses default.
            temperature: Sampling temperature. None uses the SDK default.

        Returns:
            Fragments whose concatenation is the full response.

        Raises:
            ValueError: If the API key is missing.
            ImportError: If the provider SDK is not installed.
        """

    def require_api_key(self) -> str:
        """Return the configured key, falling back to the provider's env var."""
        api_key = self._api_key or (os.environ.get(self.env_var) if self.env_var else None)
        if not api_key:
            msg = f"{self.env_var} environment variable is required"
            raise ValueError(msg)
        return api_key
