"""LLM provider registry with lazy loading.

Usage:
    from internflow.llm import get_provider

    provider = get_provider("gemini", api_key=settings.llm.api_key)
    async for fragment in provider.stream(text, system=prompt):
        ...
"""

from __future__ import annotations

import importlib

from internflow.llm.base import LLMProvider

__all__ = ["LLMProvider", "available_providers", "get_provider"]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("internflow.llm.anthropic", "AnthropicProvider"),
    "openai": ("internflow.llm.openai", "OpenAIProvider"),
    "gemini": ("internflow.llm.gemini", "GeminiProvider"),
    "ollama": ("internflow.llm.ollama", "OllamaProvider"),
}


def get_provider(name: str, api_key: str | None = None) -> LLMProvider:
    """Instantiate and return an LLM provider by name.

    Args:
        name: Provider identifier (anthropic, openai, gemini, ollama).
        api_key: Explicit key; None falls back to the provider's env var.

    Returns:
        An LLMProvider instance.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(api_key=api_key)  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
