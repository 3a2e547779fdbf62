"""OpenAI-compatible LLM client factory."""
from __future__ import annotations

from typing import Any

from marketgap.config import settings
from marketgap.errors import ProviderNotConfiguredError


def is_configured() -> bool:
    return bool(settings.openai_api_key.strip())


def get_client() -> Any:
    """Build an AsyncOpenAI client for the configured endpoint."""
    from openai import AsyncOpenAI

    if not is_configured():
        raise ProviderNotConfiguredError("reasoning", "OPENAI_API_KEY")
    base_url = settings.openai_base_url.strip() or "https://api.openai.com/v1"
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=base_url,
        timeout=settings.llm_timeout_seconds,
    )


def get_model() -> str:
    """Get the active model id."""
    if settings.openai_model:
        return settings.openai_model
    return settings.default_model


_client: Any | None = None


def client() -> Any:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


def reset_client() -> None:
    global _client
    _client = None
