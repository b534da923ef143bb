"""Environment driven settings for the service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_GENERATIVE_MODEL = "gpt-4o-mini"
SUPPORTED_PROVIDERS = {"openai", "mock"}


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    generative_model: str = DEFAULT_GENERATIVE_MODEL
    processing_timeout: float = 30.0
    top_k: int = 5
    chunk_min_chars: int = 10
    render_scale: float = 1.5
    temperature: float = 0.1
    top_p: float = 0.9
    max_tokens: int = 1024
    max_sessions: int = 100


def load_settings() -> Settings:
    """Build :class:`Settings` from the current environment."""

    provider = _env_str("LLM_PROVIDER", "openai").lower()
    if provider not in SUPPORTED_PROVIDERS:
        LOGGER.warning("Unknown LLM_PROVIDER %s; using 'openai'", provider)
        provider = "openai"

    timeout = _env_float("PDF_PROCESSING_TIMEOUT", 30.0)
    if timeout <= 0:
        LOGGER.warning("PDF_PROCESSING_TIMEOUT must be positive; using 30.0")
        timeout = 30.0

    return Settings(
        provider=provider,
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        embedding_model=_env_str("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
        generative_model=_env_str("GENERATIVE_MODEL", DEFAULT_GENERATIVE_MODEL),
        processing_timeout=timeout,
        top_k=max(_env_int("RETRIEVAL_TOP_K", 5), 1),
        chunk_min_chars=max(_env_int("CHUNK_MIN_CHARS", 10), 0),
        render_scale=_env_float("PAGE_RENDER_SCALE", 1.5),
        temperature=_env_float("LLM_TEMPERATURE", 0.1),
        top_p=_env_float("LLM_TOP_P", 0.9),
        max_tokens=max(_env_int("LLM_MAX_TOKENS", 1024), 1),
        max_sessions=max(_env_int("MAX_SESSIONS", 100), 1),
    )


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance."""

    return load_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]
