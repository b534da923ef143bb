"""Embedding provider implementations and factory."""
from __future__ import annotations

from typing import TYPE_CHECKING

from .base import EmbeddingProvider
from .mock_embedding import MockEmbeddingProvider
from .openai_embedding import OpenAIEmbeddingProvider

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from pdfchat.config import Settings


def create_embedding_provider(settings: "Settings") -> EmbeddingProvider:
    """Return the embedding provider selected by ``LLM_PROVIDER``."""

    if settings.provider == "mock":
        return MockEmbeddingProvider()
    return OpenAIEmbeddingProvider(
        settings.embedding_model,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )


__all__ = [
    "EmbeddingProvider",
    "MockEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_embedding_provider",
]
