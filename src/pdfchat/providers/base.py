"""Base provider interface for embedding services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

__all__ = ["EmbeddingProvider"]


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers.

    One call embeds one text; batching is the caller's concern.
    """

    model_name: str = "unknown"

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding vector for *text*."""
