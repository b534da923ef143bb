"""Embedding provider backed by an OpenAI-compatible ``/v1/embeddings`` API."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from .base import EmbeddingProvider

LOGGER = logging.getLogger(__name__)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Issue one embeddings request per text through ``openai.AsyncOpenAI``."""

    def __init__(
        self,
        model_name: str,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.model_name = model_name
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            import openai

            kwargs: dict[str, Any] = {}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url
            LOGGER.info("Initialising embeddings client for model %s", self.model_name)
            self._client = openai.AsyncOpenAI(**kwargs)
        return self._client

    async def embed(self, text: str) -> List[float]:
        response = await self._get_client().embeddings.create(model=self.model_name, input=text)
        if not response.data:
            raise ValueError("embedding response contained no vectors")
        return [float(value) for value in response.data[0].embedding]
