"""Embedding client fanning requests out to an external embedding service."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Sequence, Tuple

from pdfchat.errors import EmbeddingFailure, MismatchError
from pdfchat.providers import EmbeddingProvider
from pdfchat.telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)


class EmbeddingClient:
    """Turn texts into vectors, one provider request per text.

    Batch requests run concurrently. Responses are collected in completion
    order and placed back at the position of the text they belong to, so the
    result always lines up with the input.
    """

    def __init__(self, provider: EmbeddingProvider) -> None:
        self._provider = provider

    @property
    def model_name(self) -> str:
        return getattr(self._provider, "model_name", "unknown")

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        started = time.perf_counter()
        try:
            vectors = await self._fan_out(texts)
        except MismatchError as error:
            self._record(len(texts), started, error)
            raise
        except Exception as error:
            self._record(len(texts), started, error)
            raise EmbeddingFailure(
                f"Embedding batch of {len(texts)} texts failed: {error}", cause=error
            ) from error

        self._record(len(texts), started)
        return vectors

    async def embed_one(self, text: str) -> List[float]:
        started = time.perf_counter()
        try:
            vector = await self._provider.embed(text)
        except Exception as error:
            self._record(1, started, error)
            raise EmbeddingFailure(f"Embedding query text failed: {error}", cause=error) from error
        if vector is None or len(vector) == 0:
            error = MismatchError("Embedding service returned no vector for the query text.")
            self._record(1, started, error)
            raise error
        self._record(1, started)
        return [float(value) for value in vector]

    async def _embed_at(self, position: int, text: str) -> Tuple[int, Optional[List[float]]]:
        return position, await self._provider.embed(text)

    async def _fan_out(self, texts: Sequence[str]) -> List[List[float]]:
        tasks = [asyncio.ensure_future(self._embed_at(position, text)) for position, text in enumerate(texts)]
        ordered: List[Optional[List[float]]] = [None] * len(texts)
        try:
            for completed in asyncio.as_completed(tasks):
                position, vector = await completed
                if vector is not None and len(vector) > 0:
                    ordered[position] = [float(value) for value in vector]
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        returned = sum(1 for vector in ordered if vector is not None)
        if returned != len(texts):
            raise MismatchError(
                f"Mismatch between number of chunks ({len(texts)}) and embeddings returned ({returned})."
            )
        return [vector for vector in ordered if vector is not None]

    def _record(self, count: int, started: float, error: BaseException | None = None) -> None:
        emit_embeddings_event(
            model=self.model_name,
            count=count,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            errors=[str(error)] if error is not None else None,
        )
