"""Utilities for retrieving relevant context from the vector index."""
from __future__ import annotations

import time
from typing import List, Protocol, Sequence

from pdfchat.telemetry import emit_retriever_event, preview_sources
from pdfchat.vectorstore import DEFAULT_TOP_K, VectorIndex, score


class QueryEmbedder(Protocol):
    """Protocol describing the embedding contract used by the retriever."""

    async def embed_one(self, text: str) -> Sequence[float]:
        """Return the embedding for a single query."""


class Retriever:
    """Embed a question and select the best matching passages."""

    def __init__(self, embedder: QueryEmbedder) -> None:
        self._embedder = embedder

    async def retrieve(self, index: VectorIndex, question: str, top_k: int = DEFAULT_TOP_K) -> List[str]:
        """Return the contents of the top matching passages for the question."""

        if top_k <= 0 or not index:
            return []

        query_embedding = await self._embedder.embed_one(question)
        started = time.perf_counter()
        ranked = score(index, query_embedding)[:top_k]
        emit_retriever_event(
            query=question,
            top_k=top_k,
            results=[
                {"position": item.position, "similarity": round(item.similarity, 6), "preview": preview}
                for item, preview in zip(ranked, preview_sources(item.passage.content for item in ranked))
            ],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return [item.passage.content for item in ranked]
