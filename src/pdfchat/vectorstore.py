"""In-memory vector index and cosine-similarity retrieval."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence

import numpy as np

from pdfchat.errors import MismatchError

DEFAULT_TOP_K = 5
CONTEXT_SEPARATOR = "\n\n---\n\n"


class DimensionMismatchError(ValueError):
    """Raised when a passage embedding does not match the index dimension."""


@dataclass(frozen=True, slots=True)
class Passage:
    """A chunk of source text paired with its embedding."""

    content: str
    embedding: tuple[float, ...]

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True, slots=True)
class ScoredPassage:
    """Similarity of one passage to a query, computed per query."""

    passage: Passage
    similarity: float
    position: int


class VectorIndex:
    """Append-only, ordered collection of passages sharing one dimension.

    Insertion order is chunk order and is used to break similarity ties.
    """

    def __init__(self, passages: Iterable[Passage] = ()) -> None:
        self._passages: List[Passage] = []
        self._dimension: Optional[int] = None
        self._matrix: Optional[np.ndarray] = None
        for passage in passages:
            self.add(passage)

    def add(self, passage: Passage) -> None:
        if passage.dimension == 0:
            raise DimensionMismatchError("passage embedding must not be empty")
        if self._dimension is None:
            self._dimension = passage.dimension
        elif passage.dimension != self._dimension:
            raise DimensionMismatchError(
                f"embedding dimension {passage.dimension} does not match index dimension {self._dimension}"
            )
        self._passages.append(passage)
        self._matrix = None

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def passages(self) -> tuple[Passage, ...]:
        return tuple(self._passages)

    def matrix(self) -> np.ndarray:
        """Return the embeddings as an ``(n, D)`` float64 array."""

        if self._matrix is None:
            if not self._passages:
                self._matrix = np.zeros((0, 0), dtype=np.float64)
            else:
                self._matrix = np.array([p.embedding for p in self._passages], dtype=np.float64)
        return self._matrix

    def __len__(self) -> int:
        return len(self._passages)

    def __iter__(self) -> Iterator[Passage]:
        return iter(self._passages)

    def __bool__(self) -> bool:
        return bool(self._passages)


def build_index(passages: Sequence[str], embeddings: Sequence[Sequence[float]]) -> VectorIndex:
    """Pair each passage with the embedding at the same position."""

    if len(passages) != len(embeddings):
        raise MismatchError(
            f"Mismatch between number of chunks ({len(passages)}) and embeddings ({len(embeddings)})."
        )
    return VectorIndex(
        Passage(content=content, embedding=tuple(float(value) for value in embedding))
        for content, embedding in zip(passages, embeddings)
    )


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, ``0.0`` when either has zero magnitude."""

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatchError(f"cannot compare vectors of shape {vec_a.shape} and {vec_b.shape}")
    norm_a = float(np.linalg.norm(vec_a))
    norm_b = float(np.linalg.norm(vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.clip(np.dot(vec_a, vec_b) / (norm_a * norm_b), -1.0, 1.0))


def score(index: VectorIndex, query_embedding: Sequence[float]) -> List[ScoredPassage]:
    """Score every passage against the query, best first.

    The sort is stable, so equal similarities keep insertion order.
    """

    if not index:
        return []

    query = np.asarray(query_embedding, dtype=np.float64)
    if query.ndim != 1 or query.shape[0] != index.dimension:
        raise DimensionMismatchError(
            f"query dimension {query.shape} does not match index dimension {index.dimension}"
        )

    matrix = index.matrix()
    norms = np.linalg.norm(matrix, axis=1) * float(np.linalg.norm(query))
    dots = matrix @ query
    similarities = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0.0)
    np.clip(similarities, -1.0, 1.0, out=similarities)

    order = np.argsort(-similarities, kind="stable")
    passages = index.passages
    return [
        ScoredPassage(passage=passages[i], similarity=float(similarities[i]), position=int(i))
        for i in order
    ]


def retrieve(index: VectorIndex, query_embedding: Sequence[float], k: int = DEFAULT_TOP_K) -> List[str]:
    """Return the contents of the ``k`` passages most similar to the query."""

    if k <= 0:
        return []
    return [scored.passage.content for scored in score(index, query_embedding)[:k]]


def join_context(contents: Iterable[str]) -> str:
    """Join passage contents with a separator unlikely to occur in source text."""

    return CONTEXT_SEPARATOR.join(contents)


__all__ = [
    "CONTEXT_SEPARATOR",
    "DEFAULT_TOP_K",
    "DimensionMismatchError",
    "Passage",
    "ScoredPassage",
    "VectorIndex",
    "build_index",
    "cosine_similarity",
    "join_context",
    "retrieve",
    "score",
]
