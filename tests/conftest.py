"""Shared fixtures and fakes for the test-suite."""
from __future__ import annotations

import asyncio
import os
import tempfile
from typing import Iterable, List, Optional, Sequence

import fitz
import pytest

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="pdfchat-logs-"))

from pdfchat.embeddings import EmbeddingClient  # noqa: E402
from pdfchat.ingest import IngestPipeline, IngestPipelineConfig  # noqa: E402
from pdfchat.llm_provider import LLM, ContentPart  # noqa: E402
from pdfchat.providers import EmbeddingProvider  # noqa: E402
from pdfchat.retriever import Retriever  # noqa: E402
from pdfchat.session import SessionController  # noqa: E402
from pdfchat.synthesizer import AnswerSynthesizer  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


class KeywordEmbeddingProvider(EmbeddingProvider):
    """One dimension per keyword: 1.0 when the keyword occurs in the text."""

    model_name = "keyword-embedding"

    def __init__(self, keywords: Iterable[str], delays: Optional[dict[str, float]] = None) -> None:
        self.keywords = [keyword.lower() for keyword in keywords]
        self.delays = delays or {}
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        delay = self.delays.get(text)
        if delay:
            await asyncio.sleep(delay)
        lowered = text.lower()
        return [1.0 if keyword in lowered else 0.0 for keyword in self.keywords]


class SlowEmbeddingProvider(EmbeddingProvider):
    """Sleep before every response, long enough to outlast a short timeout."""

    model_name = "slow-embedding"

    def __init__(self, delay: float = 10.0) -> None:
        self.delay = delay

    async def embed(self, text: str) -> List[float]:
        await asyncio.sleep(self.delay)
        return [1.0]


class FailingEmbeddingProvider(EmbeddingProvider):
    model_name = "failing-embedding"

    async def embed(self, text: str) -> List[float]:
        raise ConnectionError("embedding service unavailable")


class RecordingLLM(LLM):
    """Return a canned answer (or raise) and remember every prompt."""

    def __init__(self, answer: str = "The answer.", error: Optional[Exception] = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: List[Sequence[ContentPart]] = []
        self.options: List[dict] = []

    @property
    def model_name(self) -> str:
        return "recording-llm"

    async def generate(self, parts, *, temperature, top_p, max_tokens=None) -> str:
        self.calls.append(list(parts))
        self.options.append({"temperature": temperature, "top_p": top_p, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.answer


def make_pdf(pages: Sequence[str]) -> bytes:
    """Build an in-memory PDF with one page per entry of *pages*."""

    document = fitz.open()
    for text in pages:
        page = document.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = document.tobytes()
    document.close()
    return data


def make_protected_pdf(text: str) -> bytes:
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), text)
    data = document.tobytes(
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner-secret",
        user_pw="user-secret",
    )
    document.close()
    return data


def build_controller(
    provider: EmbeddingProvider,
    llm: LLM,
    *,
    timeout_seconds: float = 30.0,
    top_k: int = 5,
    session_id: str = "test-session",
) -> SessionController:
    client = EmbeddingClient(provider)
    pipeline = IngestPipeline(client, IngestPipelineConfig(timeout_seconds=timeout_seconds))
    return SessionController(
        pipeline,
        Retriever(client),
        AnswerSynthesizer(llm),
        session_id=session_id,
        top_k=top_k,
    )


class GatedLLM(RecordingLLM):
    """Hold every generation until ``release`` is set."""

    def __init__(self, answer: str = "The answer.") -> None:
        super().__init__(answer=answer)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, parts, *, temperature, top_p, max_tokens=None) -> str:
        self.started.set()
        await self.release.wait()
        return await super().generate(parts, temperature=temperature, top_p=top_p, max_tokens=max_tokens)
