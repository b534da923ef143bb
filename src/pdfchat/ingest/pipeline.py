"""High level ingestion pipeline entry point."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union

from pdfchat.chunker import DEFAULT_MIN_CHARS, chunk_text
from pdfchat.embeddings import EmbeddingClient
from pdfchat.errors import (
    EmbeddingFailure,
    IngestionFailure,
    NoContentFailure,
    ProcessingFailure,
    TimeoutFailure,
)
from pdfchat.telemetry import emit_exception, emit_ingest_event
from pdfchat.vectorstore import DimensionMismatchError, VectorIndex, build_index

from .extractors import DEFAULT_RENDER_SCALE, PDFExtractor
from .models import ExtractedDocument, IngestResult

LOGGER = logging.getLogger(__name__)

TEXT_NO_CONTENT_MESSAGE = "No text provided or text is too short."
TEXT_PROCESSING_MESSAGE = "An unexpected error occurred while processing the text."

DocumentSource = Union[bytes, bytearray, Callable[[], Awaitable[bytes]]]
StageCallback = Callable[[str], None]


@dataclass(slots=True)
class IngestPipelineConfig:
    timeout_seconds: float = 30.0
    chunk_min_chars: int = DEFAULT_MIN_CHARS
    render_scale: float = DEFAULT_RENDER_SCALE


def _notify(on_stage: Optional[StageCallback], stage: str) -> None:
    if on_stage is not None:
        on_stage(stage)


class IngestPipeline:
    """Turn pasted text or PDF bytes into a populated :class:`VectorIndex`.

    The pipeline never touches session state. Extracted pages, images and
    the index are buffered locally and handed back only when the whole run
    succeeds; on failure or timeout they are dropped.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        config: Optional[IngestPipelineConfig] = None,
        extractor: Optional[PDFExtractor] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.embedding_client = embedding_client
        self.extractor = extractor or PDFExtractor(render_scale=self.config.render_scale)

    async def ingest_text(self, text: str, on_stage: Optional[StageCallback] = None) -> IngestResult:
        """Chunk, embed and index pasted text."""

        started = time.perf_counter()
        _notify(on_stage, "indexing")
        try:
            chunks = chunk_text(text, self.config.chunk_min_chars)
            if not chunks:
                raise NoContentFailure("Pasted text produced no chunks", user_message=TEXT_NO_CONTENT_MESSAGE)
            index = await self._index_chunks(chunks)
        except IngestionFailure as failure:
            emit_ingest_event("ingest.text.failed", source="text", size_bytes=len(text), failure=failure.kind.value)
            raise
        except Exception as error:
            emit_exception(module=f"{__name__}.text", error=error)
            raise ProcessingFailure(
                f"Processing pasted text failed: {error}",
                user_message=TEXT_PROCESSING_MESSAGE,
                cause=error,
            ) from error

        duration = time.perf_counter() - started
        emit_ingest_event(
            "ingest.text.complete",
            source="text",
            size_bytes=len(text),
            duration_ms=duration * 1000.0,
            chunks=len(index),
        )
        return IngestResult(
            index=index,
            page_images=[],
            chunk_count=len(index),
            page_count=0,
            duration_seconds=duration,
        )

    async def ingest_document(
        self,
        source: DocumentSource,
        on_stage: Optional[StageCallback] = None,
        *,
        name: str = "document",
    ) -> IngestResult:
        """Extract, chunk, embed and index a PDF within the time budget.

        The budget covers reading the source as well. When it runs out the
        in-flight work is cancelled at its next suspension point and a
        :class:`TimeoutFailure` is raised.
        """

        started = time.perf_counter()
        emit_ingest_event("ingest.document.start", source=name)
        try:
            result = await asyncio.wait_for(
                self._ingest_document(source, on_stage, started, name),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as error:
            emit_ingest_event(
                "ingest.document.failed",
                source=name,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                failure=TimeoutFailure.kind.value,
            )
            raise TimeoutFailure(
                f"Processing {name} exceeded {self.config.timeout_seconds:.1f}s", cause=error
            ) from error
        except IngestionFailure as failure:
            emit_ingest_event(
                "ingest.document.failed",
                source=name,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                failure=failure.kind.value,
            )
            raise

        emit_ingest_event(
            "ingest.document.complete",
            source=name,
            duration_ms=result.duration_seconds * 1000.0,
            pages=result.page_count,
            chunks=result.chunk_count,
        )
        return result

    async def _ingest_document(
        self,
        source: DocumentSource,
        on_stage: Optional[StageCallback],
        started: float,
        name: str,
    ) -> IngestResult:
        try:
            data = await self._read(source)
            LOGGER.info("Read %s bytes from %s", len(data), name)
            extracted = await self._extract(data)
            _notify(on_stage, "indexing")

            chunks = chunk_text(extracted.text, self.config.chunk_min_chars)
            if not chunks:
                raise NoContentFailure(f"No usable text extracted from {extracted.page_count} pages of {name}")
            index = await self._index_chunks(chunks)
        except IngestionFailure:
            raise
        except Exception as error:
            emit_exception(module=f"{__name__}.document", error=error)
            raise ProcessingFailure(f"Processing {name} failed: {error}", cause=error) from error

        return IngestResult(
            index=index,
            page_images=list(extracted.images),
            chunk_count=len(index),
            page_count=extracted.page_count,
            duration_seconds=time.perf_counter() - started,
        )

    @staticmethod
    async def _read(source: DocumentSource) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source)
        return bytes(await source())

    async def _extract(self, data: bytes) -> ExtractedDocument:
        document = await asyncio.to_thread(self.extractor.open, data)
        extracted = ExtractedDocument()
        try:
            for index in range(document.page_count):
                page, image = await asyncio.to_thread(self.extractor.extract_page, document, index)
                extracted.pages.append(page)
                extracted.images.append(image)
        except Exception:
            document.close()
            raise
        # On cancellation a page may still be rendering in its worker thread,
        # so the document is only closed here and on ordinary errors.
        document.close()
        return extracted

    async def _index_chunks(self, chunks: List[str]) -> VectorIndex:
        embeddings = await self.embedding_client.embed(chunks)
        try:
            return build_index(chunks, embeddings)
        except DimensionMismatchError as error:
            raise EmbeddingFailure(f"Inconsistent embedding dimensions: {error}", cause=error) from error
