import asyncio

import pytest

from conftest import (
    FailingEmbeddingProvider,
    KeywordEmbeddingProvider,
    SlowEmbeddingProvider,
    make_pdf,
    make_protected_pdf,
)
from pdfchat.embeddings import EmbeddingClient
from pdfchat.errors import (
    EmbeddingFailure,
    InvalidDocumentFailure,
    NoContentFailure,
    ProcessingFailure,
    ProtectedDocumentFailure,
    TimeoutFailure,
)
from pdfchat.ingest import IngestPipeline, IngestPipelineConfig, PDFExtractor
from pdfchat.ingest.normalization import normalize_text


def _pipeline(provider=None, timeout_seconds: float = 30.0) -> IngestPipeline:
    provider = provider or KeywordEmbeddingProvider(["invoice", "payment", "alpha", "gamma"])
    return IngestPipeline(EmbeddingClient(provider), IngestPipelineConfig(timeout_seconds=timeout_seconds))


@pytest.mark.anyio
async def test_ingest_text_indexes_each_paragraph():
    stages = []

    result = await _pipeline().ingest_text("Alpha beta.\n\nGamma delta epsilon.", on_stage=stages.append)

    assert stages == ["indexing"]
    assert [passage.content for passage in result.index] == ["Alpha beta.", "Gamma delta epsilon."]
    assert result.chunk_count == 2
    assert result.page_images == []
    assert result.page_count == 0


@pytest.mark.anyio
async def test_ingest_text_without_usable_chunks_fails():
    with pytest.raises(NoContentFailure) as excinfo:
        await _pipeline().ingest_text("short\n\ntiny")

    assert excinfo.value.user_message == "No text provided or text is too short."


@pytest.mark.anyio
async def test_ingest_text_surfaces_embedding_failure():
    with pytest.raises(EmbeddingFailure) as excinfo:
        await _pipeline(FailingEmbeddingProvider()).ingest_text("A paragraph long enough.")

    assert excinfo.value.user_message == "Failed to embed document chunks."


@pytest.mark.anyio
async def test_ingest_document_extracts_text_and_page_images():
    data = make_pdf(["Invoice number 1234 issued.", "Payment due within 30 days."])
    stages = []

    result = await _pipeline().ingest_document(data, on_stage=stages.append, name="invoice.pdf")

    assert stages == ["indexing"]
    assert result.page_count == 2
    assert len(result.page_images) == 2
    assert all(image.startswith("data:image/jpeg;base64,") for image in result.page_images)
    contents = [passage.content for passage in result.index]
    assert any("Invoice number 1234" in content for content in contents)
    assert any("Payment due" in content for content in contents)
    assert result.chunk_count == len(result.index)


@pytest.mark.anyio
async def test_ingest_document_reads_async_source():
    data = make_pdf(["Invoice number 1234 issued."])

    async def read() -> bytes:
        return data

    result = await _pipeline().ingest_document(read, name="invoice.pdf")

    assert result.page_count == 1


@pytest.mark.anyio
async def test_ingest_document_without_text_fails_with_no_content():
    with pytest.raises(NoContentFailure) as excinfo:
        await _pipeline().ingest_document(make_pdf([""]), name="blank.pdf")

    assert "image-based or empty" in excinfo.value.user_message


@pytest.mark.anyio
async def test_ingest_document_rejects_garbage_bytes():
    with pytest.raises(InvalidDocumentFailure):
        await _pipeline().ingest_document(b"this is not a pdf at all", name="broken.pdf")


@pytest.mark.anyio
async def test_ingest_document_rejects_empty_payload():
    with pytest.raises(InvalidDocumentFailure):
        await _pipeline().ingest_document(b"", name="empty.pdf")


@pytest.mark.anyio
async def test_ingest_document_rejects_password_protected_pdf():
    with pytest.raises(ProtectedDocumentFailure) as excinfo:
        await _pipeline().ingest_document(make_protected_pdf("Secret invoice content."), name="locked.pdf")

    assert excinfo.value.user_message == "The PDF is password-protected and cannot be processed."


@pytest.mark.anyio
async def test_ingest_document_times_out_and_reports_no_partial_result():
    stages = []

    async def slow_read() -> bytes:
        await asyncio.sleep(5)
        return make_pdf(["Never read."])

    with pytest.raises(TimeoutFailure) as excinfo:
        await _pipeline(timeout_seconds=0.05).ingest_document(slow_read, on_stage=stages.append, name="slow.pdf")

    assert stages == []
    assert excinfo.value.user_message == "Processing timed out. The PDF might be too large or complex."


@pytest.mark.anyio
async def test_ingest_document_times_out_during_embedding_after_pages_were_extracted():
    stages = []
    pipeline = _pipeline(SlowEmbeddingProvider(delay=10.0), timeout_seconds=1.0)

    with pytest.raises(TimeoutFailure):
        await pipeline.ingest_document(
            make_pdf(["Invoice number 1234 issued.", "Payment due within 30 days."]),
            on_stage=stages.append,
            name="slow-embeddings.pdf",
        )

    assert stages == ["indexing"]


@pytest.mark.anyio
async def test_ingest_document_wraps_unexpected_errors():
    class ExplodingExtractor(PDFExtractor):
        def extract_page(self, document, index):
            raise KeyError("glyph table")

    pipeline = IngestPipeline(
        EmbeddingClient(KeywordEmbeddingProvider(["invoice"])),
        extractor=ExplodingExtractor(),
    )

    with pytest.raises(ProcessingFailure) as excinfo:
        await pipeline.ingest_document(make_pdf(["Invoice number 1234 issued."]), name="odd.pdf")

    assert isinstance(excinfo.value.__cause__, KeyError)


def test_normalize_text_collapses_whitespace():
    raw = "Line one  with   spaces  \r\nLine two\n\n\n\nNext paragraph\t\t."

    assert normalize_text(raw) == "Line one with spaces\nLine two\n\nNext paragraph ."


def test_extractor_rejects_non_positive_scale():
    with pytest.raises(ValueError):
        PDFExtractor(render_scale=0)


def test_normalize_text_expands_ligatures_and_drops_invisible_marks():
    raw = "e\ufb03cient of\ufb01ce\u00ad work\u200b\fNext page"

    assert normalize_text(raw) == "efficient office work\n\nNext page"
