"""Document ingestion: extraction, chunking, embedding and indexing."""
from __future__ import annotations

from .extractors import PDFExtractor
from .models import ExtractedDocument, IngestResult, PageContent
from .pipeline import DocumentSource, IngestPipeline, IngestPipelineConfig

__all__ = [
    "DocumentSource",
    "ExtractedDocument",
    "IngestPipeline",
    "IngestPipelineConfig",
    "IngestResult",
    "PDFExtractor",
    "PageContent",
]
