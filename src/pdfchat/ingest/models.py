"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from pdfchat.vectorstore import VectorIndex

PAGE_BREAK = "\n\n"


@dataclass(slots=True)
class PageContent:
    """Represents text extracted from a page in the source document."""

    page_number: int
    text: str


@dataclass(slots=True)
class ExtractedDocument:
    """Text and rendered images of every page, in page order."""

    pages: List[PageContent] = field(default_factory=list)
    images: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(page.text + PAGE_BREAK for page in self.pages)

    @property
    def page_count(self) -> int:
        return len(self.pages)


@dataclass(slots=True)
class IngestResult:
    """Everything a successful ingestion produced, ready to be committed."""

    index: VectorIndex
    page_images: List[str]
    chunk_count: int
    page_count: int
    duration_seconds: float
