"""PDF text extraction and page rasterization backed by PyMuPDF."""
from __future__ import annotations

import base64
import logging
from typing import Tuple

import fitz  # PyMuPDF

from pdfchat.errors import InvalidDocumentFailure, ProtectedDocumentFailure

from .models import PageContent
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)

DEFAULT_RENDER_SCALE = 1.5
DEFAULT_JPEG_QUALITY = 85
IMAGE_MIME_TYPE = "image/jpeg"


class PDFExtractor:
    """Open PDF bytes and turn each page into text plus a JPEG data URL."""

    def __init__(self, render_scale: float = DEFAULT_RENDER_SCALE, jpeg_quality: int = DEFAULT_JPEG_QUALITY) -> None:
        if render_scale <= 0:
            raise ValueError("render_scale must be positive")
        self.render_scale = render_scale
        self.jpeg_quality = jpeg_quality

    def open(self, data: bytes) -> fitz.Document:
        """Open *data* as a PDF, classifying unusable input."""

        if not data:
            raise InvalidDocumentFailure("PDF payload is empty")
        try:
            document = fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, RuntimeError) as error:
            raise InvalidDocumentFailure(f"Cannot parse PDF: {error}", cause=error) from error

        if document.needs_pass:
            document.close()
            raise ProtectedDocumentFailure("PDF requires a password")
        if document.page_count == 0:
            document.close()
            raise InvalidDocumentFailure("PDF has no pages")
        LOGGER.debug("Opened PDF with %s pages", document.page_count)
        return document

    def extract_page(self, document: fitz.Document, index: int) -> Tuple[PageContent, str]:
        """Return the text and rendered image of page *index* (zero based)."""

        page = document.load_page(index)
        text = normalize_text(page.get_text("text") or "")
        pixmap = page.get_pixmap(matrix=fitz.Matrix(self.render_scale, self.render_scale), alpha=False)
        jpeg = pixmap.tobytes("jpeg", jpg_quality=self.jpeg_quality)
        image = f"data:{IMAGE_MIME_TYPE};base64,{base64.b64encode(jpeg).decode('ascii')}"
        LOGGER.debug(
            "Extracted page %s: %s chars, %sx%s raster",
            index + 1,
            len(text),
            pixmap.width,
            pixmap.height,
        )
        return PageContent(page_number=index + 1, text=text), image
