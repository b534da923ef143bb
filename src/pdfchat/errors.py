"""Failure taxonomy shared by the ingestion and query paths."""
from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    NO_CONTENT = "no_content"
    EMBEDDING = "embedding"
    MISMATCH = "mismatch"
    TIMEOUT = "timeout"
    INVALID_DOCUMENT = "invalid_document"
    PROTECTED_DOCUMENT = "protected_document"
    PROCESSING = "processing"
    GENERATION = "generation"


class PdfChatError(RuntimeError):
    """Base class for every failure surfaced by the service."""

    kind: FailureKind = FailureKind.PROCESSING
    default_message = "An unexpected error occurred. Please try another file."

    def __init__(
        self,
        message: str | None = None,
        *,
        user_message: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message
        if cause is not None:
            self.__cause__ = cause


class IngestionFailure(PdfChatError):
    """Raised when a document or pasted text cannot be indexed."""


class NoContentFailure(IngestionFailure):
    """The chunker produced zero usable passages."""

    kind = FailureKind.NO_CONTENT
    default_message = (
        "Could not extract any text from the PDF. The document might be image-based or empty."
    )


class EmbeddingFailure(IngestionFailure):
    """The embedding service failed for at least one item of a batch."""

    kind = FailureKind.EMBEDDING
    default_message = "Failed to embed document chunks."


class MismatchError(EmbeddingFailure):
    """The number of vectors returned does not match the number of inputs."""

    kind = FailureKind.MISMATCH


class TimeoutFailure(IngestionFailure):
    """Document processing exceeded its wall-clock budget."""

    kind = FailureKind.TIMEOUT
    default_message = "Processing timed out. The PDF might be too large or complex."


class InvalidDocumentFailure(IngestionFailure):
    kind = FailureKind.INVALID_DOCUMENT
    default_message = "The file appears to be a corrupted or invalid PDF."


class ProtectedDocumentFailure(IngestionFailure):
    kind = FailureKind.PROTECTED_DOCUMENT
    default_message = "The PDF is password-protected and cannot be processed."


class ProcessingFailure(IngestionFailure):
    kind = FailureKind.PROCESSING
    default_message = "Failed to process the PDF. It might be corrupted or in a complex format."


class GenerationFailure(PdfChatError):
    """Answer synthesis failed; the session stays usable."""

    kind = FailureKind.GENERATION
    default_message = "Failed to get a response from the AI model."


__all__ = [
    "EmbeddingFailure",
    "FailureKind",
    "GenerationFailure",
    "IngestionFailure",
    "InvalidDocumentFailure",
    "MismatchError",
    "NoContentFailure",
    "PdfChatError",
    "ProcessingFailure",
    "ProtectedDocumentFailure",
    "TimeoutFailure",
]
