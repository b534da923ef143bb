"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import traceback
from typing import Any, Iterable, Optional

LOGGER = logging.getLogger("pdfchat.telemetry")


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_session_transition(*, session_id: str | None, previous: str, current: str) -> None:
    log_event(
        LOGGER,
        "session.transition",
        session_id=session_id,
        details={"from": previous, "to": current},
    )


def emit_ingest_event(
    step: str,
    *,
    source: str,
    session_id: str | None = None,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    pages: int | None = None,
    chunks: int | None = None,
    failure: str | None = None,
) -> None:
    details = {
        "source": source,
        "size_bytes": size_bytes,
        "pages": pages,
        "chunks": chunks,
    }
    if failure:
        details["failure"] = failure
    level = "warning" if failure else "info"
    log_event(LOGGER, step, level=level, session_id=session_id, duration_ms=duration_ms, details=details)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    details = {
        "model": model,
        "count": count,
        "duration_ms": round(duration_ms, 3),
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    level = "error" if errors else "info"
    log_event(LOGGER, "embeddings.compute", level=level, details=details)


def emit_retriever_event(
    *,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "results": results,
    }
    log_event(LOGGER, "retriever.search", duration_ms=duration_ms, details=details)


def emit_prompt_event(
    *,
    system_prompt: str,
    passages: int,
    images: int,
    context_chars: int,
) -> None:
    details = {
        "system_prompt_preview": system_prompt[:120],
        "passages": passages,
        "images": images,
        "context_chars": context_chars,
    }
    log_event(LOGGER, "prompt.compose", details=details)


def emit_inference_request(
    *,
    req_id: str,
    model: str,
    question: str,
    parts: int,
    temperature: float,
    top_p: float | None,
    max_tokens: int | None,
) -> None:
    details = {
        "model": model,
        "question_preview": question[:120],
        "parts": parts,
        "temperature": temperature,
        "top_p": top_p,
        "max_tokens": max_tokens,
    }
    log_event(LOGGER, "inference.request", req_id=req_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    duration_ms: float,
    model_used: str,
    answer_preview: str,
    error: BaseException | None = None,
) -> None:
    details = {
        "model_used": model_used,
        "answer_preview": answer_preview[:120],
    }
    level = "error" if error else "info"
    log_event(
        LOGGER,
        "inference.result",
        level=level,
        req_id=req_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details=details,
        exc=error,
    )


def preview_sources(contents: Iterable[str], limit: int = 60) -> list[str]:
    """Return short previews of passage contents for log payloads."""

    return [" ".join(content.split())[:limit] for content in contents]


__all__ = [
    "emit_embeddings_event",
    "emit_exception",
    "emit_inference_request",
    "emit_inference_result",
    "emit_ingest_event",
    "emit_prompt_event",
    "emit_retriever_event",
    "emit_session_transition",
    "log_event",
    "preview_sources",
]
