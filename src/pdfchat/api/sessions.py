"""API router exposing the session lifecycle: upload, paste, ask, reset."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field

from pdfchat.session import (
    LifecycleState,
    SessionController,
    SessionManager,
    SessionSnapshot,
    get_session_manager,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])

DEFAULT_UPLOAD_NAME = "document.pdf"


class CreatedResponse(BaseModel):
    """Response body returned when a session is created."""

    session_id: str
    state: str


class MessageView(BaseModel):
    sender: str
    text: str


class SessionView(BaseModel):
    """Everything the UI needs to render a session."""

    session_id: str
    state: str
    document_title: str
    document_loaded: bool
    transcript: list[MessageView]
    error: str | None
    passages: int
    pages: int


class TextRequest(BaseModel):
    text: str = Field(..., description="Raw text to index in place of a PDF.")


class QueryRequest(BaseModel):
    """Request body accepted by the query endpoint."""

    question: str = Field(..., description="Question to ask about the loaded document.")


class QueryResponse(BaseModel):
    answer: str
    session: SessionView


def _serialise(snapshot: SessionSnapshot) -> SessionView:
    return SessionView(
        session_id=snapshot.session_id,
        state=snapshot.lifecycle.value,
        document_title=snapshot.document_title,
        document_loaded=snapshot.document_loaded,
        transcript=[MessageView(sender=item.sender.value, text=item.text) for item in snapshot.transcript],
        error=snapshot.last_error,
        passages=snapshot.passage_count,
        pages=snapshot.page_count,
    )


def _get_controller(session_id: str, manager: SessionManager) -> SessionController:
    try:
        return manager.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}") from exc


def _require_state(controller: SessionController, expected: LifecycleState) -> None:
    if controller.lifecycle is not expected:
        raise HTTPException(
            status_code=409,
            detail=f"Session is {controller.lifecycle.value}, expected {expected.value}",
        )


@router.post("", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_session(manager: SessionManager = Depends(get_session_manager)) -> CreatedResponse:
    controller = manager.create()
    return CreatedResponse(session_id=controller.session_id, state=controller.lifecycle.value)


@router.get("/{session_id}", response_model=SessionView)
async def read_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> SessionView:
    return _serialise(_get_controller(session_id, manager).snapshot())


@router.post("/{session_id}/document", response_model=SessionView)
async def upload_document(
    session_id: str,
    file: UploadFile = File(...),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionView:
    """Index an uploaded PDF. Extraction failures are reported in ``error``."""

    controller = _get_controller(session_id, manager)
    _require_state(controller, LifecycleState.IDLE)
    try:
        await controller.submit_document(file.filename or DEFAULT_UPLOAD_NAME, file.read)
    finally:
        await file.close()
    return _serialise(controller.snapshot())


@router.post("/{session_id}/text", response_model=SessionView)
async def submit_text(
    session_id: str,
    request: TextRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionView:
    controller = _get_controller(session_id, manager)
    if not request.text.strip():
        raise HTTPException(status_code=422, detail="Text must not be empty")
    _require_state(controller, LifecycleState.IDLE)
    await controller.submit_text(request.text)
    return _serialise(controller.snapshot())


@router.post("/{session_id}/query", response_model=QueryResponse)
async def query_session(
    session_id: str,
    request: QueryRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> QueryResponse:
    """Ask a question about the session's document."""

    controller = _get_controller(session_id, manager)
    if not request.question.strip():
        raise HTTPException(status_code=422, detail="Question must not be empty")
    _require_state(controller, LifecycleState.READY)

    message = await controller.submit_query(request.question)
    if message is None:
        raise HTTPException(status_code=409, detail="Session has no indexed document")
    return QueryResponse(answer=message.text, session=_serialise(controller.snapshot()))


@router.post("/{session_id}/reset", response_model=SessionView)
async def reset_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> SessionView:
    controller = _get_controller(session_id, manager)
    controller.reset()
    return _serialise(controller.snapshot())


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> Response:
    try:
        manager.discard(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
