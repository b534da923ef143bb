"""Session lifecycle: one controller per loaded document."""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

from pdfchat.config import Settings, get_settings
from pdfchat.embeddings import EmbeddingClient
from pdfchat.errors import IngestionFailure, ProcessingFailure
from pdfchat.ingest import DocumentSource, IngestPipeline, IngestPipelineConfig, IngestResult
from pdfchat.llm_provider import create_llm
from pdfchat.logging_config import AUDIT_LOGGER_NAME
from pdfchat.providers import create_embedding_provider
from pdfchat.retriever import Retriever
from pdfchat.synthesizer import AnswerSynthesizer
from pdfchat.telemetry import emit_exception, emit_session_transition
from pdfchat.vectorstore import DEFAULT_TOP_K, VectorIndex

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

PASTED_TEXT_TITLE = "Pasted Text"
QUERY_APOLOGY = "Sorry, I encountered an error trying to answer your question. Please try again."
QUERY_ERROR_NOTICE = "An error occurred while querying the language model."
DEFAULT_MAX_SESSIONS = 100


class LifecycleState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    INDEXING = "indexing"
    READY = "ready"
    QUERYING = "querying"


class Sender(str, Enum):
    USER = "user"
    AI = "ai"


_TRANSITIONS: Dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.IDLE: frozenset({LifecycleState.PARSING, LifecycleState.INDEXING}),
    LifecycleState.PARSING: frozenset({LifecycleState.INDEXING}),
    LifecycleState.INDEXING: frozenset({LifecycleState.READY}),
    LifecycleState.READY: frozenset({LifecycleState.QUERYING}),
    LifecycleState.QUERYING: frozenset({LifecycleState.READY}),
}


class InvalidTransitionError(RuntimeError):
    """Raised when the controller attempts a transition the lifecycle forbids."""


@dataclass(frozen=True, slots=True)
class ChatMessage:
    sender: Sender
    text: str


@dataclass(slots=True)
class SessionState:
    """Mutable record owned by exactly one :class:`SessionController`."""

    lifecycle: LifecycleState = LifecycleState.IDLE
    document_title: str = ""
    document_loaded: bool = False
    page_images: List[str] = field(default_factory=list)
    vector_index: VectorIndex = field(default_factory=VectorIndex)
    transcript: List[ChatMessage] = field(default_factory=list)
    last_error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of a session handed to the UI."""

    session_id: str
    lifecycle: LifecycleState
    document_title: str
    document_loaded: bool
    transcript: Tuple[ChatMessage, ...]
    last_error: Optional[str]
    passage_count: int
    page_count: int


def document_acknowledgment(title: str) -> str:
    return f'Document "{title}" has been processed and indexed. You can now ask questions about its content.'


TEXT_ACKNOWLEDGMENT = (
    "The provided text has been processed and indexed. You can now ask questions about its content."
)


class SessionController:
    """Drive one session through ``idle → parsing → indexing → ready ⇄ querying``.

    New documents are accepted only while ``idle`` and questions only while
    ``ready``; anything else is ignored. Every accepted command moves the
    lifecycle out of its accepting state before the first ``await``, so at
    most one ingestion or query is in flight. A reset bumps an epoch counter;
    work started under an older epoch never writes back.
    """

    def __init__(
        self,
        pipeline: IngestPipeline,
        retriever: Retriever,
        synthesizer: AnswerSynthesizer,
        *,
        session_id: Optional[str] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self._pipeline = pipeline
        self._retriever = retriever
        self._synthesizer = synthesizer
        self._top_k = top_k
        self._state = SessionState()
        self._epoch = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def lifecycle(self) -> LifecycleState:
        return self._state.lifecycle

    def snapshot(self) -> SessionSnapshot:
        state = self._state
        return SessionSnapshot(
            session_id=self.session_id,
            lifecycle=state.lifecycle,
            document_title=state.document_title,
            document_loaded=state.document_loaded,
            transcript=tuple(state.transcript),
            last_error=state.last_error,
            passage_count=len(state.vector_index),
            page_count=len(state.page_images),
        )

    def reset(self) -> None:
        """Discard everything and return to ``idle``."""

        previous = self._state.lifecycle
        self._epoch += 1
        self._state = SessionState()
        LOGGER.info("Session %s reset from %s", self.session_id, previous.value)
        if previous is not LifecycleState.IDLE:
            emit_session_transition(session_id=self.session_id, previous=previous.value, current="idle")

    async def submit_text(self, text: str) -> bool:
        """Index pasted text. Returns ``True`` when the session became ready."""

        if not self._accepts_document() or not text or not text.strip():
            return False

        epoch = self._begin_ingestion(PASTED_TEXT_TITLE)
        self._transition(LifecycleState.INDEXING)
        try:
            result = await self._pipeline.ingest_text(text, on_stage=self._stage_callback(epoch))
        except IngestionFailure as failure:
            self._fail_ingestion(epoch, failure)
            return False
        except asyncio.CancelledError:
            self._fail_ingestion(epoch, ProcessingFailure("Text ingestion was cancelled"))
            raise
        return self._commit(epoch, result, TEXT_ACKNOWLEDGMENT)

    async def submit_document(self, title: str, source: DocumentSource) -> bool:
        """Index a PDF. Returns ``True`` when the session became ready."""

        if not self._accepts_document():
            return False

        epoch = self._begin_ingestion(title)
        self._transition(LifecycleState.PARSING)
        try:
            result = await self._pipeline.ingest_document(
                source, on_stage=self._stage_callback(epoch), name=title
            )
        except IngestionFailure as failure:
            self._fail_ingestion(epoch, failure)
            return False
        except asyncio.CancelledError:
            self._fail_ingestion(epoch, ProcessingFailure(f"Ingestion of {title} was cancelled"))
            raise
        return self._commit(epoch, result, document_acknowledgment(title))

    async def submit_query(self, question: str) -> Optional[ChatMessage]:
        """Answer a question about the loaded document.

        Returns the AI message appended to the transcript, or ``None`` when
        the question was not accepted (nothing changes in that case).
        """

        state = self._state
        if state.lifecycle is not LifecycleState.READY or not state.vector_index:
            LOGGER.info("Ignoring query for session %s in state %s", self.session_id, state.lifecycle.value)
            return None
        if not question or not question.strip():
            return None

        epoch = self._epoch
        self._transition(LifecycleState.QUERYING)
        state.last_error = None
        state.transcript.append(ChatMessage(Sender.USER, question))

        error_notice: Optional[str] = None
        try:
            passages = await self._retriever.retrieve(state.vector_index, question, self._top_k)
            answer = await self._synthesizer.answer(question, passages, state.page_images)
        except Exception as error:
            emit_exception(module=f"{__name__}.query", error=error, session_id=self.session_id)
            answer = QUERY_APOLOGY
            error_notice = QUERY_ERROR_NOTICE
        except asyncio.CancelledError:
            if epoch == self._epoch:
                state.transcript.append(ChatMessage(Sender.AI, QUERY_APOLOGY))
                state.last_error = QUERY_ERROR_NOTICE
                self._transition(LifecycleState.READY)
            raise

        if epoch != self._epoch:
            LOGGER.info("Dropping answer for session %s after reset", self.session_id)
            return None

        message = ChatMessage(Sender.AI, answer)
        state.transcript.append(message)
        state.last_error = error_notice
        self._transition(LifecycleState.READY)
        AUDIT_LOGGER.info(
            {
                "event": "query",
                "session_id": self.session_id,
                "question": question,
                "failed": error_notice is not None,
            }
        )
        return message

    def _accepts_document(self) -> bool:
        if self._state.lifecycle is LifecycleState.IDLE:
            return True
        LOGGER.info(
            "Ignoring document submission for session %s in state %s",
            self.session_id,
            self._state.lifecycle.value,
        )
        return False

    def _begin_ingestion(self, title: str) -> int:
        self._epoch += 1
        self._state = SessionState(document_title=title)
        return self._epoch

    def _stage_callback(self, epoch: int) -> Callable[[str], None]:
        def _on_stage(stage: str) -> None:
            if epoch != self._epoch:
                return
            target = LifecycleState(stage)
            if target is not self._state.lifecycle:
                self._transition(target)

        return _on_stage

    def _commit(self, epoch: int, result: IngestResult, acknowledgment: str) -> bool:
        if epoch != self._epoch:
            LOGGER.info("Discarding ingestion result for session %s after reset", self.session_id)
            return False

        state = self._state
        state.vector_index = result.index
        state.page_images = list(result.page_images)
        state.document_loaded = True
        state.last_error = None
        state.transcript = [ChatMessage(Sender.AI, acknowledgment)]
        self._transition(LifecycleState.READY)
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "session_id": self.session_id,
                "title": state.document_title,
                "chunk_count": result.chunk_count,
                "page_count": result.page_count,
            }
        )
        return True

    def _fail_ingestion(self, epoch: int, failure: IngestionFailure) -> None:
        LOGGER.warning(
            "Ingestion failed for session %s (%s): %s",
            self.session_id,
            failure.kind.value,
            failure,
        )
        if epoch != self._epoch:
            return
        previous = self._state.lifecycle
        self._state = SessionState(document_title=self._state.document_title, last_error=failure.user_message)
        emit_session_transition(session_id=self.session_id, previous=previous.value, current="idle")

    def _transition(self, target: LifecycleState) -> None:
        current = self._state.lifecycle
        if target not in _TRANSITIONS[current]:
            raise InvalidTransitionError(f"Cannot move from {current.value} to {target.value}")
        self._state.lifecycle = target
        emit_session_transition(session_id=self.session_id, previous=current.value, current=target.value)


ControllerFactory = Callable[[str], SessionController]


class SessionManager:
    """Registry of live sessions keyed by session id.

    Holds at most ``max_sessions`` controllers. Creating one more evicts the
    least recently used session, which is reset so any work still in flight
    for it is dropped.
    """

    def __init__(self, factory: ControllerFactory, max_sessions: int = DEFAULT_MAX_SESSIONS) -> None:
        if max_sessions <= 0:
            raise ValueError("max_sessions must be a positive integer")
        self._factory = factory
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, SessionController] = OrderedDict()

    def create(self) -> SessionController:
        session_id = uuid.uuid4().hex
        controller = self._factory(session_id)
        self._sessions[session_id] = controller
        LOGGER.info("Created session %s", session_id)
        while len(self._sessions) > self._max_sessions:
            evicted_id, evicted = self._sessions.popitem(last=False)
            evicted.reset()
            LOGGER.info("Evicted least recently used session %s", evicted_id)
        return controller

    def get(self, session_id: str) -> SessionController:
        controller = self._sessions[session_id]
        self._sessions.move_to_end(session_id)
        return controller

    def discard(self, session_id: str) -> None:
        controller = self._sessions.pop(session_id)
        controller.reset()

    def __len__(self) -> int:
        return len(self._sessions)


def build_controller_factory(settings: Settings) -> ControllerFactory:
    """Wire shared, stateless collaborators into per-session controllers."""

    embedding_client = EmbeddingClient(create_embedding_provider(settings))
    pipeline = IngestPipeline(
        embedding_client,
        IngestPipelineConfig(
            timeout_seconds=settings.processing_timeout,
            chunk_min_chars=settings.chunk_min_chars,
            render_scale=settings.render_scale,
        ),
    )
    retriever = Retriever(embedding_client)
    synthesizer = AnswerSynthesizer(
        create_llm(settings),
        temperature=settings.temperature,
        top_p=settings.top_p,
        max_tokens=settings.max_tokens,
    )

    def _factory(session_id: str) -> SessionController:
        return SessionController(
            pipeline,
            retriever,
            synthesizer,
            session_id=session_id,
            top_k=settings.top_k,
        )

    return _factory


@lru_cache()
def get_session_manager() -> SessionManager:
    """FastAPI dependency returning the shared :class:`SessionManager`."""

    settings = get_settings()
    return SessionManager(build_controller_factory(settings), max_sessions=settings.max_sessions)
