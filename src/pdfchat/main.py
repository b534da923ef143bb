import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from pdfchat.api.sessions import router as sessions_router
from pdfchat.config import get_settings
from pdfchat.logging_config import configure_logging

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="PDF Chat API")
app.include_router(sessions_router)


@app.on_event("startup")
async def _log_startup() -> None:
    settings = get_settings()
    LOGGER.info(
        "Starting PDF chat API with provider=%s embedding_model=%s generative_model=%s",
        settings.provider,
        settings.embedding_model,
        settings.generative_model,
    )


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness probe used by container orchestrators."""
    return "ok"
