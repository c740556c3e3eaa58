"""FastAPI application exposing ingestion and conversational QA over HTTP.

Run with::

    uvicorn corpus_qa.serving.app:create_app --factory
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from corpus_qa.config import Settings
from corpus_qa.errors import (
    ConfigError,
    FetchError,
    IndexUnavailable,
    InvalidArgument,
    NetworkError,
    ParseError,
    ProviderError,
)
from corpus_qa.ingestion.service import UploadedFile
from corpus_qa.retrieval.models import Citation
from corpus_qa.serving.dependencies import ServiceContainer, build_services

logger = logging.getLogger(__name__)


# ── Request / Response schemas ────────────────────────────────────────
class ScrapeRequest(BaseModel):
    """URLs to scrape into the document store."""

    urls: list[str]


class IngestResponse(BaseModel):
    """Outcome of a scrape or upload batch."""

    message: str
    count: int
    stored: list[str] = []


class AskRequest(BaseModel):
    """Incoming question from the user."""

    question: str
    session_id: str = "default"


class AskResponse(BaseModel):
    """Answer returned to the user."""

    answer: str
    session_id: str
    retrieved_chunk_ids: list[str] = []
    sources: list[Citation] = []


class TurnResponse(BaseModel):
    question: str
    answer: str


def configure_logging(level: str) -> None:
    """Apply *level* to the root logger (idempotent)."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    services: ServiceContainer | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Parameters
    ----------
    services:
        Pre-built services (tests inject fakes here).  When omitted they are
        built from *settings*, which are read from the environment if not
        given either.
    """
    if services is None:
        settings = settings or Settings()
        configure_logging(settings.log_level)
        services = build_services(settings)

    app = FastAPI(
        title="Corpus QA API",
        version="0.1.0",
        description="Scrape pages, upload documents and ask questions about them.",
    )
    app.state.services = services

    _register_error_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/scrape", response_model=IngestResponse)
    def scrape(request: ScrapeRequest) -> IngestResponse:
        """Scrape each URL into the document store."""
        texts = services.ingestion.submit_urls(request.urls)
        return IngestResponse(message="Successfully processed", count=len(texts))

    @app.post("/upload", response_model=IngestResponse)
    def upload(files: list[UploadFile] = File(...)) -> IngestResponse:
        """Store uploaded files in the document store."""
        uploads = [UploadedFile(name=f.filename or "", data=f.file.read()) for f in files]
        stored = services.ingestion.submit_files(uploads)
        return IngestResponse(message="Successfully processed", count=len(stored), stored=stored)

    @app.post("/ask", response_model=AskResponse)
    def ask(request: AskRequest) -> AskResponse:
        """Answer a question against the current document store."""
        result = services.orchestrator.ask(request.session_id, request.question)
        return AskResponse(
            answer=result.answer,
            session_id=result.session_id,
            retrieved_chunk_ids=result.retrieved_chunk_ids,
            sources=result.citations,
        )

    @app.get("/sessions/{session_id}", response_model=list[TurnResponse])
    def session_history(session_id: str) -> list[TurnResponse]:
        """Return the session's turns, oldest first."""
        return [
            TurnResponse(question=t.question, answer=t.answer)
            for t in services.orchestrator.history(session_id)
        ]

    @app.delete("/sessions/{session_id}")
    def reset_session(session_id: str) -> dict[str, bool]:
        """Forget a session's history."""
        return {"reset": services.orchestrator.reset_session(session_id)}

    return app


def _register_error_handlers(app: FastAPI) -> None:
    def _error(status: int, message: str) -> JSONResponse:
        return JSONResponse(status_code=status, content={"error": message})

    @app.exception_handler(InvalidArgument)
    async def invalid_argument(request: Request, exc: InvalidArgument) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(IndexUnavailable)
    async def index_unavailable(request: Request, exc: IndexUnavailable) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(ParseError)
    async def parse_error(request: Request, exc: ParseError) -> JSONResponse:
        return _error(422, str(exc))

    @app.exception_handler(FetchError)
    @app.exception_handler(NetworkError)
    async def fetch_error(request: Request, exc: Exception) -> JSONResponse:
        return _error(502, str(exc))

    @app.exception_handler(ProviderError)
    @app.exception_handler(ConfigError)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, "Internal Server Error")
