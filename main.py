"""Condense: asynchronous content summarization service.

FastAPI application entry-point.  Requests are accepted immediately and
summarized in the background by a single worker; clients poll for status and
fetch the result once the job completes.
"""

from __future__ import annotations

import logging
import secrets
import sys
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from engine.cache import ResultCache
from engine.errors import CondenseError
from engine.orchestrator import SubmissionOrchestrator
from engine.reader import JobReader
from engine.work_queue import WorkQueue
from engine.worker import JobWorker
from schemas.request import CreateUserRequest, SubmitRequest
from schemas.response import (
    ErrorResponse,
    HealthResponse,
    ResultResponse,
    StatusResponse,
    SubmitResponse,
    UserCreatedResponse,
    UserResponse,
)
from services.content_fetcher import ContentFetcher
from services.job_store import JobStore
from services.llm_service import LLMSummaryProvider

VERSION = "0.1.0"

# ── Logging ────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("condense")


# ── Internal-token auth dependency ─────────────────────────────────────

async def verify_internal_token(
    x_internal_token: str | None = Header(default=None),
) -> None:
    """Reject requests that don't carry the shared internal token.

    Skipped when ``INTERNAL_TOKEN`` is not configured (dev mode).
    """
    expected = settings.internal_token
    if not expected:
        return
    if not x_internal_token or not secrets.compare_digest(x_internal_token, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing internal token.")


# ── Lifespan ───────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Condense starting: provider=%s store=%s auth=%s",
        settings.llm_provider,
        settings.database_url.split("://", 1)[0],
        "enabled" if settings.internal_token else "disabled (dev)",
    )
    store = JobStore.from_url(settings.database_url)
    cache = ResultCache()
    queue = WorkQueue()
    fetcher = ContentFetcher(
        timeout=settings.fetch_timeout_seconds,
        max_bytes=settings.fetch_max_bytes,
        max_chars=settings.fetch_max_chars,
    )
    provider = LLMSummaryProvider.from_settings(settings)
    worker = JobWorker(
        store,
        cache,
        queue,
        fetcher,
        provider,
        poll_interval=settings.worker_poll_interval,
        fetch_timeout=settings.fetch_timeout_seconds,
        provider_timeout=settings.provider_timeout_seconds,
    )

    app.state.store = store
    app.state.cache = cache
    app.state.queue = queue
    app.state.orchestrator = SubmissionOrchestrator(store, cache, queue)
    app.state.reader = JobReader(store, cache)
    app.state.worker = worker

    if settings.worker_enabled:
        worker.start()
    else:
        logger.warning("Worker disabled; submitted jobs will stay queued.")

    yield

    logger.info("Condense shutting down.")
    worker.stop()
    await worker.wait_stopped()
    await fetcher.aclose()
    await provider.aclose()


# ── App ────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Condense",
    description="Asynchronous content summarization: submit text or a URL, poll for the summary.",
    version=VERSION,
    lifespan=lifespan,
)

_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CondenseError)
async def condense_error_handler(request: Request, exc: CondenseError) -> JSONResponse:  # noqa: ARG001
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc)
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def get_orchestrator(request: Request) -> SubmissionOrchestrator:
    return request.app.state.orchestrator


def get_reader(request: Request) -> JobReader:
    return request.app.state.reader


_errors = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ── Routes ─────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    worker: JobWorker | None = getattr(request.app.state, "worker", None)
    queue: WorkQueue | None = getattr(request.app.state, "queue", None)
    return HealthResponse(
        version=VERSION,
        queue_depth=len(queue) if queue is not None else 0,
        worker_running=bool(worker and worker.running),
    )


@app.post(
    "/users",
    response_model=UserCreatedResponse,
    status_code=201,
    responses=_errors,
    dependencies=[Depends(verify_internal_token)],
)
def create_user(
    payload: CreateUserRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> UserCreatedResponse:
    user = orchestrator.create_user(payload.user_id, payload.name, payload.user_type)
    return UserCreatedResponse(user_id=user.id)


@app.get(
    "/users/{user_id}",
    response_model=UserResponse,
    responses=_errors,
    dependencies=[Depends(verify_internal_token)],
)
def get_user(user_id: str, reader: JobReader = Depends(get_reader)) -> UserResponse:
    return reader.user(user_id)


@app.get(
    "/users/{user_id}/jobs",
    response_model=list[StatusResponse],
    responses=_errors,
    dependencies=[Depends(verify_internal_token)],
)
def list_user_jobs(user_id: str, reader: JobReader = Depends(get_reader)) -> list[StatusResponse]:
    return reader.user_jobs(user_id)


@app.post(
    "/submit",
    response_model=SubmitResponse,
    responses=_errors,
    summary="Submit text or a URL for summarization",
    dependencies=[Depends(verify_internal_token)],
)
def submit(
    payload: SubmitRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> SubmitResponse:
    job_id = orchestrator.submit(payload.user_id, payload.content, payload.is_url)
    return SubmitResponse(job_id=job_id)


@app.get(
    "/status/{job_id}",
    response_model=StatusResponse,
    responses=_errors,
    dependencies=[Depends(verify_internal_token)],
)
def job_status(job_id: str, reader: JobReader = Depends(get_reader)) -> StatusResponse:
    return reader.status(job_id)


@app.get(
    "/result/{job_id}",
    response_model=ResultResponse,
    responses=_errors,
    dependencies=[Depends(verify_internal_token)],
)
def job_result(job_id: str, reader: JobReader = Depends(get_reader)) -> ResultResponse:
    return reader.result(job_id)


# ── Dev runner ─────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        reload=True,
    )
