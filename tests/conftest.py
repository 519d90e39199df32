"""Shared fixtures: an in-memory store and fresh cache/queue per test."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from engine.cache import ResultCache
from engine.orchestrator import SubmissionOrchestrator
from engine.reader import JobReader
from engine.work_queue import WorkQueue
from engine.worker import JobWorker
from services.job_store import JobStore


@pytest.fixture
def store() -> JobStore:
    return JobStore.from_url("sqlite://")


@pytest.fixture
def cache() -> ResultCache:
    return ResultCache()


@pytest.fixture
def queue() -> WorkQueue:
    return WorkQueue()


@pytest.fixture
def provider() -> AsyncMock:
    """Summarization provider double; ``summarize`` returns ``"greeting"`` by default."""
    mock = AsyncMock()
    mock.summarize.return_value = "greeting"
    return mock


@pytest.fixture
def fetcher() -> AsyncMock:
    mock = AsyncMock()
    mock.fetch.return_value = "Fetched page text."
    return mock


@pytest.fixture
def orchestrator(store, cache, queue) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(store, cache, queue)


@pytest.fixture
def reader(store, cache) -> JobReader:
    return JobReader(store, cache)


@pytest.fixture
def worker(store, cache, queue, fetcher, provider) -> JobWorker:
    return JobWorker(
        store,
        cache,
        queue,
        fetcher,
        provider,
        poll_interval=0.05,
        fetch_timeout=1.0,
        provider_timeout=1.0,
    )
