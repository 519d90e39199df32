"""Single-consumer worker that drives queued jobs to a terminal state.

Per iteration the worker takes the next id from the in-memory queue, or,
when the queue is empty, the oldest queued job in the store (the queue is not
durable, so jobs from before a restart are only reachable that way).  With
nothing to do it waits on the queue, waking on the next ``enqueue`` or after
``poll_interval`` seconds to rescan the store.

A job whose content is already cached is completed without calling the
provider.  Otherwise the job moves to processing, its content is resolved
(fetched for URL jobs), summarized, committed to the cache and completed.
Any failure marks the job failed; it is logged and never retried.

Store calls go through ``asyncio.to_thread``: the store serialises sessions
on a thread lock that request handlers also take, and the event loop must
keep running while a handler holds it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Protocol

from engine.cache import ResultCache
from engine.errors import CondenseError, FetchError, ProviderError
from engine.fingerprint import fingerprint
from engine.work_queue import WorkQueue
from schemas.job import JobStatus
from schemas.records import Job
from services.job_store import JobStore

logger = logging.getLogger("condense.worker")


class ContentSource(Protocol):
    async def fetch(self, url: str) -> str: ...


class SummaryProvider(Protocol):
    async def summarize(self, text: str) -> str: ...


class JobWorker:
    def __init__(
        self,
        store: JobStore,
        cache: ResultCache,
        queue: WorkQueue,
        fetcher: ContentSource,
        provider: SummaryProvider,
        *,
        poll_interval: float = 1.0,
        fetch_timeout: float | None = 15.0,
        provider_timeout: float | None = 60.0,
    ) -> None:
        self.store = store
        self.cache = cache
        self.queue = queue
        self.fetcher = fetcher
        self.provider = provider
        self.poll_interval = poll_interval
        self.fetch_timeout = fetch_timeout
        self.provider_timeout = provider_timeout
        self._stopping = False
        self._task: asyncio.Task | None = None

    # ── Lifecycle ──────────────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._stopping = False
            self._task = asyncio.create_task(self.run(), name="condense-worker")
        return self._task

    def stop(self) -> None:
        """Ask the loop to exit after the current job; wakes a waiting loop."""
        self._stopping = True
        self.queue.shutdown()

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        logger.info("Worker started (poll_interval=%.2fs)", self.poll_interval)
        while not self._stopping:
            job_id = await self._next_job_id(wait=True)
            if job_id is None:
                continue
            await self.process_job(job_id)
        logger.info("Worker stopped")

    async def run_once(self) -> JobStatus | None:
        """Process the next available job without waiting; None when idle."""
        job_id = await self._next_job_id(wait=False)
        if job_id is None:
            return None
        return await self.process_job(job_id)

    async def drain(self) -> int:
        """Process jobs until none are left; return how many were handled."""
        handled = 0
        while await self.run_once() is not None:
            handled += 1
        return handled

    async def _next_job_id(self, *, wait: bool) -> str | None:
        job_id = self.queue.try_dequeue()
        if job_id is not None:
            return job_id

        try:
            job = await asyncio.to_thread(self.store.find_oldest_queued)
        except CondenseError as exc:
            logger.error("Store scan failed: %s", exc)
            job = None
        if job is not None:
            logger.info("Recovered queued job %s from store", job.id)
            return job.id

        if not wait:
            return None
        return await self.queue.dequeue(timeout=self.poll_interval)

    # ── Job execution ──────────────────────────────────────────────────

    async def process_job(self, job_id: str) -> JobStatus | None:
        """Run one job to a terminal state and return that state.

        Returns None when the job no longer exists.  Jobs that are not queued
        (already handled through another path) are left as they are, apart
        from dropping a claim they still hold.
        """
        try:
            job = await asyncio.to_thread(self.store.find_job, job_id)
        except CondenseError as exc:
            logger.error("Could not load job %s: %s", job_id, exc)
            return None
        if job is None:
            logger.debug("Job %s vanished before processing; skipping", job_id)
            return None
        if JobStatus(job.status) is not JobStatus.QUEUED:
            logger.debug("Job %s already %s; skipping", job_id, JobStatus(job.status).value)
            self.cache.release_claim(fingerprint(job.input_content, job.is_url), job_id)
            return JobStatus(job.status)

        key = fingerprint(job.input_content, job.is_url)
        try:
            return await self._execute(job, key)
        except CondenseError as exc:
            logger.warning("Job %s failed: %s", job_id, exc)
        except Exception:
            logger.exception("Job %s failed with an unexpected error", job_id)
        finally:
            self.cache.release_claim(key, job_id)

        await self._mark_failed(job_id)
        return JobStatus.FAILED

    async def _execute(self, job: Job, key: str) -> JobStatus:
        cached = self.cache.get(key)
        if cached is not None:
            await asyncio.to_thread(self.store.complete_job, job.id, cached)
            logger.info("Job %s completed from cache", job.id)
            return JobStatus.COMPLETED

        if not self.cache.try_claim(key, job.id):
            logger.info(
                "Job %s: content already claimed by job %s; processing anyway",
                job.id,
                self.cache.claimant(key),
            )

        await asyncio.to_thread(self.store.update_status, job.id, JobStatus.PROCESSING)
        logger.info("Job %s processing (is_url=%s)", job.id, job.is_url)
        t0 = time.perf_counter()

        text = await self._resolve_content(job)
        summary = await self._summarize(text)

        # First committed value wins so every job for this content converges.
        committed = self.cache.put_if_absent(key, summary)
        await asyncio.to_thread(self.store.complete_job, job.id, committed)

        logger.info("Job %s completed in %.0fms", job.id, (time.perf_counter() - t0) * 1000)
        return JobStatus.COMPLETED

    async def _resolve_content(self, job: Job) -> str:
        if not job.is_url:
            return job.input_content
        try:
            return await asyncio.wait_for(self.fetcher.fetch(job.input_content), self.fetch_timeout)
        except asyncio.TimeoutError:
            raise FetchError(f"Timed out fetching {job.input_content}") from None

    async def _summarize(self, text: str) -> str:
        try:
            summary = await asyncio.wait_for(self.provider.summarize(text), self.provider_timeout)
        except asyncio.TimeoutError:
            raise ProviderError("Summarization timed out") from None
        if not summary or not summary.strip():
            raise ProviderError("Provider returned an empty summary")
        return summary

    async def _mark_failed(self, job_id: str) -> None:
        try:
            await asyncio.to_thread(self.store.update_status, job_id, JobStatus.FAILED)
        except CondenseError as exc:
            logger.error("Could not mark job %s failed: %s", job_id, exc)
