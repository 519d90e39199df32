"""Submission orchestrator: turns a request into a job record.

A cache hit produces a job that is already completed; a miss produces a
queued job, claims the content fingerprint for it when nobody else is
producing that content, and hands the id to the worker queue.
"""

from __future__ import annotations

import logging

from engine.cache import ResultCache
from engine.errors import CondenseError, ValidationError
from engine.fingerprint import fingerprint
from engine.work_queue import WorkQueue
from schemas.job import JobStatus, UserRole
from schemas.records import Job, User
from services.job_store import JobStore

logger = logging.getLogger("condense.orchestrator")


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value


def parse_role(raw: str | None) -> UserRole:
    """Map a case-insensitive user type to ``UserRole``; blank means client."""
    if raw is None or not raw.strip():
        return UserRole.CLIENT
    try:
        return UserRole(raw.strip().lower())
    except ValueError:
        raise ValidationError("Invalid user_type. Must be CLIENT or ADMIN") from None


class SubmissionOrchestrator:
    def __init__(self, store: JobStore, cache: ResultCache, queue: WorkQueue) -> None:
        self.store = store
        self.cache = cache
        self.queue = queue

    def submit(self, user_id: str, content: str, is_url: bool = False) -> str:
        """Create a job for *content* and return its id.

        The returned id is readable immediately: the job record is committed
        before this returns.
        """
        _require(user_id, "user_id")
        _require(content, "content")

        key = fingerprint(content, is_url)
        cached = self.cache.get(key)

        if cached is not None:
            job = self.store.create_job(
                Job(
                    user_id=user_id,
                    input_content=content,
                    is_url=is_url,
                    output_content=cached,
                    status=JobStatus.COMPLETED,
                )
            )
            self.store.append_job_id(user_id, job.id)
            logger.info("Job %s served from cache (user=%s)", job.id, user_id)
            return job.id

        job = Job(user_id=user_id, input_content=content, is_url=is_url, status=JobStatus.QUEUED)
        # Claim before the row is visible to the worker's store scan.
        won = self.cache.try_claim(key, job.id)
        try:
            job = self.store.create_job(job)
        except CondenseError:
            if won:
                self.cache.release_claim(key, job.id)
            raise
        if won:
            logger.debug("Job %s claimed %s", job.id, key)
        else:
            logger.info(
                "Job %s queued behind in-flight job %s for the same content",
                job.id,
                self.cache.claimant(key),
            )
        self.store.append_job_id(user_id, job.id)
        self.queue.enqueue(job.id)
        logger.info("Job %s queued (user=%s, is_url=%s)", job.id, user_id, is_url)
        return job.id

    def create_user(self, user_id: str, name: str, user_type: str | None = None) -> User:
        _require(user_id, "user_id")
        _require(name, "name")
        role = parse_role(user_type)
        user = self.store.create_user(User(id=user_id, name=name, role=role))
        logger.info("User %s created (role=%s)", user_id, role.value)
        return user
