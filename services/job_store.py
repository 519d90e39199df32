"""Durable job and user store backed by SQLModel.

The store is the single source of truth for job status.  Sessions are
serialised through one lock so a job id never sees concurrent updates (and a
shared in-memory SQLite connection is never used by two threads at once), and
every status change is checked against the forward-only transition table.
SQLAlchemy failures surface as ``PersistenceError``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from engine.errors import ConflictError, InvalidTransitionError, NotFoundError, PersistenceError
from engine.timeutils import utcnow
from schemas.job import JobStatus, can_transition
from schemas.records import Job, User

logger = logging.getLogger("condense.store")


def build_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


class JobStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.RLock()

    @classmethod
    def from_url(cls, database_url: str) -> JobStore:
        store = cls(build_engine(database_url))
        store.init_db()
        return store

    def init_db(self) -> None:
        try:
            SQLModel.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not initialise job store: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._lock, Session(self._engine, expire_on_commit=False) as s:
                yield s
        except SQLAlchemyError as exc:
            logger.error("Job store error: %s", exc)
            raise PersistenceError(f"Job store unavailable: {exc}") from exc

    # ── Jobs ───────────────────────────────────────────────────────────

    def create_job(self, job: Job) -> Job:
        with self._session() as s:
            if s.get(Job, job.id) is not None:
                raise ConflictError(f"Job {job.id} already exists")
            s.add(job)
            s.commit()
            s.refresh(job)
            return job

    def find_job(self, job_id: str) -> Job | None:
        with self._session() as s:
            return s.get(Job, job_id)

    def find_oldest_queued(self) -> Job | None:
        stmt = (
            select(Job)
            .where(Job.status == JobStatus.QUEUED)
            .order_by(Job.created_at, Job.id)
            .limit(1)
        )
        with self._session() as s:
            return s.exec(stmt).first()

    def update_status(self, job_id: str, status: JobStatus) -> Job:
        with self._session() as s:
            job = self._load_for_update(s, job_id)
            self._check_transition(job, status)
            job.status = status
            return self._touch(s, job)

    def update_output(self, job_id: str, output: str) -> Job:
        with self._session() as s:
            job = self._load_for_update(s, job_id)
            job.output_content = output
            return self._touch(s, job)

    def complete_job(self, job_id: str, output: str) -> Job:
        """Write *output* and mark the job completed in one transaction."""
        with self._session() as s:
            job = self._load_for_update(s, job_id)
            self._check_transition(job, JobStatus.COMPLETED)
            job.output_content = output
            job.status = JobStatus.COMPLETED
            return self._touch(s, job)

    def created_at(self, job_id: str) -> datetime | None:
        job = self.find_job(job_id)
        return job.created_at if job else None

    def updated_at(self, job_id: str) -> datetime | None:
        job = self.find_job(job_id)
        return job.updated_at if job else None

    @staticmethod
    def _load_for_update(s: Session, job_id: str) -> Job:
        job = s.get(Job, job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    @staticmethod
    def _check_transition(job: Job, target: JobStatus) -> None:
        current = JobStatus(job.status)
        if not can_transition(current, target):
            raise InvalidTransitionError(
                f"Job {job.id} cannot move from {current.value} to {target.value}"
            )

    @staticmethod
    def _touch(s: Session, job: Job) -> Job:
        job.updated_at = utcnow()
        s.add(job)
        s.commit()
        s.refresh(job)
        return job

    # ── Users ──────────────────────────────────────────────────────────

    def create_user(self, user: User) -> User:
        with self._session() as s:
            if s.get(User, user.id) is not None:
                raise ConflictError(f"User {user.id} already exists")
            s.add(user)
            s.commit()
            s.refresh(user)
            return user

    def find_user(self, user_id: str) -> User | None:
        with self._session() as s:
            return s.get(User, user_id)

    def append_job_id(self, user_id: str, job_id: str) -> bool:
        """Append *job_id* to the user's job list; unknown users are skipped."""
        with self._session() as s:
            user = s.get(User, user_id)
            if user is None:
                logger.warning("User %s not registered; job %s not linked.", user_id, job_id)
                return False
            user.job_ids = [*user.job_ids, job_id]
            s.add(user)
            s.commit()
            return True

    def list_user_jobs(self, user_id: str) -> list[Job]:
        """Return the user's jobs in submission order."""
        user = self.find_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if not user.job_ids:
            return []
        with self._session() as s:
            jobs = {j.id: j for j in s.exec(select(Job).where(col(Job.id).in_(user.job_ids)))}
        return [jobs[jid] for jid in user.job_ids if jid in jobs]
