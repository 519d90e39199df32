"""Status and result views built from store state."""

from __future__ import annotations

from engine.cache import ResultCache
from engine.errors import NotFoundError, NotReadyError
from engine.fingerprint import fingerprint
from engine.timeutils import format_iso8601, processing_time_ms
from schemas.job import JobStatus
from schemas.records import Job
from schemas.response import ResultResponse, StatusResponse, UserResponse
from services.job_store import JobStore


class JobReader:
    def __init__(self, store: JobStore, cache: ResultCache) -> None:
        self.store = store
        self.cache = cache

    def _load(self, job_id: str) -> Job:
        job = self.store.find_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    def status(self, job_id: str) -> StatusResponse:
        return self._status_view(self._load(job_id))

    def result(self, job_id: str) -> ResultResponse:
        """Return the result of a completed job.

        Raises ``NotFoundError`` for an unknown id and ``NotReadyError`` while
        the job is not completed (failed jobs included).
        """
        job = self._load(job_id)
        status = JobStatus(job.status)
        if status is not JobStatus.COMPLETED:
            raise NotReadyError(f"Job is not completed yet. Current status: {status.value}")

        return ResultResponse(
            job_id=job.id,
            original_input=job.input_content,
            summary=job.output_content or "",
            cached=fingerprint(job.input_content, job.is_url) in self.cache,
            processing_time_ms=max(0, processing_time_ms(job.created_at, job.updated_at)),
        )

    def user(self, user_id: str) -> UserResponse:
        user = self.store.find_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return UserResponse(user_id=user.id, name=user.name, user_type=user.role, job_ids=list(user.job_ids))

    def user_jobs(self, user_id: str) -> list[StatusResponse]:
        return [self._status_view(job) for job in self.store.list_user_jobs(user_id)]

    @staticmethod
    def _status_view(job: Job) -> StatusResponse:
        return StatusResponse(
            job_id=job.id,
            status=JobStatus(job.status),
            created_at=format_iso8601(job.created_at),
        )
