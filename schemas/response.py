"""Response schemas for the Condense API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from schemas.job import JobStatus, UserRole


class SubmitResponse(BaseModel):
    job_id: str


class StatusResponse(BaseModel):
    """Externally visible job status."""

    job_id: str
    status: JobStatus = Field(description="queued | processing | completed | failed")
    created_at: str = Field(description="Creation time, UTC ISO-8601.")


class ResultResponse(BaseModel):
    """Result of a completed job.

    ``cached`` reflects whether a cache entry for the job's content exists at
    read time, not whether this particular job was served from the cache.
    """

    job_id: str
    original_input: str
    summary: str
    cached: bool
    processing_time_ms: int = Field(ge=0)


class UserCreatedResponse(BaseModel):
    message: str = "User created successfully"
    user_id: str


class UserResponse(BaseModel):
    user_id: str
    name: str
    user_type: UserRole
    job_ids: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "condense"
    version: str
    queue_depth: int = 0
    worker_running: bool = False


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None
