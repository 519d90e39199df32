"""Persistent job and user records (SQLModel tables)."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from engine.timeutils import utcnow
from schemas.job import JobStatus, UserRole


def new_job_id() -> str:
    return str(uuid.uuid4())


class Job(SQLModel, table=True):
    __tablename__ = "jobs"

    id: str = Field(default_factory=new_job_id, primary_key=True)
    user_id: str = Field(index=True)
    input_content: str
    is_url: bool = False
    output_content: str | None = None
    status: JobStatus = Field(default=JobStatus.QUEUED, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: str
    job_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    role: UserRole = UserRole.CLIENT
    created_at: datetime = Field(default_factory=utcnow)
