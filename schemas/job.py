"""Job lifecycle enums and the forward-only transition table."""

from __future__ import annotations

from enum import Enum


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class UserRole(str, Enum):
    CLIENT = "client"
    ADMIN = "admin"


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Queued -> Processing -> {Completed, Failed}.  A cache hit found by the worker
# completes a queued job directly, and a job can fail before it starts
# processing (e.g. the store dropped it mid-update).
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True when *target* is a legal next status for *current*."""
    return target in ALLOWED_TRANSITIONS[current]
