"""Error taxonomy shared by the engine, the store and the collaborators.

Every error carries a ``status_code`` hint that only the HTTP layer reads.
"""

from __future__ import annotations


class CondenseError(Exception):
    """Base class for all expected failures."""

    status_code: int = 500


class ValidationError(CondenseError):
    """A required field is missing or malformed."""

    status_code = 400


class ConflictError(CondenseError):
    """An entity with the same id already exists."""

    status_code = 409


class NotFoundError(CondenseError):
    """Unknown job or user id."""

    status_code = 404


class NotReadyError(CondenseError):
    """Result requested before the job completed."""

    status_code = 400


class InvalidTransitionError(CondenseError):
    """Status update that would move a job backward or out of a terminal state."""

    status_code = 409


class FetchError(CondenseError):
    """URL content unreachable, rejected or malformed."""

    status_code = 502


class ProviderError(CondenseError):
    """Summarization failed after the provider's own fallbacks."""

    status_code = 502


class PersistenceError(CondenseError):
    """The job store is unavailable."""

    status_code = 503
