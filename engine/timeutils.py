"""UTC timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now, the form the job store persists."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_iso8601(ts: datetime | None) -> str:
    """Format *ts* as an ISO-8601 UTC instant (``...Z``).

    Naive values are taken to be UTC.  ``None`` formats the current time.
    """
    if ts is None:
        ts = utcnow()
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts.isoformat(timespec="milliseconds") + "Z"


def processing_time_ms(start: datetime | None, end: datetime | None) -> int:
    if start is None or end is None:
        return 0
    return int((end - start).total_seconds() * 1000)
