"""Process-wide result cache with in-flight claim markers.

Committed entries map a fingerprint to its summary.  Claims are kept in a
separate table and record which job is currently producing a fingerprint's
result.  All operations take the same lock, so compare-and-set style calls
(``try_claim``, ``put_if_absent``) are atomic across threads and tasks.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger("condense.cache")


class ResultCache:
    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._claims: dict[str, str] = {}
        self._lock = threading.Lock()

    # ── Committed entries ──────────────────────────────────────────────

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*; a second call with a different value wins."""
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = value
        if previous is not None and previous != value:
            logger.warning("Cache entry %s overwritten with a different value.", key)

    def put_if_absent(self, key: str, value: str) -> str:
        """Commit *value* unless an entry exists; return the committed value."""
        with self._lock:
            return self._entries.setdefault(key, value)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Claims ─────────────────────────────────────────────────────────

    def try_claim(self, key: str, job_id: str) -> bool:
        """Mark *job_id* as the producer for *key* if nobody holds it.

        Re-claiming by the current holder succeeds.
        """
        with self._lock:
            holder = self._claims.setdefault(key, job_id)
        return holder == job_id

    def claimant(self, key: str) -> str | None:
        with self._lock:
            return self._claims.get(key)

    def release_claim(self, key: str, job_id: str | None = None) -> bool:
        """Drop the claim on *key*.

        When *job_id* is given the claim is only dropped if that job holds it.
        Returns whether a claim was removed.
        """
        with self._lock:
            holder = self._claims.get(key)
            if holder is None or (job_id is not None and holder != job_id):
                return False
            del self._claims[key]
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._claims.clear()
