"""In-memory FIFO of pending job ids.

Producers call ``enqueue`` from any thread or task; the single worker consumes
with ``try_dequeue`` (non-blocking) or ``dequeue`` (suspends until an item
arrives, the timeout expires, or the queue is shut down).  The queue is not
durable: ids lost across a restart are recovered by the worker's store scan.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque

logger = logging.getLogger("condense.queue")


class WorkQueue:
    def __init__(self) -> None:
        self._items: deque[str] = deque()
        self._lock = threading.Lock()
        self._waiter: tuple[asyncio.AbstractEventLoop, asyncio.Event] | None = None
        self._closed = False

    def enqueue(self, job_id: str) -> None:
        with self._lock:
            self._items.append(job_id)
            waiter = self._waiter
        self._wake(waiter)

    def try_dequeue(self) -> str | None:
        with self._lock:
            return self._items.popleft() if self._items else None

    async def dequeue(self, timeout: float | None = None) -> str | None:
        """Wait for the next job id.

        Returns ``None`` when the queue has been shut down or *timeout*
        seconds pass without an item.
        """
        loop = asyncio.get_running_loop()
        while True:
            with self._lock:
                if self._items:
                    return self._items.popleft()
                if self._closed:
                    return None
                event = asyncio.Event()
                self._waiter = (loop, event)
            try:
                await asyncio.wait_for(event.wait(), timeout)
            except asyncio.TimeoutError:
                return None
            finally:
                with self._lock:
                    if self._waiter is not None and self._waiter[1] is event:
                        self._waiter = None

    def shutdown(self) -> None:
        """Release a blocked consumer; later ``dequeue`` calls return at once when empty."""
        with self._lock:
            self._closed = True
            waiter = self._waiter
        self._wake(waiter)
        logger.info("Work queue shut down with %d pending item(s).", len(self))

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @staticmethod
    def _wake(waiter: tuple[asyncio.AbstractEventLoop, asyncio.Event] | None) -> None:
        if waiter is None:
            return
        loop, event = waiter
        if not loop.is_closed():
            loop.call_soon_threadsafe(event.set)
