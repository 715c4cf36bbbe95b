"""
RequestDeduplicator - Prevents duplicate concurrent requests.

When multiple callers request the same resource simultaneously,
only one actual request is made and the result is shared.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger


@dataclass
class InFlightRequest:
    """The single outstanding operation for a resource key."""

    key: str
    task: asyncio.Task[Any]


class RequestDeduplicator:
    """
    Registration table of in-flight requests keyed by resource key.

    A registration is removed when its task settles, whether it succeeded,
    failed or was cancelled. Awaiting callers never cancel the task; they
    detach from it instead.

    Usage:
        dedup = RequestDeduplicator()

        request, created = dedup.get_or_create(url, lambda: fetch(url))
        data = await request.task
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, InFlightRequest] = {}
        self._debug = debug
        self._stats = DeduplicatorStats()

    def get_or_create(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> tuple[InFlightRequest, bool]:
        """
        Return the in-flight request for ``key``, starting one if needed.

        Returns:
            The shared request and whether this call created it.
        """
        existing = self._in_flight.get(key)
        if existing is not None:
            self._stats.deduplicated += 1
            self._log(f"DEDUPE: Waiting for in-flight request: {key[:80]}")
            return existing, False

        self._stats.total += 1
        self._log(f"NEW: Starting request: {key[:80]}")
        task = asyncio.ensure_future(self._execute_and_cleanup(key, factory))
        request = InFlightRequest(key=key, task=task)
        self._in_flight[key] = request
        # Also covers tasks cancelled before their first step
        task.add_done_callback(lambda t: self._cleanup(request))
        return request, True

    async def _execute_and_cleanup(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Execute request and deregister before the result is published."""
        try:
            return await request_fn()
        finally:
            current = self._in_flight.get(key)
            if current is not None and current.task is asyncio.current_task():
                del self._in_flight[key]

    def _cleanup(self, request: InFlightRequest) -> None:
        """Deregister a settled request and consume its exception."""
        if self._in_flight.get(request.key) is request:
            del self._in_flight[request.key]
        if not request.task.cancelled() and request.task.exception() is not None:
            self._stats.failed += 1
        self._log(f"DONE: Request completed: {request.key[:80]}")

    async def cancel_all(self) -> int:
        """Cancel all in-flight requests."""
        requests = list(self._in_flight.values())
        for request in requests:
            request.task.cancel()
        if requests:
            await asyncio.gather(*(r.task for r in requests), return_exceptions=True)
            self._log(f"CANCEL_ALL: {len(requests)} requests cancelled")
        return len(requests)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def get_in_flight_count(self) -> int:
        """Get number of in-flight requests."""
        return len(self._in_flight)

    def get_in_flight_keys(self) -> list[str]:
        """Get keys of all in-flight requests."""
        return list(self._in_flight.keys())

    def get_stats(self) -> "DeduplicatorStats":
        """Get deduplication statistics."""
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")


class DeduplicatorStats:
    """Statistics for request deduplication."""

    def __init__(self):
        self.total: int = 0  # Total unique requests made
        self.deduplicated: int = 0  # Requests that joined an in-flight one
        self.failed: int = 0  # Shared requests that settled with an error
        self.in_flight: int = 0  # Current in-flight requests

    @property
    def dedup_rate(self) -> float:
        """Calculate deduplication rate."""
        total = self.total + self.deduplicated
        if total == 0:
            return 0.0
        return self.deduplicated / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total,
            "deduplicated": self.deduplicated,
            "failed": self.failed,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }
