"""
ConcurrencyGate - Bounds the number of simultaneous outbound requests.

Callers beyond the capacity wait in a FIFO queue. A waiter whose
cancellation signal fires stays in the queue until the next scan skips it.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

from loguru import logger

from ratsinfo.services.cancellation import CancellationSignal, race


@dataclass
class QueuedAdmission:
    """A caller waiting for a slot."""

    future: asyncio.Future[None]
    signal: CancellationSignal | None = None

    @property
    def eligible(self) -> bool:
        if self.future.done():
            return False
        return not (self.signal is not None and self.signal.cancelled)


class ConcurrencyGate:
    """
    FIFO admission gate with a fixed number of slots.

    Usage:
        gate = ConcurrencyGate(max_concurrent=5)

        async with gate.slot(signal):
            response = await http_client.get(url)
    """

    def __init__(self, max_concurrent: int = 5, debug: bool = False):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be positive, got {max_concurrent}")
        self._max_concurrent = max_concurrent
        self._active = 0
        self._queue: deque[QueuedAdmission] = deque()
        self._debug = debug
        self._stats = GateStats()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active(self) -> int:
        """Number of slots currently held."""
        return self._active

    @property
    def waiting(self) -> int:
        """Number of queued callers still eligible for a slot."""
        return sum(1 for admission in self._queue if admission.eligible)

    async def admit(
        self,
        signal: CancellationSignal | None = None,
        key: str | None = None,
    ) -> None:
        """
        Wait until a slot is granted.

        Raises:
            RequestCancelledError: If the signal is already fired or fires
                while waiting. No slot is held in that case.
        """
        if signal is not None:
            signal.raise_if_cancelled(key)

        admission = QueuedAdmission(
            future=asyncio.get_running_loop().create_future(),
            signal=signal,
        )
        self._queue.append(admission)
        self._process_queue()

        if admission.future.done():
            return

        self._log(f"QUEUE: {len(self._queue)} waiting")
        try:
            await race(admission.future, signal, key=key)
        except BaseException:
            if admission.future.done() and not admission.future.cancelled():
                # Granted in the same tick the caller gave up
                self.release()
            else:
                admission.future.cancel()
            self._stats.cancelled += 1
            raise

    def release(self) -> None:
        """Free a slot and grant it to the next eligible waiter."""
        if self._active <= 0:
            raise RuntimeError("ConcurrencyGate.release() called without a held slot")
        self._active -= 1
        self._process_queue()

    @asynccontextmanager
    async def slot(
        self,
        signal: CancellationSignal | None = None,
        key: str | None = None,
    ) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block."""
        await self.admit(signal, key=key)
        try:
            yield
        finally:
            self.release()

    def _process_queue(self) -> None:
        while self._active < self._max_concurrent and self._queue:
            admission = self._queue.popleft()
            if not admission.eligible:
                continue
            self._active += 1
            self._stats.granted += 1
            self._stats.peak_active = max(self._stats.peak_active, self._active)
            admission.future.set_result(None)
            self._log(f"GRANT: {self._active}/{self._max_concurrent} active")

    def get_stats(self) -> "GateStats":
        """Get gate statistics."""
        self._stats.active = self._active
        self._stats.waiting = self.waiting
        self._stats.max_concurrent = self._max_concurrent
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ConcurrencyGate] {message}")


@dataclass
class GateStats:
    """Concurrency gate statistics."""

    granted: int = 0
    cancelled: int = 0
    peak_active: int = 0
    active: int = 0
    waiting: int = 0
    max_concurrent: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "granted": self.granted,
            "cancelled": self.cancelled,
            "peak_active": self.peak_active,
            "active": self.active,
            "waiting": self.waiting,
            "max_concurrent": self.max_concurrent,
        }
