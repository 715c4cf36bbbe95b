"""
CancellationSignal - caller-owned cancellation for service requests.

A signal is fired by its owner (typically a view that was navigated away
from). Service code never fires it; it only checks it or races awaited work
against it.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

from ratsinfo.services.errors import RequestCancelledError

T = TypeVar("T")


class CancellationSignal:
    """
    One-shot cancellation flag that can be awaited.

    Usage:
        signal = CancellationSignal()
        task = asyncio.create_task(client.fetch(url, signal=signal))
        ...
        signal.cancel()  # task fails with RequestCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the signal. Firing twice is a no-op."""
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, key: str | None = None) -> None:
        if self.cancelled:
            raise RequestCancelledError(key)


async def race(
    awaitable: Awaitable[T],
    signal: CancellationSignal | None,
    *,
    key: str | None = None,
    abort: bool = False,
) -> T:
    """
    Await ``awaitable`` unless ``signal`` fires first.

    If the signal wins, RequestCancelledError is raised. With ``abort=True``
    the awaited work is cancelled as well; otherwise it is left running and
    only this caller detaches from it.
    """
    if signal is None:
        if abort:
            return await awaitable
        return await asyncio.shield(awaitable)

    if signal.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestCancelledError(key)

    work: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        if abort:
            work.cancel()
        raise
    finally:
        waiter.cancel()

    if work.done():
        return work.result()

    if abort:
        work.cancel()
    raise RequestCancelledError(key)
