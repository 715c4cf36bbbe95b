"""Tests for CancellationSignal and race()."""

import asyncio

import pytest

from ratsinfo.services.cancellation import CancellationSignal, race
from ratsinfo.services.errors import RequestCancelledError

from tests.conftest import settle


async def test_race_returns_result_when_work_finishes_first():
    signal = CancellationSignal()

    async def work():
        return "done"

    assert await race(work(), signal) == "done"


async def test_race_without_signal_just_awaits():
    async def work():
        return 7

    assert await race(work(), None) == 7


async def test_prefired_signal_raises_with_key():
    signal = CancellationSignal()
    signal.cancel()
    pending = asyncio.get_running_loop().create_future()

    with pytest.raises(RequestCancelledError) as exc_info:
        await race(pending, signal, key="k")
    assert exc_info.value.key == "k"


async def test_detach_leaves_work_running():
    signal = CancellationSignal()
    gate = asyncio.Event()
    work = asyncio.create_task(gate.wait())

    racing = asyncio.create_task(race(work, signal))
    await settle()
    signal.cancel()

    with pytest.raises(RequestCancelledError):
        await racing
    assert not work.cancelled()

    gate.set()
    assert await work is True


async def test_abort_cancels_work():
    signal = CancellationSignal()
    work = asyncio.create_task(asyncio.Event().wait())

    racing = asyncio.create_task(race(work, signal, abort=True))
    await settle()
    signal.cancel()

    with pytest.raises(RequestCancelledError):
        await racing
    await settle()
    assert work.cancelled()


async def test_signal_cancel_is_idempotent():
    signal = CancellationSignal()
    signal.cancel()
    signal.cancel()

    assert signal.cancelled
    await asyncio.wait_for(signal.wait(), timeout=1)
