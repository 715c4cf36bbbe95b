"""Shared fixtures: a fake clock and a stub OParl API behind httpx.MockTransport."""

import asyncio
from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest

from ratsinfo.services import ClientConfig, FetchClient

BASE_URL = "https://oparl.example.test/bodies/1"

Responder = httpx.Response | Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Manually advanced replacement for datetime.now."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class StubApi:
    """Serves canned responses by URL and records what was requested."""

    def __init__(self) -> None:
        self.routes: dict[str, Responder] = {}
        self.requests: list[httpx.Request] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self._open = asyncio.Event()
        self._open.set()

    def route(self, url: str, responder: Responder) -> None:
        self.routes[url] = responder

    def hold(self) -> None:
        """Keep every request pending until resume()."""
        self._open.clear()

    def resume(self) -> None:
        self._open.set()

    def calls(self, url: str | None = None) -> int:
        if url is None:
            return len(self.requests)
        return sum(1 for r in self.requests if str(r.url) == url)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await self._open.wait()
            responder = self.routes.get(str(request.url))
            if responder is None:
                return httpx.Response(404)
            if callable(responder):
                return responder(request)
            return responder
        finally:
            self.in_flight -= 1


async def settle() -> None:
    """Let scheduled tasks run until they block again."""
    await asyncio.sleep(0.01)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> StubApi:
    return StubApi()


@pytest.fixture
def make_client(api, clock):
    """Factory building FetchClients wired to the stub API and fake clock."""

    def factory(**overrides) -> FetchClient:
        return FetchClient(
            ClientConfig(base_url=BASE_URL, **overrides),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(api)),
            clock=clock,
        )

    return factory


@pytest.fixture
def client(make_client) -> FetchClient:
    return make_client()
