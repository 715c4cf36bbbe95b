"""
FetchClient - Cached, deduplicated, concurrency-bounded access to the OParl API.

Combines:
- CacheStore for payloads and their freshness metadata
- RequestDeduplicator so each resource key has at most one request in flight
- ConcurrencyGate to bound simultaneous outbound requests

Freshness policy, per lookup:
- younger than soft_ttl: served from cache, no network
- older, not hard-expired and without validator: served from cache
- otherwise: conditional request if a validator exists, plain GET if not

Cancellation: the caller that starts a refresh owns it. Its signal is tied to
gate admission and to the transport call. Callers that join a running refresh
only detach when their signal fires; if the owner cancels, a joiner whose
signal is still clear restarts the refresh as the new owner.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
from loguru import logger

from ratsinfo.models import iter_identified_items
from ratsinfo.services.cache import CacheEntry, CacheStore, Validator
from ratsinfo.services.cancellation import CancellationSignal, race
from ratsinfo.services.deduplicator import InFlightRequest, RequestDeduplicator
from ratsinfo.services.errors import (
    MalformedResponseError,
    NetworkError,
    RemoteError,
    RequestCancelledError,
    RequestTimeoutError,
    ServiceError,
)
from ratsinfo.services.gate import ConcurrencyGate


@dataclass(frozen=True)
class ClientConfig:
    """Configuration fixed for the lifetime of a FetchClient."""

    base_url: str = ""
    hard_ttl: timedelta = timedelta(minutes=10)
    soft_ttl: timedelta = timedelta(minutes=2)
    max_cache_size: int = 200
    eviction_batch: int = 20
    max_concurrent_requests: int = 5
    # None means list items get hard_ttl like everything else
    sub_entity_ttl: timedelta | None = None
    timeout: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)
    debug: bool = False

    def __post_init__(self) -> None:
        if self.soft_ttl > self.hard_ttl:
            raise ValueError("soft_ttl must not exceed hard_ttl")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be positive")
        if not 0 < self.eviction_batch < self.max_cache_size:
            raise ValueError("eviction_batch must be positive and below max_cache_size")

    @property
    def item_ttl(self) -> timedelta:
        return self.sub_entity_ttl if self.sub_entity_ttl is not None else self.hard_ttl


@dataclass
class FetchStats:
    """Where fetch() results came from."""

    cache_served: int = 0
    network_fetches: int = 0
    revalidated: int = 0
    failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cache_served": self.cache_served,
            "network_fetches": self.network_fetches,
            "revalidated": self.revalidated,
            "failures": self.failures,
        }


class FetchClient:
    """
    Entry point for every API read.

    Usage:
        async with FetchClient(ClientConfig(base_url=BASE_URL)) as client:
            meeting = await client.fetch(meeting_url)

            # Give up when the view goes away
            signal = CancellationSignal()
            papers = await client.fetch(papers_url, signal=signal)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or ClientConfig()
        self._clock = clock
        self._debug = self.config.debug

        # Initialize components
        self._cache = CacheStore(
            max_size=self.config.max_cache_size,
            eviction_batch=self.config.eviction_batch,
            debug=self._debug,
        )
        self._deduplicator = RequestDeduplicator(debug=self._debug)
        self._gate = ConcurrencyGate(
            max_concurrent=self.config.max_concurrent_requests,
            debug=self._debug,
        )
        self._stats = FetchStats()

        # HTTP client (lazy initialization unless injected)
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def gate(self) -> ConcurrencyGate:
        return self._gate

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._deduplicator

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def fetch(
        self,
        key: str,
        headers: dict[str, str] | None = None,
        signal: CancellationSignal | None = None,
    ) -> Any:
        """
        Return the payload for ``key`` from cache or network.

        Args:
            key: Fully resolved URL of the resource
            headers: Extra request headers for a network refresh
            signal: Cancellation signal owned by the caller

        Returns:
            Decoded JSON payload

        Raises:
            RequestCancelledError: If ``signal`` fires first
            NetworkError: If no response was received
            RemoteError: For non-success statuses and undecodable bodies
        """
        while True:
            if signal is not None:
                signal.raise_if_cancelled(key)

            entry = self._serve_from_cache(key)
            if entry is not None:
                self._stats.cache_served += 1
                return entry.payload

            request, created = self._deduplicator.get_or_create(
                key, lambda: self._refresh(key, headers, signal)
            )
            try:
                return await race(request.task, signal, key=key)
            except RequestCancelledError:
                if created or not self._owner_cancelled(request):
                    raise
                self._log(f"REJOIN: owner cancelled, restarting {key[:80]}")

    def _serve_from_cache(self, key: str) -> CacheEntry[Any] | None:
        """Return the cached entry if it may be served without a network call."""
        entry = self._cache.get(key)
        if entry is None:
            return None

        now = self._clock()
        if entry.is_expired(now):
            return None
        if entry.age(now) < self.config.soft_ttl:
            return entry
        if not entry.can_revalidate:
            return entry
        return None

    @staticmethod
    def _owner_cancelled(request: InFlightRequest) -> bool:
        task = request.task
        return (
            task.done()
            and not task.cancelled()
            and isinstance(task.exception(), RequestCancelledError)
        )

    async def _refresh(
        self,
        key: str,
        headers: dict[str, str] | None,
        signal: CancellationSignal | None,
    ) -> Any:
        """Revalidate or fetch ``key``; runs once per key as the shared task."""
        try:
            async with self._gate.slot(signal, key=key):
                previous = self._cache.peek(key)

                req_headers = dict(self.config.headers)
                if headers:
                    req_headers.update(headers)
                if previous is not None and previous.validator:
                    req_headers.update(previous.validator.to_headers())

                response = await race(
                    self._execute_request(key, req_headers), signal, key=key, abort=True
                )

            return self._store_response(key, response, previous)

        except RequestCancelledError:
            raise
        except ServiceError:
            self._stats.failures += 1
            raise

    async def _execute_request(self, url: str, headers: dict[str, str]) -> httpx.Response:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()

        try:
            return await client.get(url, headers=headers)

        except httpx.TimeoutException as e:
            logger.warning(f"Request timed out: {url}")
            raise RequestTimeoutError(self.config.timeout, key=url) from e

        except httpx.RequestError as e:
            logger.warning(f"Network error for {url}: {e}")
            raise NetworkError(key=url) from e

    def _store_response(
        self,
        key: str,
        response: httpx.Response,
        previous: CacheEntry[Any] | None,
    ) -> Any:
        now = self._clock()

        if response.status_code == 304 and previous is not None:
            previous.refresh(now)
            self._cache.put(previous)
            self._stats.revalidated += 1
            self._log(f"NOT MODIFIED: {key[:80]}")
            return previous.payload

        if not response.is_success:
            logger.warning(f"API returned {response.status_code} for {key}")
            raise RemoteError.from_status(
                response.status_code, response.reason_phrase, key=key
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning(f"Undecodable response body for {key}: {e}")
            raise MalformedResponseError(response.status_code, key=key) from e

        validator = Validator(
            etag=response.headers.get("ETag"),
            last_modified=response.headers.get("Last-Modified"),
        )
        self._cache.put(
            CacheEntry(
                key=key,
                payload=payload,
                fetched_at=now,
                ttl=self.config.hard_ttl,
                validator=validator or None,
            )
        )
        self._stats.network_fetches += 1
        self._warm_sub_entities(payload, now)
        return payload

    def _warm_sub_entities(self, payload: Any, now: datetime) -> None:
        """Cache each identified item of a list page under its own id."""
        count = 0
        for item in iter_identified_items(payload):
            self._cache.put(
                CacheEntry(
                    key=item["id"],
                    payload=item,
                    fetched_at=now,
                    ttl=self.config.item_ttl,
                )
            )
            count += 1
        if count:
            self._log(f"WARM: {count} list items cached")

    async def close(self) -> None:
        """Cancel in-flight refreshes and close the owned HTTP client."""
        await self._deduplicator.cancel_all()

        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
        self._http_client = None
        self._owns_http_client = True
        logger.debug("FetchClient closed")

    async def __aenter__(self) -> "FetchClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # Health and status methods

    def get_health_status(self) -> dict[str, Any]:
        """Get status of cache, deduplicator and gate."""
        return {
            "fetch": self._stats.to_dict(),
            "cache": self._cache.get_stats().to_dict(),
            "deduplicator": self._deduplicator.get_stats().to_dict(),
            "gate": self._gate.get_stats().to_dict(),
        }

    def clear_cache(self, pattern: str | None = None) -> int:
        """Clear cache entries, optionally matching a pattern."""
        if pattern:
            return self._cache.invalidate(pattern)
        count = len(self._cache)
        self._cache.clear()
        return count

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[FetchClient] {message}")
