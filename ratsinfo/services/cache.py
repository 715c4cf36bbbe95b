"""
CacheStore - Bounded in-memory table of fetched API payloads.

Features:
- One entry per resource key, overwritten on refresh
- Freshness metadata (fetch time, hard expiry, ETag / Last-Modified)
- Oldest-first batch eviction once the size bound is exceeded

The store makes no freshness decisions; FetchClient does.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class Validator:
    """Conditional-request metadata returned by the API."""

    etag: str | None = None
    last_modified: str | None = None

    def __bool__(self) -> bool:
        return bool(self.etag or self.last_modified)

    def to_headers(self) -> dict[str, str]:
        headers = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    key: str
    payload: T
    fetched_at: datetime
    ttl: timedelta
    validator: Validator | None = None
    hard_expiry: datetime = field(init=False)

    def __post_init__(self) -> None:
        self.hard_expiry = self.fetched_at + self.ttl

    @property
    def can_revalidate(self) -> bool:
        return bool(self.validator)

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its hard expiry."""
        return now >= self.hard_expiry

    def refresh(self, now: datetime) -> None:
        """Mark the payload as confirmed by the server at ``now``."""
        self.fetched_at = now
        self.hard_expiry = now + self.ttl


class CacheStore:
    """
    Bounded key -> CacheEntry table.

    Usage:
        store = CacheStore(max_size=200, eviction_batch=20)

        entry = store.get(url)
        if entry is None:
            store.put(CacheEntry(url, payload, datetime.now(), ttl))
    """

    def __init__(
        self,
        max_size: int = 200,
        eviction_batch: int = 20,
        debug: bool = False,
    ):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if not 0 < eviction_batch <= max_size:
            raise ValueError(
                f"eviction_batch must be between 1 and max_size, got {eviction_batch}"
            )
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._eviction_batch = eviction_batch
        self._debug = debug
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> CacheEntry[Any] | None:
        """Return the entry stored under ``key``, if any."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:80]}")
        else:
            self._stats.hits += 1
            self._log(f"HIT: {key[:80]}")
        return entry

    def peek(self, key: str) -> CacheEntry[Any] | None:
        """Like get(), without touching hit/miss statistics."""
        return self._entries.get(key)

    def put(self, entry: CacheEntry[Any]) -> None:
        """Store ``entry``, replacing any entry with the same key."""
        # Re-insert so dict order follows the latest write
        self._entries.pop(entry.key, None)
        self._entries[entry.key] = entry
        self._log(f"SET: {entry.key[:80]} (TTL: {entry.ttl.total_seconds()}s)")

        if len(self._entries) > self._max_size:
            self._prune()

    def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if key in self._entries:
            del self._entries[key]
            self._log(f"DELETE: {key[:80]}")
            return True
        return False

    def invalidate(self, pattern: str) -> int:
        """
        Invalidate all keys matching a pattern.

        Args:
            pattern: Substring to match in keys

        Returns:
            Number of entries invalidated
        """
        keys_to_delete = [k for k in self._entries if pattern in k]
        for key in keys_to_delete:
            del self._entries[key]

        if keys_to_delete:
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._entries)
        self._entries.clear()
        self._log(f"CLEAR: {count} entries removed")

    def _prune(self) -> None:
        """Evict the oldest batch of entries by fetch time."""
        oldest = sorted(self._entries.values(), key=lambda e: e.fetched_at)
        evicted = oldest[: self._eviction_batch]
        for entry in evicted:
            del self._entries[entry.key]

        self._stats.evictions += len(evicted)
        logger.debug(
            f"[CacheStore] Evicted {len(evicted)} oldest entries, "
            f"{len(self._entries)} remain"
        )

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
