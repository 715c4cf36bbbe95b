"""
Service layer - cached and coordinated access to the OParl API.

Provides:
- CacheStore: Bounded payload cache with freshness metadata
- ConcurrencyGate: FIFO admission bounding simultaneous requests
- RequestDeduplicator: One in-flight request per resource key
- FetchClient: Cache policy, revalidation and cancellation in one entry point
- OparlResources: Collection and object accessors
"""

from ratsinfo.services.errors import (
    ServiceError,
    RequestCancelledError,
    NetworkError,
    RequestTimeoutError,
    RemoteError,
    ResourceNotFoundError,
    InternalServerError,
    ServiceUnavailableError,
    MalformedResponseError,
)
from ratsinfo.services.cancellation import CancellationSignal, race
from ratsinfo.services.cache import CacheStore, CacheEntry, Validator
from ratsinfo.services.gate import ConcurrencyGate
from ratsinfo.services.deduplicator import RequestDeduplicator, InFlightRequest
from ratsinfo.services.client import ClientConfig, FetchClient
from ratsinfo.services.resources import OparlResources

__all__ = [
    # Errors
    "ServiceError",
    "RequestCancelledError",
    "NetworkError",
    "RequestTimeoutError",
    "RemoteError",
    "ResourceNotFoundError",
    "InternalServerError",
    "ServiceUnavailableError",
    "MalformedResponseError",
    # Cancellation
    "CancellationSignal",
    "race",
    # Cache
    "CacheStore",
    "CacheEntry",
    "Validator",
    # Gate
    "ConcurrencyGate",
    # Deduplicator
    "RequestDeduplicator",
    "InFlightRequest",
    # Client
    "ClientConfig",
    "FetchClient",
    "OparlResources",
]
