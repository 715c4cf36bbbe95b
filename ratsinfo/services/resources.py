"""
OparlResources - Typed accessors for OParl collections and objects.
"""

from typing import Any, Mapping

import httpx
from loguru import logger
from pydantic import ValidationError

from ratsinfo.models import PagedResponse
from ratsinfo.services.cancellation import CancellationSignal
from ratsinfo.services.client import FetchClient
from ratsinfo.services.errors import MalformedResponseError

QueryParams = Mapping[str, str | int | None]


class OparlResources:
    """
    Builds canonical resource keys and routes reads through a FetchClient.

    Usage:
        resources = OparlResources(client)

        page = await resources.list_resource("meetings", {"page": 2})
        meeting = await resources.get_by_identifier(page.items[0]["id"])
    """

    def __init__(self, client: FetchClient, base_url: str | None = None):
        self._client = client
        self._base_url = (base_url or client.config.base_url).rstrip("/")
        if not self._base_url:
            raise ValueError("OparlResources needs a base URL")

    @property
    def base_url(self) -> str:
        return self._base_url

    def list_key(self, resource: str, params: QueryParams | None = None) -> str:
        """
        Canonical key for a collection request.

        Parameter names are sorted so that their order never changes the key;
        parameters whose value is None or empty are dropped.
        """
        query = sorted(
            (name, str(value))
            for name, value in (params or {}).items()
            if value is not None and value != ""
        )
        url = httpx.URL(f"{self._base_url}/{resource.strip('/')}", params=query)
        return str(url)

    async def list_resource(
        self,
        resource: str,
        params: QueryParams | None = None,
        signal: CancellationSignal | None = None,
    ) -> PagedResponse:
        """Fetch one page of a collection such as ``meetings`` or ``papers``."""
        key = self.list_key(resource, params)
        payload = await self._client.fetch(key, signal=signal)
        try:
            return PagedResponse.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Response for {key} is not a paginated list: {e}")
            self._client.cache.delete(key)
            raise MalformedResponseError(200, "Not a paginated list.", key=key) from e

    async def get_by_identifier(
        self,
        identifier: str,
        signal: CancellationSignal | None = None,
    ) -> dict[str, Any]:
        """Fetch a single object; its id is its absolute URL and its cache key."""
        if not isinstance(identifier, str):
            raise ValueError(
                f"Invalid identifier: expected str, got {type(identifier).__name__}"
            )
        if not identifier.startswith(("http://", "https://")):
            raise ValueError(f"Invalid identifier, not an absolute URL: {identifier}")

        payload = await self._client.fetch(identifier, signal=signal)
        if not isinstance(payload, dict):
            self._client.cache.delete(identifier)
            raise MalformedResponseError(200, "Expected a JSON object.", key=identifier)
        return payload

    async def search(
        self,
        resource: str,
        query: str,
        page: int = 1,
        signal: CancellationSignal | None = None,
    ) -> PagedResponse:
        """Full-text search within a collection."""
        params: dict[str, str | int | None] = {"page": page}
        if query:
            params["q"] = query
        return await self.list_resource(resource, params, signal=signal)
