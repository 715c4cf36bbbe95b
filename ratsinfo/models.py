"""
Typed views of the OParl paginated list envelope.

Only the envelope is modelled. Items stay plain dicts; the cache never
looks at them beyond their ``id``.
"""

from typing import Any, Iterator

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# OParl names the item array "data"
ITEM_ARRAY_KEYS = ("items", "data")


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(alias="currentPage")
    elements_per_page: int = Field(alias="elementsPerPage")
    total_elements: int = Field(alias="totalElements")
    total_pages: int = Field(alias="totalPages")


class PageLinks(BaseModel):
    first: str | None = None
    last: str | None = None
    next: str | None = None
    prev: str | None = None


class PagedResponse(BaseModel):
    """A page of a resource collection."""

    items: list[dict[str, Any]] = Field(
        validation_alias=AliasChoices(*ITEM_ARRAY_KEYS)
    )
    pagination: Pagination
    links: PageLinks = Field(default_factory=PageLinks)

    @property
    def has_next(self) -> bool:
        return self.pagination.current_page < self.pagination.total_pages


def _item_array(payload: Any) -> list[Any] | None:
    if not isinstance(payload, dict):
        return None
    for name in ITEM_ARRAY_KEYS:
        items = payload.get(name)
        if isinstance(items, list):
            return items
    return None


def is_paged_response(payload: Any) -> bool:
    """True if ``payload`` carries an item array and a pagination object."""
    return _item_array(payload) is not None and isinstance(
        payload.get("pagination"), dict
    )


def iter_identified_items(payload: Any) -> Iterator[dict[str, Any]]:
    """Yield the items of a paginated payload that carry a string ``id``."""
    if not is_paged_response(payload):
        return
    for item in _item_array(payload) or []:
        if isinstance(item, dict) and isinstance(item.get("id"), str):
            yield item
