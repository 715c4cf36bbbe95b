"""Tests for paginated envelope detection."""

import pytest

from ratsinfo.models import PagedResponse, is_paged_response, iter_identified_items

PAGINATION = {"currentPage": 1, "elementsPerPage": 2, "totalElements": 2, "totalPages": 1}


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"data": [], "pagination": PAGINATION}, True),
        ({"items": [], "pagination": PAGINATION}, True),
        ({"data": [], "pagination": None}, False),
        ({"data": {}, "pagination": PAGINATION}, False),
        ({"id": "https://x.test/1"}, False),
        ([{"id": "https://x.test/1"}], False),
        (None, False),
    ],
)
def test_is_paged_response(payload, expected):
    assert is_paged_response(payload) is expected


def test_iter_identified_items_skips_items_without_string_id():
    payload = {
        "data": [{"id": "https://x.test/1"}, {"id": 2}, "https://x.test/3", {}],
        "pagination": PAGINATION,
    }

    assert list(iter_identified_items(payload)) == [{"id": "https://x.test/1"}]


def test_iter_identified_items_ignores_single_objects():
    assert list(iter_identified_items({"id": "https://x.test/1"})) == []


def test_paged_response_accepts_either_item_key():
    by_data = PagedResponse.model_validate({"data": [{"id": "a"}], "pagination": PAGINATION})
    by_items = PagedResponse.model_validate({"items": [{"id": "a"}], "pagination": PAGINATION})

    assert by_data.items == by_items.items == [{"id": "a"}]
    assert not by_data.has_next
    assert by_data.links.next is None
