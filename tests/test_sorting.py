import pytest

from facetgrab.models import Item
from facetgrab.sorting import (
    SORT_KEYS,
    get_sort_option,
    snapshot_sort_fields,
    sort_items,
    to_sorted_path,
)


def make_item(title: str, price: float | None = None, order: int = 0) -> Item:
    return Item(slug=title.lower(), title=title, price=price, order=order)


def test_price_sorts_put_missing_prices_last():
    items = [make_item("No Price"), make_item("Low", 10.0), make_item("High", 30.0)]
    assert [item.title for item in sort_items(items, "price-asc")] == ["Low", "High", "No Price"]
    assert [item.title for item in sort_items(items, "price-desc")] == ["High", "Low", "No Price"]


def test_name_sorts_are_case_insensitive():
    items = [make_item("zebra"), make_item("Alpha"), make_item("beta")]
    assert [item.title for item in sort_items(items, "name-asc")] == ["Alpha", "beta", "zebra"]
    assert [item.title for item in sort_items(items, "name-desc")] == ["zebra", "beta", "Alpha"]


def test_default_sort_uses_order_then_title():
    items = [make_item("b", order=2), make_item("c", order=1), make_item("a", order=2)]
    assert [item.title for item in sort_items(items)] == ["c", "a", "b"]


def test_unknown_sort_key_raises():
    with pytest.raises(KeyError):
        get_sort_option("random")
    assert "default" in SORT_KEYS


def test_to_sorted_path_appends_suffix_except_for_default():
    assert to_sorted_path("color/red", "default") == "color/red"
    assert to_sorted_path("color/red", "price-asc") == "color/red/price-asc"
    assert to_sorted_path("", "name-desc") == "name-desc"
    assert to_sorted_path("", "default") == ""


def test_snapshot_fields_tolerate_missing_values():
    assert snapshot_sort_fields({"title": "X", "price": 3, "order": 2}) == (3.0, 2, "X")
    assert snapshot_sort_fields({}) == (None, 0, "")
