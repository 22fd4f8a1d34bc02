import json
import random
from html import unescape

import pytest

from facetgrab.attributes import build_item_lookup, count_matches, get_all_filter_attributes, normalize_attrs
from facetgrab.combinations import generate_filter_combinations
from facetgrab.config import SiteSettings
from facetgrab.generator import SiteGenerator
from facetgrab.mirror import (
    FILTERING,
    IDLE,
    FilterControls,
    FilterMirror,
    build_filter_url,
    item_matches_filters,
    parse_filters_from_path,
    serialize_snapshot,
    snapshot_item,
)
from facetgrab.models import Category, FilterAttribute, Item
from facetgrab.pages import build_facet_bundle


def make_item(slug: str, price: float | None = None, **attrs: str) -> Item:
    return Item(
        slug=slug,
        title=slug.title(),
        price=price,
        categories=["things"],
        filter_attributes=[
            FilterAttribute(name.replace("_", " ").title(), value) for name, value in attrs.items()
        ],
    )


def build_items() -> list[Item]:
    return [
        make_item("a", 30.0, colour="Red", size="Small"),
        make_item("b", 10.0, colour="Red", size="Large"),
        make_item("c", 20.0, colour="Blue", size="Small"),
        make_item("d", None, colour="Blue", size="Small", pet_friendly="Yes"),
    ]


def render_listing(tmp_path, items: list[Item], page_path: str = "") -> str:
    settings = SiteSettings(base_url="https://example.com", redirect_stubs=False)
    generator = SiteGenerator(output_dir=tmp_path / "public", settings=settings)
    generator.build(items=items, categories=[Category(slug="things", name="Things")])
    target = tmp_path / "public" / "products"
    if page_path:
        target = target / "search" / page_path
    return (target / "index.html").read_text(encoding="utf-8")


@pytest.mark.parametrize("seed", range(5))
def test_runtime_predicate_agrees_with_build_time_counts(seed):
    rng = random.Random(seed)
    # "Pet Friendly"/"PetFriendly" and "X-L"/"XL" normalize alike.
    names = ["Colour", "Size", "Pet Friendly", "PetFriendly", "Finish"]
    values = ["Red", "Blue", "Extra Large", "small", "Yes", "No", "X-L", "XL"]
    items = []
    for index in range(30):
        attrs = [
            FilterAttribute(name, rng.choice(values))
            for name in names
            if rng.random() < 0.7
        ]
        items.append(Item(slug=f"i{index}", title=f"Item {index}", filter_attributes=attrs))
    snapshots = [json.loads(unescape(serialize_snapshot(item))) for item in items]
    lookup = build_item_lookup(items)
    attributes = get_all_filter_attributes(items)
    keys = list(attributes)

    for _ in range(200):
        chosen = rng.sample(keys, rng.randint(1, len(keys)))
        filters = {key: rng.choice(attributes[key] + ("missing",)) for key in chosen}
        expected = count_matches(lookup, normalize_attrs(filters), len(items))
        assert sum(item_matches_filters(snap, filters) for snap in snapshots) == expected

    for combo in generate_filter_combinations(items):
        assert sum(item_matches_filters(snap, combo.filters) for snap in snapshots) == combo.count


def test_snapshot_contains_slugified_filters():
    snapshot = snapshot_item(make_item("x", 5.0, pet_friendly="Yes"))
    assert snapshot == {"slug": "x", "title": "X", "price": 5.0, "order": 0, "filters": {"pet-friendly": "yes"}}
    assert item_matches_filters(snapshot, {})
    assert item_matches_filters(snapshot, {"pet friendly": "YES"})
    assert not item_matches_filters(snapshot, {"colour": "red"})


def test_filter_url_helpers_round_trip():
    url = build_filter_url("/products/search/colour/red/", {"size": "small", "colour": "red"}, "price-asc")
    assert url == "/products/search/colour/red/size/small/price-asc/"
    assert build_filter_url("/categories/kitchen/", {}, "default") == "/categories/kitchen/"
    assert parse_filters_from_path(url) == ({"colour": "red", "size": "small"}, "price-asc")
    assert parse_filters_from_path("/products/") == ({}, "default")
    assert parse_filters_from_path("/products/search/name-desc/") == ({}, "name-desc")
    assert parse_filters_from_path("/p/search/a%20b/c%2Fd/name-asc/") == ({"a b": "c/d"}, "name-asc")
    assert parse_filters_from_path("/p/search/colour/red/size/") == ({"colour": "red"}, "default")


def test_mirror_reads_initial_state_from_rendered_page(tmp_path):
    html = render_listing(tmp_path, build_items(), "colour/red/price-asc")
    controls = FilterControls.from_markup(html)
    assert len(controls.items) == 2
    assert controls.initial_filters() == {"colour": "red"}
    assert controls.initial_sort == "price-asc"

    mirror = FilterMirror(controls)
    assert mirror.active_filters == {"colour": "red"}
    assert mirror.visible_slugs() == ["b", "a"]
    assert mirror.pills == []


def test_mirror_toggle_updates_counts_pills_and_visibility(tmp_path):
    items = build_items()
    mirror = FilterMirror.from_markup(render_listing(tmp_path, items))
    assert mirror.match_count == 4
    assert mirror.phase == IDLE

    mirror.toggle("colour", "blue")
    assert mirror.phase == IDLE
    assert mirror.match_count == 2
    assert mirror.summary == "Showing 2 of 4 items"
    assert [pill.text for pill in mirror.pills] == ["Colour: Blue"]
    assert mirror.show_clear_all

    hidden = set(mirror.hidden_options())
    # Every blue item is small: narrowing by size changes nothing.
    assert ("size", "small") in hidden
    assert ("size", "large") in hidden
    # Switching colour stays available even though red also has two items.
    assert ("colour", "red") not in hidden
    assert ("pet-friendly", "yes") not in hidden
    groups = {group.name: group.visible for group in mirror.controls.groups}
    assert groups == {"colour": True, "size": False, "pet-friendly": True}

    bundle = build_facet_bundle(items, "/products")
    counts = {combo.path: combo.count for combo in bundle.combinations}
    mirror.toggle("pet-friendly", "yes")
    assert mirror.match_count == counts["colour/blue/pet-friendly/yes"] == 1

    mirror.toggle("pet-friendly", "yes")
    assert mirror.active_filters == {"colour": "blue"}
    mirror.remove("colour")
    assert mirror.active_filters == {}
    assert mirror.pills == []
    assert not mirror.show_clear_all


def test_mirror_sort_and_clear(tmp_path):
    mirror = FilterMirror.from_markup(render_listing(tmp_path, build_items()))
    mirror.set_sort("price-desc")
    assert mirror.visible_slugs() == ["a", "c", "b", "d"]
    mirror.toggle("size", "small")
    assert mirror.current_url("/products/") == "/products/search/size/small/price-desc/"
    mirror.clear()
    assert mirror.active_filters == {}
    assert mirror.match_count == 4


def test_mirror_ignores_unknown_options(tmp_path):
    mirror = FilterMirror.from_markup(render_listing(tmp_path, build_items()))
    mirror.toggle("colour", "purple")
    mirror.remove("size")
    mirror.set_sort("shuffle")
    assert mirror.active_filters == {}
    assert mirror.sort_key == "default"
    assert not mirror.taken_over


def test_mirror_rejects_reentrant_updates(tmp_path):
    mirror = FilterMirror.from_markup(render_listing(tmp_path, build_items()))
    mirror.phase = FILTERING
    with pytest.raises(RuntimeError):
        mirror.clear()
