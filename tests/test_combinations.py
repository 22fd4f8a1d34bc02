import itertools
import random

import pytest

from facetgrab.attributes import filter_to_path, get_all_filter_attributes, parse_filter_attributes
from facetgrab.combinations import (
    expand_with_sort_variants,
    generate_filter_combinations,
    generate_filter_redirects,
    generate_sort_only_pages,
    sorted_combinations_for,
)
from facetgrab.mirror import item_matches_filters, snapshot_item
from facetgrab.models import Combination, CombinationInvariantError, FilterAttribute, Item
from facetgrab.sorting import SORT_OPTIONS


def make_item(slug: str, **attrs: str) -> Item:
    return Item(
        slug=slug,
        title=slug,
        filter_attributes=[FilterAttribute(name, value) for name, value in attrs.items()],
    )


def colour_size_items() -> list[Item]:
    return [
        make_item("a", color="red", size="s"),
        make_item("b", color="red", size="m"),
        make_item("c", color="blue", size="s"),
    ]


def random_items(seed: int, count: int = 40) -> list[Item]:
    rng = random.Random(seed)
    axes = {
        "color": ["red", "blue", "green"],
        "size": ["s", "m", "l", "xl"],
        "material": ["wood", "steel"],
        "finish": ["matte", "gloss"],
    }
    items = []
    for index in range(count):
        attrs = {
            name: rng.choice(values)
            for name, values in axes.items()
            if rng.random() < 0.75
        }
        items.append(make_item(f"item-{index}", **attrs))
    return items


def brute_force_counts(items: list[Item]) -> dict[str, int]:
    attributes = get_all_filter_attributes(items)
    keys = list(attributes)
    parsed = [parse_filter_attributes(item) for item in items]
    counts: dict[str, int] = {}
    for size in range(1, len(keys) + 1):
        for chosen in itertools.combinations(keys, size):
            for values in itertools.product(*(attributes[key] for key in chosen)):
                filters = dict(zip(chosen, values))
                count = sum(
                    1 for attrs in parsed if all(attrs.get(k) == v for k, v in filters.items())
                )
                if count:
                    counts[filter_to_path(filters)] = count
    return counts


def test_worked_example_matches_expected_combinations():
    combos = generate_filter_combinations(colour_size_items())
    by_path = {combo.path: combo.count for combo in combos}
    assert by_path == {
        "color/red": 2,
        "color/blue": 1,
        "size/s": 2,
        "size/m": 1,
        "color/red/size/s": 1,
        "color/red/size/m": 1,
        "color/blue/size/s": 1,
    }
    assert "color/blue/size/m" not in by_path


def test_emission_order_is_depth_first_over_axes():
    combos = generate_filter_combinations(colour_size_items())
    assert [combo.path for combo in combos] == [
        "color/red",
        "color/red/size/s",
        "color/red/size/m",
        "color/blue",
        "color/blue/size/s",
        "size/s",
        "size/m",
    ]


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_combinations_are_complete_sound_and_unique(seed):
    items = random_items(seed)
    combos = generate_filter_combinations(items)
    paths = [combo.path for combo in combos]
    assert len(paths) == len(set(paths))
    assert {combo.path: combo.count for combo in combos} == brute_force_counts(items)
    assert all(combo.count > 0 for combo in combos)


def test_no_attributes_means_no_combinations_pages_or_redirects():
    items = [make_item("plain"), make_item("other")]
    assert generate_filter_combinations(items) == ()
    assert sorted_combinations_for(items) == []
    assert generate_filter_redirects(items, "/products/search") == []


def test_combinations_are_memoized_by_list_identity():
    items = colour_size_items()
    first = generate_filter_combinations(items)
    assert generate_filter_combinations(items) is first
    other = items[:2]
    assert {combo.path for combo in generate_filter_combinations(other)} == {
        "color/red",
        "size/s",
        "size/m",
        "color/red/size/s",
        "color/red/size/m",
    }


def test_zero_count_combination_cannot_be_constructed():
    with pytest.raises(CombinationInvariantError):
        Combination(filters={"color": "red"}, path="color/red", count=0)


def test_sort_variants_multiply_each_combination():
    combos = generate_filter_combinations(colour_size_items())
    expanded = expand_with_sort_variants(combos)
    assert len(expanded) == len(combos) * len(SORT_OPTIONS)
    red = [entry for entry in expanded if entry.filters == {"color": "red"}]
    assert [entry.path for entry in red] == [
        "color/red",
        "color/red/price-asc",
        "color/red/price-desc",
        "color/red/name-asc",
        "color/red/name-desc",
    ]
    assert {entry.count for entry in red} == {2}


def test_sort_only_pages_only_exist_alongside_facets():
    pages = generate_sort_only_pages(12)
    assert [page.path for page in pages] == ["price-asc", "price-desc", "name-asc", "name-desc"]
    assert all(page.filters == {} and page.count == 12 for page in pages)
    assert generate_sort_only_pages(12, has_attributes=False) == []

    items = colour_size_items()
    combos = generate_filter_combinations(items)
    assert len(sorted_combinations_for(items)) == len(combos) * len(SORT_OPTIONS) + len(SORT_OPTIONS) - 1


def test_redirects_cover_bare_attribute_paths():
    items = colour_size_items()
    redirects = generate_filter_redirects(items, "/products/search")
    mapping = {redirect.from_path: redirect.to_path for redirect in redirects}
    assert mapping["/products/search/color/"] == "/products/search/#content"
    assert mapping["/products/search/size/"] == "/products/search/#content"
    assert mapping["/products/search/color/red/size/"] == "/products/search/color/red/#content"
    assert mapping["/products/search/size/s/color/"] == "/products/search/size/s/#content"
    assert "/products/search/color/red/color/" not in mapping
    assert "/products/search/color/red/size/s/color/" not in mapping

    combos = generate_filter_combinations(items)
    expected = 2 + sum(2 - combo.depth for combo in combos)
    assert len(redirects) == len(mapping) == expected


@pytest.mark.parametrize("seed", [3, 11])
def test_redirects_are_single_hop_and_never_shadow_pages(seed):
    items = random_items(seed, count=25)
    search = "/categories/widgets/search"
    redirects = generate_filter_redirects(items, search + "/")
    sources = {redirect.from_path for redirect in redirects}
    pages = {f"{search}/{entry.path}/" for entry in sorted_combinations_for(items)}
    assert not sources & pages
    for redirect in redirects:
        assert redirect.to_path.endswith("/#content")
        assert redirect.to_path not in sources
        assert redirect.to_path.replace("#content", "") in pages | {f"{search}/"}


def test_attribute_named_like_sort_key_does_not_shadow_sort_page():
    items = [make_item("a", **{"price-asc": "yes"}), make_item("b", color="red")]
    redirects = generate_filter_redirects(items, "/products/search")
    sources = {redirect.from_path for redirect in redirects}
    assert "/products/search/price-asc/" not in sources
    assert "/products/search/color/" in sources


def test_names_that_normalize_alike_share_one_axis():
    items = [make_item("a", **{"Pack Size": "1"}), make_item("b", PackSize="2")]
    combos = generate_filter_combinations(items)
    assert {combo.path: combo.count for combo in combos} == {"pack-size/1": 1, "pack-size/2": 1}
    snapshots = [snapshot_item(item) for item in items]
    for combo in combos:
        assert sum(item_matches_filters(snap, combo.filters) for snap in snapshots) == combo.count


def test_values_that_normalize_alike_share_one_combination():
    items = [make_item("a", size="X-L"), make_item("b", size="XL"), make_item("c", size="S")]
    combos = generate_filter_combinations(items)
    assert [(combo.path, combo.count) for combo in combos] == [("size/x-l", 2), ("size/s", 1)]


def test_combination_filters_are_read_only():
    combo = generate_filter_combinations(colour_size_items())[0]
    with pytest.raises(TypeError):
        combo.filters["color"] = "green"
    assert generate_filter_combinations(colour_size_items())[0].filters == {"color": "red"}
