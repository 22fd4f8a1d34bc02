"""Attribute index and item lookup used to count filter matches.

Items carry raw ``{name, value}`` filter attributes. Names and values are
slugified for URLs and normalized (lowercase alphanumerics only) for
comparison, so ``"Extra Large"`` and ``"extra-large"`` are the same value.
Names or values that normalize alike are one axis or one value, spelled with
the first slug seen for them.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Sequence, Tuple
from urllib.parse import quote, unquote

from .cache import memoize_by_identity
from .models import FilterSet, Item
from .sorting import DEFAULT_SORT, sort_items
from .utils import slugify

logger = logging.getLogger(__name__)

ItemLookup = Mapping[str, Mapping[str, FrozenSet[int]]]


@lru_cache(maxsize=4096)
def normalize(text: str) -> str:
    """Lowercase and strip everything but ASCII letters and digits."""

    return "".join(ch for ch in text.strip().lower() if ch.isascii() and ch.isalnum())


def normalize_attrs(filters: Mapping[str, str]) -> Dict[str, str]:
    """Normalize both keys and values of a filter set, keys sorted.

    Raises ``ValueError`` when two keys normalize alike but ask for different
    values.
    """

    normalized: Dict[str, str] = {}
    for key, value in filters.items():
        norm_key = normalize(key)
        norm_value = normalize(value)
        existing = normalized.setdefault(norm_key, norm_value)
        if existing != norm_value:
            raise ValueError(
                f"Conflicting filters for {norm_key!r}: {existing!r} and {norm_value!r}"
            )
    return {key: normalized[key] for key in sorted(normalized)}


def parse_filter_attributes(item: Item) -> FilterSet:
    """Return ``{attribute slug: value slug}`` for the item, last value wins.

    Names that normalize alike count as one attribute, kept under the first
    slug seen on the item.
    """

    parsed: FilterSet = {}
    slugs: Dict[str, str] = {}
    for attr in item.filter_attributes:
        key = slugify(attr.name, fallback="")
        value = slugify(attr.value, fallback="")
        if not key or not value:
            continue
        key = slugs.setdefault(normalize(key), key)
        parsed[key] = value
    return parsed


@memoize_by_identity()
def get_all_filter_attributes(items: Sequence[Item]) -> Mapping[str, Tuple[str, ...]]:
    """Map every attribute to its distinct values, both in first-seen order."""

    axes: Dict[str, str] = {}
    values_by_key: Dict[str, Dict[str, str]] = {}
    for item in items:
        for key, value in parse_filter_attributes(item).items():
            axis = axes.setdefault(normalize(key), key)
            values_by_key.setdefault(axis, {}).setdefault(normalize(value), value)
    return MappingProxyType(
        {key: tuple(values.values()) for key, values in values_by_key.items()}
    )


@memoize_by_identity()
def build_display_lookup(items: Sequence[Item]) -> Mapping[str, str]:
    """Map attribute and value slugs to the first display text seen for them."""

    lookup: Dict[str, str] = {}
    for item in items:
        for attr in item.filter_attributes:
            for original in (attr.name, attr.value):
                slug = slugify(original, fallback="")
                if slug and slug not in lookup:
                    lookup[slug] = original.strip()
    return MappingProxyType(lookup)


@memoize_by_identity()
def build_item_lookup(items: Sequence[Item]) -> ItemLookup:
    """Index item positions by normalized attribute and value."""

    building: Dict[str, Dict[str, set]] = {}
    for position, item in enumerate(items):
        for key, value in normalize_attrs(parse_filter_attributes(item)).items():
            building.setdefault(key, {}).setdefault(value, set()).add(position)
    lookup = MappingProxyType({
        key: MappingProxyType({value: frozenset(positions) for value, positions in values.items()})
        for key, values in building.items()
    })
    logger.debug("Indexed %s items across %s attributes", len(items), len(lookup))
    return lookup


def find_matching_positions(lookup: ItemLookup, filters: Mapping[str, str]) -> List[int]:
    """Positions of items matching every (already normalized) filter."""

    if not filters:
        return []
    postings: List[FrozenSet[int]] = []
    for key, value in filters.items():
        positions = lookup.get(key, {}).get(value)
        if not positions:
            return []
        postings.append(positions)
    postings.sort(key=len)
    smallest, rest = postings[0], postings[1:]
    return sorted(pos for pos in smallest if all(pos in other for other in rest))


def count_matches(lookup: ItemLookup, filters: Mapping[str, str], total_items: int) -> int:
    """Count items matching the normalized filters; ``total_items`` when empty."""

    if not filters:
        return total_items
    return len(find_matching_positions(lookup, filters))


def filter_to_path(filters: Mapping[str, str] | None) -> str:
    """Canonical URL path for a filter set: ``key/value`` pairs, keys sorted."""

    if not filters:
        return ""
    segments: List[str] = []
    for key in sorted(filters):
        segments.append(quote(key, safe=""))
        segments.append(quote(filters[key], safe=""))
    return "/".join(segments)


def path_to_filter(path: str | None) -> FilterSet:
    """Parse ``key/value`` pairs back out of a canonical path."""

    if not path:
        return {}
    segments = [segment for segment in path.split("/") if segment]
    filters: FilterSet = {}
    for index in range(0, len(segments) - 1, 2):
        key = unquote(segments[index])
        value = unquote(segments[index + 1])
        if key and value:
            filters[key] = value
    return filters


def get_items_by_filters(
    items: Sequence[Item], filters: Mapping[str, str], sort_key: str = DEFAULT_SORT
) -> List[Item]:
    """Items matching the filters, ordered by the sort option."""

    if not filters:
        return sort_items(items, sort_key)
    lookup = build_item_lookup(items)
    positions = find_matching_positions(lookup, normalize_attrs(filters))
    return sort_items((items[pos] for pos in positions), sort_key)
