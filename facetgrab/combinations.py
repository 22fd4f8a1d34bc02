"""Filter combination generation.

Pre-computes every filter combination with at least one matching item, the
sort variants of each, and redirect rules for attribute paths that have no
value selected.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from .attributes import (
    build_item_lookup,
    count_matches,
    filter_to_path,
    get_all_filter_attributes,
    normalize_attrs,
)
from .cache import memoize_by_identity
from .config import CONTENT_ANCHOR
from .models import Combination, FilterSet, Item, Redirect, SortedCombination
from .sorting import SORT_OPTIONS, non_default_options, to_sorted_path

logger = logging.getLogger(__name__)


@memoize_by_identity()
def generate_filter_combinations(items: Sequence[Item]) -> Tuple[Combination, ...]:
    """Return every filter combination that matches at least one item.

    Attributes are treated as ordered axes. A partial filter set is only ever
    extended with axes after the last one it uses, so each distinct set is
    reached by exactly one path through the search. Branches with no matches
    are dropped along with everything beneath them: every constraint is an
    equality that must also hold, so adding one can never grow the match set.
    """

    attributes = get_all_filter_attributes(items)
    keys = list(attributes)
    if not keys:
        return ()

    lookup = build_item_lookup(items)
    total = len(items)

    def children(filters: FilterSet, start: int) -> List[Tuple[FilterSet, int, int]]:
        found: List[Tuple[FilterSet, int, int]] = []
        for axis in range(start, len(keys)):
            key = keys[axis]
            for value in attributes[key]:
                candidate = {**filters, key: value}
                count = count_matches(lookup, normalize_attrs(candidate), total)
                if count == 0:
                    continue
                found.append((candidate, axis + 1, count))
        return found

    combinations: List[Combination] = []
    # Worklist of (filters, next axis, count); reversed so pops come out depth-first in order.
    stack = list(reversed(children({}, 0)))
    while stack:
        filters, next_axis, count = stack.pop()
        combinations.append(
            Combination(filters=filters, path=filter_to_path(filters), count=count)
        )
        stack.extend(reversed(children(filters, next_axis)))

    logger.debug(
        "Generated %s filter combinations from %s items and %s attributes",
        len(combinations),
        total,
        len(keys),
    )
    return tuple(combinations)


def expand_with_sort_variants(combinations: Iterable[Combination]) -> List[SortedCombination]:
    """One sorted combination per combination and sort option."""

    return [
        SortedCombination(
            filters=combo.filters,
            path=to_sorted_path(combo.path, option.key),
            count=combo.count,
            sort_key=option.key,
        )
        for combo in combinations
        for option in SORT_OPTIONS
    ]


def generate_sort_only_pages(total_count: int, has_attributes: bool = True) -> List[SortedCombination]:
    """Unfiltered listing pages for each non-default sort order.

    Listings without filterable attributes show no sort controls either, so
    they get no sort-only pages.
    """

    if not has_attributes:
        return []
    return [
        SortedCombination(filters={}, path=option.key, count=total_count, sort_key=option.key)
        for option in non_default_options()
    ]


def sorted_combinations_for(items: Sequence[Item]) -> List[SortedCombination]:
    """All page-producing sorted combinations for an item universe."""

    combinations = generate_filter_combinations(items)
    has_attributes = bool(get_all_filter_attributes(items))
    return expand_with_sort_variants(combinations) + generate_sort_only_pages(
        len(items), has_attributes
    )


def generate_filter_redirects(items: Sequence[Item], search_url: str) -> List[Redirect]:
    """Redirects for paths that name an attribute without choosing a value.

    ``{search}/{attr}/`` goes to the unfiltered listing and
    ``{search}/{combo}/{attr}/`` goes back to the combination's own page.
    """

    search_url = search_url.rstrip("/")
    attr_keys = list(get_all_filter_attributes(items))
    if not attr_keys:
        return []

    page_paths = {
        f"{search_url}/{sorted_combo.path}/"
        for sorted_combo in sorted_combinations_for(items)
    }
    redirects: Dict[str, Redirect] = {}

    def add(base_path: str, key: str) -> None:
        source = f"{search_url}{base_path}/{key}/"
        if source in page_paths:
            logger.warning("Skipping redirect from %s: a page already lives there", source)
            return
        if source not in redirects:
            redirects[source] = Redirect(
                from_path=source, to_path=f"{search_url}{base_path}/{CONTENT_ANCHOR}"
            )

    for key in attr_keys:
        add("", key)
    for combo in generate_filter_combinations(items):
        for key in attr_keys:
            if key not in combo.filters:
                add(f"/{combo.path}", key)
    return list(redirects.values())
