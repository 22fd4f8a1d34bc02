"""Page descriptors and facet UI data for filtered listings."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, List, Mapping, Sequence

from .attributes import (
    build_display_lookup,
    filter_to_path,
    get_all_filter_attributes,
    get_items_by_filters,
)
from .combinations import (
    generate_filter_combinations,
    generate_filter_redirects,
    sorted_combinations_for,
)
from .config import CONTENT_ANCHOR, SEARCH_SEGMENT
from .models import (
    ActiveFilter,
    Combination,
    FacetAttributes,
    FilterGroup,
    FilterLabel,
    FilterOption,
    FilterSet,
    FilterUI,
    Item,
    Page,
    Redirect,
    SortedCombination,
    SortLink,
)
from .sorting import DEFAULT_SORT, SORT_OPTIONS, to_sorted_path

LOGGER = logging.getLogger(__name__)


def build_filter_description(
    filters: Mapping[str, str], display_lookup: Mapping[str, str]
) -> List[FilterLabel]:
    """``{"size": "compact"}`` -> ``[FilterLabel("Size", "Compact")]``."""

    return [
        FilterLabel(key=display_lookup.get(key, key), value=display_lookup.get(value, value))
        for key, value in filters.items()
    ]


def build_page(
    sorted_combination: SortedCombination,
    items: Sequence[Item],
    display_lookup: Mapping[str, str],
) -> Page:
    matched = get_items_by_filters(items, sorted_combination.filters, sorted_combination.sort_key)
    return Page(
        path=sorted_combination.path,
        filters=dict(sorted_combination.filters),
        sort_key=sorted_combination.sort_key,
        count=sorted_combination.count,
        items=matched,
        filter_description=build_filter_description(sorted_combination.filters, display_lookup),
    )


def search_page_url(base_url: str, filters: Mapping[str, str], sort_key: str = DEFAULT_SORT) -> str:
    """Public URL of the page for a filter set and sort order."""

    path = to_sorted_path(filter_to_path(filters), sort_key)
    if not path:
        return f"{base_url}/{CONTENT_ANCHOR}"
    return f"{base_url}/{SEARCH_SEGMENT}/{path}/{CONTENT_ANCHOR}"


def build_filter_ui(
    filter_data: FacetAttributes,
    current_filters: Mapping[str, str] | None,
    valid_paths: Collection[str],
    base_url: str,
    sort_key: str = DEFAULT_SORT,
) -> FilterUI:
    """Pre-compute pills, groups and sort links for a listing template.

    ``valid_paths`` holds the canonical paths of the combinations that have
    pages; options leading anywhere else are left out, except the active one.
    """

    attributes = filter_data.attributes
    display = filter_data.display_lookup
    if not attributes:
        return FilterUI(has_filters=False)

    filters: FilterSet = dict(current_filters or {})

    active_filters = tuple(
        ActiveFilter(
            key=key,
            label=display.get(key, key),
            value=value,
            value_label=display.get(value, value),
            remove_url=search_page_url(
                base_url, {k: v for k, v in filters.items() if k != key}, sort_key
            ),
        )
        for key, value in filters.items()
    )

    groups: List[FilterGroup] = []
    for name, values in attributes.items():
        options: List[FilterOption] = []
        for value in values:
            is_active = filters.get(name) == value
            candidate = {**filters, name: value}
            if not is_active and filter_to_path(candidate) not in valid_paths:
                continue
            options.append(
                FilterOption(
                    value=value,
                    label=display.get(value, value),
                    url=search_page_url(base_url, candidate, sort_key),
                    active=is_active,
                )
            )
        if options:
            groups.append(FilterGroup(name=name, label=display.get(name, name), options=tuple(options)))

    sort_links = tuple(
        SortLink(
            key=option.key,
            label=option.label,
            url=search_page_url(base_url, filters, option.key),
            active=option.key == sort_key,
        )
        for option in SORT_OPTIONS
    )

    return FilterUI(
        has_filters=bool(groups),
        has_active_filters=bool(filters),
        active_filters=active_filters,
        clear_all_url=search_page_url(base_url, {}, sort_key),
        groups=tuple(groups),
        sort_links=sort_links,
    )


@dataclass
class FacetBundle:
    """Everything generated for one item universe (a listing or a category)."""

    base_url: str
    items: Sequence[Item]
    filter_data: FacetAttributes
    combinations: Sequence[Combination]
    pages: List[Page] = field(default_factory=list)
    redirects: List[Redirect] = field(default_factory=list)
    listing_page: Page | None = None

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/{SEARCH_SEGMENT}"

    @property
    def listing_ui(self) -> FilterUI:
        if self.listing_page is None or self.listing_page.filter_ui is None:
            return FilterUI(has_filters=False)
        return self.listing_page.filter_ui

    @property
    def has_filters(self) -> bool:
        return bool(self.filter_data.attributes)

    def page_for(self, path: str) -> Page | None:
        for page in self.pages:
            if page.path == path:
                return page
        return None


def build_facet_bundle(items: Sequence[Item], base_url: str) -> FacetBundle:
    """Run attribute indexing, combination search, sort expansion and
    redirect generation for ``items`` and assemble the page descriptors."""

    base_url = base_url.rstrip("/")
    filter_data = FacetAttributes(
        attributes=get_all_filter_attributes(items),
        display_lookup=build_display_lookup(items),
    )
    combinations = generate_filter_combinations(items)
    valid_paths = {combo.path for combo in combinations}
    display = filter_data.display_lookup

    pages: List[Page] = []
    for sorted_combo in sorted_combinations_for(items):
        page = build_page(sorted_combo, items, display)
        page.filter_ui = build_filter_ui(
            filter_data, page.filters, valid_paths, base_url, page.sort_key
        )
        pages.append(page)

    listing_page = build_page(
        SortedCombination(filters={}, path="", count=len(items), sort_key=DEFAULT_SORT),
        items,
        display,
    )
    listing_page.filter_ui = build_filter_ui(filter_data, {}, valid_paths, base_url)

    bundle = FacetBundle(
        base_url=base_url,
        items=items,
        filter_data=filter_data,
        combinations=combinations,
        pages=pages,
        redirects=generate_filter_redirects(items, f"{base_url}/{SEARCH_SEGMENT}"),
        listing_page=listing_page,
    )
    LOGGER.info(
        "Built %s: %s items, %s combinations, %s pages, %s redirects",
        base_url or "/",
        len(items),
        len(combinations),
        len(pages),
        len(bundle.redirects),
    )
    return bundle
