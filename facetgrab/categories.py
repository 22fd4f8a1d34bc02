"""Category-scoped facets.

Each category gets its own facet space: attributes, combinations, pages and
redirects are computed from that category's items only, so values and counts
never leak between categories.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from .models import Category, FacetAttributes, FilterUI, Item, Redirect
from .pages import FacetBundle, build_facet_bundle
from .sorting import DEFAULT_SORT, sort_items

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES_PATH = "/categories"


def get_items_by_category(items: Iterable[Item], category_slug: str) -> List[Item]:
    """Items tagged with the category, ordered by order then title."""

    return sort_items(
        (item for item in items if category_slug in item.categories), DEFAULT_SORT
    )


def build_category_facets(
    items: Sequence[Item],
    categories: Iterable[Category],
    base_path: str = DEFAULT_CATEGORIES_PATH,
) -> Dict[str, FacetBundle]:
    base_path = base_path.rstrip("/")
    bundles: Dict[str, FacetBundle] = {}
    for category in categories:
        # A fresh list per category, so identity-keyed caches never cross scopes.
        category_items = get_items_by_category(items, category.slug)
        if not category_items:
            logger.debug("Category %s has no items; skipping facets", category.slug)
            continue
        bundles[category.slug] = build_facet_bundle(
            category_items, f"{base_path}/{category.slug}"
        )
    return bundles


def category_filter_attributes(bundles: Dict[str, FacetBundle]) -> Dict[str, FacetAttributes]:
    return {
        slug: bundle.filter_data
        for slug, bundle in bundles.items()
        if bundle.has_filters
    }


def category_filter_redirects(bundles: Dict[str, FacetBundle]) -> List[Redirect]:
    return [redirect for bundle in bundles.values() for redirect in bundle.redirects]


def category_listing_ui(bundles: Dict[str, FacetBundle]) -> Dict[str, FilterUI]:
    """The zero-filter facet summary for each category's own index page."""

    return {
        slug: bundle.listing_ui
        for slug, bundle in bundles.items()
        if bundle.has_filters
    }
