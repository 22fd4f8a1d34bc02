"""Reporting helpers for summarizing generated facet spaces."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .pages import FacetBundle


@dataclass
class FacetStats:
    """Aggregate metrics describing one facet space."""

    label: str
    total_items: int
    attributes: int
    values: int
    combinations: int
    pages: int
    redirects: int
    max_depth: int


def summarize_bundle(label: str, bundle: FacetBundle) -> FacetStats:
    attributes = bundle.filter_data.attributes
    return FacetStats(
        label=label,
        total_items=len(bundle.items),
        attributes=len(attributes),
        values=sum(len(values) for values in attributes.values()),
        combinations=len(bundle.combinations),
        pages=len(bundle.pages),
        redirects=len(bundle.redirects),
        max_depth=max((combo.depth for combo in bundle.combinations), default=0),
    )


def _stats_lines(stats: FacetStats) -> list[str]:
    if stats.total_items == 0:
        return [f"{stats.label}", "  No items available."]
    lines = [
        f"{stats.label}",
        f"  Items: {stats.total_items}",
    ]
    if not stats.attributes:
        lines.append("  No filterable attributes.")
        return lines
    value_label = "value" if stats.values == 1 else "values"
    lines.append(f"  Attributes: {stats.attributes} ({stats.values} {value_label})")
    lines.append(
        f"  Combinations: {stats.combinations} (up to {stats.max_depth} filters deep)"
    )
    lines.append(f"  Pages: {stats.pages}")
    lines.append(f"  Redirects: {stats.redirects}")
    return lines


def generate_facet_report(
    *,
    listing: FacetBundle,
    categories: Mapping[str, FacetBundle],
    category_names: Mapping[str, str] | None = None,
) -> str:
    """Return a formatted report for the main listing and every category."""

    names = category_names or {}
    lines = _stats_lines(summarize_bundle("All items", listing))
    if not categories:
        lines.append("")
        lines.append("No categories have items.")
        return "\n".join(lines)
    total_pages = len(listing.pages)
    total_redirects = len(listing.redirects)
    for slug, bundle in categories.items():
        stats = summarize_bundle(f"Category: {names.get(slug, slug)}", bundle)
        total_pages += stats.pages
        total_redirects += stats.redirects
        lines.append("")
        lines.extend(_stats_lines(stats))
    lines.append("")
    lines.append(f"Total pages: {total_pages}")
    lines.append(f"Total redirects: {total_redirects}")
    return "\n".join(lines)
