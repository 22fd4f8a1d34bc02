"""Data models used by the facet engine."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .utils import parse_price, slugify

logger = logging.getLogger(__name__)

FilterSet = Dict[str, str]


class CombinationInvariantError(RuntimeError):
    """Raised when a combination is built for a filter set with no matches."""


@dataclass(frozen=True)
class FilterAttribute:
    name: str
    value: str

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


@dataclass
class Item:
    """A catalog entry (product or property) that can be filtered."""

    slug: str
    title: str
    price: Optional[float] = None
    order: int = 0
    categories: List[str] = field(default_factory=list)
    filter_attributes: List[FilterAttribute] = field(default_factory=list)
    url: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "title": self.title,
            "price": self.price,
            "order": self.order,
            "categories": list(self.categories),
            "filter_attributes": [attr.to_dict() for attr in self.filter_attributes],
            "url": self.url,
            "image": self.image,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "Item":
        title = str(payload.get("title") or "").strip()
        raw_slug = payload.get("slug")
        slug = str(raw_slug).strip() if raw_slug else slugify(title, fallback="")

        order_value = payload.get("order", 0)
        try:
            order = int(order_value)
        except (TypeError, ValueError):
            order = 0

        raw_categories = payload.get("categories")
        if isinstance(raw_categories, str):
            raw_categories = [raw_categories]
        categories = [
            str(value).strip()
            for value in raw_categories or []
            if isinstance(value, str) and value.strip()
        ]

        attributes: List[FilterAttribute] = []
        raw_attributes = payload.get("filter_attributes")
        if raw_attributes is not None and not isinstance(raw_attributes, list):
            logger.warning("Ignoring non-list filter_attributes on %s", slug)
            raw_attributes = []
        for raw in raw_attributes or []:
            if not isinstance(raw, dict):
                continue
            name = raw.get("name")
            value = raw.get("value")
            if value is not None and not isinstance(value, str):
                value = str(value)
            if not isinstance(name, str) or not isinstance(value, str):
                logger.debug("Skipping malformed filter attribute on %s: %r", slug, raw)
                continue
            if not name.strip() or not value.strip():
                continue
            attributes.append(FilterAttribute(name=name.strip(), value=value.strip()))

        return cls(
            slug=slug,
            title=title,
            price=parse_price(payload.get("price")),
            order=order,
            categories=categories,
            filter_attributes=attributes,
            url=payload.get("url"),
            image=payload.get("image"),
            description=payload.get("description"),
        )


@dataclass(frozen=True)
class Category:
    slug: str
    name: str
    blurb: str = ""

    def to_dict(self) -> dict:
        return {"slug": self.slug, "name": self.name, "blurb": self.blurb}

    @classmethod
    def from_dict(cls, payload: dict) -> "Category":
        name = str(payload.get("name") or payload.get("slug") or "").strip()
        slug = str(payload.get("slug") or "").strip() or slugify(name, fallback="")
        return cls(slug=slug, name=name or slug, blurb=str(payload.get("blurb") or ""))


def _freeze(filters: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(filters))


@dataclass(frozen=True)
class Combination:
    """A filter set that matches at least one item.

    ``filters`` is stored read-only; combinations are shared through caches.
    """

    filters: Mapping[str, str]
    path: str
    count: int

    def __post_init__(self) -> None:
        if self.count < 1:
            raise CombinationInvariantError(
                f"Combination {self.path or '<root>'} has {self.count} matches"
            )
        object.__setattr__(self, "filters", _freeze(self.filters))

    @property
    def depth(self) -> int:
        return len(self.filters)


@dataclass(frozen=True)
class SortedCombination:
    filters: Mapping[str, str]
    path: str
    count: int
    sort_key: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", _freeze(self.filters))

    @property
    def is_sort_only(self) -> bool:
        return not self.filters


@dataclass(frozen=True)
class FilterLabel:
    key: str
    value: str


@dataclass
class Page:
    """A single statically generated listing page."""

    path: str
    filters: FilterSet
    sort_key: str
    count: int
    items: List[Item]
    filter_description: List[FilterLabel] = field(default_factory=list)
    filter_ui: Optional["FilterUI"] = None

    @property
    def is_listing(self) -> bool:
        return not self.filters and self.sort_key == "default"


@dataclass(frozen=True)
class Redirect:
    from_path: str
    to_path: str

    def to_dict(self) -> dict:
        return {"from": self.from_path, "to": self.to_path}


@dataclass(frozen=True)
class FacetAttributes:
    """Attribute index plus the slug to display text lookup."""

    attributes: Mapping[str, Tuple[str, ...]]
    display_lookup: Mapping[str, str]


@dataclass(frozen=True)
class ActiveFilter:
    key: str
    label: str
    value: str
    value_label: str
    remove_url: str


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str
    url: str
    active: bool


@dataclass(frozen=True)
class FilterGroup:
    name: str
    label: str
    options: Tuple[FilterOption, ...]


@dataclass(frozen=True)
class SortLink:
    key: str
    label: str
    url: str
    active: bool


@dataclass(frozen=True)
class FilterUI:
    """Pre-computed facet UI data consumed by the listing templates."""

    has_filters: bool
    has_active_filters: bool = False
    active_filters: Tuple[ActiveFilter, ...] = ()
    clear_all_url: str = ""
    groups: Tuple[FilterGroup, ...] = ()
    sort_links: Tuple[SortLink, ...] = ()
