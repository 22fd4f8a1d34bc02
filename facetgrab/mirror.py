"""Runtime mirror of the facet engine.

Rendered listings embed a JSON snapshot of each item's filters and mark their
facet links with ``data-filter-*`` attributes. The browser re-filters those
items in place when a visitor toggles a facet. :class:`FilterMirror` is the
reference for that behaviour: it reads the same markup and must reach the same
match counts as the build-time lookup for every filter set.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from html import escape as html_escape
from html.parser import HTMLParser
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .attributes import filter_to_path, normalize, parse_filter_attributes, path_to_filter
from .config import SEARCH_SEGMENT
from .models import FilterSet, Item
from .sorting import DEFAULT_SORT, SORT_KEYS, snapshot_sort_fields, sort_items

LOGGER = logging.getLogger(__name__)

Snapshot = Dict[str, object]

IDLE = "idle"
FILTERING = "filtering"


def snapshot_item(item: Item) -> Snapshot:
    """The subset of an item the browser needs to filter and sort it."""

    return {
        "slug": item.slug,
        "title": item.title,
        "price": item.price,
        "order": item.order,
        "filters": parse_filter_attributes(item),
    }


def serialize_snapshot(item: Item) -> str:
    """JSON snapshot escaped for use inside a double-quoted attribute."""

    payload = json.dumps(snapshot_item(item), ensure_ascii=False, separators=(",", ":"))
    return html_escape(payload, quote=True)


def _snapshot_filters(snapshot: Mapping[str, object]) -> Dict[str, str]:
    raw = snapshot.get("filters")
    if not isinstance(raw, dict):
        return {}
    return {
        normalize(str(key)): normalize(str(value))
        for key, value in raw.items()
        if isinstance(key, str) and isinstance(value, str)
    }


def item_matches_filters(snapshot: Mapping[str, object], filters: Mapping[str, str]) -> bool:
    """True when every filter, normalized, is present and equal on the item."""

    if not filters:
        return True
    item_filters = _snapshot_filters(snapshot)
    for key, value in filters.items():
        expected = normalize(value)
        if item_filters.get(normalize(key)) != expected:
            return False
    return True


def count_snapshot_matches(snapshots: Sequence[Mapping[str, object]], filters: Mapping[str, str]) -> int:
    return sum(1 for snapshot in snapshots if item_matches_filters(snapshot, filters))


# ----------------------------------------------------------------------
# History URLs

_SEARCH_PATTERN = re.compile(rf"/{SEARCH_SEGMENT}/(.+?)/?$")


def build_filter_url(pathname: str, filters: Mapping[str, str], sort_key: str = DEFAULT_SORT) -> str:
    base = pathname.split(f"/{SEARCH_SEGMENT}/")[0].rstrip("/")
    path = filter_to_path(filters)
    suffix = sort_key if sort_key and sort_key != DEFAULT_SORT else ""
    search_part = "/".join(part for part in (path, suffix) if part)
    if search_part:
        return f"{base}/{SEARCH_SEGMENT}/{search_part}/"
    return f"{base}/"


def parse_filters_from_path(pathname: str) -> Tuple[FilterSet, str]:
    match = _SEARCH_PATTERN.search(pathname)
    if not match:
        return {}, DEFAULT_SORT
    parts = [part for part in match.group(1).split("/") if part]
    sort_key = DEFAULT_SORT
    if parts and parts[-1] in SORT_KEYS and len(parts) % 2 == 1:
        sort_key = parts.pop()
    return path_to_filter("/".join(parts)), sort_key


# ----------------------------------------------------------------------
# Controls read from markup


@dataclass
class OptionLink:
    key: str
    value: str
    key_label: str
    value_label: str
    active: bool = False
    visible: bool = True


@dataclass
class OptionGroup:
    name: str
    options: List[OptionLink] = field(default_factory=list)
    visible: bool = True


@dataclass
class FilterControls:
    """Filter state reconstructed from a rendered listing."""

    items: List[Snapshot] = field(default_factory=list)
    groups: List[OptionGroup] = field(default_factory=list)
    remove_keys: List[str] = field(default_factory=list)
    sort_keys: List[str] = field(default_factory=list)
    initial_sort: str = DEFAULT_SORT
    has_pill_container: bool = False

    def find_option(self, key: str, value: str) -> Optional[OptionLink]:
        for group in self.groups:
            for option in group.options:
                if option.key == key and option.value == value:
                    return option
        return None

    def label_lookup(self) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        for group in self.groups:
            for option in group.options:
                lookup[option.key] = option.key_label
                lookup[option.value] = option.value_label
        return lookup

    def initial_filters(self) -> FilterSet:
        """Active options whose attribute also has a remove pill."""

        filters: FilterSet = {}
        for key in self.remove_keys:
            for group in self.groups:
                for option in group.options:
                    if option.key == key and option.active:
                        filters[key] = option.value
        return filters

    @classmethod
    def from_markup(cls, markup: str) -> "FilterControls":
        parser = _ControlsParser()
        parser.feed(markup)
        parser.close()
        return parser.controls


class _ControlsParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.controls = FilterControls()
        self._li_active = False
        self._groups: Dict[str, OptionGroup] = {}
        self._current_group: Optional[OptionGroup] = None

    def _group(self, name: str) -> OptionGroup:
        group = self._groups.get(name)
        if group is None:
            group = OptionGroup(name=name)
            self._groups[name] = group
            self.controls.groups.append(group)
        return group

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        attributes = {name: value if value is not None else "" for name, value in attrs}
        classes = set(attributes.get("class", "").split())

        if tag == "li":
            self._li_active = "active" in classes

        if "data-active-filters" in attributes:
            self.controls.has_pill_container = True

        raw_item = attributes.get("data-filter-item")
        if raw_item:
            try:
                snapshot = json.loads(raw_item)
            except json.JSONDecodeError:
                LOGGER.warning("Ignoring unreadable item snapshot")
            else:
                if isinstance(snapshot, dict):
                    self.controls.items.append(snapshot)

        if "data-filter-group" in attributes:
            self._current_group = self._group(attributes["data-filter-group"])

        if tag == "a" and "data-filter-key" in attributes and "data-filter-value" in attributes:
            key = attributes["data-filter-key"]
            value = attributes["data-filter-value"]
            group = self._current_group if self._current_group is not None else self._group(key)
            group.options.append(
                OptionLink(
                    key=key,
                    value=value,
                    key_label=attributes.get("data-filter-key-label") or key,
                    value_label=attributes.get("data-filter-value-label") or value,
                    active=self._li_active or "active" in classes,
                )
            )

        if "data-remove-filter" in attributes:
            self.controls.remove_keys.append(attributes["data-remove-filter"])

        if tag == "option" and attributes.get("data-sort-key"):
            sort_key = attributes["data-sort-key"]
            self.controls.sort_keys.append(sort_key)
            if "selected" in attributes:
                self.controls.initial_sort = sort_key


# ----------------------------------------------------------------------
# Engine


@dataclass(frozen=True)
class Pill:
    key: str
    text: str
    aria_label: str


class FilterMirror:
    """Synchronous filter state machine driven by facet clicks."""

    def __init__(self, controls: FilterControls) -> None:
        self.controls = controls
        self.active_filters: FilterSet = controls.initial_filters()
        self.sort_key = controls.initial_sort
        self.phase = IDLE
        self.taken_over = False
        self.pills: List[Pill] = []
        self.show_clear_all = False
        self.matching: List[Snapshot] = []
        self._labels = controls.label_lookup()
        self.render()

    @classmethod
    def from_markup(cls, markup: str) -> "FilterMirror":
        return cls(FilterControls.from_markup(markup))

    # Events ------------------------------------------------------------

    def toggle(self, key: str, value: str) -> None:
        if self.controls.find_option(key, value) is None:
            return
        if self.active_filters.get(key) == value:
            filters = {k: v for k, v in self.active_filters.items() if k != key}
        else:
            filters = {**self.active_filters, key: value}
        self._transition(filters, self.sort_key)

    def remove(self, key: str) -> None:
        if key not in self.active_filters:
            return
        self._transition({k: v for k, v in self.active_filters.items() if k != key}, self.sort_key)

    def clear(self) -> None:
        self._transition({}, self.sort_key)

    def set_sort(self, sort_key: str) -> None:
        if sort_key not in self.controls.sort_keys or sort_key not in SORT_KEYS:
            return
        self._transition(dict(self.active_filters), sort_key)

    def _transition(self, filters: FilterSet, sort_key: str) -> None:
        if self.phase != IDLE:
            raise RuntimeError("Filter update already in progress")
        self.phase = FILTERING
        try:
            self.taken_over = True
            self.active_filters = filters
            self.sort_key = sort_key
            self.render()
        finally:
            self.phase = IDLE

    # Rendering ---------------------------------------------------------

    @property
    def match_count(self) -> int:
        return len(self.matching)

    @property
    def total_count(self) -> int:
        return len(self.controls.items)

    @property
    def summary(self) -> str:
        return f"Showing {self.match_count:,} of {self.total_count:,} items"

    def visible_slugs(self) -> List[str]:
        return [str(snapshot.get("slug")) for snapshot in self.matching]

    def current_url(self, pathname: str) -> str:
        return build_filter_url(pathname, self.active_filters, self.sort_key)

    def render(self) -> None:
        items = self.controls.items
        matching = [snapshot for snapshot in items if item_matches_filters(snapshot, self.active_filters)]
        self.matching = sort_items(matching, self.sort_key, snapshot_sort_fields)
        if self.taken_over:
            self._rebuild_pills()
        self._update_active_states()
        self._update_visibility()

    def _rebuild_pills(self) -> None:
        pills: List[Pill] = []
        for key, value in self.active_filters.items():
            key_label = self._labels.get(key, key)
            value_label = self._labels.get(value, value)
            pills.append(
                Pill(key=key, text=f"{key_label}: {value_label}", aria_label=f"Remove {key_label} filter")
            )
        self.pills = pills
        self.show_clear_all = bool(self.active_filters)

    def _update_active_states(self) -> None:
        for group in self.controls.groups:
            for option in group.options:
                option.active = self.active_filters.get(option.key) == option.value

    def is_option_visible(self, option: OptionLink) -> bool:
        """Active options always show; others only when they change the results."""

        if self.active_filters.get(option.key) == option.value:
            return True
        hypothetical = {**self.active_filters, option.key: option.value}
        count = count_snapshot_matches(self.controls.items, hypothetical)
        if count == 0:
            return False
        return option.key in self.active_filters or count != self.match_count

    def _update_visibility(self) -> None:
        for group in self.controls.groups:
            visible = 0
            for option in group.options:
                option.visible = self.is_option_visible(option)
                if option.visible:
                    visible += 1
            group.visible = visible > 0

    def hidden_options(self) -> List[Tuple[str, str]]:
        return [
            (option.key, option.value)
            for group in self.controls.groups
            for option in group.options
            if not option.visible
        ]
