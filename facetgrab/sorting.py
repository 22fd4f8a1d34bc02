"""Sort orders available on every filtered listing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .models import Item

T = TypeVar("T")

DEFAULT_SORT = "default"

# (price, order, title) extracted from an item or a client snapshot.
SortFields = Tuple[Optional[float], int, str]


def _by_order(fields: SortFields) -> tuple:
    _price, order, title = fields
    return (order, title.casefold())


def _by_price_asc(fields: SortFields) -> tuple:
    price, _order, title = fields
    return (price is None, price if price is not None else 0.0, title.casefold())


def _by_price_desc(fields: SortFields) -> tuple:
    price, _order, title = fields
    return (price is None, -price if price is not None else 0.0, title.casefold())


def _by_name(fields: SortFields) -> tuple:
    return (fields[2].casefold(),)


@dataclass(frozen=True)
class SortOption:
    key: str
    label: str
    sort_key: Callable[[SortFields], tuple]
    reverse: bool = False

    @property
    def suffix(self) -> str:
        return "" if self.key == DEFAULT_SORT else self.key


SORT_OPTIONS: Tuple[SortOption, ...] = (
    SortOption(DEFAULT_SORT, "Featured", _by_order),
    SortOption("price-asc", "Price: low to high", _by_price_asc),
    SortOption("price-desc", "Price: high to low", _by_price_desc),
    SortOption("name-asc", "Name: A to Z", _by_name),
    SortOption("name-desc", "Name: Z to A", _by_name, reverse=True),
)

SORT_KEYS = frozenset(option.key for option in SORT_OPTIONS)


def get_sort_option(key: str) -> SortOption:
    for option in SORT_OPTIONS:
        if option.key == key:
            return option
    raise KeyError(f"Unknown sort option: {key}")


def item_sort_fields(item: Item) -> SortFields:
    return (item.price, item.order, item.title or "")


def snapshot_sort_fields(snapshot: Mapping[str, object]) -> SortFields:
    price = snapshot.get("price")
    order = snapshot.get("order")
    return (
        float(price) if isinstance(price, (int, float)) else None,
        order if isinstance(order, int) else 0,
        str(snapshot.get("title") or ""),
    )


def sort_items(
    items: Iterable[T],
    sort_key: str = DEFAULT_SORT,
    fields: Callable[[T], SortFields] = item_sort_fields,  # type: ignore[assignment]
) -> List[T]:
    """Return a new list ordered by the named sort option."""

    option = get_sort_option(sort_key)
    return sorted(items, key=lambda item: option.sort_key(fields(item)), reverse=option.reverse)


def to_sorted_path(filter_path: str, sort_key: str) -> str:
    """Append the sort suffix to a canonical filter path."""

    suffix = get_sort_option(sort_key).suffix
    return "/".join(part for part in (filter_path, suffix) if part)


def non_default_options() -> Sequence[SortOption]:
    return [option for option in SORT_OPTIONS if option.key != DEFAULT_SORT]
