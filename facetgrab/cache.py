"""Memoization keyed by the identity of the input collection."""
from __future__ import annotations

import functools
from collections import OrderedDict
from typing import Any, Callable, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_MAXSIZE = 32


class IdentityCache:
    """Map the identity of an object to a value computed from it.

    Entries keep a reference to their key object so an ``id`` recycled by the
    interpreter can never be mistaken for the original. Lists are not weakly
    referenceable, so the table is bounded and evicts least recently used
    entries instead of relying on garbage collection.
    """

    def __init__(self, maxsize: int = DEFAULT_MAXSIZE) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self._entries: "OrderedDict[int, Tuple[Any, Any]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_compute(self, key: Any, compute: Callable[[Any], T]) -> T:
        ident = id(key)
        entry = self._entries.get(ident)
        if entry is not None and entry[0] is key:
            self._entries.move_to_end(ident)
            self.hits += 1
            return entry[1]
        self.misses += 1
        value = compute(key)
        self._entries[ident] = (key, value)
        self._entries.move_to_end(ident)
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)
        return value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0


def memoize_by_identity(maxsize: int = DEFAULT_MAXSIZE):
    """Decorate a single-argument function with an :class:`IdentityCache`."""

    def decorator(func: Callable[[Any], T]) -> Callable[[Any], T]:
        cache = IdentityCache(maxsize=maxsize)

        @functools.wraps(func)
        def wrapper(items: Any) -> T:
            return cache.get_or_compute(items, func)

        wrapper.cache = cache  # type: ignore[attr-defined]
        wrapper.cache_clear = cache.clear  # type: ignore[attr-defined]
        return wrapper

    return decorator
