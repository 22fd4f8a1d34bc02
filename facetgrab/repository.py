"""Catalog items and categories stored in a JSON document."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .config import DATA_DIR
from .models import Category, Item
from .utils import dump_json, load_json, timestamp

logger = logging.getLogger(__name__)


class ItemRepository:
    """Store and retrieve catalog items from a JSON document."""

    def __init__(self, data_file: Path | None = None) -> None:
        self.data_file = data_file or DATA_DIR / "catalog.json"
        self._ensure_file_exists()

    def _empty(self) -> Dict[str, object]:
        return {"last_updated": None, "items": [], "categories": []}

    def _load_raw_data(self) -> Dict[str, object]:
        data = load_json(self.data_file, default=self._empty())
        if not isinstance(data, dict):
            logger.warning("Catalog file %s is not an object; treating as empty", self.data_file)
            data = {}
        data.setdefault("last_updated", None)
        data.setdefault("items", [])
        data.setdefault("categories", [])
        return data

    def _ensure_file_exists(self) -> None:
        if not self.data_file.exists():
            logger.debug("Creating new data file at %s", self.data_file)
            dump_json(self.data_file, self._empty())

    def load_items(self) -> List[Item]:
        data = self._load_raw_data()
        items = [
            Item.from_dict(raw)
            for raw in data.get("items", [])
            if isinstance(raw, dict)
        ]
        return [item for item in items if item.slug]

    def save_items(self, items: Iterable[Item]) -> None:
        data = self._load_raw_data()
        data["items"] = [item.to_dict() for item in items]
        data["last_updated"] = timestamp()
        dump_json(self.data_file, data)

    def list_categories(self) -> List[Category]:
        data = self._load_raw_data()
        categories = [
            Category.from_dict(raw)
            for raw in data.get("categories", [])
            if isinstance(raw, dict)
        ]
        return [category for category in categories if category.slug]

    def save_categories(self, categories: Iterable[Category]) -> None:
        data = self._load_raw_data()
        data["categories"] = [category.to_dict() for category in categories]
        dump_json(self.data_file, data)

    def find_by_slug(self, slug: str) -> Optional[Item]:
        for item in self.load_items():
            if item.slug == slug:
                return item
        return None
