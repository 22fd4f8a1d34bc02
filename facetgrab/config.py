"""Configuration helpers for the facetgrab site builder."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .utils import env_bool, env_str

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
OUTPUT_DIR = BASE_DIR / "public"

SEARCH_SEGMENT = "search"
CONTENT_ANCHOR = "#content"


@dataclass(frozen=True)
class SiteSettings:
    """Global site level settings used during generation."""

    site_name: str = "Facet Grab"
    base_url: str = "https://example.com"
    listing_path: str = "/products"
    categories_path: str = "/categories"
    redirect_stubs: bool = True
    language: str = "en"


def _clean_path(value: str | None, default: str) -> str:
    text = (value or "").strip().strip("/")
    if not text:
        return default
    return f"/{text}"


def load_settings() -> SiteSettings:
    defaults = SiteSettings()
    return SiteSettings(
        site_name=env_str("FACET_SITE_NAME", defaults.site_name) or defaults.site_name,
        base_url=(env_str("FACET_BASE_URL", defaults.base_url) or defaults.base_url).rstrip("/"),
        listing_path=_clean_path(env_str("FACET_LISTING_PATH"), defaults.listing_path),
        categories_path=_clean_path(
            env_str("FACET_CATEGORIES_PATH"), defaults.categories_path
        ),
        redirect_stubs=env_bool("FACET_REDIRECT_STUBS", defaults.redirect_stubs),
    )


def ensure_directories() -> None:
    """Create the default data and output directories if missing."""

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
