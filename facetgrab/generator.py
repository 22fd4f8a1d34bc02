"""Static output for faceted listings: pages, redirects and sitemap."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from html import escape as html_escape
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .categories import build_category_facets
from .config import CONTENT_ANCHOR, SiteSettings, load_settings
from .mirror import serialize_snapshot
from .models import Category, FilterUI, Item, Page, Redirect
from .pages import FacetBundle, build_facet_bundle, search_page_url
from .sorting import DEFAULT_SORT

LOGGER = logging.getLogger(__name__)

BASE_TEMPLATE = """<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  {{ head|safe }}
</head>
<body>
<main id="content">
{{ content|safe }}
</main>
</body>
</html>
"""

_HEAD_SAFE_PATTERN = re.compile(r"\{\{\s*head\|safe\s*\}\}")
_CONTENT_SAFE_PATTERN = re.compile(r"\{\{\s*content\|safe\s*\}\}")
_LANG_PATTERN = re.compile(r"\{\{\s*lang\s*\}\}")


def _render_with_base(*, content: str, head: str = "", lang: str = "en") -> str:
    html = BASE_TEMPLATE
    html = _LANG_PATTERN.sub(lambda _match: html_escape(lang), html)
    html = _HEAD_SAFE_PATTERN.sub(lambda _match: head, html)
    html = _CONTENT_SAFE_PATTERN.sub(lambda _match: content, html)
    return html


def _format_price(price: float | None) -> str:
    if price is None:
        return ""
    return f"${price:,.2f}"


@dataclass
class SiteBuild:
    """Descriptors for the whole site: the main listing plus each category."""

    listing: FacetBundle
    categories: Dict[str, FacetBundle] = field(default_factory=dict)
    category_names: Dict[str, str] = field(default_factory=dict)

    def bundles(self) -> List[FacetBundle]:
        return [self.listing, *self.categories.values()]

    def redirects(self) -> List[Redirect]:
        return [redirect for bundle in self.bundles() for redirect in bundle.redirects]


def build_site(
    items: Sequence[Item],
    categories: Iterable[Category],
    settings: SiteSettings | None = None,
) -> SiteBuild:
    settings = settings or load_settings()
    categories = list(categories)
    listing = build_facet_bundle(list(items), settings.listing_path)
    category_bundles = build_category_facets(items, categories, settings.categories_path)
    return SiteBuild(
        listing=listing,
        categories=category_bundles,
        category_names={category.slug: category.name for category in categories},
    )


class SiteGenerator:
    def __init__(self, output_dir: Path | str = Path("public"), settings: SiteSettings | None = None) -> None:
        self.output_dir = Path(output_dir)
        self.settings = settings or load_settings()
        self._sitemap_entries: List[str] = []

    # ------------------------------------------------------------------
    # Public API

    def build(self, *, items: Sequence[Item], categories: Iterable[Category]) -> SiteBuild:
        LOGGER.info("Rendering site to %s", self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._sitemap_entries = []
        site = build_site(items, categories, self.settings)
        self._write_bundle(site.listing, "All items")
        for slug, bundle in site.categories.items():
            self._write_bundle(bundle, site.category_names.get(slug, slug))
        self._write_redirects(site.redirects())
        self._write_sitemap()
        self._write_robots()
        return site

    # ------------------------------------------------------------------
    # Rendering helpers

    def _abs_url(self, path: str) -> str:
        base = (self.settings.base_url or "https://example.com").rstrip("/")
        if path.startswith("/"):
            return f"{base}{path}"
        return f"{base}/{path}"

    def _safe_write(self, target: Path, content: str) -> None:
        resolved = target.resolve()
        if self.output_dir.resolve() not in resolved.parents:
            raise RuntimeError(f"Refusing to write outside {self.output_dir}: {target}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def _write_file(self, path: str, content: str) -> None:
        file_path = self.output_dir / path.lstrip("/")
        if file_path.name != "index.html":
            file_path = file_path / "index.html"
        self._safe_write(file_path, content)

    def _render_document(
        self,
        *,
        page_title: str,
        canonical_path: str,
        body: str,
        noindex: bool = False,
        refresh_to: str | None = None,
    ) -> str:
        head_parts: list[str] = []
        title_text = (page_title or "").strip()
        if title_text:
            head_parts.append(f"<title>{html_escape(title_text)}</title>")
        canonical = (canonical_path or "").strip()
        if canonical:
            head_parts.append(
                "<link rel=\"canonical\" href=\""
                + html_escape(self._abs_url(canonical))
                + "\">"
            )
        if noindex:
            head_parts.append("<meta name=\"robots\" content=\"noindex, follow\">")
        if refresh_to:
            head_parts.append(
                f"<meta http-equiv=\"refresh\" content=\"0; url={html_escape(refresh_to)}\">"
            )
        head_html = "\n  ".join(head_parts)
        body_html = body if body.endswith("\n") else f"{body}\n"
        return _render_with_base(content=body_html, head=head_html, lang=self.settings.language)

    def _filter_controls(self, ui: FilterUI) -> list[str]:
        if not ui.has_filters:
            return []
        parts = ['<div class="filter-container" data-filter-container>']
        parts.append('  <ul class="filter-active" data-active-filters>')
        for active in ui.active_filters:
            parts.append(
                "    <li>"
                f"<span>{html_escape(active.label)}: {html_escape(active.value_label)}</span> "
                f"<a href=\"{html_escape(active.remove_url)}\" data-remove-filter=\"{html_escape(active.key)}\" "
                f"aria-label=\"Remove {html_escape(active.label)} filter\">&times;</a>"
                "</li>"
            )
        if ui.has_active_filters:
            parts.append(
                f"    <li><a href=\"{html_escape(ui.clear_all_url)}\" data-clear-filters>Clear all</a></li>"
            )
        parts.append("  </ul>")
        parts.append('  <ul class="filter-groups">')
        for group in ui.groups:
            parts.append(f"    <li data-filter-group=\"{html_escape(group.name)}\">")
            parts.append(f"      <p class=\"filter-groups__label\">{html_escape(group.label)}</p>")
            parts.append("      <ul>")
            for option in group.options:
                li_open = '<li class="active">' if option.active else "<li>"
                parts.append(
                    f"        {li_open}"
                    f"<a href=\"{html_escape(option.url)}\""
                    f" data-filter-key=\"{html_escape(group.name)}\""
                    f" data-filter-value=\"{html_escape(option.value)}\""
                    f" data-filter-key-label=\"{html_escape(group.label)}\""
                    f" data-filter-value-label=\"{html_escape(option.label)}\">"
                    f"{html_escape(option.label)}</a></li>"
                )
            parts.append("      </ul>")
            parts.append("    </li>")
        if ui.sort_links:
            parts.append("    <li>")
            parts.append('      <label class="filter-groups__label" for="sort-select">Sort</label>')
            parts.append('      <select class="sort-select" id="sort-select">')
            for link in ui.sort_links:
                selected = " selected" if link.active else ""
                parts.append(
                    f"        <option value=\"{html_escape(link.url)}\" data-sort-key=\"{html_escape(link.key)}\"{selected}>"
                    f"{html_escape(link.label)}</option>"
                )
            parts.append("      </select>")
            parts.append("    </li>")
        parts.append("  </ul>")
        parts.append("</div>")
        return parts

    def _item_card(self, item: Item) -> str:
        parts = [f"<li data-filter-item=\"{serialize_snapshot(item)}\">", '<article class="card">']
        title = html_escape(item.title)
        if item.image:
            parts.append(f"<img src=\"{html_escape(item.image)}\" alt=\"{title}\" loading=\"lazy\">")
        if item.url:
            parts.append(f"<h2><a href=\"{html_escape(item.url)}\">{title}</a></h2>")
        else:
            parts.append(f"<h2>{title}</h2>")
        price = _format_price(item.price)
        if price:
            parts.append(f"<p class=\"price\">{price}</p>")
        parts.append("</article>")
        parts.append("</li>")
        return "".join(parts)

    def _listing_body(self, heading: str, page: Page) -> str:
        parts = [
            '<section class="page-header">',
            f"<h1>{html_escape(heading)}</h1>",
        ]
        if page.filter_description:
            described = ", ".join(
                f"{html_escape(label.key)}: <strong>{html_escape(label.value)}</strong>"
                for label in page.filter_description
            )
            parts.append(f"<p class=\"filter-description\">{described}</p>")
        parts.append("</section>")
        parts.append('<div class="products-layout">')
        if page.filter_ui is not None:
            parts.extend(self._filter_controls(page.filter_ui))
        parts.append(
            f"<p class=\"filter-summary\" data-filter-summary aria-live=\"polite\">"
            f"Showing {page.count:,} of {page.count:,} items</p>"
        )
        if page.items:
            parts.append('<ul class="items">')
            parts.extend(self._item_card(item) for item in page.items)
            parts.append("</ul>")
        else:
            parts.append("<p>No items are available right now.</p>")
        parts.append("</div>")
        return "\n".join(parts)

    def _write_bundle(self, bundle: FacetBundle, heading: str) -> None:
        listing = bundle.listing_page
        if listing is not None:
            html = self._render_document(
                page_title=f"{heading} – {self.settings.site_name}",
                canonical_path=f"{bundle.base_url}/",
                body=self._listing_body(heading, listing),
            )
            self._write_file(f"{bundle.base_url}/index.html", html)
            self._sitemap_entries.append(f"{bundle.base_url}/")
        for page in bundle.pages:
            page_path = f"{bundle.search_url}/{page.path}/"
            canonical = search_page_url(bundle.base_url, page.filters, DEFAULT_SORT)
            canonical = canonical.replace(CONTENT_ANCHOR, "")
            html = self._render_document(
                page_title=f"{heading} – {self.settings.site_name}",
                canonical_path=canonical,
                body=self._listing_body(heading, page),
                noindex=page.sort_key != DEFAULT_SORT,
            )
            self._write_file(f"{page_path}index.html", html)
            if page.sort_key == DEFAULT_SORT:
                self._sitemap_entries.append(page_path)
        LOGGER.debug("Wrote %s pages under %s", len(bundle.pages) + 1, bundle.base_url or "/")

    # ------------------------------------------------------------------
    # Redirects and static assets

    def _write_redirects(self, redirects: Sequence[Redirect]) -> None:
        lines = [f"{redirect.from_path} {redirect.to_path} 301" for redirect in redirects]
        self._safe_write(self.output_dir / "_redirects", "\n".join(lines) + ("\n" if lines else ""))
        if not self.settings.redirect_stubs:
            return
        for redirect in redirects:
            html = self._render_document(
                page_title="Redirecting…",
                canonical_path=redirect.to_path.replace(CONTENT_ANCHOR, ""),
                body=f"<p><a href=\"{html_escape(redirect.to_path)}\">Continue</a></p>",
                noindex=True,
                refresh_to=redirect.to_path,
            )
            self._write_file(f"{redirect.from_path}index.html", html)
        LOGGER.info("Wrote %s redirects", len(redirects))

    def _write_sitemap(self) -> None:
        entries = [
            "<?xml version=\"1.0\" encoding=\"UTF-8\"?>",
            "<urlset xmlns=\"http://www.sitemaps.org/schemas/sitemap/0.9\">",
        ]
        for path in self._sitemap_entries:
            entries.append("<url>")
            entries.append(f"<loc>{html_escape(self._abs_url(path))}</loc>")
            entries.append("</url>")
        entries.append("</urlset>")
        self._safe_write(self.output_dir / "sitemap.xml", "\n".join(entries))

    def _write_robots(self) -> None:
        content = (
            "User-agent: *\nAllow: /\n"
            f"Sitemap: {self._abs_url('/sitemap.xml')}\n"
        )
        self._safe_write(self.output_dir / "robots.txt", content)
