"""Command line entrypoints for the facet site builder."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Sequence

from .config import load_settings
from .generator import SiteGenerator, build_site
from .reporting import generate_facet_report
from .repository import ItemRepository

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Faceted listing generator")
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help="Catalog JSON file (defaults to data/catalog.json)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_cmd = subparsers.add_parser("build", help="Render every facet page and redirect")
    build_cmd.add_argument(
        "--output",
        type=Path,
        default=Path("public"),
        help="Output directory for the static site",
    )
    build_cmd.set_defaults(func=handle_build)

    stats_cmd = subparsers.add_parser("stats", help="Summarize the generated facet spaces")
    stats_cmd.set_defaults(func=handle_stats)

    redirects_cmd = subparsers.add_parser("redirects", help="List redirect rules")
    redirects_cmd.add_argument(
        "--category",
        help="Only list redirects for this category slug",
    )
    redirects_cmd.add_argument(
        "--json",
        action="store_true",
        help="Output redirects as a JSON array",
    )
    redirects_cmd.set_defaults(func=handle_redirects)

    return parser


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _repository(args: argparse.Namespace) -> ItemRepository:
    return ItemRepository(getattr(args, "data", None))


def handle_build(args: argparse.Namespace) -> None:
    repository = _repository(args)
    items = repository.load_items()
    if not items:
        raise SystemExit("No items found in the catalog")
    generator = SiteGenerator(output_dir=args.output)
    site = generator.build(items=items, categories=repository.list_categories())
    LOGGER.info(
        "Build complete: %s listings, %s redirects",
        len(site.bundles()),
        len(site.redirects()),
    )


def handle_stats(args: argparse.Namespace) -> None:
    repository = _repository(args)
    site = build_site(repository.load_items(), repository.list_categories(), load_settings())
    report = generate_facet_report(
        listing=site.listing,
        categories=site.categories,
        category_names=site.category_names,
    )
    print(report)


def handle_redirects(args: argparse.Namespace) -> None:
    repository = _repository(args)
    site = build_site(repository.load_items(), repository.list_categories(), load_settings())
    category = getattr(args, "category", None)
    if category:
        bundle = site.categories.get(category)
        if bundle is None:
            raise SystemExit(f"Unknown or empty category: {category}")
        redirects = bundle.redirects
    else:
        redirects = site.redirects()
    if args.json:
        print(json.dumps([redirect.to_dict() for redirect in redirects], indent=2))
        return
    for redirect in redirects:
        print(f"{redirect.from_path} -> {redirect.to_path}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
