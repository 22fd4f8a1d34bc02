"""Script entry point for rendering the faceted listings."""
from __future__ import annotations

from facetgrab.cli import main


if __name__ == "__main__":
    main()
