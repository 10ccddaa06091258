"""
Packaged static catalogs.

``catalogs/designs.json`` lists every component design a page may use:
its type, the component it renders, the fields the editor exposes and
their defaults. ``DataRegistry`` reads it on first access and keeps it for
the life of the instance; ``DesignRegistry.from_catalog`` builds on it.
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from importlib import resources
from typing import Any

logger = logging.getLogger(__name__)

DESIGNS_CATALOG = "catalogs/designs.json"


def _read_catalog(name: str) -> Any:
    source = resources.files(__name__).joinpath(name)
    with source.open(encoding="utf-8") as f:
        return json.load(f)


class DataRegistry:
    """Lazily loaded catalogs shipped inside the package."""

    @cached_property
    def designs(self) -> list[dict]:
        data = _read_catalog(DESIGNS_CATALOG)
        if not isinstance(data, list):
            raise ValueError(f"{DESIGNS_CATALOG} must hold a JSON list, got {type(data).__name__}")
        logger.debug("Loaded %d designs from %s", len(data), DESIGNS_CATALOG)
        return data

    @cached_property
    def design_categories(self) -> list[str]:
        """Distinct categories in first-seen catalog order."""
        return list(dict.fromkeys(d["category"] for d in self.designs if d.get("category")))
