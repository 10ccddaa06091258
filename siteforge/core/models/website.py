"""
Website document model — the editable, in-memory representation of a site.

A document holds pages keyed by slug; each page holds an ordered list of
component instances (render order) with their props, plus optional SEO
metadata. The model is pure data: the generator reads it, nobody mutates it.

Accepted on input in both shapes the editor has produced over time:

    {"pages": {"index": {...}, "about": {...}}}
    {"pages": [{"slug": "index", ...}, {"slug": "about", ...}]}
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ROOT_ROUTE = "/"
INDEX_SLUG = "index"

# Routes whose src/app/<slug>/ folder the production filter drops.
RESERVED_SLUGS = frozenset({
    "api", "editor", "dashboard", "usage", "info",
    "admin", "analytics", "tracking", "registry",
    "deploy", "deployment", "production", "vercel", "models", "db",
})

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:[-_][a-z0-9]+)*$")


def page_slug(key: str) -> str:
    """Normalize a page key into its slug (``index`` for the root page).

    Raises:
        ValueError: If the key cannot be a route segment.
    """
    slug = key.strip().strip("/").lower()
    if slug in ("", INDEX_SLUG):
        return INDEX_SLUG
    if not _SLUG_RE.match(slug):
        raise ValueError(f"page key {key!r} is not a valid route segment")
    if slug in RESERVED_SLUGS:
        raise ValueError(f"page key {key!r} collides with a reserved route")
    return slug


def route_for(key: str) -> str:
    """Route path a page key is served at (``/`` or ``/<slug>``)."""
    slug = page_slug(key)
    return ROOT_ROUTE if slug == INDEX_SLUG else f"/{slug}"


class SeoMetadata(BaseModel):
    """Per-page search metadata rendered into the route's ``metadata`` export."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    keywords: str | list[str] | None = None
    open_graph: dict[str, Any] | None = Field(default=None, alias="openGraph")
    icons: dict[str, Any] | None = None


class ComponentInstance(BaseModel):
    """One rendered component on a page.

    ``props`` keys may be dotted paths (``images.main``) for nested values.
    Keys the design doesn't declare are carried through untouched.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str
    id: str = ""
    props: dict[str, Any] = Field(default_factory=dict)

    @field_validator("props", mode="before")
    @classmethod
    def _none_props(cls, value: Any) -> Any:
        return {} if value is None else value


class Page(BaseModel):
    """A page: ordered components plus optional SEO metadata."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default="", alias="pageName")
    components: list[ComponentInstance] = Field(default_factory=list)
    seo_metadata: SeoMetadata | None = Field(default=None, alias="seoMetadata")

    @field_validator("components", mode="before")
    @classmethod
    def _none_components(cls, value: Any) -> Any:
        return [] if value is None else value


class WebsiteDocument(BaseModel):
    """Root document — every page of the site plus release bookkeeping."""

    model_config = ConfigDict(populate_by_name=True)

    pages: dict[str, Page] = Field(default_factory=dict)
    current_version_number: int = Field(default=0, ge=0, alias="currentVersionNumber")
    last_published_commit: str | None = Field(default=None, alias="lastPublishedCommit")

    @field_validator("pages", mode="before")
    @classmethod
    def _pages_from_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        pages: dict[str, Any] = {}
        for entry in value:
            if not isinstance(entry, dict):
                raise ValueError("page entries must be mappings")
            key = entry.get("slug") or INDEX_SLUG
            if key in pages:
                raise ValueError(f"duplicate page slug {key!r}")
            pages[key] = {k: v for k, v in entry.items() if k != "slug"}
        return pages

    @model_validator(mode="after")
    def _unique_routes(self) -> WebsiteDocument:
        seen: dict[str, str] = {}
        for key in self.pages:
            route = route_for(key)
            if route in seen:
                raise ValueError(
                    f"pages {seen[route]!r} and {key!r} both map to route {route!r}"
                )
            seen[route] = key
        return self

    # ── Helpers ──────────────────────────────────────────────────

    def page_count(self) -> int:
        return len(self.pages)

    def component_count(self) -> int:
        return sum(len(p.components) for p in self.pages.values())

    def with_release(self, version_number: int, commit: str | None) -> WebsiteDocument:
        """Copy of this document carrying new release bookkeeping.

        Version numbers never go backwards.
        """
        return self.model_copy(
            update={
                "current_version_number": max(version_number, self.current_version_number),
                "last_published_commit": commit,
            }
        )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the editor's camelCase field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
