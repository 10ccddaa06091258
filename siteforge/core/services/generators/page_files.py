"""
Page file generator — compile a website document into site source files.

For each page, in document order, three files are produced:

    src/data/<slug>.data.ts                    typed props per component
    src/components/pageComponents/<slug>.tsx   renders the components
    src/app/page.tsx | src/app/<slug>/page.tsx route + SEO metadata

Generation is all-or-nothing: the whole document is validated before
anything is rendered, so a malformed component yields an error and no
files at all. Output depends only on the document, the SEO overrides
and the design registry, byte for byte.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from siteforge.core.models.template import GeneratedFile
from siteforge.core.models.website import (
    INDEX_SLUG,
    Page,
    SeoMetadata,
    WebsiteDocument,
    page_slug,
)
from siteforge.core.services.design_registry import DesignRegistry, default_registry
from siteforge.core.services.generators import templates

logger = logging.getLogger(__name__)

SNAPSHOT_PATH = "src/data/websiteData.json"

# Release bookkeeping, left out of the committed snapshot
_SNAPSHOT_OMITS = ("currentVersionNumber", "lastPublishedCommit")

_DATA_PATH_RE = re.compile(r"^src/data/([a-z0-9]+(?:[-_][a-z0-9]+)*)\.data\.ts$")


class GenerationError(Exception):
    """A component can't be rendered (unknown design or malformed props)."""

    def __init__(self, page_key: str, component_index: int, message: str):
        self.page_key = page_key
        self.component_index = component_index
        self.message = message
        super().__init__(f"page {page_key!r}, component {component_index}: {message}")


@dataclass
class ValidationReport:
    """Pre-flight check of a document against the design registry."""

    valid: bool
    missing_types: list[str] = field(default_factory=list)
    used_types: list[str] = field(default_factory=list)
    problems: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "missingTypes": self.missing_types,
            "usedTypes": self.used_types,
            "problems": self.problems,
        }


# ── Layout ──────────────────────────────────────────────────────


def data_path(slug: str) -> str:
    return f"src/data/{slug}.data.ts"


def component_path(slug: str) -> str:
    return f"src/components/pageComponents/{slug}.tsx"


def page_paths(slug: str) -> tuple[str, str, str]:
    """The three files generated for ``slug``."""
    return data_path(slug), component_path(slug), templates.route_path(slug)


def stale_page_paths(existing: Iterable[str], keep: Iterable[str]) -> list[str]:
    """Generated files in ``existing`` for pages that are gone from ``keep``.

    A page counts as generated when its ``src/data/<slug>.data.ts`` exists;
    its component and route are removed with it when present.
    """
    existing = set(existing)
    keep = set(keep)
    stale: list[str] = []
    for path in sorted(existing):
        match = _DATA_PATH_RE.match(path)
        if match is None or path in keep:
            continue
        stale.extend(p for p in page_paths(match.group(1)) if p in existing and p not in keep)
    return stale


# ── Inspection ──────────────────────────────────────────────────


def used_component_types(document: WebsiteDocument) -> list[str]:
    """Distinct component types across all pages, in first-use order."""
    seen: dict[str, None] = {}
    for page in document.pages.values():
        for component in page.components:
            seen.setdefault(component.type, None)
    return list(seen)


def _component_errors(
    document: WebsiteDocument, registry: DesignRegistry
) -> list[GenerationError]:
    errors: list[GenerationError] = []
    for key, page in document.pages.items():
        for index, component in enumerate(page.components):
            if component.type not in registry:
                errors.append(GenerationError(
                    key, index, f"unregistered component type {component.type!r}",
                ))
                continue
            for problem in registry.validate_props(component.type, component.props):
                errors.append(GenerationError(key, index, problem))
    return errors


def validate_document(
    document: WebsiteDocument, registry: DesignRegistry | None = None
) -> ValidationReport:
    """Check every component against the registry without rendering."""
    registry = registry or default_registry()
    used = used_component_types(document)
    missing = [t for t in used if t not in registry]
    problems = [str(e) for e in _component_errors(document, registry)]
    report = ValidationReport(
        valid=not problems,
        missing_types=missing,
        used_types=used,
        problems=problems,
    )
    logger.debug(
        "Validated %d component types (%d missing, %d problems)",
        len(used), len(missing), len(problems),
    )
    return report


# ── Rendering ───────────────────────────────────────────────────


def _display_name(page: Page, slug: str) -> str:
    if page.name:
        return page.name
    return "Home" if slug == INDEX_SLUG else templates.pascal_name(slug)


def _metadata(page: Page, slug: str, override: SeoMetadata | None) -> dict[str, Any]:
    seo = override or page.seo_metadata
    title = _display_name(page, slug)
    metadata: dict[str, Any] = {"title": title, "description": f"Page: {title}"}
    if seo is not None:
        given = seo.model_dump(by_alias=True, exclude_none=True)
        metadata.update(given)
        if "description" not in given:
            metadata["description"] = f"Page: {metadata['title']}"
    return metadata


def _data_file(slug: str, page: Page, registry: DesignRegistry) -> GeneratedFile:
    type_imports: dict[str, str] = {}
    exports: list[tuple[str, str, dict[str, Any]]] = []
    manifest: list[dict[str, Any]] = []
    for index, component in enumerate(page.components):
        design = registry.require(component.type)
        var = templates.props_var(index)
        type_imports.setdefault(design.props_type, design.import_path)
        exports.append((var, design.props_type, registry.resolve_props(component.type, component.props)))
        manifest.append({
            "id": component.id or f"{slug}-{index + 1}",
            "type": component.type,
            "order": index + 1,
            "propsVar": var,
        })
    content = templates.render_data_file(
        _display_name(page, slug), list(type_imports.items()), exports, manifest,
    )
    return GeneratedFile(
        path=data_path(slug),
        content=content,
        reason=f"props for page '{slug}'",
    )


def _page_component(slug: str, page: Page, registry: DesignRegistry) -> GeneratedFile:
    imports: dict[str, str] = {}
    renders: list[tuple[str, str]] = []
    for index, component in enumerate(page.components):
        design = registry.require(component.type)
        imports.setdefault(design.component_name, design.import_path)
        renders.append((design.component_name, templates.props_var(index)))
    return GeneratedFile(
        path=component_path(slug),
        content=templates.render_page_component(slug, list(imports.items()), renders),
        reason=f"page component for '{slug}'",
    )


def _route_file(slug: str, page: Page, override: SeoMetadata | None) -> GeneratedFile:
    return GeneratedFile(
        path=templates.route_path(slug),
        content=templates.render_route(slug, _metadata(page, slug, override)),
        reason=f"route for '{slug}'",
    )


def generate(
    document: WebsiteDocument,
    seo_overrides: Mapping[str, SeoMetadata] | None = None,
    registry: DesignRegistry | None = None,
) -> list[GeneratedFile]:
    """Render every page of the document.

    Args:
        document: The website document (never modified).
        seo_overrides: Per-page metadata, keyed by page key or slug,
            replacing the page's own ``seo_metadata``.
        registry: Design registry (default: the packaged catalog).

    Returns:
        Three files per page, pages in document order.

    Raises:
        GenerationError: For the first malformed component; nothing is returned.
    """
    registry = registry or default_registry()
    overrides = dict(seo_overrides or {})

    errors = _component_errors(document, registry)
    if errors:
        logger.warning("Generation rejected: %d problem(s), first: %s", len(errors), errors[0])
        raise errors[0]

    files: list[GeneratedFile] = []
    for key, page in document.pages.items():
        slug = page_slug(key)
        override = overrides.get(key) or overrides.get(slug)
        if override is None and slug == INDEX_SLUG:
            override = overrides.get("")
        files.append(_data_file(slug, page, registry))
        files.append(_page_component(slug, page, registry))
        files.append(_route_file(slug, page, override))

    logger.info(
        "Generated %d files for %d pages (%d components)",
        len(files), document.page_count(), document.component_count(),
    )
    return files


def document_snapshot(document: WebsiteDocument) -> GeneratedFile:
    """The document itself, committed with the pages it produced.

    Reading it back from any commit recovers that version's content.
    """
    data = {k: v for k, v in document.to_json_dict().items() if k not in _SNAPSHOT_OMITS}
    return GeneratedFile(
        path=SNAPSHOT_PATH,
        content=json.dumps(data, indent=2, ensure_ascii=False) + "\n",
        reason="website document snapshot",
    )
