"""
Project source collection — read a local site checkout as candidate files.

The generated page files only make a working site together with the
project's own sources (layout, design components, config). This module
walks a checkout and returns every text file as a ``GeneratedFile`` so
the production filter can decide what ships.

Design components come in two variants: ``<name>Edit.tsx`` for the
editor and ``<name>.prod.tsx`` for production. The production variant
is published as ``<name>.tsx``, and editor references are removed from
each design's ``index.ts``.

Only the designs the document uses are shipped: files under the folder
of any other registered design are set aside.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from siteforge.core.models.template import GeneratedFile
from siteforge.core.services.design_registry import DesignRegistry

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset({".git", "node_modules", ".next", ".vercel", "__pycache__"})

PROD_SUFFIX = ".prod.tsx"

_DESIGN_INDEX_RE = re.compile(r"(?:^|/)src/components/designs/.+/index\.ts$")
_EDIT_IMPORT_RE = re.compile(r"""^\s*import\s+\w+[Ee]dit\s+from\s+['"]\./\w+['"];?[ \t]*\n?""", re.MULTILINE)
_EDIT_EXPORT_ONLY_RE = re.compile(r"^\s*export\s*\{\s*\w+[Ee]dit\s*\}\s*;?[ \t]*\n?", re.MULTILINE)
_EDIT_EXPORT_NAME_RE = re.compile(r"\b\w+[Ee]dit\b\s*,?\s*")
_EXPORT_BLOCK_RE = re.compile(r"export\s*\{[^}]*\}")


def strip_editor_exports(content: str) -> str:
    """Remove ``*Edit`` component imports and re-exports from a design index."""
    content = _EDIT_IMPORT_RE.sub("", content)
    content = _EDIT_EXPORT_ONLY_RE.sub("", content)

    def _clean_block(match: re.Match[str]) -> str:
        block = match.group(0)
        inner = block[block.index("{") + 1:-1]
        cleaned = _EDIT_EXPORT_NAME_RE.sub("", inner).strip().rstrip(",").strip()
        return f"export {{ {cleaned} }}" if cleaned else ""

    return _EXPORT_BLOCK_RE.sub(_clean_block, content)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logger.debug("Skipping binary file %s", path)
        return None


def _walk(root: Path) -> Iterable[Path]:
    for path in sorted(root.rglob("*")):
        rel_parts = path.relative_to(root).parts
        if any(part in SKIP_DIRS for part in rel_parts):
            continue
        if path.is_file():
            yield path


def collect_project_files(root: Path, *, prefix: str = "") -> list[GeneratedFile]:
    """Collect a checkout's text sources, sorted by destination path.

    Args:
        root: The site project directory.
        prefix: Prepended to every destination path (e.g. ``frontend/``).

    Returns:
        One file per text source. ``<name>.prod.tsx`` is emitted as
        ``<name>.tsx`` and replaces an existing file of that name.

    Raises:
        FileNotFoundError: If ``root`` is not a directory.
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Site project directory not found: {root}")

    pfx = prefix.strip("/") + "/" if prefix.strip("/") else ""
    regular: dict[str, GeneratedFile] = {}
    production: dict[str, GeneratedFile] = {}

    for path in _walk(root):
        content = _read_text(path)
        if content is None:
            continue
        rel = path.relative_to(root).as_posix()
        if rel.endswith(PROD_SUFFIX):
            dest = pfx + rel[: -len(PROD_SUFFIX)] + ".tsx"
            production[dest] = GeneratedFile(
                path=dest, content=content, reason=f"production variant of {rel}",
            )
            continue
        if _DESIGN_INDEX_RE.search(rel):
            content = strip_editor_exports(content)
        regular[pfx + rel] = GeneratedFile(path=pfx + rel, content=content, reason="project source")

    merged = {**regular, **production}
    files = [merged[p] for p in sorted(merged)]
    logger.info(
        "Collected %d project files from %s (%d production variants)",
        len(files), root, len(production),
    )
    return files


def merge_sources(
    generated: Iterable[GeneratedFile], collected: Iterable[GeneratedFile]
) -> list[GeneratedFile]:
    """Generated files first, then collected files whose paths they don't claim."""
    result = list(generated)
    claimed = {f.path for f in result}
    for f in collected:
        if f.path not in claimed:
            result.append(f)
            claimed.add(f.path)
    return result


def write_generated_files(
    out_dir: Path, files: Iterable[GeneratedFile], *, overwrite: bool = True
) -> list[Path]:
    """Write files under ``out_dir``; returns the paths written.

    Existing files are skipped when ``overwrite`` is False. Paths that
    would escape ``out_dir`` raise ``ValueError``.
    """
    root = out_dir.resolve()
    written: list[Path] = []
    for f in files:
        target = (root / f.path).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"Refusing to write outside {root}: {f.path}")
        if target.exists() and not overwrite:
            logger.info("Skipping existing file: %s", target)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content, encoding="utf-8")
        written.append(target)
    logger.info("Wrote %d generated files to %s", len(written), root)
    return written


UNUSED_DESIGN_REASON = "design not used by any page"


def split_unused_designs(
    files: Iterable[GeneratedFile], used_types: Iterable[str], registry: DesignRegistry
) -> tuple[list[GeneratedFile], list[GeneratedFile]]:
    """Separate files of registered designs no page uses.

    Only folders of registered designs are considered; every other file,
    including unregistered design folders, stays in the first list.

    Returns:
        ``(kept, unused)``, each in input order.
    """
    used = set(used_types)
    unused_dirs = tuple(
        registry.require(t).source_dir for t in registry.types() if t not in used
    )
    kept: list[GeneratedFile] = []
    unused: list[GeneratedFile] = []
    for f in files:
        (unused if unused_dirs and f.path.startswith(unused_dirs) else kept).append(f)
    if unused:
        logger.info("Leaving out %d files of %d unused designs", len(unused), len(unused_dirs))
    return kept, unused
