"""
Document store — atomic read/write for the website document.

The document is stored as JSON (``website.json`` by default) with the
editor's camelCase field names. Writes are atomic (write to temp file,
then rename) so a crash mid-write never leaves a truncated document.

Unlike deploy state, a broken document is never silently replaced: the
editor's content would be lost. Load failures raise ``DocumentError``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from siteforge.core.models.website import WebsiteDocument

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_FILE = "website.json"


class DocumentError(Exception):
    """Raised when a website document file is unreadable or invalid."""


def default_document_path(project_root: Path) -> Path:
    return project_root / DEFAULT_DOCUMENT_FILE


def parse_document(data: object, source: str = "<input>") -> WebsiteDocument:
    """Validate raw JSON data into a document.

    Raises:
        DocumentError: If the data is not a valid website document.
    """
    if not isinstance(data, dict):
        raise DocumentError(f"Expected a JSON object in {source}, got {type(data).__name__}")
    try:
        return WebsiteDocument.model_validate(data)
    except ValidationError as e:
        raise DocumentError(f"Invalid website document in {source}: {e}") from e


def load_document(path: Path) -> WebsiteDocument:
    """Load a website document from a JSON file.

    Raises:
        DocumentError: If the file is missing, unreadable or invalid.
    """
    if not path.is_file():
        raise DocumentError(f"Document file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentError(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Invalid JSON in {path}: {e}") from e

    document = parse_document(data, str(path))
    logger.debug(
        "Loaded document from %s (%d pages, version %d)",
        path, document.page_count(), document.current_version_number,
    )
    return document


def save_document(document: WebsiteDocument, path: Path) -> None:
    """Save a website document to a JSON file (atomic write)."""
    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(document.to_json_dict(), indent=2, ensure_ascii=False) + "\n"

    # Atomic write: temp file in same directory, then rename
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".website_",
            suffix=".tmp",
        )
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(path)
            logger.debug("Document saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save document to %s: %s", path, e)
        raise
