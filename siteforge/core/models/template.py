"""
Generated file model — produced by the page generator and the source collector.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class GeneratedFile(BaseModel):
    """A source artifact headed for the generated site.

    Attributes:
        path:    Destination path relative to the site project root.
        content: Full rendered file content.
        reason:  Why this file exists (which page / source produced it).
    """

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    reason: str = ""
