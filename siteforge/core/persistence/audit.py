"""
Deployment ledger — append-only record of orchestrator runs.

One NDJSON line per deploy, publish or bootstrap, failures included.
Lines are only ever appended. Timestamps are bookkeeping and never feed
back into generation.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

LEDGER_RELPATH = Path(".state") / "deploy_audit.ndjson"


def _now() -> str:
    return datetime.now(UTC).isoformat()


class DeployAuditEntry(BaseModel):
    """What one orchestrator call did, and how it ended."""

    timestamp: str = Field(default_factory=_now)
    operation: str = ""            # deploy | publish | bootstrap
    target: str = ""               # preview | production
    branch: str = ""
    dry_run: bool = False

    status: str = ""               # succeeded | failed
    phase: str = ""
    failed_phase: str | None = None
    error: str | None = None
    error_kind: str | None = None
    duration_ms: int = 0

    files_retained: int = 0
    files_excluded: int = 0
    commit_sha: str | None = None
    commit_changed: bool | None = None
    deployment_id: str | None = None
    version_number: int | None = None

    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Appends ``DeployAuditEntry`` lines to ``<root>/.state/deploy_audit.ndjson``."""

    def __init__(self, path: Path | None = None, project_root: Path | None = None):
        self._path = path or (project_root or Path()) / LEDGER_RELPATH

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: DeployAuditEntry) -> None:
        """Append one entry. Failing to record never fails the run itself."""
        line = entry.model_dump_json() + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Could not append to deployment ledger %s: %s", self._path, e)
            return
        logger.debug("Ledger: %s %s on %s", entry.operation, entry.status, entry.branch or "-")

    def _entries(self) -> Iterator[DeployAuditEntry]:
        if not self._path.is_file():
            return
        try:
            with self._path.open(encoding="utf-8") as f:
                for n, raw in enumerate(f, start=1):
                    if not raw.strip():
                        continue
                    try:
                        yield DeployAuditEntry.model_validate(json.loads(raw))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping unreadable ledger line %d: %s", n, e)
        except OSError as e:
            logger.error("Could not read deployment ledger %s: %s", self._path, e)

    def read_all(self) -> list[DeployAuditEntry]:
        """Every readable entry, oldest first."""
        return list(self._entries())

    def read_recent(self, n: int = 20) -> list[DeployAuditEntry]:
        return list(deque(self._entries(), maxlen=n))

    def entry_count(self) -> int:
        return sum(1 for _ in self._entries())
