"""
Version history — project branch commits into user-facing versions.

Version numbers are relative to the fetched page: the newest commit in a
page of N commits is version N and the oldest is version 1. Two calls
with different ``per_page`` values can therefore number the same commit
differently.

Any version can be switched back to: each deploy commits the document
snapshot with its pages, so the content of a version is read from its
commit.

Channel-independent: no Flask or HTTP dependency.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from siteforge.adapters.base import SourceControl, TransportError
from siteforge.core.models.deploy import Commit, VersionRecord
from siteforge.core.models.website import WebsiteDocument
from siteforge.core.persistence.document_store import DocumentError, parse_document
from siteforge.core.services.generators.page_files import SNAPSHOT_PATH

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100
SHORT_ID_LENGTH = 7


class VersionFetchError(Exception):
    """Reading history from the remote failed.

    Attributes:
        status: Upstream HTTP status, if any.
        message: Upstream error message.
    """

    def __init__(self, status: int | None, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Failed to fetch versions ({status or 'no status'}): {message}")

    @property
    def is_auth_failure(self) -> bool:
        return self.status in (401, 403)


class VersionNotFoundError(LookupError):
    """No version matches the request, or its commit holds no document snapshot."""


def clamp_per_page(per_page: int) -> int:
    return max(1, min(int(per_page), MAX_PER_PAGE))


def to_versions(commits: list[Commit]) -> list[VersionRecord]:
    """Number a newest-first page of commits."""
    total = len(commits)
    return [
        VersionRecord(
            version_number=total - index,
            commit_identifier=c.sha,
            short_identifier=c.sha[:SHORT_ID_LENGTH],
            message=c.message,
            author=c.author,
            timestamp=c.timestamp,
            url=c.url,
        )
        for index, c in enumerate(commits)
    ]


def list_versions(
    source_control: SourceControl,
    owner: str,
    repo: str,
    branch: str,
    per_page: int = MAX_PER_PAGE,
) -> list[VersionRecord]:
    """Most recent commits on ``branch`` as versions, newest first.

    Raises:
        VersionFetchError: If the remote call fails for any reason.
    """
    size = clamp_per_page(per_page)
    try:
        commits = source_control.list_commits(owner, repo, branch, size)
    except TransportError as e:
        logger.warning("Version history for %s/%s@%s unavailable: %s", owner, repo, branch, e)
        raise VersionFetchError(e.status, e.message) from e

    versions = to_versions(list(commits)[:size])
    logger.debug("Read %d versions from %s/%s@%s", len(versions), owner, repo, branch)
    return versions


def latest_version(
    source_control: SourceControl,
    owner: str,
    repo: str,
    branch: str,
    per_page: int = MAX_PER_PAGE,
) -> VersionRecord | None:
    """Newest version on ``branch``, or None for an empty history."""
    versions = list_versions(source_control, owner, repo, branch, per_page)
    return versions[0] if versions else None


# ── Switching ───────────────────────────────────────────────────


@dataclass
class VersionSnapshot:
    """The document as committed by one version."""

    version: VersionRecord
    document: WebsiteDocument

    def to_dict(self) -> dict[str, Any]:
        return {
            "websiteData": self.document.to_json_dict(),
            "versionNumber": self.version.version_number,
            "commitSha": self.version.commit_identifier,
            "commitMessage": self.version.message,
            "commitDate": self.version.timestamp,
        }


def find_version(
    versions: list[VersionRecord],
    version_number: int | None = None,
    commit_sha: str | None = None,
) -> VersionRecord | None:
    """Match by commit (full sha or a prefix of at least 7), else by number."""
    if commit_sha:
        sha = commit_sha.strip().lower()
        if len(sha) < SHORT_ID_LENGTH:
            return None
        return next((v for v in versions if v.commit_identifier.startswith(sha)), None)
    return next((v for v in versions if v.version_number == version_number), None)


def switch_version(
    source_control: SourceControl,
    owner: str,
    repo: str,
    branch: str,
    *,
    version_number: int | None = None,
    commit_sha: str | None = None,
    per_page: int = MAX_PER_PAGE,
) -> VersionSnapshot:
    """Read back the document a version was deployed from.

    Numbers are resolved within the same page of history ``list_versions``
    returns for ``per_page``.

    Raises:
        ValueError: If neither ``version_number`` nor ``commit_sha`` is given.
        VersionNotFoundError: If nothing matches or the commit has no snapshot.
        VersionFetchError: If the remote can't be read.
        DocumentError: If the snapshot is not a valid document.
    """
    if version_number is None and not commit_sha:
        raise ValueError("commitSha or versionNumber is required")

    versions = list_versions(source_control, owner, repo, branch, per_page)
    record = find_version(versions, version_number, commit_sha)
    wanted = f"commit {commit_sha}" if commit_sha else f"version {version_number}"
    if record is None:
        raise VersionNotFoundError(f"No {wanted} on {branch}")

    try:
        content = source_control.read_file(owner, repo, record.commit_identifier, SNAPSHOT_PATH)
    except TransportError as e:
        logger.warning("Reading %s at %s failed: %s", SNAPSHOT_PATH, record.short_identifier, e)
        raise VersionFetchError(e.status, e.message) from e
    if content is None:
        raise VersionNotFoundError(
            f"Version {record.version_number} ({record.short_identifier}) has no {SNAPSHOT_PATH}"
        )

    source = f"{record.short_identifier}:{SNAPSHOT_PATH}"
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Invalid JSON in {source}: {e}") from e
    document = parse_document(data, source)
    logger.info("Switched to version %d (%s) on %s", record.version_number, record.short_identifier, branch)
    return VersionSnapshot(version=record, document=document)
