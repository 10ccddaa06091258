"""
Release use cases — deploy, publish, bootstrap, version listing and switching.

Each function loads siteforge.yml, builds the collaborators and the
orchestrator, runs one operation and returns a result object. Used by
the CLI; the web server builds its orchestrator once through
``build_orchestrator``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from siteforge.adapters.factory import build_collaborators
from siteforge.core.config.loader import (
    ConfigError,
    Settings,
    find_config_file,
    load_settings,
    project_root as root_of,
)
from siteforge.core.models.deploy import DeployRequest, DeployResult, DeployTarget, VersionRecord
from siteforge.core.models.template import GeneratedFile
from siteforge.core.models.website import WebsiteDocument
from siteforge.core.persistence.audit import AuditWriter
from siteforge.core.persistence.document_store import DocumentError, load_document, save_document
from siteforge.core.services.deploy_ops import DeployOrchestrator
from siteforge.core.services.production_filter import ProductionFilter
from siteforge.core.services.source_collect import collect_project_files
from siteforge.core.services.version_ops import (
    VersionFetchError,
    VersionNotFoundError,
    VersionSnapshot,
    list_versions,
    switch_version,
)

logger = logging.getLogger(__name__)


@dataclass
class ReleaseContext:
    """Loaded configuration plus a ready orchestrator."""

    settings: Settings
    project_root: Path
    config_path: Path | None
    orchestrator: DeployOrchestrator

    def document_path(self, override: Path | None = None) -> Path:
        return override or (self.project_root / self.settings.document)

    def source_files(self) -> list[GeneratedFile]:
        """Site checkout files, or nothing when ``site_root`` is unset."""
        if not self.settings.site_root:
            return []
        return collect_project_files(self.project_root / self.settings.site_root)


def build_orchestrator(
    settings: Settings,
    project_root: Path,
    mock_mode: bool = False,
    environ: Mapping[str, str] | None = None,
) -> DeployOrchestrator:
    """Orchestrator with collaborators, a ledger under ``.state/`` and the default filter.

    Raises:
        ConfigError: If credentials are missing outside mock mode.
    """
    source_control, hosting = build_collaborators(settings, mock_mode=mock_mode, environ=environ)
    return DeployOrchestrator(
        source_control,
        hosting,
        settings,
        production_filter=ProductionFilter(root_prefix=settings.site_root or ""),
        audit=AuditWriter(project_root=project_root),
    )


def load_context(
    config_path: Path | None = None,
    mock_mode: bool = False,
    environ: Mapping[str, str] | None = None,
) -> ReleaseContext:
    """Load settings and build the orchestrator.

    Raises:
        ConfigError: If the config can't be found or is invalid.
    """
    if config_path is None:
        config_path = find_config_file()
    settings = load_settings(config_path, environ=environ)
    assert config_path is not None
    root = root_of(config_path)
    return ReleaseContext(
        settings=settings,
        project_root=root,
        config_path=config_path,
        orchestrator=build_orchestrator(settings, root, mock_mode=mock_mode, environ=environ),
    )


# ── Results ─────────────────────────────────────────────────────


@dataclass
class ReleaseRunResult:
    """Result of a CLI release operation."""

    result: DeployResult | None = None
    document_path: Path | None = None
    document_saved: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.result is not None and self.result.success

    def to_dict(self, include_content: bool = False) -> dict:
        if self.error:
            return {"success": False, "error": self.error}
        data = self.result.to_dict(include_content=include_content) if self.result else {}
        if self.document_path:
            data["documentPath"] = str(self.document_path)
            data["documentSaved"] = self.document_saved
        return data


@dataclass
class VersionsResult:
    branch: str = ""
    versions: list[VersionRecord] = field(default_factory=list)
    error: str | None = None
    status: int | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"success": False, "error": self.error, "status": self.status}
        return {
            "success": True,
            "branch": self.branch,
            "versions": [v.model_dump(by_alias=True) for v in self.versions],
        }


@dataclass
class SwitchResult:
    branch: str = ""
    snapshot: VersionSnapshot | None = None
    document_path: Path | None = None
    document_saved: bool = False
    error: str | None = None
    status: int | None = None

    def to_dict(self) -> dict:
        if self.error or self.snapshot is None:
            return {"success": False, "error": self.error, "status": self.status}
        data = {"success": True, "branch": self.branch, **self.snapshot.to_dict()}
        if self.document_path:
            data["documentPath"] = str(self.document_path)
            data["documentSaved"] = self.document_saved
        return data


# ── Operations ──────────────────────────────────────────────────


def _record_release(document: WebsiteDocument, result: DeployResult, path: Path) -> bool:
    """Persist the new version number and head after a production release."""
    if not result.success or result.version_number is None or result.commit is None:
        return False
    if (
        result.version_number == document.current_version_number
        and result.commit.sha == document.last_published_commit
    ):
        return False
    save_document(document.with_release(result.version_number, result.commit.sha), path)
    logger.info("Recorded version %d (%s) in %s",
                result.version_number, result.commit.sha[:7], path)
    return True


def run_deploy(
    config_path: Path | None = None,
    document_path: Path | None = None,
    target: DeployTarget = DeployTarget.PRODUCTION,
    branch: str | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    message: str | None = None,
    include_sources: bool = True,
) -> ReleaseRunResult:
    """Deploy the document file to ``target``.

    A successful production release writes the new version number and
    published commit back into the document file.
    """
    run = ReleaseRunResult()
    try:
        ctx = load_context(config_path, mock_mode=mock_mode)
        run.document_path = ctx.document_path(document_path)
        document = load_document(run.document_path)
        sources = ctx.source_files() if include_sources else []
    except (ConfigError, DocumentError, FileNotFoundError) as e:
        run.error = str(e)
        return run

    run.result = ctx.orchestrator.deploy(DeployRequest(
        document=document,
        target=target,
        branch=branch,
        dry_run=dry_run,
        source_files=sources,
        message=message,
    ))
    run.document_saved = _record_release(document, run.result, run.document_path)
    return run


def run_publish(
    config_path: Path | None = None,
    branch: str | None = None,
    mock_mode: bool = False,
) -> ReleaseRunResult:
    """Redeploy the head of ``branch`` (default: production)."""
    run = ReleaseRunResult()
    try:
        ctx = load_context(config_path, mock_mode=mock_mode)
    except ConfigError as e:
        run.error = str(e)
        return run
    run.result = ctx.orchestrator.publish(branch)
    return run


def run_bootstrap(
    config_path: Path | None = None,
    document_path: Path | None = None,
    custom_domain: str | None = None,
    mock_mode: bool = False,
) -> ReleaseRunResult:
    """Provision a hosting project for a new site."""
    run = ReleaseRunResult()
    try:
        ctx = load_context(config_path, mock_mode=mock_mode)
        run.document_path = ctx.document_path(document_path)
        document = load_document(run.document_path)
    except (ConfigError, DocumentError) as e:
        run.error = str(e)
        return run
    run.result = ctx.orchestrator.bootstrap(document, custom_domain=custom_domain)
    return run


def run_versions(
    config_path: Path | None = None,
    branch: str | None = None,
    per_page: int | None = None,
    mock_mode: bool = False,
) -> VersionsResult:
    """List versions on ``branch`` (default: production)."""
    out = VersionsResult()
    try:
        ctx = load_context(config_path, mock_mode=mock_mode)
    except ConfigError as e:
        out.error = str(e)
        return out

    settings = ctx.settings
    out.branch = branch or settings.branches.production
    try:
        out.versions = list_versions(
            ctx.orchestrator.source_control,
            settings.repository.owner,
            settings.repository.name,
            out.branch,
            per_page or settings.version_page_size,
        )
    except VersionFetchError as e:
        out.error = str(e)
        out.status = e.status
    return out


def run_switch(
    config_path: Path | None = None,
    version_number: int | None = None,
    commit_sha: str | None = None,
    branch: str | None = None,
    write: bool = False,
    document_path: Path | None = None,
    mock_mode: bool = False,
) -> SwitchResult:
    """Load the document of an earlier version from ``branch`` (default: production).

    With ``write``, the document file is replaced by that version's
    content; its release bookkeeping (version number, published commit)
    is kept so the next deploy numbers on from the latest release.
    """
    out = SwitchResult()
    try:
        ctx = load_context(config_path, mock_mode=mock_mode)
    except ConfigError as e:
        out.error = str(e)
        return out

    settings = ctx.settings
    out.branch = branch or settings.branches.production
    try:
        out.snapshot = switch_version(
            ctx.orchestrator.source_control,
            settings.repository.owner,
            settings.repository.name,
            out.branch,
            version_number=version_number,
            commit_sha=commit_sha,
            per_page=settings.version_page_size,
        )
    except ValueError as e:
        out.error, out.status = str(e), 400
    except VersionNotFoundError as e:
        out.error, out.status = str(e), 404
    except VersionFetchError as e:
        out.error, out.status = str(e), e.status
    except DocumentError as e:
        out.error = str(e)
    if out.snapshot is None or not write:
        return out

    out.document_path = ctx.document_path(document_path)
    restored = out.snapshot.document
    try:
        if out.document_path.is_file():
            current = load_document(out.document_path)
            restored = restored.with_release(current.current_version_number, current.last_published_commit)
        save_document(restored, out.document_path)
    except DocumentError as e:
        out.error = str(e)
        return out
    out.document_saved = True
    logger.info("Restored version %d into %s", out.snapshot.version.version_number, out.document_path)
    return out
