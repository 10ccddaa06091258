"""
Deployment orchestrator — generate, filter, commit and publish a site.

One shared pipeline serves every entry point::

    prepare()   GENERATING → FILTERING               (pure, no remote calls)
    deploy()    prepare → COMMITTING → PUBLISHING → SUCCEEDED
    publish()   PUBLISHING only, from the current branch head
    bootstrap() prepare → PROVISIONING → SUCCEEDED

A dry run stops after ``prepare``, so a preview is exactly what a real
deploy would commit. A commit also removes the files of pages that
are gone from the document, and a production release is tagged
``production-v<n>``. Failures never raise: every method returns a
``DeployResult`` whose ``failed_phase`` and ``error_kind`` say where and
why it stopped. A commit that landed before a publish failure stays in
place and is reported; nothing is retried automatically.

Channel-independent: no Flask or HTTP dependency.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from siteforge.adapters.base import HostingProvider, SourceControl, TransportError
from siteforge.core.config.loader import Settings
from siteforge.core.models.deploy import (
    CommitResult,
    DeployPhase,
    DeployRequest,
    DeployResult,
    DeployTarget,
    ProjectRef,
)
from siteforge.core.models.website import SeoMetadata, WebsiteDocument
from siteforge.core.persistence.audit import AuditWriter, DeployAuditEntry
from siteforge.core.reliability.branch_lock import BranchBusyError, BranchLockRegistry
from siteforge.core.services.design_registry import DesignRegistry, default_registry
from siteforge.core.services.generators.page_files import (
    GenerationError,
    document_snapshot,
    generate,
    stale_page_paths,
    used_component_types,
)
from siteforge.core.services.production_filter import ProductionFilter, summarize
from siteforge.core.services.source_collect import (
    UNUSED_DESIGN_REASON,
    merge_sources,
    split_unused_designs,
)
from siteforge.core.services.version_ops import list_versions

logger = logging.getLogger(__name__)


# Values of DeployResult.error_kind
KIND_GENERATION = "generation"
KIND_FORBIDDEN = "forbidden"
KIND_UNAUTHORIZED = "unauthorized"
KIND_NOT_FOUND = "not_found"
KIND_BUSY = "busy"
KIND_CONFIG = "config"
KIND_TRANSPORT = "transport"


def transport_kind(error: TransportError) -> str:
    if error.is_auth_failure:
        return KIND_UNAUTHORIZED
    if error.is_not_found:
        return KIND_NOT_FOUND
    return KIND_TRANSPORT


def release_tag(version_number: int) -> str:
    return f"production-v{version_number}"


def commit_message(file_count: int, page_count: int, version_number: int | None = None) -> str:
    """Default commit message, with a version trailer for production."""
    message = f"Generated {file_count} files for {page_count} pages"
    if version_number is not None:
        message += f"\n\nVersion: v{version_number}"
    return message


@dataclass
class FirstDeployStatus:
    """Whether the production branch has ever been deployed."""

    is_first_deploy: bool
    latest_version: int | None = None
    commit_count: int = 0

    def to_dict(self) -> dict:
        return {
            "isFirstDeploy": self.is_first_deploy,
            "latestVersion": self.latest_version,
            "commitCount": self.commit_count,
        }


class DeployOrchestrator:
    """Runs deployments against injected collaborators.

    Constructed once per process. Collaborators are shared between
    requests; the only shared mutable state is the remote branch, guarded
    by a per-branch lock around committing and publishing.

    Args:
        source_control: Repository client (GitHub or in-memory).
        hosting: Hosting client (Vercel or in-memory).
        settings: Repository, branch and hosting configuration.
        production_filter: Rule table (default: built-in rules).
        registry: Design registry (default: packaged catalog).
        locks: Branch lock registry (default: a private one).
        audit: Optional ledger; every invocation writes one entry.
    """

    def __init__(
        self,
        source_control: SourceControl,
        hosting: HostingProvider,
        settings: Settings,
        *,
        production_filter: ProductionFilter | None = None,
        registry: DesignRegistry | None = None,
        locks: BranchLockRegistry | None = None,
        audit: AuditWriter | None = None,
    ):
        self.source_control = source_control
        self.hosting = hosting
        self.settings = settings
        self.production_filter = production_filter or ProductionFilter()
        self.registry = registry or default_registry()
        self.locks = locks or BranchLockRegistry(default_timeout=settings.lock_timeout)
        self.audit = audit

    # ── Helpers ──────────────────────────────────────────────────

    @property
    def owner(self) -> str:
        return self.settings.repository.owner

    @property
    def repo(self) -> str:
        return self.settings.repository.name

    def project_ref(self) -> ProjectRef:
        return ProjectRef(
            project=self.settings.hosting.project or self.repo,
            owner=self.owner,
            repo=self.repo,
        )

    def target_for(self, branch: str) -> DeployTarget:
        if branch == self.settings.branches.production:
            return DeployTarget.PRODUCTION
        return DeployTarget.PREVIEW

    def _branch_error(self, branch: str) -> str | None:
        allowed = self.settings.allowed_branches()
        if branch not in allowed:
            return f"Branch '{branch}' is not allowed (allowed: {', '.join(allowed)})"
        return None

    def _repository_error(self) -> str | None:
        if not self.owner or not self.repo:
            return "Repository owner and name must be configured"
        return None

    # ── Pipeline ─────────────────────────────────────────────────

    def prepare(self, request: DeployRequest) -> DeployResult:
        """Generate and filter; no collaborator is called.

        The document snapshot ships with the generated pages. Files of
        registered designs no page uses are left out of production.
        Production retains only included files. Preview retains every
        file and lists what production would exclude.
        """
        branch = request.branch or self.settings.branch_for(request.target)
        result = DeployResult(target=request.target, branch=branch, dry_run=request.dry_run)

        result.phase = DeployPhase.GENERATING
        try:
            generated = generate(request.document, request.seo_overrides, self.registry)
        except GenerationError as e:
            return result.fail(DeployPhase.GENERATING, str(e), KIND_GENERATION)
        candidates = merge_sources([*generated, document_snapshot(request.document)], request.source_files)
        shipped, unused = split_unused_designs(
            candidates, used_component_types(request.document), self.registry,
        )

        result.phase = DeployPhase.FILTERING
        batch = self.production_filter.classify_batch(shipped)
        result.would_exclude = [
            *batch.excluded_reasons(),
            *({"path": f.path, "reason": UNUSED_DESIGN_REASON} for f in unused),
        ]
        if request.target == DeployTarget.PRODUCTION:
            result.retained = list(batch.included)
        else:
            result.retained = list(candidates)

        result.stats = {
            **batch.stats,
            "generated": len(generated),
            "unusedDesigns": len(unused),
            "retained": len(result.retained),
            "pages": request.document.page_count(),
        }
        summarize(batch.stats)
        return result

    def deploy(self, request: DeployRequest) -> DeployResult:
        """Run the full pipeline for one request."""
        started = time.monotonic()
        result = self._deploy(request)
        self._finish("deploy", result, started)
        return result

    def _deploy(self, request: DeployRequest) -> DeployResult:
        branch = request.branch or self.settings.branch_for(request.target)
        forbidden = self._branch_error(branch)
        if forbidden:
            result = DeployResult(target=request.target, branch=branch, dry_run=request.dry_run)
            return result.fail(DeployPhase.GENERATING, forbidden, KIND_FORBIDDEN)

        result = self.prepare(request)
        if result.phase == DeployPhase.FAILED:
            return result
        if request.dry_run:
            result.phase = DeployPhase.SUCCEEDED
            return result

        missing = self._repository_error()
        if missing:
            return result.fail(DeployPhase.COMMITTING, missing, KIND_CONFIG)

        document = request.document
        next_version = None
        if request.target == DeployTarget.PRODUCTION:
            next_version = document.current_version_number + 1
        message = request.message or commit_message(
            len(result.retained), document.page_count(), next_version,
        )

        key = self.locks.key(self.owner, self.repo, branch)
        try:
            with self.locks.hold(key, self.settings.lock_timeout):
                self._commit(result, message)
                if result.phase != DeployPhase.FAILED:
                    self._publish(result)
        except BranchBusyError as e:
            return result.fail(DeployPhase.COMMITTING, str(e), KIND_BUSY)

        if result.success and request.target == DeployTarget.PRODUCTION:
            result.version_number = self._version_after(document, result.commit)
            self._tag_release(result)
        return result

    def _commit(self, result: DeployResult, message: str) -> None:
        result.phase = DeployPhase.COMMITTING
        try:
            existing = self.source_control.list_paths(self.owner, self.repo, result.branch)
            stale = stale_page_paths(existing, result.files)
            if stale:
                logger.info("Removing %d files of deleted pages from %s", len(stale), result.branch)
            result.commit = self.source_control.write_files(
                self.owner, self.repo, result.branch, result.retained, message, delete=stale,
            )
        except TransportError as e:
            logger.error("Commit to %s failed: %s", result.branch, e)
            result.fail(DeployPhase.COMMITTING, str(e), transport_kind(e))
            return
        if result.commit.changed:
            logger.info("Committed %d files to %s as %s",
                        len(result.retained), result.branch, result.commit.sha[:7])
        else:
            logger.info("No changes on %s; head stays at %s", result.branch, result.commit.sha[:7])

    def _publish(self, result: DeployResult) -> None:
        result.phase = DeployPhase.PUBLISHING
        try:
            result.deployment = self.hosting.create_or_update_deployment(
                self.project_ref(), result.branch,
            )
        except TransportError as e:
            logger.error("Publishing %s failed (commit retained): %s", result.branch, e)
            result.fail(DeployPhase.PUBLISHING, str(e), transport_kind(e))
            return
        result.phase = DeployPhase.SUCCEEDED

    def _tag_release(self, result: DeployResult) -> None:
        """Tag the released commit; a failure is logged and leaves ``tag`` unset."""
        if result.commit is None or result.version_number is None:
            return
        tag = release_tag(result.version_number)
        try:
            created = self.source_control.create_tag(
                self.owner, self.repo, tag, result.commit.sha,
                f"Production release v{result.version_number}",
            )
        except TransportError as e:
            logger.warning("Released %s but could not tag it: %s", result.commit.sha[:7], e)
            return
        if not created:
            logger.debug("Tag %s already present", tag)
        result.tag = tag

    @staticmethod
    def _version_after(document: WebsiteDocument, commit: CommitResult | None) -> int:
        """Bump only when the published head differs from the last release."""
        if commit is None or commit.sha == document.last_published_commit:
            return document.current_version_number
        return document.current_version_number + 1

    # ── Other entry points ───────────────────────────────────────

    def publish(self, branch: str | None = None) -> DeployResult:
        """Redeploy the current head of ``branch`` without regenerating."""
        started = time.monotonic()
        branch = branch or self.settings.branches.production
        result = DeployResult(target=self.target_for(branch), branch=branch, dry_run=False)
        result.phase = DeployPhase.PUBLISHING

        error = self._branch_error(branch)
        missing = self._repository_error()
        if error:
            result.fail(DeployPhase.PUBLISHING, error, KIND_FORBIDDEN)
        elif missing:
            result.fail(DeployPhase.PUBLISHING, missing, KIND_CONFIG)
        else:
            key = self.locks.key(self.owner, self.repo, branch)
            try:
                with self.locks.hold(key, self.settings.lock_timeout):
                    self._publish_head(result)
            except BranchBusyError as e:
                result.fail(DeployPhase.PUBLISHING, str(e), KIND_BUSY)

        self._finish("publish", result, started)
        return result

    def _publish_head(self, result: DeployResult) -> None:
        try:
            head = self.source_control.get_head(self.owner, self.repo, result.branch)
        except TransportError as e:
            result.fail(DeployPhase.PUBLISHING, str(e), transport_kind(e))
            return
        if head is None:
            result.fail(DeployPhase.PUBLISHING, f"Branch '{result.branch}' does not exist", KIND_NOT_FOUND)
            return
        result.commit = CommitResult(sha=head, changed=False, parent_sha=head)
        self._publish(result)

    def bootstrap(
        self,
        document: WebsiteDocument,
        custom_domain: str | None = None,
        seo_overrides: dict[str, SeoMetadata] | None = None,
    ) -> DeployResult:
        """Dry-run the pipeline, then provision a new hosting project.

        The returned result lists the files a first deploy would commit
        and carries the new project's id and URL.
        """
        started = time.monotonic()
        request = DeployRequest(
            document=document,
            target=DeployTarget.PRODUCTION,
            dry_run=True,
            seo_overrides=seo_overrides or {},
        )
        result = self.prepare(request)
        if result.phase != DeployPhase.FAILED:
            self._provision(result, custom_domain or self.settings.hosting.custom_domain)
        self._finish("bootstrap", result, started)
        return result

    def _provision(self, result: DeployResult, custom_domain: str | None) -> None:
        result.phase = DeployPhase.PROVISIONING
        missing = self._repository_error()
        if missing:
            result.fail(DeployPhase.PROVISIONING, missing, KIND_CONFIG)
            return
        try:
            result.project = self.hosting.provision_project(
                self.settings.repository.full_name, custom_domain,
            )
        except TransportError as e:
            logger.error("Provisioning %s failed: %s", self.settings.repository.full_name, e)
            result.fail(DeployPhase.PROVISIONING, str(e), transport_kind(e))
            return
        result.phase = DeployPhase.SUCCEEDED

    def check_first_deploy(self) -> FirstDeployStatus:
        """Whether the production branch is missing or has no commits.

        Raises:
            TransportError: If the remote can't be read.
            VersionFetchError: If the history can't be listed.
        """
        branch = self.settings.branches.production
        head = self.source_control.get_head(self.owner, self.repo, branch)
        if head is None:
            return FirstDeployStatus(is_first_deploy=True)
        versions = list_versions(
            self.source_control, self.owner, self.repo, branch, self.settings.version_page_size,
        )
        if not versions:
            return FirstDeployStatus(is_first_deploy=True)
        return FirstDeployStatus(
            is_first_deploy=False,
            latest_version=versions[0].version_number,
            commit_count=len(versions),
        )

    # ── Bookkeeping ──────────────────────────────────────────────

    def _finish(self, operation: str, result: DeployResult, started: float) -> None:
        result.duration_ms = int((time.monotonic() - started) * 1000)
        if result.success:
            logger.info("%s to %s succeeded in %dms", operation, result.branch, result.duration_ms)
        else:
            logger.warning(
                "%s to %s failed during %s (%s): %s",
                operation, result.branch, result.failed_phase, result.error_kind, result.error,
            )
        if self.audit is None:
            return
        self.audit.write(DeployAuditEntry(
            operation=operation,
            target=str(result.target),
            branch=result.branch,
            dry_run=result.dry_run,
            status="succeeded" if result.success else "failed",
            phase=str(result.phase),
            failed_phase=str(result.failed_phase) if result.failed_phase else None,
            error=result.error,
            error_kind=result.error_kind,
            duration_ms=result.duration_ms,
            files_retained=len(result.retained),
            files_excluded=len(result.would_exclude),
            commit_sha=result.commit.sha if result.commit else None,
            commit_changed=result.commit.changed if result.commit else None,
            deployment_id=result.deployment.deployment_id if result.deployment else None,
            version_number=result.version_number,
        ))
