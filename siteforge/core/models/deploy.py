"""
Release models — filter decisions, commits, deployments and versions.

Wire shapes for the source-control and hosting collaborators plus the
request/result types of the deployment orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from siteforge.core.models.template import GeneratedFile
from siteforge.core.models.website import SeoMetadata, WebsiteDocument


class DeployTarget(StrEnum):
    """Where a deployment goes."""

    PREVIEW = "preview"
    PRODUCTION = "production"


class DeployPhase(StrEnum):
    """Orchestrator state machine phases."""

    GENERATING = "generating"
    FILTERING = "filtering"
    COMMITTING = "committing"
    PUBLISHING = "publishing"
    PROVISIONING = "provisioning"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ── Filter ──────────────────────────────────────────────────────


class FilterDecision(_WireModel):
    """Include/exclude verdict for one path, with the rule that decided it."""

    include: bool
    reason: str
    rule: str = ""


# ── Source control ──────────────────────────────────────────────


class Commit(_WireModel):
    """A commit as reported by the source-control remote."""

    sha: str
    message: str = ""
    author: str = ""
    timestamp: str = ""
    url: str = ""


class CommitResult(_WireModel):
    """Outcome of writing a file set to a branch.

    ``changed`` is False when the branch already held identical content;
    ``sha`` is then the untouched branch head.
    """

    sha: str
    changed: bool
    url: str = ""
    parent_sha: str | None = None
    files_written: int = 0
    files_deleted: int = 0


class VersionRecord(_WireModel):
    """A user-facing version derived from a commit's position in history."""

    version_number: int
    commit_identifier: str
    short_identifier: str
    message: str = ""
    author: str = ""
    timestamp: str = ""
    url: str = ""


# ── Hosting ─────────────────────────────────────────────────────


class ProjectRef(_WireModel):
    """Hosting project plus the repository it builds from."""

    project: str
    owner: str
    repo: str


class HostedDeployment(_WireModel):
    deployment_id: str
    url: str = ""


class ProvisionedProject(_WireModel):
    project_id: str
    url: str = ""
    domain: str | None = None


# ── Orchestrator ────────────────────────────────────────────────


class DeployRequest(BaseModel):
    """Input to ``DeployOrchestrator.deploy``.

    Accepts the editor's payload names (``websiteData``, ``dryRun``,
    ``seoMetadata``) as well as the snake_case field names.
    """

    model_config = ConfigDict(populate_by_name=True)

    document: WebsiteDocument = Field(
        validation_alias=AliasChoices("document", "websiteData"),
    )
    target: DeployTarget = DeployTarget.PRODUCTION
    branch: str | None = None
    dry_run: bool = Field(default=False, validation_alias=AliasChoices("dry_run", "dryRun"))
    seo_overrides: dict[str, SeoMetadata] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("seo_overrides", "seoMetadata", "seoOverrides"),
    )
    source_files: list[GeneratedFile] = Field(
        default_factory=list,
        validation_alias=AliasChoices("source_files", "sourceFiles"),
    )
    message: str | None = None


@dataclass
class DeployResult:
    """Outcome of one orchestrator invocation (success or failure).

    Failures carry ``failed_phase``, ``error`` and ``error_kind`` so a
    caller can decide on a manual retry. A commit that landed before a
    publish failure is still reported in ``commit``.
    """

    target: DeployTarget
    branch: str
    dry_run: bool
    phase: DeployPhase = DeployPhase.GENERATING
    failed_phase: DeployPhase | None = None
    error: str | None = None
    error_kind: str | None = None

    retained: list[GeneratedFile] = field(default_factory=list)
    would_exclude: list[dict[str, str]] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)

    commit: CommitResult | None = None
    deployment: HostedDeployment | None = None
    project: ProvisionedProject | None = None
    version_number: int | None = None
    tag: str | None = None
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.phase == DeployPhase.SUCCEEDED

    @property
    def files(self) -> list[str]:
        return [f.path for f in self.retained]

    def fail(self, phase: DeployPhase, error: str, kind: str) -> DeployResult:
        self.failed_phase = phase
        self.phase = DeployPhase.FAILED
        self.error = error
        self.error_kind = kind
        return self

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        """JSON-serializable view for the CLI and HTTP layers."""
        result: dict[str, Any] = {
            "success": self.success,
            "phase": str(self.phase),
            "target": str(self.target),
            "branch": self.branch,
            "dryRun": self.dry_run,
            "stats": dict(self.stats),
            "files": self.files,
            "wouldExclude": list(self.would_exclude),
        }
        if include_content:
            result["generated"] = [f.model_dump() for f in self.retained]
        if self.error:
            result["error"] = self.error
            result["reason"] = self.error_kind
            result["failedPhase"] = str(self.failed_phase) if self.failed_phase else None
        if self.commit:
            result["commit"] = self.commit.model_dump(by_alias=True)
        if self.deployment:
            result["deployment"] = self.deployment.model_dump(by_alias=True)
        if self.project:
            result["project"] = self.project.model_dump(by_alias=True)
        if self.version_number is not None:
            result["version"] = self.version_number
        if self.tag:
            result["tag"] = self.tag
        result["durationMs"] = self.duration_ms
        return result
