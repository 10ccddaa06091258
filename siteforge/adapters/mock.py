"""
In-memory collaborators — test doubles for source control and hosting.

Used in mock mode (``--mock``) and by tests to exercise the orchestrator
without touching GitHub or Vercel. Both record every call and can be
told to fail a named operation.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from siteforge.adapters.base import HostingProvider, SourceControl, TransportError
from siteforge.core.models.deploy import (
    Commit,
    CommitResult,
    HostedDeployment,
    ProjectRef,
    ProvisionedProject,
)
from siteforge.core.models.template import GeneratedFile

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


@dataclass
class _StoredCommit:
    sha: str
    message: str
    tree: dict[str, str]
    author: str = "siteforge"
    timestamp: str = ""


@dataclass
class _Failure:
    message: str
    status: int | None
    remaining: int | None   # None = every call


@dataclass
class _FailureInjector:
    failures: dict[str, _Failure] = field(default_factory=dict)

    def set(self, operation: str, message: str, status: int | None, times: int | None) -> None:
        self.failures[operation] = _Failure(message, status, times)

    def check(self, operation: str) -> None:
        failure = self.failures.get(operation)
        if failure is None:
            return
        if failure.remaining is not None:
            failure.remaining -= 1
            if failure.remaining <= 0:
                del self.failures[operation]
        raise TransportError(failure.message, status=failure.status, operation=operation)


class InMemorySourceControl(SourceControl):
    """Branches held in a dict; each commit stores the full file tree.

    Operations that can be failed: ``list_commits``, ``get_head``,
    ``list_paths``, ``read_file``, ``write_files``, ``create_tag``.
    """

    def __init__(self) -> None:
        self._branches: dict[tuple[str, str, str], list[_StoredCommit]] = {}
        self.tags: dict[tuple[str, str, str], tuple[str, str]] = {}
        self._failures = _FailureInjector()
        self._call_log: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "memory"

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """``(operation, branch)`` for every call received (the sha or tag name for reads and tags)."""
        return self._call_log

    def calls(self, operation: str) -> int:
        return sum(1 for op, _ in self._call_log if op == operation)

    def set_failure(
        self,
        operation: str,
        message: str = "Mock failure",
        status: int | None = 500,
        times: int | None = None,
    ) -> None:
        """Make ``operation`` raise ``TransportError`` (``times`` calls, or always)."""
        self._failures.set(operation, message, status, times)

    # ── Setup helpers ────────────────────────────────────────────

    def create_branch(self, owner: str, repo: str, branch: str, files: dict[str, str] | None = None) -> str:
        """Create a branch with one initial commit; returns its sha."""
        key = (owner, repo, branch)
        self._branches[key] = []
        return self._append(key, "Initial commit", dict(files or {}))

    def add_commits(self, owner: str, repo: str, branch: str, messages: Sequence[str]) -> None:
        """Append empty-change commits (history fixtures)."""
        key = (owner, repo, branch)
        self._branches.setdefault(key, [])
        for message in messages:
            tree = dict(self._branches[key][-1].tree) if self._branches[key] else {}
            tree[f".history/{len(self._branches[key])}"] = message
            self._append(key, message, tree)

    def files_at(self, owner: str, repo: str, branch: str) -> dict[str, str]:
        commits = self._branches.get((owner, repo, branch)) or []
        return dict(commits[-1].tree) if commits else {}

    def commit_count(self, owner: str, repo: str, branch: str) -> int:
        return len(self._branches.get((owner, repo, branch)) or [])

    def _append(self, key: tuple[str, str, str], message: str, tree: dict[str, str]) -> str:
        commits = self._branches[key]
        parent = commits[-1].sha if commits else ""
        digest = hashlib.sha1(parent.encode())
        for path in sorted(tree):
            digest.update(f"{path}\0{tree[path]}\0".encode())
        digest.update(message.encode())
        sha = digest.hexdigest()
        timestamp = (_EPOCH + timedelta(minutes=len(commits))).isoformat()
        commits.append(_StoredCommit(sha=sha, message=message, tree=tree, timestamp=timestamp))
        return sha

    # ── SourceControl ────────────────────────────────────────────

    def list_commits(self, owner: str, repo: str, branch: str, per_page: int) -> list[Commit]:
        self._call_log.append(("list_commits", branch))
        self._failures.check("list_commits")
        commits = self._branches.get((owner, repo, branch))
        if commits is None:
            raise TransportError("Branch not found", status=404, operation="list_commits")
        newest_first = list(reversed(commits))[:per_page]
        return [
            Commit(
                sha=c.sha,
                message=c.message,
                author=c.author,
                timestamp=c.timestamp,
                url=f"https://example.invalid/{owner}/{repo}/commit/{c.sha}",
            )
            for c in newest_first
        ]

    def get_head(self, owner: str, repo: str, branch: str) -> str | None:
        self._call_log.append(("get_head", branch))
        self._failures.check("get_head")
        commits = self._branches.get((owner, repo, branch))
        return commits[-1].sha if commits else None

    def list_paths(self, owner: str, repo: str, branch: str) -> set[str]:
        self._call_log.append(("list_paths", branch))
        self._failures.check("list_paths")
        commits = self._branches.get((owner, repo, branch))
        if not commits:
            raise TransportError("Branch not found", status=404, operation="list_paths")
        return set(commits[-1].tree)

    def read_file(self, owner: str, repo: str, sha: str, path: str) -> str | None:
        self._call_log.append(("read_file", sha))
        self._failures.check("read_file")
        for (o, r, _branch), commits in self._branches.items():
            if (o, r) != (owner, repo):
                continue
            for commit in commits:
                if commit.sha == sha:
                    return commit.tree.get(path)
        raise TransportError("No commit found for SHA", status=404, operation="read_file")

    def write_files(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: Sequence[GeneratedFile],
        message: str,
        delete: Sequence[str] = (),
    ) -> CommitResult:
        self._call_log.append(("write_files", branch))
        self._failures.check("write_files")
        key = (owner, repo, branch)
        commits = self._branches.get(key)
        if not commits:
            raise TransportError("Branch not found", status=404, operation="write_files")

        head = commits[-1]
        tree = dict(head.tree)
        tree.update({f.path: f.content for f in files})
        for path in delete:
            tree.pop(path, None)
        if tree == head.tree:
            return CommitResult(sha=head.sha, changed=False, parent_sha=head.sha)

        sha = self._append(key, message, tree)
        return CommitResult(
            sha=sha,
            changed=True,
            url=f"https://example.invalid/{owner}/{repo}/commit/{sha}",
            parent_sha=head.sha,
            files_written=len(files),
            files_deleted=len(delete),
        )

    def create_tag(self, owner: str, repo: str, tag: str, sha: str, message: str) -> bool:
        self._call_log.append(("create_tag", tag))
        self._failures.check("create_tag")
        key = (owner, repo, tag)
        if key in self.tags:
            return False
        self.tags[key] = (sha, message)
        return True


class InMemoryHosting(HostingProvider):
    """Records deployments and projects.

    Operations that can be failed: ``create_or_update_deployment``,
    ``provision_project``.
    """

    def __init__(self) -> None:
        self.deployments: list[tuple[ProjectRef, str]] = []
        self.projects: list[ProvisionedProject] = []
        self._failures = _FailureInjector()

    @property
    def name(self) -> str:
        return "memory"

    def set_failure(
        self,
        operation: str,
        message: str = "Mock failure",
        status: int | None = 500,
        times: int | None = None,
    ) -> None:
        self._failures.set(operation, message, status, times)

    def create_or_update_deployment(self, project: ProjectRef, branch: str) -> HostedDeployment:
        self._failures.check("create_or_update_deployment")
        self.deployments.append((project, branch))
        n = len(self.deployments)
        return HostedDeployment(
            deployment_id=f"dpl_mock_{n}",
            url=f"https://{project.project or 'site'}-{n}.mock.invalid",
        )

    def provision_project(self, owner_repo: str, custom_domain: str | None = None) -> ProvisionedProject:
        self._failures.check("provision_project")
        name = owner_repo.rsplit("/", 1)[-1].lower()
        project = ProvisionedProject(
            project_id=f"prj_mock_{len(self.projects) + 1}",
            url=f"https://{custom_domain}" if custom_domain else f"https://{name}.vercel.app",
            domain=custom_domain,
        )
        self.projects.append(project)
        return project
