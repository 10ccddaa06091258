"""
Adapter base — the contracts between the orchestrator and remote services.

The orchestrator only talks to source control and hosting through these
interfaces, never directly to an HTTP API. Real clients live in
``adapters.vcs`` and ``adapters.hosting``; in-memory doubles for mock
mode and tests live in ``adapters.mock``.

Unlike the pure pipeline stages, collaborators signal failure by raising
``TransportError``; the orchestrator turns that into a failed result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from siteforge.core.models.deploy import (
    Commit,
    CommitResult,
    HostedDeployment,
    ProjectRef,
    ProvisionedProject,
)
from siteforge.core.models.template import GeneratedFile


class TransportError(Exception):
    """A remote call failed (network, auth, or API rejection).

    Attributes:
        status: Upstream HTTP status, if the remote answered.
        operation: What was being attempted (``get ref``, ``create deployment``, …).
    """

    def __init__(self, message: str, status: int | None = None, operation: str = ""):
        self.message = message
        self.status = status
        self.operation = operation
        super().__init__(f"{operation}: {message}" if operation else message)

    @property
    def is_auth_failure(self) -> bool:
        return self.status in (401, 403)

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class SourceControl(ABC):
    """Remote repository: read history and files, write file sets to a branch, tag releases."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g. 'github', 'memory')."""

    @abstractmethod
    def list_commits(self, owner: str, repo: str, branch: str, per_page: int) -> list[Commit]:
        """Most recent commits on ``branch``, newest first.

        Raises:
            TransportError: On any remote failure, including a missing branch.
        """

    @abstractmethod
    def get_head(self, owner: str, repo: str, branch: str) -> str | None:
        """Commit id at the tip of ``branch``, or None when the branch doesn't exist."""

    @abstractmethod
    def list_paths(self, owner: str, repo: str, branch: str) -> set[str]:
        """Every file path in the tree at the tip of ``branch``.

        Raises:
            TransportError: On any remote failure, including a missing branch.
        """

    @abstractmethod
    def read_file(self, owner: str, repo: str, sha: str, path: str) -> str | None:
        """Text of ``path`` as of commit ``sha``, or None when the commit has no such file.

        Raises:
            TransportError: On any remote failure, including an unknown commit.
        """

    @abstractmethod
    def write_files(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: Sequence[GeneratedFile],
        message: str,
        delete: Sequence[str] = (),
    ) -> CommitResult:
        """Commit ``files`` on top of the branch head, removing ``delete``.

        When the branch already holds exactly this content no commit is
        created and the result has ``changed=False``. The branch ref moves
        only if nobody else moved it meanwhile.

        Raises:
            TransportError: On any remote failure.
        """

    @abstractmethod
    def create_tag(self, owner: str, repo: str, tag: str, sha: str, message: str) -> bool:
        """Create an annotated tag on commit ``sha``.

        Returns False, changing nothing, when ``tag`` already exists.

        Raises:
            TransportError: On any remote failure.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class HostingProvider(ABC):
    """Hosting service that builds and serves a branch."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g. 'vercel', 'memory')."""

    @abstractmethod
    def create_or_update_deployment(self, project: ProjectRef, branch: str) -> HostedDeployment:
        """Trigger a deployment of ``branch``'s head.

        Raises:
            TransportError: On any remote failure.
        """

    @abstractmethod
    def provision_project(self, owner_repo: str, custom_domain: str | None = None) -> ProvisionedProject:
        """Create a hosting project linked to ``owner/repo``.

        Raises:
            TransportError: On any remote failure.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
