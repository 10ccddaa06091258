"""
Vercel hosting client — trigger deployments and provision projects.

Deployments are created from a GitHub ``gitSource`` so Vercel builds
exactly the commit at the branch head. A deployment of the production
branch targets Vercel's production environment; any other branch is a
preview deployment.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from siteforge.adapters.base import HostingProvider, TransportError
from siteforge.adapters.http import JsonApi
from siteforge.core.models.deploy import HostedDeployment, ProjectRef, ProvisionedProject

logger = logging.getLogger(__name__)

VERCEL_API = "https://api.vercel.com"

_PROJECT_NAME_RE = re.compile(r"[^a-z0-9-]+")


def project_name(owner_repo: str) -> str:
    """Vercel-safe project name from ``owner/repo`` (lowercase, dashes)."""
    repo = owner_repo.rsplit("/", 1)[-1]
    return _PROJECT_NAME_RE.sub("-", repo.lower()).strip("-")[:100] or "site"


def _https(host: str) -> str:
    return host if host.startswith("http") else f"https://{host}"


class VercelClient(HostingProvider):
    """Hosting backed by the Vercel REST API."""

    def __init__(
        self,
        token: str,
        team_id: str | None = None,
        production_branch: str = "main",
        framework: str = "nextjs",
        base_url: str = VERCEL_API,
        timeout: float = 30.0,
    ):
        self._api = JsonApi(base_url, token=token, timeout=timeout)
        self._team_id = team_id
        self._production_branch = production_branch
        self._framework = framework

    @property
    def name(self) -> str:
        return "vercel"

    def _params(self) -> dict[str, Any] | None:
        return {"teamId": self._team_id} if self._team_id else None

    def create_or_update_deployment(self, project: ProjectRef, branch: str) -> HostedDeployment:
        target = "production" if branch == self._production_branch else None
        body: dict[str, Any] = {
            "name": project.project,
            "project": project.project,
            "gitSource": {
                "type": "github",
                "org": project.owner,
                "repo": project.repo,
                "ref": branch,
            },
        }
        if target:
            body["target"] = target
        data = self._api.post(
            "/v13/deployments", body, params=self._params(), operation="create deployment",
        )
        deployment_id = (data or {}).get("id") or (data or {}).get("uid")
        if not deployment_id:
            raise TransportError("no deployment id returned", operation="create deployment")
        url = _https(data["url"]) if data.get("url") else ""
        logger.info("Vercel deployment %s for %s@%s", deployment_id, project.project, branch)
        return HostedDeployment(deployment_id=deployment_id, url=url)

    def provision_project(self, owner_repo: str, custom_domain: str | None = None) -> ProvisionedProject:
        name = project_name(owner_repo)
        data = self._api.post(
            "/v10/projects",
            {
                "name": name,
                "framework": self._framework,
                "gitRepository": {"type": "github", "repo": owner_repo},
                "productionBranch": self._production_branch,
            },
            params=self._params(),
            operation="create project",
        )
        project_id = (data or {}).get("id")
        if not project_id:
            raise TransportError("no project id returned", operation="create project")

        url = f"https://{data.get('name', name)}.vercel.app"
        if custom_domain:
            self._api.post(
                f"/v10/projects/{project_id}/domains",
                {"name": custom_domain},
                params=self._params(),
                operation="add domain",
            )
            url = _https(custom_domain)
        logger.info("Provisioned Vercel project %s (%s)", project_id, url)
        return ProvisionedProject(project_id=project_id, url=url, domain=custom_domain)
