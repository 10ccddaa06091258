"""
Collaborator factory — builds source-control and hosting clients.

Tokens come from the environment (``GITHUB_TOKEN``, ``VERCEL_TOKEN``,
optional ``VERCEL_TEAM_ID``). In mock mode both collaborators are the
in-memory doubles, seeded with the configured branches so a mock deploy
can run end to end.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from siteforge.adapters.base import HostingProvider, SourceControl
from siteforge.adapters.hosting.vercel import VercelClient
from siteforge.adapters.mock import InMemoryHosting, InMemorySourceControl
from siteforge.adapters.vcs.github import GitHubClient
from siteforge.core.config.loader import ConfigError, Settings

logger = logging.getLogger(__name__)

GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
VERCEL_TOKEN_ENV = "VERCEL_TOKEN"
VERCEL_TEAM_ENV = "VERCEL_TEAM_ID"


def build_mock_collaborators(settings: Settings) -> tuple[InMemorySourceControl, InMemoryHosting]:
    """In-memory collaborators with every allowed branch created."""
    source_control = InMemorySourceControl()
    owner, repo = settings.repository.owner, settings.repository.name
    if owner and repo:
        for branch in settings.allowed_branches():
            source_control.create_branch(owner, repo, branch)
    return source_control, InMemoryHosting()


def build_collaborators(
    settings: Settings,
    mock_mode: bool = False,
    environ: Mapping[str, str] | None = None,
) -> tuple[SourceControl, HostingProvider]:
    """Create the source-control and hosting clients for ``settings``.

    Raises:
        ConfigError: If a required token is missing outside mock mode.
    """
    if mock_mode:
        logger.info("Using in-memory source control and hosting (mock mode)")
        return build_mock_collaborators(settings)

    env = os.environ if environ is None else environ
    github_token = env.get(GITHUB_TOKEN_ENV, "")
    vercel_token = env.get(VERCEL_TOKEN_ENV, "")
    missing = [
        name for name, value in ((GITHUB_TOKEN_ENV, github_token), (VERCEL_TOKEN_ENV, vercel_token))
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing credentials: set {', '.join(missing)}")

    source_control = GitHubClient(
        github_token,
        base_url=settings.repository.api_url,
        timeout=settings.request_timeout,
    )
    hosting = VercelClient(
        vercel_token,
        team_id=env.get(VERCEL_TEAM_ENV) or None,
        production_branch=settings.branches.production,
        framework=settings.hosting.framework,
        base_url=settings.hosting.api_url,
        timeout=settings.request_timeout,
    )
    logger.debug("Built collaborators: %r, %r", source_control, hosting)
    return source_control, hosting
