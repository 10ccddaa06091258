"""
Config check — load siteforge.yml and look for problems that only show
up at deploy time (missing repository, absent document, no tokens).
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from siteforge.adapters.factory import GITHUB_TOKEN_ENV, VERCEL_TOKEN_ENV
from siteforge.core.config.loader import ConfigError, Settings, find_config_file, load_settings

ERROR = "error"
WARNING = "warning"

Finding = tuple[str, str]
Check = Callable[[Settings, Path, Mapping[str, str]], Iterator[Finding]]


@dataclass
class ConfigCheckResult:
    valid: bool = False
    settings: Settings | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add(self, severity: str, message: str) -> None:
        (self.errors if severity == ERROR else self.warnings).append(message)

    def to_dict(self) -> dict:
        settings = self.settings
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "repository": settings.repository.full_name if settings else None,
            "branches": settings.allowed_branches() if settings else [],
        }


# ── Checks ──────────────────────────────────────────────────────


def _repository(settings: Settings, root: Path, env: Mapping[str, str]) -> Iterator[Finding]:
    repo = settings.repository
    if not (repo.owner and repo.name):
        yield ERROR, "repository.owner and repository.name are required."


def _branches(settings: Settings, root: Path, env: Mapping[str, str]) -> Iterator[Finding]:
    production = settings.branches.production
    if settings.branches.preview == production:
        yield WARNING, f"Preview and production both use branch '{production}'."


def _hosting(settings: Settings, root: Path, env: Mapping[str, str]) -> Iterator[Finding]:
    if not settings.hosting.project:
        yield WARNING, "No hosting.project set; deployments will use the repository name."


def _paths(settings: Settings, root: Path, env: Mapping[str, str]) -> Iterator[Finding]:
    if not (root / settings.document).is_file():
        yield WARNING, f"Document file does not exist: {settings.document}"
    if settings.site_root and not (root / settings.site_root).is_dir():
        yield ERROR, f"site_root does not exist: {settings.site_root}"


def _credentials(settings: Settings, root: Path, env: Mapping[str, str]) -> Iterator[Finding]:
    for var in (GITHUB_TOKEN_ENV, VERCEL_TOKEN_ENV):
        if not env.get(var):
            yield WARNING, f"${var} is not set; only --mock deployments will work."


CHECKS: tuple[Check, ...] = (_repository, _branches, _hosting, _paths, _credentials)


def check_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ConfigCheckResult:
    """Validate site configuration and report issues.

    Args:
        config_path: Explicit siteforge.yml; searched upward from the
            working directory when omitted.
        environ: Environment for overrides and the credential check
            (``os.environ`` by default).
    """
    env = os.environ if environ is None else environ
    result = ConfigCheckResult(config_path=config_path or find_config_file())

    if result.config_path is None:
        result.add(ERROR, "No siteforge.yml found.")
        return result

    try:
        result.settings = load_settings(result.config_path, environ=env)
    except ConfigError as e:
        result.add(ERROR, str(e))
        return result

    root = result.config_path.parent
    for check in CHECKS:
        for severity, message in check(result.settings, root, env):
            result.add(severity, message)

    result.valid = not result.errors
    return result
