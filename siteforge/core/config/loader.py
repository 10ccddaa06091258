"""
Configuration loader — reads siteforge.yml into settings models.

This is the primary entry point for loading release configuration.
It reads YAML, validates against Pydantic schemas, applies environment
overrides and returns typed settings.

Secrets (``GITHUB_TOKEN``, ``VERCEL_TOKEN``) never live in the file;
they are read from the environment when collaborators are built.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

# Default config filename
SITE_CONFIG_FILE = "siteforge.yml"

# Env var → (section, field) overrides applied after the file is read
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "REPO_OWNER": ("repository", "owner"),
    "REPO_NAME": ("repository", "name"),
    "CURRENT_BRANCH": ("branches", "preview"),
    "PRODUCTION_BRANCH": ("branches", "production"),
    "VERCEL_PROJECT_ID": ("hosting", "project"),
    "CUSTOM_DOMAIN": ("hosting", "custom_domain"),
}


class ConfigError(Exception):
    """Raised when site configuration is invalid or missing."""


# ── Settings models ─────────────────────────────────────────────


class RepositorySettings(BaseModel):
    """Source-control repository that receives generated files."""

    owner: str = ""
    name: str = ""
    api_url: str = "https://api.github.com"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class BranchSettings(BaseModel):
    """Branch names for each deploy target plus the extra allow-list."""

    preview: str = "development"
    production: str = "main"
    allowed: list[str] = Field(default_factory=lambda: ["development", "main"])


class HostingSettings(BaseModel):
    """Hosting provider project."""

    project: str = ""
    custom_domain: str | None = None
    api_url: str = "https://api.vercel.com"
    framework: str = "nextjs"


class Settings(BaseModel):
    """Complete release configuration (the contents of siteforge.yml)."""

    repository: RepositorySettings = Field(default_factory=RepositorySettings)
    branches: BranchSettings = Field(default_factory=BranchSettings)
    hosting: HostingSettings = Field(default_factory=HostingSettings)
    document: str = "website.json"
    site_root: str | None = None
    version_page_size: int = Field(default=100, ge=1, le=100)
    lock_timeout: float = Field(default=30.0, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)

    def allowed_branches(self) -> list[str]:
        """Branches a deployment may write to, in first-seen order."""
        seen: list[str] = []
        for name in [*self.branches.allowed, self.branches.preview, self.branches.production]:
            if name and name not in seen:
                seen.append(name)
        return seen

    def branch_for(self, target: str) -> str:
        """Default branch for a deploy target (``preview`` / ``production``)."""
        return self.branches.preview if target == "preview" else self.branches.production


# ── Loading ─────────────────────────────────────────────────────


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for siteforge.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to siteforge.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SITE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def apply_env_overrides(data: dict, environ: Mapping[str, str] | None = None) -> dict:
    """Overlay non-empty environment variables onto raw settings data."""
    env = os.environ if environ is None else environ
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = env.get(var)
        if not value:
            continue
        block = data.get(section)
        if not isinstance(block, dict):
            block = {}
            data[section] = block
        block[key] = value
        logger.debug("Config override %s.%s from $%s", section, key, var)
    return data


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load and validate site configuration.

    Args:
        path: Explicit path to siteforge.yml. If None, searches upward.
        environ: Environment mapping for overrides (default: ``os.environ``).

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {SITE_CONFIG_FILE} found. Create one, or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading site config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "site" key or be flat
    site_data = data["site"] if isinstance(data.get("site"), dict) else data
    site_data = apply_env_overrides(dict(site_data), environ)

    try:
        settings = Settings.model_validate(site_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid site configuration: {e}") from e

    logger.info(
        "Loaded site config for %s (preview=%s, production=%s)",
        settings.repository.full_name,
        settings.branches.preview,
        settings.branches.production,
    )
    return settings


def settings_from_env(environ: Mapping[str, str] | None = None) -> Settings:
    """Settings built from defaults plus environment overrides only."""
    try:
        return Settings.model_validate(apply_env_overrides({}, environ))
    except ValidationError as e:
        raise ConfigError(f"Invalid site configuration: {e}") from e


def project_root(config_path: Path | None) -> Path:
    """Directory holding the config file, or the working directory without one."""
    return config_path.parent.resolve() if config_path else Path.cwd()
