"""
Tests for configuration loading — siteforge.yml parsing, environment
overrides and the config check.
"""

import textwrap
from pathlib import Path

import pytest

from siteforge.core.config.loader import (
    ConfigError,
    Settings,
    find_config_file,
    load_settings,
    settings_from_env,
)
from siteforge.core.use_cases.config_check import check_config


@pytest.fixture
def flat_config(tmp_path: Path) -> Path:
    """A siteforge.yml without the ``site:`` wrapper."""
    content = textwrap.dedent("""\
        repository:
          owner: acme
          name: site
        branches:
          preview: staging
          production: main
          allowed: [main, staging, hotfix]
        hosting:
          project: acme-web
          custom_domain: acme.example
        version_page_size: 30
    """)
    path = tmp_path / "siteforge.yml"
    path.write_text(content)
    return path


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_wrapped_format(self, site_project: Path):
        settings = load_settings(site_project / "siteforge.yml", environ={})
        assert settings.repository.full_name == "acme/site"
        assert settings.hosting.project == "acme-site"
        assert settings.document == "website.json"

    def test_flat_format(self, flat_config: Path):
        settings = load_settings(flat_config, environ={})
        assert settings.branches.preview == "staging"
        assert settings.allowed_branches() == ["main", "staging", "hotfix"]
        assert settings.version_page_size == 30
        assert settings.hosting.custom_domain == "acme.example"

    def test_defaults(self, tmp_path: Path):
        path = tmp_path / "siteforge.yml"
        path.write_text("")
        settings = load_settings(path, environ={})
        assert settings.branches.preview == "development"
        assert settings.branches.production == "main"
        assert settings.version_page_size == 100
        assert settings.branch_for("preview") == "development"
        assert settings.branch_for("production") == "main"

    def test_env_overrides(self, flat_config: Path):
        settings = load_settings(flat_config, environ={
            "REPO_OWNER": "other",
            "PRODUCTION_BRANCH": "release",
            "VERCEL_PROJECT_ID": "prj_9",
            "REPO_NAME": "",
        })
        assert settings.repository.owner == "other"
        assert settings.repository.name == "site"
        assert settings.branches.production == "release"
        assert "release" in settings.allowed_branches()
        assert settings.hosting.project == "prj_9"

    def test_settings_from_env(self):
        settings = settings_from_env({"REPO_OWNER": "acme", "REPO_NAME": "site", "CURRENT_BRANCH": "dev"})
        assert settings.repository.full_name == "acme/site"
        assert settings.branches.preview == "dev"

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nonexistent.yml")

    def test_invalid_yaml_raises(self, tmp_path: Path):
        path = tmp_path / "siteforge.yml"
        path.write_text(":: invalid: yaml: [")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_non_mapping_raises(self, tmp_path: Path):
        path = tmp_path / "siteforge.yml"
        path.write_text("- just\n- a\n- list\n")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_settings(path)

    def test_out_of_range_page_size(self, tmp_path: Path):
        path = tmp_path / "siteforge.yml"
        path.write_text("version_page_size: 500\n")
        with pytest.raises(ConfigError, match="Invalid site configuration"):
            load_settings(path, environ={})

    def test_auto_search_returns_none(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """When no siteforge.yml exists anywhere, raise ConfigError."""
        isolated = tmp_path / "isolated"
        isolated.mkdir()
        monkeypatch.chdir(isolated)
        with pytest.raises(ConfigError, match=r"No siteforge\.yml found"):
            load_settings(None)


class TestFindConfigFile:
    def test_find_in_current_dir(self, tmp_path: Path):
        (tmp_path / "siteforge.yml").write_text("{}\n")
        assert find_config_file(tmp_path) == (tmp_path / "siteforge.yml").resolve()

    def test_find_in_parent(self, tmp_path: Path):
        (tmp_path / "siteforge.yml").write_text("{}\n")
        child = tmp_path / "a" / "b"
        child.mkdir(parents=True)
        assert find_config_file(child) == (tmp_path / "siteforge.yml").resolve()


class TestAllowedBranches:
    def test_preview_and_production_always_allowed(self):
        settings = Settings.model_validate({"branches": {"preview": "qa", "allowed": []}})
        assert settings.allowed_branches() == ["qa", "main"]


class TestConfigCheck:
    def test_valid_project(self, site_project: Path):
        result = check_config(site_project / "siteforge.yml", environ={"GITHUB_TOKEN": "x", "VERCEL_TOKEN": "y"})
        assert result.valid
        assert result.errors == []
        assert result.warnings == []
        assert result.to_dict()["repository"] == "acme/site"

    def test_missing_tokens_warn(self, site_project: Path):
        result = check_config(site_project / "siteforge.yml", environ={})
        assert result.valid
        assert len(result.warnings) == 2
        assert any("$GITHUB_TOKEN" in w for w in result.warnings)

    def test_missing_repository(self, tmp_path: Path):
        path = tmp_path / "siteforge.yml"
        path.write_text("site_root: frontend\n")
        result = check_config(path, environ={})
        assert not result.valid
        assert any("repository.owner" in e for e in result.errors)
        assert any("site_root" in e for e in result.errors)
        assert any("Document file" in w for w in result.warnings)

    def test_same_branch_warning(self, tmp_path: Path):
        path = tmp_path / "siteforge.yml"
        path.write_text("repository: {owner: a, name: b}\nbranches: {preview: main}\n")
        result = check_config(path, environ={})
        assert any("both use branch 'main'" in w for w in result.warnings)

    def test_no_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        result = check_config(None, environ={})
        assert not result.valid
        assert result.errors == ["No siteforge.yml found."]
