"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from siteforge.adapters.mock import InMemoryHosting, InMemorySourceControl
from siteforge.core.config.loader import Settings
from siteforge.core.models.website import WebsiteDocument
from siteforge.core.persistence.audit import AuditWriter
from siteforge.core.services.deploy_ops import DeployOrchestrator

OWNER = "acme"
REPO = "site"


def sample_document_data() -> dict:
    """Two pages, sparse and full props, one nested dotted key."""
    return {
        "pages": {
            "index": {
                "pageName": "Home",
                "components": [
                    {
                        "type": "auroraImageHero",
                        "id": "hero",
                        "props": {
                            "title": "Sell Your Home Faster",
                            "images.main": {"src": "/hero.webp", "alt": "House"},
                        },
                    },
                    {"type": "testimonials3", "props": {}},
                ],
                "seoMetadata": {"title": "Acme Realty", "description": "Homes in the valley"},
            },
            "about": {
                "components": [
                    {"type": "auroraImageHero", "props": {"subTitle": "About us"}},
                ],
            },
        },
        "currentVersionNumber": 3,
    }


@pytest.fixture
def document_data() -> dict:
    return sample_document_data()


@pytest.fixture
def document() -> WebsiteDocument:
    return WebsiteDocument.model_validate(sample_document_data())


@pytest.fixture
def settings() -> Settings:
    return Settings.model_validate({
        "repository": {"owner": OWNER, "name": REPO},
        "hosting": {"project": "acme-site"},
        "lock_timeout": 0.1,
    })


@pytest.fixture
def source_control(settings: Settings) -> InMemorySourceControl:
    sc = InMemorySourceControl()
    for branch in settings.allowed_branches():
        sc.create_branch(OWNER, REPO, branch)
    return sc


@pytest.fixture
def hosting() -> InMemoryHosting:
    return InMemoryHosting()


@pytest.fixture
def audit(tmp_path: Path) -> AuditWriter:
    return AuditWriter(path=tmp_path / ".state" / "deploy_audit.ndjson")


@pytest.fixture
def orchestrator(
    source_control: InMemorySourceControl,
    hosting: InMemoryHosting,
    settings: Settings,
    audit: AuditWriter,
) -> DeployOrchestrator:
    return DeployOrchestrator(source_control, hosting, settings, audit=audit)


@pytest.fixture
def site_project(tmp_path: Path) -> Path:
    """A project directory with siteforge.yml and website.json."""
    (tmp_path / "siteforge.yml").write_text(textwrap.dedent(f"""\
        site:
          repository:
            owner: {OWNER}
            name: {REPO}
          branches:
            preview: development
            production: main
          hosting:
            project: acme-site
          document: website.json
    """))
    (tmp_path / "website.json").write_text(json.dumps(sample_document_data(), indent=2))
    return tmp_path
