"""
Tests for domain models — website document, release models.
"""

import pytest
from pydantic import ValidationError

from siteforge.core.models.deploy import (
    CommitResult,
    DeployPhase,
    DeployRequest,
    DeployResult,
    DeployTarget,
    HostedDeployment,
    VersionRecord,
)
from siteforge.core.models.template import GeneratedFile
from siteforge.core.models.website import (
    ComponentInstance,
    Page,
    WebsiteDocument,
    page_slug,
    route_for,
)

# ── Slugs and routes ─────────────────────────────────────────────────


class TestSlugs:
    def test_index_variants(self):
        assert page_slug("index") == "index"
        assert page_slug("") == "index"
        assert page_slug("/") == "index"

    def test_normalizes_case_and_slashes(self):
        assert page_slug("/About/") == "about"

    def test_routes(self):
        assert route_for("index") == "/"
        assert route_for("contact-us") == "/contact-us"

    def test_invalid_segment(self):
        with pytest.raises(ValueError, match="route segment"):
            page_slug("about us")

    @pytest.mark.parametrize("key", ["api", "editor", "admin", "analytics", "production", "models", "registry"])
    def test_reserved_slug(self, key):
        with pytest.raises(ValueError, match="reserved"):
            page_slug(key)


# ── Website document ─────────────────────────────────────────────────


class TestWebsiteDocument:
    def test_parse_mapping(self, document_data):
        doc = WebsiteDocument.model_validate(document_data)
        assert list(doc.pages) == ["index", "about"]
        assert doc.current_version_number == 3
        assert doc.page_count() == 2
        assert doc.component_count() == 3

    def test_parse_page_list(self):
        doc = WebsiteDocument.model_validate({
            "pages": [
                {"slug": "", "components": []},
                {"slug": "services", "components": [{"type": "navbar1"}]},
            ],
        })
        assert list(doc.pages) == ["index", "services"]
        assert doc.pages["services"].components[0].props == {}

    def test_duplicate_slugs_in_list(self):
        with pytest.raises(ValidationError, match="duplicate page slug"):
            WebsiteDocument.model_validate({
                "pages": [{"slug": "about"}, {"slug": "about"}],
            })

    def test_routes_must_be_unique(self):
        with pytest.raises(ValidationError, match="both map to route"):
            WebsiteDocument.model_validate({"pages": {"About": {}, "about": {}}})

    def test_reserved_page_key_rejected(self):
        with pytest.raises(ValidationError):
            WebsiteDocument.model_validate({"pages": {"editor": {}}})

    def test_null_props_and_components(self):
        page = Page.model_validate({"components": None})
        assert page.components == []
        comp = ComponentInstance.model_validate({"type": "navbar1", "props": None})
        assert comp.props == {}

    def test_version_never_decreases(self, document):
        released = document.with_release(1, "abc")
        assert released.current_version_number == 3
        assert released.last_published_commit == "abc"
        assert document.last_published_commit is None

    def test_json_dict_uses_editor_names(self, document):
        data = document.with_release(4, "abc").to_json_dict()
        assert data["currentVersionNumber"] == 4
        assert data["lastPublishedCommit"] == "abc"
        assert data["pages"]["index"]["seoMetadata"]["title"] == "Acme Realty"
        assert data["pages"]["index"]["pageName"] == "Home"


# ── Release models ───────────────────────────────────────────────────


class TestDeployRequest:
    def test_editor_aliases(self, document_data):
        req = DeployRequest.model_validate({
            "websiteData": document_data,
            "target": "preview",
            "dryRun": True,
            "seoMetadata": {"index": {"title": "Override"}},
        })
        assert req.target == DeployTarget.PREVIEW
        assert req.dry_run is True
        assert req.seo_overrides["index"].title == "Override"

    def test_defaults(self, document):
        req = DeployRequest(document=document)
        assert req.target == DeployTarget.PRODUCTION
        assert req.branch is None
        assert req.dry_run is False
        assert req.source_files == []

    def test_document_required(self):
        with pytest.raises(ValidationError):
            DeployRequest.model_validate({"target": "production"})

    def test_unknown_target(self, document_data):
        with pytest.raises(ValidationError):
            DeployRequest.model_validate({"websiteData": document_data, "target": "staging"})


class TestDeployResult:
    def test_fail_records_phase(self):
        result = DeployResult(target=DeployTarget.PRODUCTION, branch="main", dry_run=False)
        result.phase = DeployPhase.COMMITTING
        result.fail(DeployPhase.COMMITTING, "boom", "transport")
        assert not result.success
        assert result.phase == DeployPhase.FAILED
        assert result.failed_phase == DeployPhase.COMMITTING

    def test_to_dict_success(self):
        result = DeployResult(
            target=DeployTarget.PRODUCTION,
            branch="main",
            dry_run=False,
            phase=DeployPhase.SUCCEEDED,
            retained=[GeneratedFile(path="src/app/page.tsx", content="x")],
            commit=CommitResult(sha="abc123", changed=True),
            deployment=HostedDeployment(deployment_id="dpl_1", url="https://x.vercel.app"),
            version_number=4,
        )
        data = result.to_dict()
        assert data["success"] is True
        assert data["files"] == ["src/app/page.tsx"]
        assert data["commit"]["sha"] == "abc123"
        assert data["deployment"]["deploymentId"] == "dpl_1"
        assert data["version"] == 4
        assert "error" not in data
        assert "generated" not in data

    def test_to_dict_failure_and_content(self):
        result = DeployResult(
            target=DeployTarget.PREVIEW,
            branch="development",
            dry_run=True,
            retained=[GeneratedFile(path="a.ts", content="body")],
        )
        result.fail(DeployPhase.GENERATING, "bad type", "generation")
        data = result.to_dict(include_content=True)
        assert data["success"] is False
        assert data["error"] == "bad type"
        assert data["reason"] == "generation"
        assert data["failedPhase"] == "generating"
        assert data["generated"][0]["content"] == "body"


class TestVersionRecord:
    def test_camel_case_dump(self):
        record = VersionRecord(
            version_number=2, commit_identifier="abcdef123", short_identifier="abcdef1",
        )
        data = record.model_dump(by_alias=True)
        assert data["versionNumber"] == 2
        assert data["shortIdentifier"] == "abcdef1"

    def test_frozen(self):
        record = VersionRecord(version_number=1, commit_identifier="a", short_identifier="a")
        with pytest.raises(ValidationError):
            record.version_number = 2
