"""
Production routes — preview, classify, deploy, publish, bootstrap.

Thin wrappers: each parses JSON into a request model, calls the
orchestrator and returns its result. Pipeline failures come back as a
``DeployResult`` with ``success: false``; malformed bodies are 400s.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from siteforge.core.models.deploy import DeployPhase, DeployRequest, DeployTarget
from siteforge.core.models.template import GeneratedFile
from siteforge.ui.web.helpers import (
    error_response,
    get_orchestrator,
    json_body,
    result_response,
    with_site_sources,
)

logger = logging.getLogger(__name__)

production_bp = Blueprint("production", __name__)


@production_bp.route("/production/preview-data-files", methods=["POST"])
def preview_data_files():  # type: ignore[no-untyped-def]
    """Generate and filter without committing; returns file contents."""
    body = json_body()
    body.setdefault("target", DeployTarget.PRODUCTION.value)
    req = DeployRequest.model_validate({**body, "dry_run": True})

    result = get_orchestrator().prepare(with_site_sources(req))
    if result.phase != DeployPhase.FAILED:
        result.phase = DeployPhase.SUCCEEDED
    return result_response(result, include_content=True)


@production_bp.route("/production/classify", methods=["POST"])
def classify():  # type: ignore[no-untyped-def]
    """Classify ``files`` ([{path, content?}]) or ``paths`` ([str])."""
    body = json_body()
    files: list[GeneratedFile] = []
    for item in body.get("files") or []:
        if not isinstance(item, dict) or not isinstance(item.get("path"), str):
            return error_response("Each file needs a string 'path'", 400)
        files.append(GeneratedFile(path=item["path"], content=str(item.get("content") or "")))
    for path in body.get("paths") or []:
        if not isinstance(path, str):
            return error_response("'paths' must be strings", 400)
        files.append(GeneratedFile(path=path, content=""))
    if not files:
        return error_response("Provide 'files' or 'paths'", 400)

    batch = get_orchestrator().production_filter.classify_batch(files)
    return jsonify({"success": True, **batch.to_dict()})


@production_bp.route("/production/deploy", methods=["POST"])
def deploy():  # type: ignore[no-untyped-def]
    """Run the full pipeline. Body: websiteData, target, branch?, dryRun?."""
    req = DeployRequest.model_validate(json_body())
    result = get_orchestrator().deploy(with_site_sources(req))
    return result_response(result)


@production_bp.route("/production/publish", methods=["POST"])
def publish():  # type: ignore[no-untyped-def]
    """Redeploy a branch head without regenerating. Body: branch?."""
    branch = json_body().get("branch")
    if branch is not None and not isinstance(branch, str):
        return error_response("'branch' must be a string", 400)
    return result_response(get_orchestrator().publish(branch))


@production_bp.route("/production/check-first-deploy")
def check_first_deploy():  # type: ignore[no-untyped-def]
    status = get_orchestrator().check_first_deploy()
    return jsonify({"success": True, **status.to_dict()})


@production_bp.route("/editor/bootstrap", methods=["POST"])
def bootstrap():  # type: ignore[no-untyped-def]
    """Provision a hosting project. Body: websiteData, customDomain?, seoMetadata?."""
    body = json_body()
    custom_domain = body.get("customDomain")
    if custom_domain is not None and not isinstance(custom_domain, str):
        return error_response("'customDomain' must be a string", 400)

    req = DeployRequest.model_validate({**body, "dry_run": True})
    result = get_orchestrator().bootstrap(
        req.document,
        custom_domain=custom_domain or None,
        seo_overrides=req.seo_overrides,
    )
    return result_response(result, include_content=False)
