"""
Version routes — commit history projected into versions, and switching
back to the document of an earlier version.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from siteforge.core.services.version_ops import (
    VersionNotFoundError,
    latest_version,
    list_versions,
    switch_version,
)
from siteforge.ui.web.helpers import error_response, get_orchestrator, get_settings, json_body

versions_bp = Blueprint("versions", __name__)


def _query() -> tuple[str, int] | None:
    settings = get_settings()
    branch = request.args.get("branch") or settings.branches.production
    raw = request.args.get("perPage") or request.args.get("per_page")
    try:
        per_page = int(raw) if raw else settings.version_page_size
    except ValueError:
        return None
    return branch, per_page


@versions_bp.route("/versions")
def versions():  # type: ignore[no-untyped-def]
    """List versions. Query: branch?, perPage? (1-100)."""
    query = _query()
    if query is None:
        return error_response("'perPage' must be an integer", 400)
    branch, per_page = query

    settings = get_settings()
    records = list_versions(
        get_orchestrator().source_control,
        settings.repository.owner,
        settings.repository.name,
        branch,
        per_page,
    )
    return jsonify({
        "success": True,
        "branch": branch,
        "versions": [v.model_dump(by_alias=True) for v in records],
    })


@versions_bp.route("/versions/latest")
def versions_latest():  # type: ignore[no-untyped-def]
    """Newest version on a branch, or null."""
    query = _query()
    if query is None:
        return error_response("'perPage' must be an integer", 400)
    branch, per_page = query

    settings = get_settings()
    record = latest_version(
        get_orchestrator().source_control,
        settings.repository.owner,
        settings.repository.name,
        branch,
        per_page,
    )
    return jsonify({
        "success": True,
        "branch": branch,
        "version": record.model_dump(by_alias=True) if record else None,
    })


@versions_bp.route("/versions/switch", methods=["POST"])
def versions_switch():  # type: ignore[no-untyped-def]
    """Document of an earlier version. Body: commitSha? | versionNumber?, branch?"""
    body = json_body()
    settings = get_settings()
    commit_sha = body.get("commitSha")
    version_number = body.get("versionNumber")
    if commit_sha is not None and not isinstance(commit_sha, str):
        return error_response("'commitSha' must be a string", 400)
    if version_number is not None and (isinstance(version_number, bool) or not isinstance(version_number, int)):
        return error_response("'versionNumber' must be an integer", 400)
    if not commit_sha and version_number is None:
        return error_response("commitSha or versionNumber is required", 400)

    branch = body.get("branch") or settings.branches.production
    try:
        snapshot = switch_version(
            get_orchestrator().source_control,
            settings.repository.owner,
            settings.repository.name,
            branch,
            version_number=version_number,
            commit_sha=commit_sha,
            per_page=settings.version_page_size,
        )
    except VersionNotFoundError as e:
        return error_response(str(e), 404, reason="not_found")
    return jsonify({"success": True, "branch": branch, **snapshot.to_dict()})
