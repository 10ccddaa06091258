"""
API server shared helpers.

Access to the per-app orchestrator and the mapping from internal
errors to JSON error payloads. Every error response has the shape
``{"success": false, "error": str, "reason": str?}``; tracebacks are
logged, never returned.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from flask import Flask, current_app, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from siteforge.adapters.base import TransportError
from siteforge.core.config.loader import ConfigError, Settings
from siteforge.core.models.deploy import DeployRequest, DeployResult
from siteforge.core.persistence.document_store import DocumentError
from siteforge.core.reliability.branch_lock import BranchBusyError
from siteforge.core.services.deploy_ops import DeployOrchestrator
from siteforge.core.services.generators.page_files import GenerationError
from siteforge.core.services.version_ops import VersionFetchError

logger = logging.getLogger(__name__)

EXTENSION_KEY = "siteforge"

# DeployResult.error_kind → HTTP status
_KIND_STATUS = {
    "generation": 400,
    "forbidden": 403,
    "unauthorized": 403,
    "busy": 409,
}


def project_root() -> Path:
    return Path(current_app.config["PROJECT_ROOT"])


def _state() -> dict[str, Any]:
    return current_app.extensions[EXTENSION_KEY]


def get_settings() -> Settings:
    return _state()["settings"]


def get_orchestrator() -> DeployOrchestrator:
    """The app's orchestrator, built on first use.

    Raises:
        ConfigError: If collaborators can't be built (e.g. missing tokens).
    """
    state = _state()
    if state.get("orchestrator") is None:
        from siteforge.core.use_cases.deploy import build_orchestrator

        state["orchestrator"] = build_orchestrator(
            state["settings"],
            project_root(),
            mock_mode=current_app.config.get("MOCK_MODE", False),
        )
    return state["orchestrator"]


def json_body() -> dict[str, Any]:
    """Request JSON as a dict (empty dict when absent or not an object)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def with_site_sources(req: DeployRequest) -> DeployRequest:
    """Add the configured site checkout files when the request has none."""
    settings = get_settings()
    if req.source_files or not settings.site_root:
        return req
    from siteforge.core.services.source_collect import collect_project_files

    files = collect_project_files(project_root() / settings.site_root)
    return req.model_copy(update={"source_files": files})


# ── Responses ───────────────────────────────────────────────────


def error_response(message: str, status: int, reason: str | None = None):  # type: ignore[no-untyped-def]
    body: dict[str, Any] = {"success": False, "error": message}
    if reason:
        body["reason"] = reason
    return jsonify(body), status


def result_response(result: DeployResult, include_content: bool = False):  # type: ignore[no-untyped-def]
    """A DeployResult as JSON, with the status its error kind implies."""
    status = 200
    if not result.success:
        status = _KIND_STATUS.get(result.error_kind or "", 500)
    return jsonify(result.to_dict(include_content=include_content)), status


def _upstream_status(status: int | None) -> int:
    return 403 if status in (401, 403) else 500


def register_error_handlers(app: Flask) -> None:
    """Map internal exceptions raised inside route handlers to JSON errors."""

    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):  # type: ignore[no-untyped-def]
        return error_response("Invalid request", 400, reason=str(e))

    @app.errorhandler(DocumentError)
    def _document(e: DocumentError):  # type: ignore[no-untyped-def]
        return error_response(str(e), 400, reason="document")

    @app.errorhandler(GenerationError)
    def _generation(e: GenerationError):  # type: ignore[no-untyped-def]
        return error_response(str(e), 400, reason="generation")

    @app.errorhandler(ConfigError)
    def _config(e: ConfigError):  # type: ignore[no-untyped-def]
        logger.error("Configuration error: %s", e)
        return error_response(str(e), 500, reason="config")

    @app.errorhandler(TransportError)
    def _transport(e: TransportError):  # type: ignore[no-untyped-def]
        return error_response(str(e), _upstream_status(e.status), reason="transport")

    @app.errorhandler(VersionFetchError)
    def _versions(e: VersionFetchError):  # type: ignore[no-untyped-def]
        return error_response(e.message, _upstream_status(e.status), reason="versions")

    @app.errorhandler(BranchBusyError)
    def _busy(e: BranchBusyError):  # type: ignore[no-untyped-def]
        return error_response(str(e), 409, reason="busy")

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):  # type: ignore[no-untyped-def]
        if isinstance(e, HTTPException):
            return error_response(e.description or e.name, e.code or 500)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response("Internal server error", 500)
