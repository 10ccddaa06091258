"""
API routes — service status.

All endpoints return JSON. Grouped under /api/ prefix.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from siteforge import __version__
from siteforge.ui.web.helpers import get_orchestrator, get_settings, project_root

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


# ── Status ───────────────────────────────────────────────────────────


@api_bp.route("/status")
def api_status():  # type: ignore[no-untyped-def]
    """Configuration, collaborators and recent deployments."""
    from siteforge.core.persistence.audit import AuditWriter

    settings = get_settings()
    orchestrator = get_orchestrator()
    audit = orchestrator.audit or AuditWriter(project_root=project_root())
    recent = audit.read_recent(5)

    return jsonify({
        "success": True,
        "version": __version__,
        "mockMode": current_app.config.get("MOCK_MODE", False),
        "repository": settings.repository.full_name,
        "branches": {
            "preview": settings.branches.preview,
            "production": settings.branches.production,
            "allowed": settings.allowed_branches(),
        },
        "hosting": {
            "project": settings.hosting.project or settings.repository.name,
            "customDomain": settings.hosting.custom_domain,
        },
        "collaborators": {
            "sourceControl": orchestrator.source_control.name,
            "hosting": orchestrator.hosting.name,
        },
        "locks": orchestrator.locks.get_status(),
        "recentDeployments": [e.model_dump() for e in recent],
    })
