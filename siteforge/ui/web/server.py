"""
Deployment API server — Flask app factory.

The editor calls this JSON API to preview, deploy and list versions. Each
app owns one orchestrator (with one set of collaborators) that every
request shares.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

from siteforge.core.config.loader import Settings, load_settings, settings_from_env
from siteforge.core.services.deploy_ops import DeployOrchestrator

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
MAX_BODY_BYTES = 20 * 1024 * 1024


def create_app(
    project_root: Path | None = None,
    config_path: Path | None = None,
    mock_mode: bool = False,
    settings: Settings | None = None,
    orchestrator: DeployOrchestrator | None = None,
) -> Flask:
    """Build the API app.

    Args:
        project_root: Site project directory (defaults to the cwd).
        config_path: siteforge.yml; without it settings come from the
            environment only.
        mock_mode: Build in-memory collaborators instead of GitHub/Vercel.
        settings: Already-loaded settings, skipping ``config_path``.
        orchestrator: Ready-made orchestrator; its settings win.

    Raises:
        ConfigError: ``config_path`` is given but unreadable or invalid.
    """
    from siteforge.ui.web.helpers import EXTENSION_KEY, register_error_handlers
    from siteforge.ui.web.routes_api import api_bp
    from siteforge.ui.web.routes_production import production_bp
    from siteforge.ui.web.routes_versions import versions_bp

    if orchestrator is not None:
        settings = orchestrator.settings
    elif settings is None:
        settings = load_settings(config_path) if config_path else settings_from_env()

    root = project_root or Path.cwd()
    app = Flask(__name__)
    app.config.update(
        PROJECT_ROOT=str(root),
        CONFIG_PATH=str(config_path) if config_path else None,
        MOCK_MODE=mock_mode,
        MAX_CONTENT_LENGTH=MAX_BODY_BYTES,
    )
    # Orchestrator is built on first request when not injected
    app.extensions[EXTENSION_KEY] = {"settings": settings, "orchestrator": orchestrator}
    register_error_handlers(app)

    for blueprint in (api_bp, production_bp, versions_bp):
        app.register_blueprint(blueprint, url_prefix=API_PREFIX)

    logger.info("API app ready for %s (root=%s, mock=%s)", settings.repository.full_name, root, mock_mode)
    return app


def run_server(app: Flask, host: str = "127.0.0.1", port: int = 8000, debug: bool = False) -> None:
    """Serve with the Flask development server (no reloader)."""
    logger.info("Deployment API listening on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
