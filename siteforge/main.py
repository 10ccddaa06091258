"""
siteforge command line.

    siteforge config check
    siteforge site generate website.json --out build/
    siteforge release deploy --target production
    siteforge web --mock
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from siteforge import __version__
from siteforge.core.observability.logging_config import setup_from_env

# Most verbose flag wins
_FLAG_LEVELS = (("debug", "DEBUG"), ("verbose", "INFO"), ("quiet", "ERROR"))


@click.group()
@click.version_option(version=__version__, prog_name="siteforge")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline progress (INFO).")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Log everything, including HTTP calls.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="siteforge.yml to use instead of searching upward from here.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool, config_path: Path | None) -> None:
    """SiteForge: generate, filter and deploy editor-built websites."""
    flags = {"debug": debug, "verbose": verbose, "quiet": quiet}
    level = next((lvl for name, lvl in _FLAG_LEVELS if flags[name]), None)
    setup_from_env(level, quiet_third_party=not debug)

    ctx.ensure_object(dict)
    ctx.obj.update(flags, config_path=config_path)


@cli.group()
def config() -> None:
    """Inspect siteforge.yml."""


@config.command("check")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate siteforge.yml and the deploy environment."""
    from siteforge.core.use_cases.config_check import check_config

    report = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)
    sys.exit(0 if report.valid else 1)


def _print_report(report) -> None:  # type: ignore[no-untyped-def]
    if report.settings is not None and report.valid:
        s = report.settings
        click.secho(f"✅ Configuration is valid ({report.config_path})", fg="green", bold=True)
        click.echo(f"   Repository  {s.repository.full_name}")
        click.echo(f"   Preview     {s.branches.preview}")
        click.echo(f"   Production  {s.branches.production}")
        click.echo(f"   Document    {s.document}")
    for message in report.errors:
        click.secho(f"❌ {message}", fg="red")
    for message in report.warnings:
        click.secho(f"⚠️  {message}", fg="yellow")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", "-p", default=8000, show_default=True, type=int, help="Port to listen on.")
@click.option("--mock", is_flag=True, help="Serve against in-memory GitHub and Vercel doubles.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int, mock: bool) -> None:
    """Serve the deployment API the editor talks to."""
    from siteforge.core.config.loader import find_config_file, project_root
    from siteforge.ui.web.server import create_app, run_server

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()
    root = project_root(config_path)
    app = create_app(project_root=root, config_path=config_path, mock_mode=mock)

    click.secho(f"⚡ siteforge API on http://{host}:{port}/api", bold=True)
    click.echo(f"   project {root}")
    if mock:
        click.secho("   mock collaborators: nothing leaves this process", fg="yellow")

    run_server(app, host=host, port=port, debug=ctx.obj.get("debug", False))


# ── Sub-command groups (siteforge/ui/cli/) ──────────────────────

from siteforge.ui.cli.release import release  # noqa: E402
from siteforge.ui.cli.site import site  # noqa: E402

cli.add_command(site)
cli.add_command(release)


if __name__ == "__main__":
    cli()
