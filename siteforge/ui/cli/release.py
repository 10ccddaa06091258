"""
CLI commands for releases — deploy, publish, bootstrap, versions, switch.

Thin wrappers over ``siteforge.core.use_cases.deploy``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from siteforge.core.models.deploy import DeployTarget


def _print_result(run, as_json: bool, show_files: bool = False) -> None:
    """Render a ReleaseRunResult and exit non-zero on failure."""
    if as_json:
        click.echo(json.dumps(run.to_dict(), indent=2))
        sys.exit(0 if run.success else 1)
        return

    if run.error:
        click.secho(f"❌ {run.error}", fg="red")
        sys.exit(1)

    result = run.result
    assert result is not None
    mode = " (dry run)" if result.dry_run else ""

    if result.success:
        click.secho(f"✅ {result.target} → {result.branch}{mode}", fg="green", bold=True)
    else:
        click.secho(
            f"❌ Failed during {result.failed_phase} ({result.error_kind}){mode}",
            fg="red", bold=True,
        )
        click.echo(f"   {result.error}")

    if result.stats:
        click.echo(
            f"   Files: {result.stats.get('retained', 0)} retained, "
            f"{len(result.would_exclude)} excluded by the production filter"
        )
    if show_files:
        for path in result.files:
            click.echo(f"     • {path}")
        for item in result.would_exclude:
            click.secho(f"     ✗ {item['path']}  ({item['reason']})", fg="yellow")

    if result.commit:
        state = "new commit" if result.commit.changed else "no changes"
        click.echo(f"   Commit: {result.commit.sha[:7]} ({state})")
    if result.deployment:
        click.echo(f"   Deployment: {result.deployment.deployment_id}  {result.deployment.url}")
    if result.project:
        click.echo(f"   Project: {result.project.project_id}  {result.project.url}")
    if result.version_number is not None:
        click.echo(f"   Version: v{result.version_number}")
    if run.document_saved:
        click.echo(f"   Recorded release in {run.document_path}")
    click.echo()

    if not result.success:
        sys.exit(1)


@click.group()
def release() -> None:
    """Releases — deploy to GitHub + Vercel, publish, versions."""


@release.command()
@click.option("--document", "document_path", type=click.Path(dir_okay=False), default=None,
              help="Website document (default: from siteforge.yml).")
@click.option("--target", type=click.Choice([t.value for t in DeployTarget]),
              default=DeployTarget.PRODUCTION.value, show_default=True)
@click.option("--branch", default=None, help="Override the target's branch.")
@click.option("--dry-run", is_flag=True, help="Generate and filter only.")
@click.option("--message", "-m", default=None, help="Commit message.")
@click.option("--no-sources", is_flag=True, help="Don't include the site checkout files.")
@click.option("--mock", is_flag=True, help="Use in-memory source control and hosting.")
@click.option("--files", "show_files", is_flag=True, help="List every file.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deploy(
    ctx: click.Context,
    document_path: str | None,
    target: str,
    branch: str | None,
    dry_run: bool,
    message: str | None,
    no_sources: bool,
    mock: bool,
    show_files: bool,
    as_json: bool,
) -> None:
    """Generate, filter, commit and publish the site."""
    from siteforge.core.use_cases.deploy import run_deploy

    run = run_deploy(
        config_path=ctx.obj.get("config_path"),
        document_path=Path(document_path) if document_path else None,
        target=DeployTarget(target),
        branch=branch,
        dry_run=dry_run,
        mock_mode=mock,
        message=message,
        include_sources=not no_sources,
    )
    _print_result(run, as_json, show_files=show_files or dry_run)


@release.command()
@click.option("--branch", default=None, help="Branch to publish (default: production).")
@click.option("--mock", is_flag=True, help="Use in-memory source control and hosting.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def publish(ctx: click.Context, branch: str | None, mock: bool, as_json: bool) -> None:
    """Redeploy the current branch head without regenerating."""
    from siteforge.core.use_cases.deploy import run_publish

    run = run_publish(config_path=ctx.obj.get("config_path"), branch=branch, mock_mode=mock)
    _print_result(run, as_json)


@release.command()
@click.option("--document", "document_path", type=click.Path(dir_okay=False), default=None,
              help="Website document (default: from siteforge.yml).")
@click.option("--domain", "custom_domain", default=None, help="Custom domain to attach.")
@click.option("--mock", is_flag=True, help="Use in-memory source control and hosting.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def bootstrap(
    ctx: click.Context,
    document_path: str | None,
    custom_domain: str | None,
    mock: bool,
    as_json: bool,
) -> None:
    """Provision a hosting project for a new site."""
    from siteforge.core.use_cases.deploy import run_bootstrap

    run = run_bootstrap(
        config_path=ctx.obj.get("config_path"),
        document_path=Path(document_path) if document_path else None,
        custom_domain=custom_domain,
        mock_mode=mock,
    )
    _print_result(run, as_json)


@release.command()
@click.option("--branch", default=None, help="Branch (default: production).")
@click.option("-n", "per_page", default=None, type=int, help="Number of versions (max 100).")
@click.option("--mock", is_flag=True, help="Use in-memory source control.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def versions(
    ctx: click.Context,
    branch: str | None,
    per_page: int | None,
    mock: bool,
    as_json: bool,
) -> None:
    """List versions (recent commits) on a branch."""
    from siteforge.core.use_cases.deploy import run_versions

    result = run_versions(
        config_path=ctx.obj.get("config_path"),
        branch=branch,
        per_page=per_page,
        mock_mode=mock,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.error is None else 1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not result.versions:
        click.secho(f"No versions on {result.branch}.", fg="yellow")
        return

    click.secho(f"🏷  {result.branch}", fg="cyan", bold=True)
    for v in result.versions:
        click.secho(f"  v{v.version_number:<4}", fg="green", nl=False)
        click.secho(f"{v.short_identifier}  ", fg="yellow", nl=False)
        first_line = v.message.splitlines()[0] if v.message else ""
        click.echo(f"{first_line[:60]}")
        if v.author or v.timestamp:
            click.echo(f"        {v.author} — {v.timestamp[:10]}")
    click.echo()


@release.command()
@click.option("--version", "version_number", default=None, type=int, help="Version number to switch to.")
@click.option("--commit", "commit_sha", default=None, help="Commit sha (or a 7+ character prefix).")
@click.option("--branch", default=None, help="Branch (default: production).")
@click.option("--write", is_flag=True, help="Replace the document file with that version.")
@click.option("--document", "document_path", type=click.Path(dir_okay=False), default=None,
              help="Document file to write (default: from siteforge.yml).")
@click.option("--mock", is_flag=True, help="Use in-memory source control.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def switch(
    ctx: click.Context,
    version_number: int | None,
    commit_sha: str | None,
    branch: str | None,
    write: bool,
    document_path: str | None,
    mock: bool,
    as_json: bool,
) -> None:
    """Load the website document of an earlier version."""
    from siteforge.core.use_cases.deploy import run_switch

    if version_number is None and not commit_sha:
        raise click.UsageError("Pass --version or --commit.")

    result = run_switch(
        config_path=ctx.obj.get("config_path"),
        version_number=version_number,
        commit_sha=commit_sha,
        branch=branch,
        write=write,
        document_path=Path(document_path) if document_path else None,
        mock_mode=mock,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.error is None else 1)
        return

    if result.error or result.snapshot is None:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    v = result.snapshot.version
    first_line = v.message.splitlines()[0] if v.message else ""
    click.secho(f"⏪ v{v.version_number}  {v.short_identifier}  {first_line[:60]}", fg="cyan", bold=True)
    click.echo(f"   {result.snapshot.document.page_count()} pages on {result.branch}")
    if result.document_saved:
        click.echo(f"   Restored into {result.document_path}")
    else:
        click.echo("   Not written (pass --write to restore it)")
    click.echo()
