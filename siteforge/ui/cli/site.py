"""
CLI commands for working with a website document locally.

Thin wrappers over the page file generator and the production filter.
Nothing here talks to GitHub or Vercel.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

logger = logging.getLogger(__name__)


def _resolve_document(ctx: click.Context, document: str | None) -> Path:
    """Explicit path, else the config's ``document``, else ./website.json."""
    if document:
        return Path(document)

    from siteforge.core.config.loader import ConfigError, find_config_file, load_settings
    from siteforge.core.persistence.document_store import DEFAULT_DOCUMENT_FILE

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()
    if config_path is not None:
        try:
            settings = load_settings(config_path)
            return config_path.parent.resolve() / settings.document
        except ConfigError as e:
            logger.debug("Ignoring unreadable %s: %s", config_path, e)
    return Path.cwd() / DEFAULT_DOCUMENT_FILE


def _load(ctx: click.Context, document: str | None):
    from siteforge.core.persistence.document_store import DocumentError, load_document

    path = _resolve_document(ctx, document)
    try:
        return load_document(path)
    except DocumentError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@click.group()
def site() -> None:
    """Website document — generate page files, validate, classify paths."""


# ── Generate ────────────────────────────────────────────────────


@site.command()
@click.argument("document", required=False)
@click.option("--out", "out_dir", type=click.Path(file_okay=False), default=None,
              help="Write the files under this directory.")
@click.option("--seo", "seo_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="JSON file of per-page SEO overrides.")
@click.option("--show", is_flag=True, help="Print file contents.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def generate(
    ctx: click.Context,
    document: str | None,
    out_dir: str | None,
    seo_path: str | None,
    show: bool,
    as_json: bool,
) -> None:
    """Render the page files for a website document."""
    from pydantic import TypeAdapter, ValidationError

    from siteforge.core.models.website import SeoMetadata
    from siteforge.core.services.generators.page_files import GenerationError
    from siteforge.core.services.generators.page_files import generate as generate_files
    from siteforge.core.services.source_collect import write_generated_files

    doc = _load(ctx, document)

    overrides: dict[str, SeoMetadata] = {}
    if seo_path:
        try:
            raw = json.loads(Path(seo_path).read_text(encoding="utf-8"))
            overrides = TypeAdapter(dict[str, SeoMetadata]).validate_python(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            click.secho(f"❌ Invalid SEO overrides: {e}", fg="red")
            sys.exit(1)

    try:
        files = generate_files(doc, overrides)
    except GenerationError as e:
        if as_json:
            click.echo(json.dumps({
                "success": False,
                "error": str(e),
                "page": e.page_key,
                "componentIndex": e.component_index,
            }, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    written: list[Path] = []
    if out_dir:
        written = write_generated_files(Path(out_dir), files)

    if as_json:
        click.echo(json.dumps({
            "success": True,
            "files": [f.model_dump() if show else f.path for f in files],
            "written": [str(p) for p in written],
        }, indent=2))
        return

    click.secho(f"📄 {len(files)} files for {doc.page_count()} pages", fg="cyan", bold=True)
    for f in files:
        click.echo(f"   • {f.path}")
        if show:
            click.echo()
            click.echo(f.content)
    if written:
        click.secho(f"\n✅ Wrote {len(written)} files to {out_dir}", fg="green")
    click.echo()


# ── Validate ────────────────────────────────────────────────────


@site.command()
@click.argument("document", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, document: str | None, as_json: bool) -> None:
    """Check every component against the design registry."""
    from siteforge.core.services.generators.page_files import validate_document

    report = validate_document(_load(ctx, document))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.valid else 1)
        return

    if report.valid:
        click.secho("✅ Document is valid", fg="green", bold=True)
        click.echo(f"   Designs used: {', '.join(report.used_types) or 'none'}")
    else:
        click.secho("❌ Document problems:", fg="red", bold=True)
        for problem in report.problems:
            click.echo(f"   • {problem}")
        if report.missing_types:
            click.echo(f"   Unregistered designs: {', '.join(report.missing_types)}")
        click.echo()
        sys.exit(1)
    click.echo()


# ── Classify ────────────────────────────────────────────────────


@site.command()
@click.argument("paths", nargs=-1)
@click.option("--dir", "root", type=click.Path(exists=True, file_okay=False), default=None,
              help="Classify every file in a site checkout.")
@click.option("--excluded-only", is_flag=True, help="Only list excluded files.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def classify(paths: tuple[str, ...], root: str | None, excluded_only: bool, as_json: bool) -> None:
    """Show what the production filter ships and what it drops."""
    from siteforge.core.models.template import GeneratedFile
    from siteforge.core.services.production_filter import classify_batch
    from siteforge.core.services.source_collect import collect_project_files

    files = [GeneratedFile(path=p, content="") for p in paths]
    if root:
        files.extend(collect_project_files(Path(root)))
    if not files:
        click.secho("Nothing to classify: pass paths or --dir.", fg="yellow")
        sys.exit(1)

    batch = classify_batch(files)

    if as_json:
        click.echo(json.dumps(batch.to_dict(), indent=2))
        return

    stats = batch.stats
    click.secho(
        f"🔎 {stats['total']} files: {stats['included']} included, {stats['excluded']} excluded",
        fg="cyan", bold=True,
    )
    if not excluded_only:
        for f in batch.included:
            click.secho("   ✓ ", fg="green", nl=False)
            click.echo(f.path)
    for item in batch.excluded_reasons():
        click.secho("   ✗ ", fg="red", nl=False)
        click.echo(f"{item['path']}  ({item['reason']})")
    click.echo()
