"""Command-line interface for Inkwell.

This module defines the CLI commands using the Click framework.

Commands:
- build: Run the pipeline and report diagnostics.
- categories: List categories and the documents filed under them.
- watch: Re-run the pipeline whenever content or layouts change.
"""

from __future__ import annotations

import time
from pathlib import Path

import click

from . import __version__
from .diagnostics import Diagnostic, PipelineError, Severity
from .log import configure_logging

_SEVERITY_COLORS = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
    Severity.FATAL: "red",
}


@click.group()
@click.version_option(version=__version__, prog_name="inkwell")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
def cli(verbose: bool, log_json: bool):
    """Inkwell content pipeline."""
    configure_logging(verbose=verbose, log_json=log_json)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--report",
    "report_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the site model and diagnostics as JSON to this file",
)
def build(drafts: bool, report_path: Path | None):
    """Run the pipeline over the project in the current directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        model = build_site(project_root, include_drafts=drafts or None)
    except PipelineError as exc:
        _fail(exc, project_root)
    for diagnostic in model.report():
        _echo_diagnostic(diagnostic)
    if report_path is not None:
        report_path.write_text(model.to_json() + "\n", encoding="utf-8")
    click.echo(
        f"Processed {len(model.documents)} documents "
        f"({len(model.failed)} failed, {len(model.drafts)} drafts, "
        f"{model.count(Severity.WARNING)} warnings)"
    )
    if model.failed:
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def categories(drafts: bool):
    """List categories and the permalinks filed under each."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        model = build_site(project_root, include_drafts=drafts or None)
    except PipelineError as exc:
        _fail(exc, project_root)
    if not model.categories:
        click.echo("No categories.")
        return
    for name, documents in model.categories.items():
        click.echo(click.style(f"{name} ({len(documents)})", bold=True))
        for document in documents:
            click.echo(f"  {document.publish_date.date().isoformat()}  {document.permalink}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def watch(drafts: bool):
    """Re-run the pipeline whenever content or layouts change."""
    project_root = Path.cwd()
    from .watcher import ContentWatcher

    def on_build(model):
        for diagnostic in model.report():
            _echo_diagnostic(diagnostic)
        click.echo(f"Rebuilt {len(model.documents)} documents ({len(model.failed)} failed)")

    def on_error(exc: Exception):
        if isinstance(exc, PipelineError):
            _echo_diagnostic(exc.to_diagnostic())
            return
        click.echo(click.style(f"Build failed: {exc}", fg="red", bold=True), err=True)

    watcher = ContentWatcher(project_root, on_build, on_error, include_drafts=drafts or None)
    watcher.rebuild(force=True)
    watcher.start()
    click.echo(f"Watching {project_root} for changes (Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()


def _echo_diagnostic(diagnostic: Diagnostic) -> None:
    color = _SEVERITY_COLORS[diagnostic.severity]
    label = click.style(f"{diagnostic.severity.value:<7}", fg=color, bold=True)
    where = diagnostic.document_path.as_posix() if diagnostic.document_path else "-"
    click.echo(f"{label} {where}: {diagnostic.code.value}: {diagnostic.message}", err=True)


def _fail(exc: PipelineError, project_root: Path) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        try:
            shown = exc.source_path.relative_to(project_root)
        except ValueError:
            shown = exc.source_path
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(1) from None


def main():
    """Entry point for the CLI application."""
    cli()
