"""Command-line interface for tagsync.

This module defines the CLI commands using the Click framework.

Commands:
- sync: Create missing tag index pages and report orphaned ones.
- list: Print every canonical tag with its document count.
- prune: Delete orphaned tag index pages, asking before each one.
- watch: Keep tag index pages in sync while content changes.

Exit codes: 0 on a clean run, 1 when documents were rejected or artifacts
could not be written, 2 on a configuration error (nothing is written).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
import questionary

from . import __version__
from .config import SyncConfig, load_config, resolve_config
from .errors import ArtifactWriteError, ConfigurationError, TagSyncError

if TYPE_CHECKING:
    from .pipeline import SyncReport

CONFIG_ERROR_EXIT = 2


def _sync_options(func):
    """Options shared by every command that resolves a SyncConfig."""
    options = [
        click.option(
            "--root",
            "content_dir",
            type=click.Path(path_type=Path),
            help="Content directory to scan (overrides tagsync.yaml content_dir)",
        ),
        click.option(
            "--artifacts",
            "artifacts_dir",
            type=click.Path(path_type=Path),
            help="Tag index directory (overrides tagsync.yaml artifacts_dir)",
        ),
        click.option(
            "--language-tags",
            help="Comma separated tags that keep their casing, e.g. 'F#,Python'",
        ),
        click.option(
            "--workers",
            type=int,
            help="Number of scanner threads (overrides tagsync.yaml workers)",
        ),
        click.option(
            "--config",
            "config_file",
            type=click.Path(path_type=Path),
            help="Config file to use instead of ./tagsync.yaml",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="tagsync")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """Keep a blog's tag index pages in sync with its posts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@_sync_options
@click.option("--dry-run", is_flag=True, help="Only report what would change")
def sync(dry_run: bool, **options):
    """Create missing tag index pages and report orphaned ones."""
    from .pipeline import run_sync

    try:
        config = _resolve(**options)
        report = run_sync(config, dry_run=dry_run)
    except ConfigurationError as exc:
        _config_failure(exc)
    _print_actions(report)
    _print_summary(report)
    if report.exit_code:
        raise SystemExit(report.exit_code)


@cli.command(name="list")
@_sync_options
def list_tags(**options):
    """Print every canonical tag with its document count."""
    from .pipeline import build_tag_index

    try:
        config = _resolve(**options)
        indexed = build_tag_index(config)
    except ConfigurationError as exc:
        _config_failure(exc)
    for tag, paths in indexed.index.canonical_tags().items():
        click.echo(f"{tag}\t{len(paths)}")
    _print_problems(indexed.warnings + indexed.index.conflicts())
    if indexed.warnings:
        raise SystemExit(1)


@cli.command()
@_sync_options
@click.option("--yes", is_flag=True, help="Delete every orphan without asking")
def prune(yes: bool, **options):
    """Delete orphaned tag index pages, asking before each one."""
    from .artifacts import remove_artifact
    from .pipeline import run_sync

    try:
        config = _resolve(**options)
        report = run_sync(config, dry_run=True)
    except ConfigurationError as exc:
        _config_failure(exc)

    if not report.orphaned:
        click.echo("No orphaned tag pages.")
        return

    failures: list[ArtifactWriteError] = []
    for tag in report.orphaned:
        artifact = report.inventory[tag]
        rel_path = _display_path(artifact.path, config.project_root)
        if not yes:
            answer = questionary.confirm(
                f"Delete {rel_path} (tag '{tag}' is not used by any post)?",
                default=False,
                style=_questionary_style(),
            ).ask()
            if answer is None:
                raise click.Abort()
            if not answer:
                continue
        try:
            remove_artifact(artifact.path, tag, config.artifacts_dir)
        except ArtifactWriteError as exc:
            failures.append(exc)
            continue
        click.echo(f"DELETE {tag}")
    _print_problems(failures)
    if failures:
        raise SystemExit(1)


@cli.command()
@_sync_options
def watch(**options):
    """Keep tag index pages in sync while content changes."""
    from .watcher import TagWatcher

    def on_report(report: SyncReport) -> None:
        _print_actions(report)
        _print_summary(report)

    try:
        config = _resolve(**options)
        click.echo(f"Watching {config.content_dir} (Ctrl+C to stop)")
        TagWatcher(config, on_report).start()
    except ConfigurationError as exc:
        _config_failure(exc)


def _resolve(
    content_dir: Path | None = None,
    artifacts_dir: Path | None = None,
    language_tags: str | None = None,
    workers: int | None = None,
    config_file: Path | None = None,
) -> SyncConfig:
    project_root = Path.cwd()
    raw = load_config(project_root, config_file)
    overrides = {
        "content_dir": content_dir,
        "artifacts_dir": artifacts_dir,
        "language_tags": language_tags,
        "workers": workers,
    }
    return resolve_config(project_root, raw, overrides)


def _config_failure(exc: ConfigurationError) -> NoReturn:
    click.echo(click.style("Configuration error:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        click.echo(click.style(f"  Path: {exc.source_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(CONFIG_ERROR_EXIT) from None


def _print_actions(report: SyncReport) -> None:
    """Print one line per action on stdout."""
    if report.dry_run:
        for line in report.plan.lines():
            click.echo(line)
        return
    for tag in report.created:
        click.echo(f"CREATE {tag}")
    for tag in report.orphaned:
        click.echo(f"ORPHAN {tag}")
    for failure in report.failed:
        click.echo(f"FAILED {failure.tag}")


def _print_summary(report: SyncReport) -> None:
    """Print the run summary and every problem on stderr."""
    if report.dry_run:
        created = f"{len(report.plan.to_create)} to create"
    else:
        created = f"{len(report.created)} created"
        if report.failed:
            created += f", {len(report.failed)} failed"
    lines = [
        f"Documents scanned: {report.documents_scanned}",
        f"Tags indexed: {report.tags_indexed}",
        f"Artifacts: {created}, {len(report.orphaned)} orphaned",
        f"Warnings: {len(report.warnings)}, conflicts: {len(report.conflicts)}",
    ]
    for line in lines:
        click.echo(line, err=True)
    _print_problems(report.warnings + report.conflicts + report.failed)


def _print_problems(problems: list[TagSyncError]) -> None:
    colors = {"ConflictError": "magenta", "ArtifactWriteError": "red"}
    for problem in sorted(problems, key=lambda p: p.sort_key):
        name = type(problem).__name__
        label = click.style(f"{name}:", fg=colors.get(name, "yellow"), bold=True)
        click.echo(f"  {label} {problem}", err=True)


def _display_path(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
