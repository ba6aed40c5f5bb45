"""CLI interface for Scrub."""

from __future__ import annotations

import json
import logging
import os
import signal
import sys
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import click
from click.core import ParameterSource

from scrub.catalog import load_targets, scan_environ, targets_by_category
from scrub.core.aggregate import group_by_category, total_item_count, total_size_all
from scrub.core.dryrun import DryRunLedger
from scrub.core.executor import delete_items, safe_delete
from scrub.core.installers import (
    InstallerLocation,
    default_installer_locations,
    installers_to_results,
    scan_installers,
)
from scrub.core.paths import expand_env
from scrub.core.projects import (
    DEFAULT_MAX_DEPTH,
    RECENT_DAYS,
    artifacts_to_results,
    default_project_paths,
    load_project_paths,
    save_project_paths,
    scan_projects,
)
from scrub.core.scanner import scan_all
from scrub.core.whitelist import Whitelist
from scrub.errors import DeletionBlocked, PatternError
from scrub.models.clean_target import CATEGORIES, CleanTarget
from scrub.models.scan_result import ScanResult
from scrub.oplog import OperationLog
from scrub.privileges import is_elevated
from scrub.settings import Settings
from scrub.utils import CancelToken, format_elapsed, format_size, parse_size

log = logging.getLogger(__name__)


class SizeParamType(click.ParamType):
    """Human size such as ``50MB`` converted to bytes."""

    name = "size"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return parse_size(value)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


SIZE = SizeParamType()

category_option = click.option(
    "--category", "-c", "categories", multiple=True,
    type=click.Choice(CATEGORIES), help="Limit to a category (repeatable)",
)
json_option = click.option("--json", "as_json", is_flag=True, help="Output as JSON")
yes_option = click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
dry_run_option = click.option("--dry-run", is_flag=True, help="Show what would be cleaned without doing it")
export_option = click.option(
    "--export", "export_path", type=click.Path(dir_okay=False, path_type=Path),
    default=None, help="Write the dry-run report to this file",
)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _load_targets(settings: Settings, categories: tuple[str, ...]) -> list[CleanTarget]:
    try:
        targets = load_targets(settings.targets_file)
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"Failed to load target catalog: {exc}") from exc
    return targets_by_category(targets, set(categories))


def _load_whitelist(settings: Settings, environ: dict[str, str] | None = None) -> Whitelist | None:
    try:
        return Whitelist.load(settings.whitelist_file, environ=environ or scan_environ())
    except OSError as exc:
        click.echo(click.style(f"  ! Could not load whitelist: {exc}", fg="yellow"), err=True)
        return None


@contextmanager
def _cancel_on_interrupt() -> Iterator[CancelToken]:
    """Turn Ctrl-C into a cooperative cancel for the duration of the block."""
    cancel = CancelToken()

    def _handler(signum, frame) -> None:
        cancel.cancel()

    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _result_to_dict(result: ScanResult) -> dict:
    return {
        "target": result.category,
        "total_bytes": result.total_size,
        "item_count": result.item_count,
        "items": [
            {
                "path": item.path,
                "size_bytes": item.size_bytes,
                "category": item.category,
                "description": item.description,
            }
            for item in result.items
        ],
    }


def _run_scan(
    settings: Settings, categories: tuple[str, ...], as_json: bool
) -> tuple[list[ScanResult], Whitelist | None]:
    targets = _load_targets(settings, categories)
    environ = scan_environ()
    whitelist = _load_whitelist(settings, environ)
    elevated = is_elevated()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {len(targets)} targets...\n")
        if not elevated and any(t.requires_elevated_privilege for t in targets):
            click.echo(click.style("  ! Not running as root — system targets will be skipped\n", fg="yellow"))

    def on_progress(name: str, status: str) -> None:
        if not as_json and status == "error":
            click.echo(f"  {click.style('✗', fg='red')} {name:35s} — error during scan")

    started = time.monotonic()
    with _cancel_on_interrupt() as cancel:
        results = scan_all(
            targets, whitelist, elevated,
            cancel=cancel, on_progress=on_progress, environ=environ,
        )
    if cancel.cancelled and not as_json:
        click.echo(click.style("  Scan interrupted, showing partial results", fg="yellow"))
    log.info("Scan finished in %s", format_elapsed(time.monotonic() - started))
    return results, whitelist


def _print_results(results: list[ScanResult]) -> None:
    for category, members in group_by_category(results).items():
        click.echo(f"  {click.style(category.upper(), fg='blue', bold=True)}")
        for result in members:
            click.echo(
                f"    {click.style('✓', fg='green')} {result.category:33s} — "
                f"{click.style(format_size(result.total_size), fg='green', bold=True)} "
                f"({result.item_count:,} items)"
            )
    click.echo(
        f"\nTotal reclaimable: {click.style(format_size(total_size_all(results)), fg='green', bold=True)} "
        f"in {total_item_count(results):,} items\n"
    )


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
    default=None, help="Path to config.json",
)
@click.pass_context
def main(ctx: click.Context, verbose: int, config_path: Path | None) -> None:
    """Scrub: safe cleanup of caches, temp files and build clutter."""
    settings = Settings(config_path)
    if settings.debug_mode and verbose < 2:
        verbose = 2
    _setup_logging(verbose)
    ctx.obj = settings


# ── targets ──────────────────────────────────────────────────────────────

@main.command("targets")
@category_option
@json_option
@click.pass_obj
def targets_cmd(settings: Settings, categories: tuple[str, ...], as_json: bool) -> None:
    """List configured clean targets."""
    targets = _load_targets(settings, categories)

    if as_json:
        click.echo(json.dumps([t.to_dict() for t in targets], indent=2))
        return

    if not targets:
        click.echo("No targets configured.")
        return

    for target in targets:
        root_tag = click.style(" [requires root]", fg="yellow") if target.requires_elevated_privilege else ""
        risk_tag = ""
        if target.risk_level == "medium":
            risk_tag = click.style(" [medium risk]", fg="yellow")
        elif target.risk_level == "high":
            risk_tag = click.style(" [high risk]", fg="red")
        click.echo(f"  {click.style(target.name, fg='cyan', bold=True):30s}  {target.category:8s}{root_tag}{risk_tag}")
        click.echo(f"    {target.description}")


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@category_option
@json_option
@click.pass_obj
def scan(settings: Settings, categories: tuple[str, ...], as_json: bool) -> None:
    """Scan for cleanable files (preview only, never deletes)."""
    results, _whitelist = _run_scan(settings, categories, as_json)

    if as_json:
        click.echo(json.dumps([_result_to_dict(r) for r in results], indent=2))
        return

    if not results:
        click.echo("Nothing to clean.")
        return
    _print_results(results)


# ── clean ────────────────────────────────────────────────────────────────

def _effective_dry_run(settings: Settings, dry_run: bool) -> bool:
    if click.get_current_context().get_parameter_source("dry_run") is ParameterSource.DEFAULT:
        return settings.dry_run_mode
    return dry_run


def _review_and_delete(
    settings: Settings,
    results: list[ScanResult],
    whitelist: Whitelist | None,
    *,
    command: str,
    dry_run: bool,
    yes: bool,
    export_path: Path | None,
    as_json: bool,
) -> None:
    """Preview *results*, confirm, then run them through the batch executor."""
    if not results:
        if as_json:
            click.echo(json.dumps({"status": "nothing_to_clean", "results": []}))
        else:
            click.echo("Nothing to clean.")
        return

    ledger = DryRunLedger.from_results(results)

    if dry_run:
        report = export_path or settings.export_file
        _export(ledger, report)
        if as_json:
            data = [
                {"target": r.category, "would_free_bytes": r.total_size, "item_count": r.item_count}
                for r in results
            ]
            click.echo(json.dumps({"status": "dry_run", "report": str(report), "results": data}, indent=2))
        else:
            ledger.print_summary()
            click.echo(f"  Report written to {report}\n")
        return

    if not as_json:
        _print_results(results)
        if export_path is not None:
            _export(ledger, export_path)

    if not yes and not as_json:
        if not click.confirm(f"Proceed to free {format_size(ledger.total_size())}?", default=False):
            click.echo("Aborted.")
            return

    if not as_json:
        click.echo(f"\n{click.style('🧹', bold=True)} Cleaning...\n")

    items = [item for r in results for item in r.items]
    with OperationLog(settings.oplog_file) as oplog, _cancel_on_interrupt() as cancel:
        oplog.log_session(command)
        outcome = delete_items(items, False, whitelist=whitelist, cancel=cancel, oplog=oplog)
        oplog.log_summary(outcome.bytes_freed, outcome.items_deleted, outcome.skipped)

    if as_json:
        click.echo(json.dumps({
            "status": "cancelled" if outcome.cancelled else "cleaned",
            "freed_bytes": outcome.bytes_freed,
            "items_deleted": outcome.items_deleted,
            "error_count": outcome.error_count,
            "blocked_count": outcome.blocked_count,
            "whitelisted_count": outcome.whitelisted_count,
            "last_error": str(outcome.last_error) if outcome.last_error else None,
        }, indent=2))
        return

    click.echo(
        f"  {click.style('✓', fg='green')} Freed "
        f"{click.style(format_size(outcome.bytes_freed), fg='green', bold=True)} "
        f"across {outcome.items_deleted:,} items"
    )
    if outcome.error_count:
        click.echo(click.style(f"  ! {outcome.error_count} items skipped (locked or access denied)", fg="yellow"))
    if outcome.blocked_count:
        click.echo(click.style(f"  ! {outcome.blocked_count} items refused by the safety guard", fg="red"))
    if outcome.whitelisted_count:
        click.echo(f"  · {outcome.whitelisted_count} items kept by the whitelist")
    if outcome.last_error is not None and settings.debug_mode:
        click.echo(f"  Last error: {outcome.last_error}")
    if outcome.cancelled:
        click.echo(click.style("  Cleaning interrupted", fg="yellow"))
    click.echo()


def _export(ledger: DryRunLedger, path: Path) -> None:
    try:
        ledger.export_to_file(path)
    except OSError as exc:
        raise click.ClickException(f"Cannot write report: {exc}") from exc


@main.command()
@category_option
@yes_option
@dry_run_option
@export_option
@json_option
@click.pass_obj
def clean(
    settings: Settings,
    categories: tuple[str, ...],
    yes: bool,
    dry_run: bool,
    export_path: Path | None,
    as_json: bool,
) -> None:
    """Scan and clean the selected categories."""
    dry_run = _effective_dry_run(settings, dry_run)
    results, whitelist = _run_scan(settings, categories, as_json)
    _review_and_delete(
        settings, results, whitelist,
        command="clean", dry_run=dry_run, yes=yes, export_path=export_path, as_json=as_json,
    )


# ── purge ────────────────────────────────────────────────────────────────

def _project_roots(settings: Settings, explicit: tuple[str, ...]) -> list[str]:
    if explicit:
        return list(explicit)
    try:
        configured = load_project_paths(settings.project_paths_file)
    except OSError as exc:
        raise click.ClickException(f"Cannot read project paths: {exc}") from exc
    return configured or default_project_paths(scan_environ())


@main.command()
@click.option(
    "--path", "-p", "paths", multiple=True,
    help="Project folder to search (repeatable; overrides configured folders)",
)
@click.option(
    "--min-age", type=click.IntRange(min=0), default=RECENT_DAYS, show_default=True,
    help="Skip artifacts modified within this many days",
)
@click.option("--min-size", type=SIZE, default=0, help="Skip artifacts smaller than this (e.g. 50MB)")
@click.option(
    "--max-depth", type=click.IntRange(min=0), default=DEFAULT_MAX_DEPTH, show_default=True,
    help="How many folder levels below each project folder to search",
)
@yes_option
@dry_run_option
@export_option
@json_option
@click.pass_obj
def purge(
    settings: Settings,
    paths: tuple[str, ...],
    min_age: int,
    min_size: int,
    max_depth: int,
    yes: bool,
    dry_run: bool,
    export_path: Path | None,
    as_json: bool,
) -> None:
    """Remove build artifacts (node_modules, target, .venv ...) from projects."""
    dry_run = _effective_dry_run(settings, dry_run)
    environ = scan_environ()
    whitelist = _load_whitelist(settings, environ)
    roots = _project_roots(settings, paths)

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Searching {len(roots)} project folders...\n")
    with _cancel_on_interrupt() as cancel:
        artifacts = scan_projects(
            roots, max_depth=max_depth, whitelist=whitelist, cancel=cancel, environ=environ,
        )
    results = artifacts_to_results(artifacts, min_size=min_size, min_age_days=min_age)
    _review_and_delete(
        settings, results, whitelist,
        command="purge", dry_run=dry_run, yes=yes, export_path=export_path, as_json=as_json,
    )


@main.group()
def projects() -> None:
    """Manage the folders searched by purge."""


@projects.command("list")
@click.pass_obj
def projects_list(settings: Settings) -> None:
    """Show configured project folders (defaults when none are set)."""
    try:
        configured = load_project_paths(settings.project_paths_file)
    except OSError as exc:
        raise click.ClickException(f"Cannot read project paths: {exc}") from exc
    if not configured:
        click.echo("  No project folders configured, using defaults:\n")
        configured = default_project_paths(scan_environ())
    for root in configured:
        click.echo(f"  {root}")


@projects.command("add")
@click.argument("path")
@click.pass_obj
def projects_add(settings: Settings, path: str) -> None:
    """Search PATH for build artifacts."""
    file = settings.project_paths_file
    try:
        roots = load_project_paths(file)
        if path in roots:
            raise click.ClickException(f"project folder already configured: {path}")
        save_project_paths(file, [*roots, path])
    except OSError as exc:
        raise click.ClickException(f"Cannot save project paths: {exc}") from exc
    click.echo(f"  {click.style('✓', fg='green')} Added {path}")


@projects.command("remove")
@click.argument("path")
@click.pass_obj
def projects_remove(settings: Settings, path: str) -> None:
    """Stop searching PATH."""
    file = settings.project_paths_file
    try:
        roots = load_project_paths(file)
        if path not in roots:
            raise click.ClickException(f"project folder not configured: {path}")
        save_project_paths(file, [r for r in roots if r != path])
    except OSError as exc:
        raise click.ClickException(f"Cannot save project paths: {exc}") from exc
    click.echo(f"  {click.style('✓', fg='green')} Removed {path}")


# ── installers ───────────────────────────────────────────────────────────

def _custom_location(raw: str, environ: dict[str, str]) -> InstallerLocation:
    path = os.path.normpath(expand_env(raw, environ))
    return InstallerLocation(path, os.path.basename(path) or path)


@main.command()
@click.option(
    "--path", "-p", "paths", multiple=True,
    help="Folder to search (repeatable; overrides Downloads, Desktop and temp)",
)
@click.option("--min-age", type=click.IntRange(min=0), default=0, help="Only files older than this many days")
@click.option("--min-size", type=SIZE, default=0, help="Only files at least this large (e.g. 10MB)")
@yes_option
@dry_run_option
@export_option
@json_option
@click.pass_obj
def installers(
    settings: Settings,
    paths: tuple[str, ...],
    min_age: int,
    min_size: int,
    yes: bool,
    dry_run: bool,
    export_path: Path | None,
    as_json: bool,
) -> None:
    """Remove leftover installers and large archives from Downloads, Desktop and temp."""
    dry_run = _effective_dry_run(settings, dry_run)
    environ = scan_environ()
    whitelist = _load_whitelist(settings, environ)
    if paths:
        locations = [_custom_location(p, environ) for p in paths]
    else:
        locations = default_installer_locations(environ)
    files = scan_installers(
        locations,
        min_age_days=min_age, min_size=min_size, whitelist=whitelist,
    )
    _review_and_delete(
        settings, installers_to_results(files), whitelist,
        command="installers", dry_run=dry_run, yes=yes, export_path=export_path, as_json=as_json,
    )


# ── delete ───────────────────────────────────────────────────────────────

@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Report sizes without deleting")
@click.pass_obj
def delete(settings: Settings, paths: tuple[str, ...], dry_run: bool) -> None:
    """Delete individual paths through the safety guard."""
    whitelist = _load_whitelist(settings)
    failed = False
    with OperationLog(settings.oplog_file) as oplog:
        oplog.log_session("delete")
        for raw in paths:
            path = str(Path(raw).expanduser().absolute())
            if whitelist is not None and whitelist.is_whitelisted(path):
                click.echo(f"  · {path} — whitelisted, kept")
                continue
            try:
                freed = safe_delete(path, dry_run)
            except DeletionBlocked as exc:
                failed = True
                click.echo(click.style(f"  ✗ refused: {exc}", fg="red"), err=True)
                oplog.log("DELETE", path, 0, exc)
                continue
            except OSError as exc:
                failed = True
                click.echo(click.style(f"  ✗ {path}: {exc}", fg="red"), err=True)
                oplog.log("DELETE", path, 0, exc)
                continue
            verb = "would free" if dry_run else "freed"
            click.echo(f"  {click.style('✓', fg='green')} {path} — {verb} {format_size(freed)}")
            oplog.log("DRY_RUN" if dry_run else "DELETE", path, freed)
    if failed:
        sys.exit(1)


# ── whitelist ────────────────────────────────────────────────────────────

@main.group()
def whitelist() -> None:
    """Manage paths that must never be cleaned."""


@whitelist.command("list")
@click.pass_obj
def whitelist_list(settings: Settings) -> None:
    """Show all whitelist patterns."""
    wl = _require_whitelist(settings)
    patterns = wl.list()
    if not patterns:
        click.echo("Whitelist is empty.")
        return
    click.echo(f"  {wl.path}\n")
    for pattern in patterns:
        click.echo(f"  {pattern}")


@whitelist.command("add")
@click.argument("pattern")
@click.pass_obj
def whitelist_add(settings: Settings, pattern: str) -> None:
    """Protect PATTERN from cleanup."""
    wl = _require_whitelist(settings)
    try:
        wl.add(pattern)
        wl.save()
    except PatternError as exc:
        raise click.ClickException(str(exc)) from exc
    except OSError as exc:
        raise click.ClickException(f"Cannot save whitelist: {exc}") from exc
    click.echo(f"  {click.style('✓', fg='green')} Added {pattern}")


@whitelist.command("remove")
@click.argument("pattern")
@click.pass_obj
def whitelist_remove(settings: Settings, pattern: str) -> None:
    """Stop protecting PATTERN."""
    wl = _require_whitelist(settings)
    try:
        wl.remove(pattern)
        wl.save()
    except PatternError as exc:
        raise click.ClickException(str(exc)) from exc
    except OSError as exc:
        raise click.ClickException(f"Cannot save whitelist: {exc}") from exc
    click.echo(f"  {click.style('✓', fg='green')} Removed {pattern}")


def _require_whitelist(settings: Settings) -> Whitelist:
    try:
        return Whitelist.load(settings.whitelist_file, environ=scan_environ())
    except OSError as exc:
        raise click.ClickException(f"Cannot load whitelist: {exc}") from exc
