"""CLI entry point for pagediff."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pagediff.capture.pixel_diff import PillowDiffProvider
from pagediff.capture.playwright_capture import PlaywrightCaptureProvider
from pagediff.errors import PageDiffError
from pagediff.models.config import VIEWPORTS, PageDiffConfig, get_viewport
from pagediff.reporter.json_report import write_json_report
from pagediff.reporter.report import (
    format_report_json,
    format_report_minimal,
    format_report_text,
    format_session_summary,
)
from pagediff.runner import VisualRegressionRunner
from pagediff.sessions.retention import (
    enforce_retention_policy,
    format_retention_status,
    get_retention_status,
)
from pagediff.sessions.store import SessionStore

console = Console()

DEFAULT_CONFIG = "pagediff.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> PageDiffConfig:
    try:
        return PageDiffConfig.load(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {path}[/red]")
        console.print("Run 'pagediff init' to create a default config.")
        sys.exit(1)


def _make_runner(cfg: PageDiffConfig) -> VisualRegressionRunner:
    capture = PlaywrightCaptureProvider(
        full_page=cfg.full_page,
        wait_for_network_idle=cfg.wait_for_network_idle,
        timeout=cfg.timeout,
        selector=cfg.selector,
        wait_for=cfg.wait_for,
        storage_state=cfg.storage_state,
        headless=cfg.headless,
    )
    return VisualRegressionRunner(cfg, capture, PillowDiffProvider())


async def _run_with(runner: VisualRegressionRunner, method: str, *args):
    async with runner:
        return await getattr(runner, method)(*args)


def _sessions_table(sessions, title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="bold")
    table.add_column("Status")
    table.add_column("Viewport")
    table.add_column("Created")
    table.add_column("Name")
    table.add_column("Verdict")
    for s in sessions:
        verdict = s.analysis.verdict if s.analysis else ""
        table.add_row(s.id, s.status, s.viewport.name, f"{s.created_at:%Y-%m-%d %H:%M}", s.name, verdict)
    return table


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression sessions for web pages"""
    setup_logging(verbose)


@cli.command()
@click.option("--base-url", "-u", prompt="Base URL", help="Site to test, e.g. http://localhost:3000")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def init(base_url: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return
    cfg = PageDiffConfig(base_url=base_url)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nCapture a baseline with:")
    console.print("  [blue]pagediff start /[/blue]")


@cli.command()
@click.argument("path")
@click.option("--name", "-n", default=None, help="Session name (derived from the path by default)")
@click.option("--viewport", "viewport_name", default=None, type=click.Choice(sorted(VIEWPORTS)), help="Viewport preset")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def start(path: str, name: str | None, viewport_name: str | None, config: str) -> None:
    """Start a session by capturing a baseline of PATH."""
    cfg = _load_config(config)
    viewport = get_viewport(viewport_name) if viewport_name else None
    session = asyncio.run(_run_with(_make_runner(cfg), "start_session", path, name, viewport))
    console.print(f"[green]Session started:[/green] {session.id}")
    console.print(f"  URL: {session.url}")
    console.print(f"  Viewport: {session.viewport.name} ({session.viewport.width}x{session.viewport.height})")


@cli.command()
@click.argument("session_id", required=False)
@click.option("--format", "-f", "fmt", default="text", type=click.Choice(["text", "minimal", "json"]))
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Also write the JSON report to this file")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def check(session_id: str | None, fmt: str, output: str | None, config: str) -> None:
    """Compare the current page against the session baseline."""
    cfg = _load_config(config)
    try:
        report = asyncio.run(_run_with(_make_runner(cfg), "check", session_id))
    except (PageDiffError, FileNotFoundError) as e:
        console.print(str(e), style="red", markup=False)
        sys.exit(1)

    if fmt == "json":
        click.echo(format_report_json(report))
    elif fmt == "minimal":
        click.echo(format_report_minimal(report))
    else:
        console.print(format_report_text(report), markup=False)

    if output:
        path = write_json_report(report, Path(output))
        if fmt == "text":
            console.print(f"Report written to {path}", markup=False)

    if report.analysis.verdict in ("UNEXPECTED_CHANGE", "LAYOUT_BROKEN"):
        sys.exit(1)


@cli.command()
@click.argument("session_id", required=False)
@click.option("--recapture", is_flag=True, help="Capture a fresh baseline instead of promoting the last current screenshot")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def accept(session_id: str | None, recapture: bool, config: str) -> None:
    """Accept the current state as the new baseline."""
    cfg = _load_config(config)
    runner = _make_runner(cfg)
    try:
        if recapture:
            session = asyncio.run(_run_with(runner, "update_baseline", session_id))
        else:
            session = runner.accept(session_id)
    except (PageDiffError, FileNotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]Baseline updated:[/green] {session.id}")


@cli.command("list")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def list_cmd(config: str) -> None:
    """List all sessions, newest first."""
    cfg = _load_config(config)
    sessions = SessionStore(cfg.output_dir).list_sessions()
    if not sessions:
        console.print("[yellow]No sessions found[/yellow]")
        return
    for s in sessions:
        console.print(format_session_summary(s), markup=False)


@cli.command()
@click.argument("session_id")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def show(session_id: str, config: str) -> None:
    """Print a session record as JSON."""
    cfg = _load_config(config)
    session = SessionStore(cfg.output_dir).read(session_id)
    if session is None:
        console.print(f"[red]Session not found: {session_id}[/red]")
        sys.exit(1)
    click.echo(session.model_dump_json(indent=2))


@cli.command()
@click.option("--route", default=None, help="URL path substring")
@click.option("--url", default=None, help="URL substring")
@click.option("--status", default=None, type=click.Choice(["baseline", "compared", "pending"]))
@click.option("--name", default=None, help="Name substring (case-insensitive)")
@click.option("--viewport", default=None, help="Viewport name")
@click.option("--after", "created_after", default=None, type=click.DateTime(), help="Created on or after")
@click.option("--before", "created_before", default=None, type=click.DateTime(), help="Created on or before")
@click.option("--limit", default=50, type=int, help="Maximum results (1-100)")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def find(
    route: str | None, url: str | None, status: str | None, name: str | None, viewport: str | None,
    created_after: datetime | None, created_before: datetime | None, limit: int, config: str,
) -> None:
    """Find sessions matching all given filters."""
    cfg = _load_config(config)
    query = {
        "route": route, "url": url, "status": status, "name": name, "viewport": viewport,
        "created_after": created_after, "created_before": created_before, "limit": limit,
    }
    try:
        sessions = SessionStore(cfg.output_dir).find({k: v for k, v in query.items() if v is not None})
    except PageDiffError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(_sessions_table(sessions, f"{len(sessions)} session(s)"))


@cli.command()
@click.argument("route")
@click.option("--limit", default=10, type=int, help="Maximum results (1-100)")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def timeline(route: str, limit: int, config: str) -> None:
    """Show sessions for ROUTE, oldest first."""
    cfg = _load_config(config)
    sessions = SessionStore(cfg.output_dir).timeline(route, limit)
    console.print(_sessions_table(sessions, f"Timeline for {route}"))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def stats(as_json: bool, config: str) -> None:
    """Session counts by status, viewport and verdict."""
    cfg = _load_config(config)
    result = SessionStore(cfg.output_dir).stats()
    if as_json:
        click.echo(json.dumps(result.model_dump(), indent=2))
        return

    table = Table(title=f"Sessions ({result.total})")
    table.add_column("Group", style="bold")
    table.add_column("Key")
    table.add_column("Count")
    for group, counts in (
        ("status", result.by_status),
        ("viewport", result.by_viewport),
        ("verdict", result.by_verdict),
    ):
        for key, count in sorted(counts.items()):
            table.add_row(group, key, str(count))
    console.print(table)


@cli.command()
@click.argument("session_id")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def delete(session_id: str, config: str) -> None:
    """Delete a session and its screenshots."""
    cfg = _load_config(config)
    if SessionStore(cfg.output_dir).delete(session_id):
        console.print(f"[green]Deleted {session_id}[/green]")
    else:
        console.print(f"[red]Could not delete {session_id}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--older-than", default=None, help="Age cutoff such as 7d, 24h, 30m, 60s")
@click.option("--keep-last", default=0, type=int, help="Always keep the N newest sessions")
@click.option("--dry-run", is_flag=True, help="Report what would be deleted")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def clean(older_than: str | None, keep_last: int, dry_run: bool, config: str) -> None:
    """Delete old sessions."""
    cfg = _load_config(config)
    try:
        result = SessionStore(cfg.output_dir).clean(older_than=older_than, keep_last=keep_last, dry_run=dry_run)
    except PageDiffError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    verb = "Would delete" if dry_run else "Deleted"
    console.print(f"[green]{verb} {len(result.deleted)} session(s)[/green], kept {len(result.kept)}")
    for session_id in result.deleted:
        console.print(f"  - {session_id}")


@cli.command()
@click.option("--enforce", is_flag=True, help="Apply the configured retention policy")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def retention(enforce: bool, config: str) -> None:
    """Show or enforce the configured retention policy."""
    cfg = _load_config(config)
    store = SessionStore(cfg.output_dir)
    if enforce:
        result = enforce_retention_policy(store, cfg.retention)
        console.print(
            f"[green]Deleted {len(result.deleted)} session(s)[/green] "
            f"({result.total_before} -> {result.total_after}, {len(result.kept_failed)} failed kept)"
        )
        return
    console.print(format_retention_status(get_retention_status(store, cfg.retention)), markup=False)


if __name__ == "__main__":
    cli()
