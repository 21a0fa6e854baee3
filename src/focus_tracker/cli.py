"""Command-line interface for the focus tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import TrackerSettings
from .paths import get_db_path, get_log_path

app = typer.Typer(help="Local-first focus tracker.")


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the application data directory."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8765, "--port", min=1, max=65535, help="TCP port for the API."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
    gap_ceiling: float = typer.Option(
        120.0,
        "--gap-ceiling",
        min=10.0,
        help="Seconds between samples after which a session is split.",
    ),
    debounce: float = typer.Option(
        10.0,
        "--debounce",
        min=0.0,
        help="Quiet period in seconds before trophies are re-evaluated.",
    ),
) -> None:
    """Run the local ingestion and reporting API."""
    from .server_runner import run_server

    settings = TrackerSettings.from_values(
        gap_ceiling_seconds=gap_ceiling, debounce_seconds=debounce
    )
    run_server(host=host, port=port, db_path=db_path or get_db_path(), settings=settings)


@app.command()
def summary(
    hours: float = typer.Option(24, "--hours", help="Window length in hours (1-168)."),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the focus SQLite database.",
    ),
) -> None:
    """Print category totals and top contexts for a recent window."""
    from .reporting import SummaryPrinter

    service = _open(db_path)
    try:
        SummaryPrinter(typer.echo).print_summary(service.tracker.get_summary(hours))
    finally:
        service.stop()


@app.command()
def recent(
    limit: int = typer.Option(20, "--limit", min=1, max=500, help="Number of records."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
) -> None:
    """List the most recent activity records, newest first."""
    from .reporting import SummaryPrinter

    service = _open(db_path)
    try:
        SummaryPrinter(typer.echo).print_records(service.tracker.get_recent(limit))
    finally:
        service.stop()


@app.command()
def trophies(
    earned_only: bool = typer.Option(False, "--earned", help="Only list earned trophies."),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
) -> None:
    """Evaluate trophies now and print their progress."""
    service = _open(db_path)
    try:
        statuses = service.trophies.list_statuses()
    finally:
        service.stop()

    for status in statuses:
        if earned_only and status.earned_at is None:
            continue
        definition = status.definition
        if definition.secret and status.earned_at is None:
            typer.echo(f"  ??  {'(secret)':<28} locked")
            continue
        state = status.progress.state
        pct = round(status.progress.ratio * 100)
        label = f" [{status.progress.label}]" if status.progress.label else ""
        typer.echo(f"  {definition.emoji}  {definition.name:<28} {state:<10} {pct:>3}%{label}")


def _open(db_path: Optional[Path]):
    from .service import FocusTrackerService

    return FocusTrackerService.open(db_path or get_db_path())
