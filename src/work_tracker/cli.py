"""Command-line interface for the work tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import ReportSettings, TrackerSettings
from .errors import ChunkLogError, ReportError
from .paths import get_tasks_path, get_work_dir
from .server_runner import run_dashboard

app = typer.Typer(help="Local-first work and focus tracker.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def track(
    task: Optional[str] = typer.Option(
        None, "--task", "-t", help="Task to track. Omit for unassigned time."
    ),
    work_dir: Optional[Path] = typer.Option(
        None,
        "--work-dir",
        path_type=Path,
        help="Directory holding the per-day chunk logs.",
    ),
    activity_seconds: float = typer.Option(
        1.0,
        "--activity-interval",
        min=0.1,
        help="Idle sampling interval in seconds.",
    ),
    flush_seconds: Optional[float] = typer.Option(
        None,
        "--flush-interval",
        min=1.0,
        help="Chunk flush interval in seconds (defaults to 10x the activity interval).",
    ),
    ui_seconds: float = typer.Option(
        60.0,
        "--print-interval",
        min=1.0,
        help="How often to print the running totals.",
    ),
) -> None:
    """Track a task in the foreground until interrupted."""
    from .chunk_log import ChunkLog
    from .reporting import format_duration
    from .tracker import TrackerSession

    settings = TrackerSettings.from_intervals(
        activity_seconds=activity_seconds,
        flush_seconds=flush_seconds,
        ui_seconds=ui_seconds,
    )
    session = TrackerSession(ChunkLog(work_dir or get_work_dir()), settings)
    try:
        session.load_today()
    except (ChunkLogError, OSError) as exc:
        typer.echo(f"Refusing to start, today's log is unreadable: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    def _print_snapshot(snapshot) -> None:
        typer.echo(
            f"{format_duration(snapshot.worked_today)} worked, "
            f"{snapshot.activity_percentage:.0f}% active"
        )

    session.start(task)
    session.run_until_stopped(on_refresh=_print_snapshot)


@app.command()
def report(
    start: Optional[str] = typer.Option(
        None, "--start", help="First day (DD-MM-YYYY). Defaults to this week's Monday."
    ),
    end: Optional[str] = typer.Option(
        None, "--end", help="Last day (DD-MM-YYYY), inclusive."
    ),
    tz: str = typer.Option("UTC", "--tz", help="IANA timezone used to resolve 'this week'."),
    smooth: float = typer.Option(
        0.0,
        "--smooth",
        min=0.0,
        max=1.0,
        help="Boost partially active time in the focus total (0 = linear).",
    ),
    work_dir: Optional[Path] = typer.Option(
        None, "--work-dir", path_type=Path, help="Directory holding the per-day chunk logs."
    ),
    json_out: Optional[Path] = typer.Option(
        None, "--json", path_type=Path, help="Also write the report as JSON to this path."
    ),
) -> None:
    """Print a summary for a range of days."""
    from .aggregation import resolve_range
    from .reporting import JsonReportSink, ReportSink, SummaryPrinter, prepare_report

    settings = ReportSettings(smooth=smooth, timezone=tz)
    try:
        _, first, last = resolve_range(settings.timezone, start, end)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        payload = prepare_report(work_dir or get_work_dir(), first, last, settings.smooth)
    except ReportError as exc:
        typer.echo(f"Report failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    sinks: list[ReportSink] = [SummaryPrinter()]
    if json_out is not None:
        sinks.append(JsonReportSink(json_out))
    if not all(sink.deliver(payload) for sink in sinks):
        raise typer.Exit(code=1)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    work_dir: Optional[Path] = typer.Option(
        None, "--work-dir", path_type=Path, help="Directory holding the per-day chunk logs."
    ),
    tasks_path: Optional[Path] = typer.Option(
        None, "--tasks", path_type=Path, help="JSON task list shown by the dashboard."
    ),
    activity_seconds: float = typer.Option(
        1.0,
        "--activity-interval",
        min=0.1,
        help="Idle sampling interval in seconds.",
    ),
    flush_seconds: Optional[float] = typer.Option(
        None,
        "--flush-interval",
        min=1.0,
        help="Chunk flush interval in seconds (defaults to 10x the activity interval).",
    ),
    tz: str = typer.Option("UTC", "--tz", help="IANA timezone used for report ranges."),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the dashboard in your default browser.",
    ),
) -> None:
    """Start the local dashboard with the background tracker."""
    settings = TrackerSettings.from_intervals(
        activity_seconds=activity_seconds,
        flush_seconds=flush_seconds,
    )
    run_dashboard(
        host=host,
        port=port,
        work_dir=work_dir or get_work_dir(),
        tasks_path=tasks_path or get_tasks_path(),
        settings=settings,
        report_settings=ReportSettings(timezone=tz),
        open_browser=open_browser,
    )
