"""Rebuild day and period summaries from the chunk logs."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .chunk_log import iter_day_chunks
from .errors import ReportError
from .models import UNASSIGNED_TASK, DaySummary, PeriodTotals, display_task_name
from .paths import day_file_path

logger = logging.getLogger(__name__)

DATE_FMT = "%d-%m-%Y"
MIN_ALPHA = 0.2
MAX_ALPHA = 1.0


def smooth_factor(fraction: float, smooth: float) -> float:
    """Weight for a chunk whose active ratio is ``fraction``.

    ``alpha = 1 - smooth`` is kept within [0.2, 1.0]; ``fraction ** alpha``
    is linear at ``smooth=0`` and boosts partially active time as ``smooth``
    grows.
    """
    if fraction <= 0:
        return 0.0
    if fraction >= 1:
        return 1.0
    alpha = min(max(1.0 - smooth, MIN_ALPHA), MAX_ALPHA)
    return fraction**alpha


def read_day_summary(
    path: Path, day: date, smooth: float, log: Optional[logging.Logger] = None
) -> DaySummary:
    summary = DaySummary(date=day)
    for chunk in iter_day_chunks(path, log or logger):
        duration = chunk.duration
        summary.total_duration += duration
        summary.total_active += chunk.active_time

        task_name = display_task_name(chunk.task_name)
        summary.task_durations[task_name] = (
            summary.task_durations.get(task_name, timedelta(0)) + duration
        )
        summary.smoothed_active_time += duration * smooth_factor(chunk.active_ratio, smooth)
    return summary


def rank_tasks(per_task_totals: dict[str, timedelta]) -> list[str]:
    """Order tasks by total descending, ties alphabetically, unassigned time first."""
    ranked = sorted(
        (name for name in per_task_totals if name != UNASSIGNED_TASK),
        key=lambda name: (-per_task_totals[name], name),
    )
    if UNASSIGNED_TASK in per_task_totals:
        ranked.insert(0, UNASSIGNED_TASK)
    return ranked


def enumerate_dates(start: date, end: date) -> list[date]:
    days: list[date] = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def build_report(
    input_dir: Path,
    start: date,
    end: date,
    smooth: float,
    log: Optional[logging.Logger] = None,
) -> tuple[PeriodTotals, list[DaySummary]]:
    """Summarize every day in ``[start, end]``.

    Bad lines are skipped inside each day; a present but unreadable file aborts
    the whole run with :class:`ReportError`.
    """
    log = log or logger
    log.info(
        "Reading files from %s for %s..%s",
        input_dir,
        start.strftime(DATE_FMT),
        end.strftime(DATE_FMT),
    )
    totals = PeriodTotals()
    days: list[DaySummary] = []
    for day in enumerate_dates(start, end):
        path = day_file_path(Path(input_dir), day)
        try:
            summary = read_day_summary(path, day, smooth, log)
        except OSError as exc:
            log.error("Unable to read day file %s: %s", path, exc)
            raise ReportError(
                f"Unable to read the day file for {day.strftime(DATE_FMT)}.",
                details={"date": day.strftime(DATE_FMT), "path": path, "reason": exc},
            ) from exc
        days.append(summary)

        totals.total_worked += summary.total_duration
        totals.total_active += summary.total_active
        for task_name, duration in summary.task_durations.items():
            totals.per_task_totals[task_name] = (
                totals.per_task_totals.get(task_name, timedelta(0)) + duration
            )

    totals.task_order = rank_tasks(totals.per_task_totals)
    log.info("Aggregated %d days, %s worked", len(days), totals.total_worked)
    return totals, days


def parse_dmy(value: str) -> date:
    return datetime.strptime(value, DATE_FMT).date()


def current_week_range(today: date) -> tuple[date, date]:
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def resolve_range(
    tz_name: str, start: Optional[str] = None, end: Optional[str] = None
) -> tuple[ZoneInfo, date, date]:
    """Turn optional ``DD-MM-YYYY`` strings into an inclusive range.

    No dates selects the current Monday..Sunday week; a single date selects that day.
    """
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone {tz_name!r}") from exc

    if not start and not end:
        first, last = current_week_range(datetime.now(zone).date())
    elif start and not end:
        first = last = parse_dmy(start)
    elif end and not start:
        first = last = parse_dmy(end)
    else:
        first, last = parse_dmy(start), parse_dmy(end)  # type: ignore[arg-type]

    if first > last:
        raise ValueError(
            f"Start date {first.strftime(DATE_FMT)} is after end date {last.strftime(DATE_FMT)}"
        )
    return zone, first, last
