"""Report payloads, titles and the sinks that deliver them."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Optional, Protocol

from .aggregation import build_report
from .colors import activity_color, assign_task_colors
from .models import DaySummary, PeriodTotals

logger = logging.getLogger(__name__)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(slots=True)
class ReportPayload:
    start: date
    end: date
    title: str
    totals: PeriodTotals
    days: list[DaySummary]
    colors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """JSON friendly form; durations are expressed in seconds."""
        return {
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "total_worked_seconds": self.totals.total_worked.total_seconds(),
            "total_active_seconds": self.totals.total_active.total_seconds(),
            "activity_percentage": self.totals.activity_percentage,
            "activity_color": activity_color(self.totals.activity_percentage),
            "task_order": list(self.totals.task_order),
            "tasks": [
                {
                    "name": name,
                    "seconds": self.totals.per_task_totals[name].total_seconds(),
                    "color": self.colors.get(name),
                }
                for name in self.totals.task_order
            ],
            "days": [
                {
                    "date": day.date.isoformat(),
                    "total_seconds": day.total_duration.total_seconds(),
                    "active_seconds": day.total_active.total_seconds(),
                    "smoothed_active_seconds": day.smoothed_active_time.total_seconds(),
                    "activity_percentage": day.activity_percentage,
                    "task_seconds": {
                        name: duration.total_seconds()
                        for name, duration in day.task_durations.items()
                    },
                }
                for day in self.days
            ],
        }


class ReportSink(Protocol):
    def deliver(self, payload: ReportPayload) -> bool:
        """Hand a finished report to its destination; return ``True`` on success."""


def prepare_report(
    input_dir: Path, start: date, end: date, smooth: float, log: Optional[logging.Logger] = None
) -> ReportPayload:
    totals, days = build_report(input_dir, start, end, smooth, log)
    return ReportPayload(
        start=start,
        end=end,
        title=report_title(start, end),
        totals=totals,
        days=days,
        colors=assign_task_colors(totals.task_order),
    )


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, top: int = 10) -> None:
        self.top = top

    def deliver(self, payload: ReportPayload) -> bool:
        totals = payload.totals
        print(payload.title)
        print("-" * 40)
        if totals.total_worked <= timedelta(0):
            print("No work recorded for the selected range.")
            return True

        print(f"Worked:   {format_duration(totals.total_worked)}")
        print(f"Active:   {format_duration(totals.total_active)}")
        print(f"Activity: {totals.activity_percentage:.0f}%")
        print()

        print("Tasks:")
        for name in totals.task_order[: self.top]:
            print(f"  {name[:30]:<30} {format_duration(totals.per_task_totals[name])}")

        if len(payload.days) > 1:
            print()
            print("Days:")
            for day in payload.days:
                label = f"{_WEEKDAYS[day.date.weekday()]} {day.date.day:02d} {_abbr(day.date)}"
                print(
                    f"  {label:<12} {format_duration(day.total_duration)}"
                    f"  active {day.activity_percentage:3.0f}%"
                    f"  focus {format_human_duration(day.smoothed_active_time)}"
                )
        return True


class JsonReportSink:
    """Write the report payload to a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def deliver(self, payload: ReportPayload) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload.to_dict(), indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Failed to write report to %s", self.path)
            return False
        logger.info("Wrote report to %s", self.path)
        return True


def format_duration(value: timedelta | float) -> str:
    seconds = value.total_seconds() if isinstance(value, timedelta) else value
    total_seconds = max(int(round(seconds)), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_human_duration(value: timedelta) -> str:
    """Short form like ``1h 2m``; seconds only show for durations under an hour."""
    if value <= timedelta(0):
        return "0s"
    total_seconds = int(value.total_seconds() + 0.5)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs and not hours:
        parts.append(f"{secs}s")
    return " ".join(parts)


def report_title(start: date, end: date) -> str:
    label = period_label(start, end)
    if label == "Daily":
        return f"Daily Report — {_day_month_year(start)}"
    if label == "Monthly":
        return f"Monthly Report — {_abbr(start)} {start.year}"
    if label == "Quarterly":
        return f"Quarterly Report — Q{_quarter(start)} {start.year}"
    if label == "Yearly":
        return f"Yearly Report — {start.year}"
    prefix = "Weekly Report" if label == "Weekly" else "Report"
    return f"{prefix} — {_span(start, end)}"


def period_label(start: date, end: date) -> str:
    if start == end:
        return "Daily"
    if start.year == end.year:
        if (start.month, start.day) == (1, 1) and (end.month, end.day) == (12, 31):
            return "Yearly"
        quarter = _quarter(start)
        if (
            quarter == _quarter(end)
            and start == _quarter_start(start)
            and end == _quarter_end(start)
        ):
            return "Quarterly"
        if start.month == end.month and start.day == 1 and end == _month_end(end):
            return "Monthly"
    if start.isocalendar()[:2] == end.isocalendar()[:2]:
        return "Weekly"
    return "Custom"


def _span(start: date, end: date) -> str:
    if start.year == end.year and start.month == end.month:
        return f"{start.day:02d} – {end.day:02d} {_abbr(end)} {end.year}"
    if start.year == end.year:
        return f"{start.day:02d} {_abbr(start)} – {end.day:02d} {_abbr(end)} {end.year}"
    return f"{_day_month_year(start)} – {_day_month_year(end)}"


def _day_month_year(day: date) -> str:
    return f"{day.day:02d} {_abbr(day)} {day.year}"


def _abbr(day: date) -> str:
    return _MONTHS[day.month - 1]


def _quarter(day: date) -> int:
    return (day.month - 1) // 3 + 1


def _quarter_start(day: date) -> date:
    return date(day.year, (_quarter(day) - 1) * 3 + 1, 1)


def _quarter_end(day: date) -> date:
    return _month_end(date(day.year, _quarter(day) * 3, 1))


def _month_end(day: date) -> date:
    if day.month == 12:
        return date(day.year, 12, 31)
    return date(day.year, day.month + 1, 1) - timedelta(days=1)
