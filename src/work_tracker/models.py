"""Domain models for tracked work time."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

UNASSIGNED_TASK = "Unassigned Time"


@dataclass(frozen=True, slots=True)
class Chunk:
    """One contiguous slice of tracked time attributed to a single task."""

    task_name: str
    started_at: datetime
    finished_at: datetime
    active_time: timedelta

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at

    @property
    def active_ratio(self) -> float:
        duration = self.duration
        if duration <= timedelta(0):
            return 0.0
        return self.active_time / duration


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of the live session handed to the display layer."""

    is_running: bool
    current_task_name: str
    worked_today: timedelta
    active_today: timedelta
    time_by_task: dict[str, timedelta]
    last_tick_active_duration: timedelta

    @property
    def activity_percentage(self) -> float:
        return activity_percentage(self.active_today, self.worked_today)


@dataclass(slots=True)
class DayTotals:
    worked: timedelta = timedelta(0)
    active: timedelta = timedelta(0)
    time_by_task: dict[str, timedelta] = field(default_factory=dict)


@dataclass(slots=True)
class DaySummary:
    """Per-day aggregation rebuilt from a chunk log."""

    date: date
    total_duration: timedelta = timedelta(0)
    total_active: timedelta = timedelta(0)
    task_durations: dict[str, timedelta] = field(default_factory=dict)
    smoothed_active_time: timedelta = timedelta(0)

    @property
    def activity_percentage(self) -> float:
        return activity_percentage(self.total_active, self.total_duration)


@dataclass(slots=True)
class PeriodTotals:
    """Aggregation across a whole date range."""

    total_worked: timedelta = timedelta(0)
    total_active: timedelta = timedelta(0)
    per_task_totals: dict[str, timedelta] = field(default_factory=dict)
    task_order: list[str] = field(default_factory=list)

    @property
    def activity_percentage(self) -> float:
        return activity_percentage(self.total_active, self.total_worked)


@dataclass(slots=True)
class Task:
    """An entry of the user's task catalogue."""

    name: str
    description: str = ""
    created_at: Optional[datetime] = None


def display_task_name(task_name: Optional[str]) -> str:
    if not task_name or not task_name.strip():
        return UNASSIGNED_TASK
    return task_name.strip()


def activity_percentage(active: timedelta, total: timedelta) -> float:
    if total <= timedelta(0):
        return 0.0
    active = min(max(active, timedelta(0)), total)
    return active / total * 100.0
