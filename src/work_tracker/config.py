"""Configuration models and helpers for the work tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the live session."""

    activity_interval: timedelta = timedelta(seconds=1)
    flush_interval: timedelta = timedelta(seconds=10)
    ui_interval: timedelta = timedelta(seconds=1)

    @classmethod
    def from_intervals(
        cls,
        activity_seconds: float,
        flush_seconds: float | None = None,
        ui_seconds: float | None = None,
    ) -> "TrackerSettings":
        flush = flush_seconds if flush_seconds is not None else max(activity_seconds * 10, 10.0)
        ui = ui_seconds if ui_seconds is not None else activity_seconds
        if flush < activity_seconds:
            raise ValueError("Flush interval must not be shorter than the activity interval.")
        return cls(
            activity_interval=timedelta(seconds=activity_seconds),
            flush_interval=timedelta(seconds=flush),
            ui_interval=timedelta(seconds=ui),
        )


@dataclass(slots=True)
class ReportSettings:
    """Options for building a report over a date range."""

    smooth: float = 0.0
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        if not 0.0 <= self.smooth <= 1.0:
            raise ValueError(f"smooth must be within [0, 1], got {self.smooth}")
