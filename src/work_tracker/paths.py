"""Helpers for locating application directories and day files."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "WorkTracker"
APP_AUTHOR = "WorkTracker"
DATA_DIR_ENV = "WORK_TRACKER_DATA_DIR"

# Locale independent, so file names never change with the user's language.
_MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        path = Path(override).expanduser()
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
        path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_work_dir() -> Path:
    """Root of the per-day chunk logs."""
    return get_data_dir() / "days"


def get_tasks_path() -> Path:
    return get_data_dir() / "tasks.json"


def day_file_path(root: Path, day: date) -> Path:
    """Return ``<root>/<YYYY>/<month>/<DD>_<month>_<YYYY>.jsonl`` for ``day``."""
    year = f"{day.year:04d}"
    month = _MONTH_NAMES[day.month - 1]
    return Path(root) / year / month / f"{day.day:02d}_{month}_{year}.jsonl"
