"""Loading the user's task catalogue."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from .chunk_log import parse_timestamp
from .models import Task

logger = logging.getLogger(__name__)


def load_tasks(path: Path) -> list[Task]:
    """Read ``[{"task_name", "task_description", "created_at"}, ...]``; a missing file is empty."""
    path = Path(path)
    if not path.exists():
        logger.info("No task list at %s", path)
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse task list {path}: {exc.msg}") from exc
    if not isinstance(raw, list):
        raise ValueError(f"Task list {path} must be a JSON array.")

    tasks: list[Task] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict) or not str(entry.get("task_name") or "").strip():
            raise ValueError(f"Task #{index} in {path} has no task_name.")
        created_at = entry.get("created_at")
        tasks.append(
            Task(
                name=str(entry["task_name"]).strip(),
                description=str(entry.get("task_description") or ""),
                created_at=_parse_created_at(created_at, path, index),
            )
        )
    logger.info("Loaded %d tasks from %s", len(tasks), path)
    return tasks


def _parse_created_at(value: object, path: Path, index: int) -> datetime | None:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValueError(f"Task #{index} in {path} has a non-string created_at.")
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise ValueError(f"Task #{index} in {path} has an invalid created_at {value!r}.") from exc
