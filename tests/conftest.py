"""Shared fixtures for the work tracker tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from work_tracker.chunk_log import ChunkLog
from work_tracker.config import TrackerSettings
from work_tracker.probes import StaticProbe
from work_tracker.tracker import TrackerSession

CET = timezone(timedelta(hours=1))
DAY_START = datetime(2026, 1, 23, 9, 0, tzinfo=CET)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = DAY_START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class BrokenChunkLog(ChunkLog):
    def append(self, chunk):
        raise PermissionError("read-only file system")


class FatalRecorder:
    def __init__(self) -> None:
        self.errors: list[BaseException] = []

    def __call__(self, exc: BaseException) -> None:
        self.errors.append(exc)


def read_lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


def write_lines(path: Path, lines: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def chunk_line(task: str, start: str, end: str, active) -> str:
    return json.dumps(
        {"task_name": task, "started_at": start, "finished_at": end, "active_time": active}
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe() -> StaticProbe:
    return StaticProbe(timedelta(0))


@pytest.fixture
def fatal() -> FatalRecorder:
    return FatalRecorder()


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "days"


@pytest.fixture
def chunk_log(work_dir: Path) -> ChunkLog:
    return ChunkLog(work_dir)


@pytest.fixture
def session(chunk_log, clock, probe, fatal) -> TrackerSession:
    return TrackerSession(
        chunk_log,
        TrackerSettings(),
        probe,
        clock=clock,
        on_fatal=fatal,
    )


@pytest.fixture
def today_file(chunk_log: ChunkLog) -> Path:
    return chunk_log.path_for(DAY_START.date())
