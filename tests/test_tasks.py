"""Tests for the task catalogue loader and settings."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from work_tracker.config import ReportSettings, TrackerSettings
from work_tracker.paths import DATA_DIR_ENV, get_data_dir, get_tasks_path, get_work_dir
from work_tracker.tasks import load_tasks


def write_json(path, value):
    path.write_text(json.dumps(value), encoding="utf-8")
    return path


class TestLoadTasks:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_tasks(tmp_path / "tasks.json") == []

    def test_reads_entries(self, tmp_path):
        path = write_json(
            tmp_path / "tasks.json",
            [
                {
                    "task_name": " Writing ",
                    "task_description": "Book",
                    "created_at": "2026-01-02T10:00:00.123456789Z",
                },
                {"task_name": "Review"},
            ],
        )
        writing, review = load_tasks(path)
        assert writing.name == "Writing"
        assert writing.description == "Book"
        assert writing.created_at == datetime(2026, 1, 2, 10, 0, 0, 123456, tzinfo=timezone.utc)
        assert review.description == ""
        assert review.created_at is None

    @pytest.mark.parametrize(
        "content",
        [
            "{oops",
            json.dumps({"task_name": "A"}),
            json.dumps([{"task_description": "no name"}]),
            json.dumps([{"task_name": "A", "created_at": "yesterday"}]),
        ],
    )
    def test_invalid_catalogue(self, tmp_path, content):
        path = tmp_path / "tasks.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ValueError):
            load_tasks(path)


class TestSettings:
    def test_flush_interval_defaults_to_ten_ticks(self):
        settings = TrackerSettings.from_intervals(2.0)
        assert settings.activity_interval == timedelta(seconds=2)
        assert settings.flush_interval == timedelta(seconds=20)

    def test_flush_interval_has_a_floor(self):
        assert TrackerSettings.from_intervals(0.5).flush_interval == timedelta(seconds=10)

    def test_flush_shorter_than_tick_is_rejected(self):
        with pytest.raises(ValueError):
            TrackerSettings.from_intervals(5.0, flush_seconds=1.0)

    @pytest.mark.parametrize("smooth", [-0.1, 1.1])
    def test_smooth_out_of_range(self, smooth):
        with pytest.raises(ValueError):
            ReportSettings(smooth=smooth)


class TestPaths:
    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path))
        assert get_data_dir() == tmp_path
        assert get_work_dir() == tmp_path / "days"
        assert get_tasks_path() == tmp_path / "tasks.json"
