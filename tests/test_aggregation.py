"""Tests for day/period aggregation."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import chunk_line, write_lines
from work_tracker.aggregation import (
    build_report,
    current_week_range,
    enumerate_dates,
    rank_tasks,
    read_day_summary,
    resolve_range,
    smooth_factor,
)
from work_tracker.errors import ReportError
from work_tracker.models import UNASSIGNED_TASK
from work_tracker.paths import day_file_path

DAY = date(2026, 1, 23)


def write_day(root, day, lines):
    return write_lines(day_file_path(root, day), lines)


def two_chunk_day(root):
    return write_day(
        root,
        DAY,
        [
            chunk_line("A", "2026-01-23T09:00:00+01:00", "2026-01-23T10:00:00+01:00", "30m"),
            chunk_line("B", "2026-01-23T10:00:00+01:00", "2026-01-23T10:30:00+01:00", "30m"),
        ],
    )


class TestSmoothFactor:
    @pytest.mark.parametrize("smooth", [0.0, 0.3, 0.8, 1.0])
    def test_bounds(self, smooth):
        assert smooth_factor(0.0, smooth) == 0.0
        assert smooth_factor(-0.5, smooth) == 0.0
        assert smooth_factor(1.0, smooth) == 1.0
        assert smooth_factor(1.5, smooth) == 1.0

    def test_linear_without_smoothing(self):
        assert smooth_factor(0.5, 0.0) == pytest.approx(0.5)

    def test_alpha_floor(self):
        assert smooth_factor(0.5, 1.0) == pytest.approx(0.5**0.2)
        assert smooth_factor(0.5, 1.0) == pytest.approx(0.8706, abs=1e-4)
        assert smooth_factor(0.5, 0.9) == smooth_factor(0.5, 1.0)

    def test_alpha_ceiling(self):
        assert smooth_factor(0.25, -1.0) == pytest.approx(0.25)

    def test_more_smoothing_boosts_partial_activity(self):
        assert smooth_factor(0.3, 0.5) > smooth_factor(0.3, 0.0)


class TestReadDaySummary:
    def test_two_chunk_scenario(self, tmp_path):
        path = two_chunk_day(tmp_path)
        summary = read_day_summary(path, DAY, 0.0)
        assert summary.total_duration == timedelta(minutes=90)
        assert summary.total_active == timedelta(minutes=60)
        assert summary.task_durations == {"A": timedelta(minutes=60), "B": timedelta(minutes=30)}
        assert summary.smoothed_active_time == timedelta(minutes=60)

    def test_smoothed_active_time_uses_exponent(self, tmp_path):
        path = two_chunk_day(tmp_path)
        summary = read_day_summary(path, DAY, 1.0)
        expected = 60 * 0.5**0.2 + 30
        assert summary.smoothed_active_time.total_seconds() / 60 == pytest.approx(expected)

    def test_missing_file_is_zero_summary(self, tmp_path):
        summary = read_day_summary(tmp_path / "missing.jsonl", DAY, 0.5)
        assert summary.date == DAY
        assert summary.total_duration == timedelta(0)
        assert summary.total_active == timedelta(0)
        assert summary.task_durations == {}
        assert summary.smoothed_active_time == timedelta(0)

    def test_reading_twice_is_identical(self, tmp_path):
        path = two_chunk_day(tmp_path)
        assert read_day_summary(path, DAY, 0.4) == read_day_summary(path, DAY, 0.4)

    def test_blank_task_is_unassigned(self, tmp_path):
        path = write_day(
            tmp_path,
            DAY,
            [
                chunk_line("", "2026-01-23T09:00:00+01:00", "2026-01-23T09:10:00+01:00", 0),
                chunk_line("  ", "2026-01-23T09:10:00+01:00", "2026-01-23T09:20:00+01:00", 0),
            ],
        )
        summary = read_day_summary(path, DAY, 0.0)
        assert summary.task_durations == {UNASSIGNED_TASK: timedelta(minutes=20)}

    def test_bad_lines_are_skipped(self, tmp_path):
        path = write_day(
            tmp_path,
            DAY,
            [
                "garbage",
                chunk_line("A", "2026-01-23T10:00:00+01:00", "2026-01-23T09:00:00+01:00", 0),
                chunk_line("A", "2026-01-23T09:00:00+01:00", "2026-01-23T09:30:00+01:00", "1h"),
            ],
        )
        summary = read_day_summary(path, DAY, 0.0)
        assert summary.total_duration == timedelta(minutes=30)
        assert summary.total_active == timedelta(minutes=30)


class TestRankTasks:
    def test_descending_with_alphabetical_ties(self):
        totals = {
            "b": timedelta(minutes=10),
            "a": timedelta(minutes=10),
            "c": timedelta(minutes=30),
        }
        assert rank_tasks(totals) == ["c", "a", "b"]

    def test_unassigned_pinned_first(self):
        totals = {"A": timedelta(hours=3), UNASSIGNED_TASK: timedelta(seconds=1)}
        assert rank_tasks(totals) == [UNASSIGNED_TASK, "A"]


class TestBuildReport:
    def test_two_chunk_scenario_ranking(self, tmp_path):
        two_chunk_day(tmp_path)
        totals, days = build_report(tmp_path, DAY, DAY, 0.0)
        assert totals.task_order == ["A", "B"]
        assert totals.total_worked == timedelta(minutes=90)
        assert totals.total_active == timedelta(minutes=60)
        assert len(days) == 1

    def test_range_spans_missing_days(self, tmp_path):
        two_chunk_day(tmp_path)
        next_day = DAY + timedelta(days=2)
        write_day(
            tmp_path,
            next_day,
            [chunk_line("B", "2026-01-25T09:00:00+01:00", "2026-01-25T11:00:00+01:00", "1h")],
        )
        totals, days = build_report(tmp_path, DAY, next_day, 0.0)
        assert [day.date for day in days] == [DAY, DAY + timedelta(days=1), next_day]
        assert days[1].total_duration == timedelta(0)
        assert totals.per_task_totals == {"A": timedelta(hours=1), "B": timedelta(hours=2, minutes=30)}
        assert totals.task_order == ["B", "A"]
        assert totals.total_worked == timedelta(hours=3, minutes=30)

    def test_out_of_range_record_is_skipped(self, tmp_path):
        write_day(
            tmp_path,
            DAY,
            [
                chunk_line("A", "2026-01-23T09:00:00+01:00", "2026-01-23T10:00:00+01:00", 10**30),
                chunk_line("B", "2026-01-23T10:00:00+01:00", "2026-01-23T11:00:00+01:00", "1h"),
            ],
        )
        totals, _ = build_report(tmp_path, DAY, DAY, 0.0)
        assert totals.per_task_totals == {"B": timedelta(hours=1)}

    def test_unreadable_day_aborts_run(self, tmp_path):
        day_file_path(tmp_path, DAY).mkdir(parents=True)
        with pytest.raises(ReportError) as excinfo:
            build_report(tmp_path, DAY, DAY, 0.0)
        assert excinfo.value.details["date"] == "23-01-2026"


class TestDateRanges:
    def test_enumerate_is_inclusive(self):
        assert enumerate_dates(DAY, DAY + timedelta(days=2))[-1] == DAY + timedelta(days=2)
        assert enumerate_dates(DAY, DAY) == [DAY]
        assert enumerate_dates(DAY, DAY - timedelta(days=1)) == []

    def test_current_week_is_monday_to_sunday(self):
        monday, sunday = current_week_range(date(2026, 1, 23))
        assert monday == date(2026, 1, 19)
        assert sunday == date(2026, 1, 25)

    def test_single_date_selects_that_day(self):
        _, start, end = resolve_range("UTC", start="23-01-2026")
        assert start == end == DAY
        _, start, end = resolve_range("UTC", end="24-01-2026")
        assert start == end == date(2026, 1, 24)

    def test_explicit_range(self):
        zone, start, end = resolve_range("Europe/Berlin", "01-01-2026", "31-01-2026")
        assert (start, end) == (date(2026, 1, 1), date(2026, 1, 31))
        assert zone.key == "Europe/Berlin"

    def test_default_is_current_week(self):
        _, start, end = resolve_range("UTC")
        assert start.weekday() == 0
        assert (end - start).days == 6

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"tz_name": "Not/AZone"},
            {"tz_name": "UTC", "start": "2026-01-23"},
            {"tz_name": "UTC", "start": "24-01-2026", "end": "23-01-2026"},
        ],
    )
    def test_invalid_input(self, kwargs):
        with pytest.raises(ValueError):
            resolve_range(**kwargs)
