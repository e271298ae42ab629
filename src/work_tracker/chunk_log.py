"""Append-only per-day chunk log stored as JSON Lines."""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import (
    ChunkLogError,
    InvalidActiveTimeError,
    InvalidIntervalError,
    MalformedRecordError,
)
from .models import Chunk, DayTotals
from .paths import day_file_path

logger = logging.getLogger(__name__)

ZERO_INSTANT = datetime(1, 1, 1)

_NANOS_PER_MICRO = 1_000
_MICROSECOND = timedelta(microseconds=1)
_DURATION_UNITS_NS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_FRACTION = re.compile(r"\.(\d+)")


def encode_chunk(chunk: Chunk) -> str:
    """Serialize a chunk as a single JSON line (without the newline)."""
    return json.dumps(
        {
            "task_name": chunk.task_name,
            "started_at": chunk.started_at.isoformat(),
            "finished_at": chunk.finished_at.isoformat(),
            "active_time": timedelta_to_nanoseconds(chunk.active_time),
        },
        ensure_ascii=False,
    )


def parse_chunk(line: str) -> Chunk:
    """Parse one JSON line into a :class:`Chunk`.

    Only the record's shape is checked here; interval and active time bounds are
    left to :func:`validate_chunk` so callers can choose how strict to be.
    """
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"Malformed JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise MalformedRecordError("Chunk record must be a JSON object.")

    task_name = payload.get("task_name", "")
    if task_name is None:
        task_name = ""
    if not isinstance(task_name, str):
        raise MalformedRecordError("task_name must be a string.")

    started_at, started_ns = _parse_instant(payload.get("started_at"), "started_at")
    finished_at, finished_ns = _parse_instant(payload.get("finished_at"), "finished_at")
    # datetime stops at microseconds: floor the start and active time, round the
    # finish up, so a window valid to the nanosecond stays valid.
    if finished_ns and (finished_at, finished_ns) > (started_at, started_ns):
        try:
            finished_at += _MICROSECOND
        except OverflowError as exc:
            raise MalformedRecordError("finished_at is out of range.") from exc
    return Chunk(
        task_name=task_name,
        started_at=started_at,
        finished_at=finished_at,
        active_time=_parse_active_time(payload.get("active_time")),
    )


def validate_chunk(chunk: Chunk) -> None:
    if chunk.finished_at <= chunk.started_at:
        raise InvalidIntervalError(
            "Chunk must finish after it starts.",
            details={"started_at": chunk.started_at, "finished_at": chunk.finished_at},
        )
    if chunk.active_time < timedelta(0) or chunk.active_time > chunk.duration:
        raise InvalidActiveTimeError(
            "Active time must be within [0, duration].",
            details={"active_time": chunk.active_time, "duration": chunk.duration},
        )


def parse_duration_string(text: str) -> int:
    """Parse a Go style duration string (``"1h2m3.5s"``, ``"999ms"``) into nanoseconds."""
    value = text.strip()
    sign = 1
    if value[:1] in ("-", "+"):
        sign = -1 if value[0] == "-" else 1
        value = value[1:]
    if value == "0":
        return 0
    if not value:
        raise ValueError(f"Invalid duration {text!r}")

    total = Decimal(0)
    position = 0
    while position < len(value):
        match = _DURATION_PART.match(value, position)
        if not match:
            raise ValueError(f"Invalid duration {text!r}")
        total += Decimal(match.group(1)) * _DURATION_UNITS_NS[match.group(2)]
        position = match.end()
    return sign * int(total)


def timedelta_to_nanoseconds(value: timedelta) -> int:
    return (value // timedelta(microseconds=1)) * _NANOS_PER_MICRO


def nanoseconds_to_timedelta(value: int) -> timedelta:
    """Whole microseconds of ``value``, rounded down."""
    return timedelta(microseconds=value // _NANOS_PER_MICRO)


def _parse_active_time(raw: Any) -> timedelta:
    try:
        return _active_time_value(raw)
    except OverflowError as exc:
        raise MalformedRecordError(f"active_time {raw!r} is out of range.") from exc


def _active_time_value(raw: Any) -> timedelta:
    if raw is None:
        raise MalformedRecordError("active_time is missing.")
    if isinstance(raw, bool):
        raise MalformedRecordError("active_time must be a number or a duration string.")
    if isinstance(raw, int):
        return nanoseconds_to_timedelta(raw)
    if isinstance(raw, float):
        if raw != raw or raw in (float("inf"), float("-inf")):
            raise MalformedRecordError("active_time must be finite.")
        return nanoseconds_to_timedelta(int(raw))
    if isinstance(raw, str):
        try:
            return nanoseconds_to_timedelta(parse_duration_string(raw))
        except (ValueError, InvalidOperation):
            pass
        stripped = raw.strip()
        if stripped.isdigit():
            return nanoseconds_to_timedelta(int(stripped))
        raise MalformedRecordError(f"Unparseable active_time {raw!r}.")
    raise MalformedRecordError("active_time must be a number or a duration string.")


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting a ``Z`` suffix and nanosecond fractions."""
    text = text.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(_FRACTION.sub(_six_digit_fraction, text, count=1))


def _six_digit_fraction(match: re.Match[str]) -> str:
    return "." + (match.group(1) + "000000")[:6]


def _parse_instant(raw: Any, field_name: str) -> tuple[datetime, int]:
    """Return the instant truncated to microseconds and the nanoseconds dropped."""
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedRecordError(f"{field_name} is missing.")
    try:
        value = parse_timestamp(raw)
    except (ValueError, OverflowError) as exc:
        raise MalformedRecordError(f"{field_name} is not an RFC 3339 timestamp: {raw!r}") from exc
    if value.tzinfo is None:
        raise MalformedRecordError(f"{field_name} has no UTC offset: {raw!r}")
    if value.replace(tzinfo=None) == ZERO_INSTANT:
        raise MalformedRecordError(f"{field_name} is the zero instant.")
    match = _FRACTION.search(raw)
    digits = match.group(1)[6:9] if match else ""
    return value, int(digits.ljust(3, "0")) if digits else 0


def _iter_record_lines(path: Path) -> Iterator[tuple[int, bytes]]:
    """Yield ``(line_number, raw)`` for every record line; nothing if the file is missing."""
    try:
        handle = path.open("rb")
    except FileNotFoundError:
        return
    with handle:
        for line_number, raw_line in enumerate(handle, start=1):
            raw = raw_line.strip()
            if not raw or raw.startswith(b"#"):
                continue
            yield line_number, raw


def parse_record_line(raw: bytes) -> Chunk:
    """Decode one UTF-8 line and parse it; invalid UTF-8 is a malformed record."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedRecordError(f"Line is not valid UTF-8: {exc.reason}") from exc
    return parse_chunk(text)


class ChunkLog:
    """Writes chunks into per-day files below ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, day: date) -> Path:
        return day_file_path(self.root, day)

    def append(self, chunk: Chunk) -> Path:
        """Append ``chunk`` to the file of the day it started on.

        The line is flushed and the file closed before returning. ``OSError``
        propagates to the caller.
        """
        validate_chunk(chunk)
        path = self.path_for(chunk.started_at.date())
        path.parent.mkdir(parents=True, exist_ok=True)
        line = encode_chunk(chunk) + "\n"
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.flush()
        logger.debug("Flushed chunk for %r to %s", chunk.task_name, path)
        return path


def load_day_totals(path: Path, log: Optional[logging.Logger] = None) -> DayTotals:
    """Sum today's file for the live session; any bad line aborts the load."""
    log = log or logger
    totals = DayTotals()
    if not path.exists():
        log.info("No day file at %s; starting from zero.", path)
        return totals

    log.info("Reading activity and duration from %s", path)
    for line_number, raw in _iter_record_lines(path):
        try:
            chunk = parse_record_line(raw)
            validate_chunk(chunk)
        except ChunkLogError as exc:
            log.error("Aborting load of %s at line %d: %s", path, line_number, exc.message)
            raise exc.at(path, line_number)

        totals.worked += chunk.duration
        totals.active += chunk.active_time
        totals.time_by_task[chunk.task_name] = (
            totals.time_by_task.get(chunk.task_name, timedelta(0)) + chunk.duration
        )

    log.info("Computed totals for %s: worked=%s active=%s", path, totals.worked, totals.active)
    return totals


def iter_day_chunks(path: Path, log: Optional[logging.Logger] = None) -> Iterator[Chunk]:
    """Yield the valid chunks of a day file, skipping bad lines.

    Active time outside ``[0, duration]`` is clamped rather than rejected.
    """
    log = log or logger
    if not path.exists():
        log.info("Skipping missing day file %s (treated as 0)", path)
        return
    for line_number, raw in _iter_record_lines(path):
        try:
            chunk = parse_record_line(raw)
        except MalformedRecordError as exc:
            log.warning("Skipping malformed record in %s line %d: %s", path, line_number, exc.message)
            continue
        if chunk.finished_at <= chunk.started_at:
            log.warning("Skipping bad chunk time window in %s line %d", path, line_number)
            continue
        active = min(max(chunk.active_time, timedelta(0)), chunk.duration)
        if active != chunk.active_time:
            chunk = Chunk(chunk.task_name, chunk.started_at, chunk.finished_at, active)
        yield chunk
