"""Live work session driven by user intents and two background timers."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from .chunk_log import ChunkLog, load_day_totals
from .config import TrackerSettings
from .errors import FlushError
from .models import Chunk, DayTotals, SessionSnapshot, display_task_name
from .probes import ActivityProbe, default_probe

logger = logging.getLogger(__name__)

EXIT_FATAL = 1
_ZERO = timedelta(0)

Clock = Callable[[], datetime]
FatalHandler = Callable[[BaseException], None]


def now_local() -> datetime:
    return datetime.now().astimezone()


def exit_process(exc: BaseException) -> None:
    """Terminate immediately; tracked time must never be dropped silently."""
    logging.shutdown()
    os._exit(EXIT_FATAL)


@dataclass(slots=True)
class SessionState:
    is_running: bool = False
    current_task_name: str = ""
    run_start: Optional[datetime] = None
    task_run_start: Optional[datetime] = None
    chunk_start: Optional[datetime] = None
    active_during_this_chunk: timedelta = _ZERO
    last_tick_start: Optional[datetime] = None
    last_tick_active_duration: timedelta = _ZERO
    worked_today: timedelta = _ZERO
    active_today: timedelta = _ZERO
    time_by_task: dict[str, timedelta] = field(default_factory=dict)
    worked_today_before_run: timedelta = _ZERO
    time_by_task_before_run: dict[str, timedelta] = field(default_factory=dict)


class TrackerSession:
    """Tracks one person's work session and flushes it into the chunk log.

    All mutable state lives in :class:`SessionState` behind a single lock. The
    lock is released before the probe is queried and before a chunk is written;
    a second lock serializes writes so lines land in boundary order.
    """

    def __init__(
        self,
        chunk_log: ChunkLog,
        settings: Optional[TrackerSettings] = None,
        probe: Optional[ActivityProbe] = None,
        *,
        clock: Clock = now_local,
        log: Optional[logging.Logger] = None,
        on_fatal: FatalHandler = exit_process,
    ) -> None:
        self.chunk_log = chunk_log
        self.settings = settings or TrackerSettings()
        self._probe = probe if probe is not None else default_probe()
        self._clock = clock
        self._log = log or logger
        self._on_fatal = on_fatal
        self._state = SessionState(last_tick_start=clock())
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._shutdown = threading.Event()
        self._threads: list[threading.Thread] = []
        self._closed = False

    @property
    def shutdown_event(self) -> threading.Event:
        return self._shutdown

    @property
    def closed(self) -> bool:
        with self._close_lock:
            return self._closed

    def load_today(self) -> DayTotals:
        """Seed today's totals from the day file.

        Errors propagate: the session must not run on a distrusted baseline.
        """
        path = self.chunk_log.path_for(self._clock().date())
        totals = load_day_totals(path, self._log)
        with self._lock:
            state = self._state
            state.worked_today = totals.worked
            state.active_today = totals.active
            state.time_by_task = dict(totals.time_by_task)
            state.worked_today_before_run = totals.worked
            state.time_by_task_before_run = dict(totals.time_by_task)
        return totals

    # Intents

    def start(self, task: Optional[str] = None) -> None:
        task_name = _clean_task_name(task)
        with self._lock:
            state = self._state
            if not state.is_running:
                now = self._clock()
                state.is_running = True
                state.current_task_name = task_name
                state.run_start = now
                state.task_run_start = now
                state.chunk_start = now
                state.last_tick_start = now
                state.active_during_this_chunk = _ZERO
                state.last_tick_active_duration = _ZERO
                state.time_by_task.setdefault(
                    task_name, state.time_by_task_before_run.get(task_name, _ZERO)
                )
                self._log.info("Started task %r", display_task_name(task_name))
                return
            current = state.current_task_name
        if current != task_name:
            self.switch_task(task_name)

    def switch_task(self, task: Optional[str]) -> None:
        task_name = _clean_task_name(task)
        idle = self._idle_if_running()
        chunk: Optional[Chunk] = None
        with self._write_lock:
            with self._lock:
                state = self._state
                if not state.is_running:
                    was_stopped = True
                else:
                    was_stopped = False
                    if state.current_task_name == task_name:
                        return
                    now = self._clock()
                    self._sample_locked(now, idle)
                    chunk = self._cut_chunk_locked(now)
                    previous = state.current_task_name
                    state.time_by_task_before_run[previous] = state.time_by_task.get(previous, _ZERO)
                    state.current_task_name = task_name
                    state.task_run_start = now
                    state.time_by_task.setdefault(
                        task_name, state.time_by_task_before_run.get(task_name, _ZERO)
                    )
                    self._log.info(
                        "Switched task %r -> %r",
                        display_task_name(previous),
                        display_task_name(task_name),
                    )
            if chunk is not None:
                self._write(chunk)
        if was_stopped:
            self.start(task_name)

    def stop(self) -> None:
        idle = self._idle_if_running()
        with self._write_lock:
            with self._lock:
                state = self._state
                if not state.is_running:
                    return
                now = self._clock()
                self._sample_locked(now, idle)
                chunk = self._cut_chunk_locked(now)
                stopped_task = state.current_task_name
                state.is_running = False
                state.worked_today_before_run = state.worked_today
                state.time_by_task_before_run = dict(state.time_by_task)
                state.current_task_name = ""
                state.last_tick_active_duration = _ZERO
                state.last_tick_start = now
            self._log.info("Stopped task %r", display_task_name(stopped_task))
            if chunk is not None:
                self._write(chunk)

    def close(self) -> None:
        """Stop the timers and flush the running chunk. Only the first call has any effect."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            threads, self._threads = self._threads, []
        self._shutdown.set()
        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join(timeout=max(self.settings.flush_interval.total_seconds(), 5.0))
        try:
            self.stop()
        finally:
            self._log.info("Tracker session closed.")

    # Ticks

    def tick(self) -> None:
        """Activity tick: score the elapsed tick and refresh the running totals."""
        idle = self._idle_if_running()
        with self._lock:
            self._sample_locked(self._clock(), idle)

    def flush(self) -> Optional[Chunk]:
        """Flush tick: persist ``[chunk_start, now)`` when running."""
        with self._write_lock:
            with self._lock:
                if not self._state.is_running:
                    return None
                chunk = self._cut_chunk_locked(self._clock())
            if chunk is not None:
                self._write(chunk)
        return chunk

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            state = self._state
            time_by_task: dict[str, timedelta] = {}
            for task_name, duration in state.time_by_task.items():
                label = display_task_name(task_name)
                time_by_task[label] = time_by_task.get(label, _ZERO) + duration
            return SessionSnapshot(
                is_running=state.is_running,
                current_task_name=state.current_task_name,
                worked_today=state.worked_today,
                active_today=state.active_today,
                time_by_task=time_by_task,
                last_tick_active_duration=state.last_tick_active_duration,
            )

    # Timers

    def start_timers(self) -> None:
        with self._close_lock:
            if self._closed or self._threads:
                return
            self._threads = [
                threading.Thread(
                    target=self._run_loop,
                    args=(self.tick, self.settings.activity_interval),
                    name="work-tracker-activity",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._run_loop,
                    args=(self.flush, self.settings.flush_interval),
                    name="work-tracker-flush",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()
        self._log.info(
            "Timers started: activity every %s, flush every %s",
            self.settings.activity_interval,
            self.settings.flush_interval,
        )

    def run_until_stopped(
        self, on_refresh: Optional[Callable[[SessionSnapshot], None]] = None
    ) -> None:
        """Run the timers and refresh the display until shutdown or Ctrl-C."""
        self.start_timers()
        interval = self.settings.ui_interval.total_seconds()
        try:
            while not self._shutdown.wait(interval):
                if on_refresh is not None:
                    on_refresh(self.snapshot())
        except KeyboardInterrupt:
            self._log.info("Tracker interrupted; flushing the running chunk.")
        finally:
            self.close()

    def _run_loop(self, step: Callable[[], object], interval: timedelta) -> None:
        seconds = interval.total_seconds()
        # Sleep in an interruptible manner.
        while not self._shutdown.wait(seconds):
            try:
                step()
            except FlushError:
                return
            except Exception:
                self._log.exception("Timer step %s failed.", getattr(step, "__name__", step))

    # Internals, called with ``self._lock`` held unless noted

    def _idle_if_running(self) -> Optional[timedelta]:
        """Query the probe outside the lock; ``None`` when stopped or unknown."""
        with self._lock:
            running = self._state.is_running
        if not running:
            return None
        return self._probe.idle_since()

    def _sample_locked(self, now: datetime, idle: Optional[timedelta]) -> None:
        state = self._state
        if not state.is_running:
            state.last_tick_start = now
            return

        elapsed = max(now - state.last_tick_start, _ZERO)
        # Binary scoring: the tick is fully active unless idle covers all of it.
        # Unknown idle time counts as inactive.
        if idle is None or idle >= elapsed:
            active = _ZERO
        else:
            active = elapsed
        state.last_tick_active_duration = active

        task_name = state.current_task_name
        state.worked_today = state.worked_today_before_run + (now - state.run_start)
        state.time_by_task[task_name] = state.time_by_task_before_run.get(task_name, _ZERO) + (
            now - state.task_run_start
        )
        state.active_today += active
        state.active_during_this_chunk += active
        state.last_tick_start = now

    def _cut_chunk_locked(self, now: datetime) -> Optional[Chunk]:
        state = self._state
        started_at = state.chunk_start
        active = state.active_during_this_chunk
        state.chunk_start = now
        state.active_during_this_chunk = _ZERO

        if now == started_at:
            self._log.debug("Empty chunk at %s; nothing to flush.", now)
            return None
        if now < started_at:
            self._log.error(
                "Rejecting chunk for %r: finished_at %s is before started_at %s",
                display_task_name(state.current_task_name),
                now,
                started_at,
            )
            return None

        duration = now - started_at
        return Chunk(
            task_name=state.current_task_name,
            started_at=started_at,
            finished_at=now,
            active_time=min(max(active, _ZERO), duration),
        )

    def _write(self, chunk: Chunk) -> None:
        """Append ``chunk``; called with ``self._write_lock`` held and the state lock released."""
        try:
            path = self.chunk_log.append(chunk)
        except OSError as exc:
            self._log.critical("Failed to flush chunk for %r: %s", chunk.task_name, exc)
            self._shutdown.set()
            self._on_fatal(exc)
            raise FlushError(
                "Failed to append chunk to the day file.",
                details={"task_name": chunk.task_name, "started_at": chunk.started_at},
            ) from exc
        self._log.debug(
            "Flushed %s (%s active) for %r to %s",
            chunk.duration,
            chunk.active_time,
            display_task_name(chunk.task_name),
            path,
        )


def _clean_task_name(task: Optional[str]) -> str:
    return (task or "").strip()
