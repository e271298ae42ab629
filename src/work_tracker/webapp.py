"""FastAPI application that exposes the live session and reports over a local API."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .aggregation import resolve_range
from .chunk_log import ChunkLog
from .config import ReportSettings, TrackerSettings
from .errors import FlushError, ReportError
from .models import SessionSnapshot, display_task_name
from .paths import get_tasks_path, get_work_dir
from .probes import ActivityProbe
from .reporting import format_duration, prepare_report
from .tasks import load_tasks
from .tracker import TrackerSession

logger = logging.getLogger(__name__)


class TrackerRunner:
    """Manage the tracker session and its timers for the lifetime of the app."""

    def __init__(self, session: TrackerSession, *, load_today: bool = True) -> None:
        self._session = session
        self._load_today = load_today
        self._lock = threading.Lock()
        self._started = False

    @property
    def session(self) -> TrackerSession:
        return self._session

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            if self._load_today:
                self._session.load_today()
            self._session.start_timers()
            self._started = True
            logger.info("Tracker timers started.")

    def stop(self) -> None:
        with self._lock:
            self._started = False
        self._session.close()
        logger.info("Tracker session stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return self._started and not self._session.closed


class StartIntent(BaseModel):
    task: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class SwitchIntent(BaseModel):
    task: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    work_dir: Optional[Path] = None,
    tasks_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    report_settings: Optional[ReportSettings] = None,
    probe: Optional[ActivityProbe] = None,
    session: Optional[TrackerSession] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_work_dir = Path(work_dir or get_work_dir())
    resolved_tasks_path = Path(tasks_path or get_tasks_path())
    resolved_report_settings = report_settings or ReportSettings()
    if session is None:
        session = TrackerSession(
            ChunkLog(resolved_work_dir),
            settings or TrackerSettings(),
            probe,
        )
        runner = TrackerRunner(session)
    else:
        resolved_work_dir = session.chunk_log.root
        runner = TrackerRunner(session, load_today=False)

    app = FastAPI(title="Work Tracker", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.work_dir = resolved_work_dir
    app.state.tasks_path = resolved_tasks_path
    app.state.tracker_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        tracker: TrackerRunner = request.app.state.tracker_runner
        payload = _snapshot_payload(tracker.session.snapshot())
        payload["timers_running"] = tracker.is_running()
        payload["work_dir"] = str(request.app.state.work_dir)
        return payload

    @app.post("/api/start")
    def start(request: Request, payload: Optional[StartIntent] = None) -> Dict[str, Any]:
        session = request.app.state.tracker_runner.session
        _apply_intent(session.start, payload.task if payload else None)
        return _snapshot_payload(session.snapshot())

    @app.post("/api/switch")
    def switch(payload: SwitchIntent, request: Request) -> Dict[str, Any]:
        if not payload.task.strip():
            raise HTTPException(status_code=400, detail="task is required")
        session = request.app.state.tracker_runner.session
        _apply_intent(session.switch_task, payload.task)
        return _snapshot_payload(session.snapshot())

    @app.post("/api/stop")
    def stop(request: Request) -> Dict[str, Any]:
        session = request.app.state.tracker_runner.session
        _apply_intent(session.stop)
        return _snapshot_payload(session.snapshot())

    @app.get("/api/tasks")
    def tasks(request: Request) -> Dict[str, Any]:
        try:
            catalogue = load_tasks(request.app.state.tasks_path)
        except ValueError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        snapshot: SessionSnapshot = request.app.state.tracker_runner.session.snapshot()
        today = dict(snapshot.time_by_task)
        entries = []
        for task in catalogue:
            entries.append(
                {
                    "name": task.name,
                    "description": task.description,
                    "created_at": task.created_at.isoformat() if task.created_at else None,
                    "seconds_today": today.pop(task.name, timedelta(0)).total_seconds(),
                }
            )
        for name, duration in sorted(today.items()):
            entries.append(
                {
                    "name": name,
                    "description": "",
                    "created_at": None,
                    "seconds_today": duration.total_seconds(),
                }
            )
        return {"tasks": entries}

    @app.get("/api/report")
    def report(
        request: Request,
        start: Optional[str] = Query(
            default=None,
            description="Start date in DD-MM-YYYY format (inclusive).",
        ),
        end: Optional[str] = Query(
            default=None,
            description="End date in DD-MM-YYYY format (inclusive).",
        ),
        smooth: float = Query(
            default=resolved_report_settings.smooth,
            ge=0.0,
            le=1.0,
            description="Smoothing of partially active time, 0 is linear.",
        ),
    ) -> Dict[str, Any]:
        try:
            _, first, last = resolve_range(resolved_report_settings.timezone, start, end)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        try:
            payload = prepare_report(request.app.state.work_dir, first, last, smooth)
        except ReportError as exc:
            raise HTTPException(status_code=500, detail=exc.to_dict()) from exc
        return payload.to_dict()

    return app


def _apply_intent(action: Any, *args: Any) -> None:
    try:
        action(*args)
    except FlushError as exc:
        raise HTTPException(status_code=500, detail=exc.to_dict()) from exc


def _snapshot_payload(snapshot: SessionSnapshot) -> Dict[str, Any]:
    return {
        "is_running": snapshot.is_running,
        "current_task": (
            display_task_name(snapshot.current_task_name) if snapshot.is_running else None
        ),
        "clock": format_duration(snapshot.worked_today),
        "worked_today_seconds": snapshot.worked_today.total_seconds(),
        "active_today_seconds": snapshot.active_today.total_seconds(),
        "activity_percentage": snapshot.activity_percentage,
        "current_activity_percentage": (
            100.0 if snapshot.last_tick_active_duration > timedelta(0) else 0.0
        ),
        "time_by_task": {
            name: duration.total_seconds() for name, duration in snapshot.time_by_task.items()
        },
    }
