"""Helpers to launch the local web dashboard."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import ReportSettings, TrackerSettings
from .paths import get_tasks_path, get_work_dir
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    work_dir: Optional[Path] = None,
    tasks_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    report_settings: Optional[ReportSettings] = None,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted; the session is flushed on shutdown."""
    app = create_app(
        work_dir=work_dir or get_work_dir(),
        tasks_path=tasks_path or get_tasks_path(),
        settings=settings or TrackerSettings(),
        report_settings=report_settings,
    )
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))

    if open_browser:
        threading.Thread(
            target=open_when_ready,
            args=(server, f"http://{host}:{port}/docs"),
            name="work-tracker-browser",
            daemon=True,
        ).start()

    logger.info("Serving work tracker on http://%s:%d", host, port)
    server.run()


def open_when_ready(server: uvicorn.Server, url: str, timeout: float = 10.0) -> bool:
    """Open ``url`` once ``server`` reports it is listening."""
    deadline = time.monotonic() + timeout
    while not server.started:
        if server.should_exit or time.monotonic() >= deadline:
            logger.warning("Dashboard is not up; not opening %s", url)
            return False
        time.sleep(0.1)
    try:
        return webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
        return False
