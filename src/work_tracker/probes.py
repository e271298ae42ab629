"""Idle-time probes consulted once per activity tick."""

from __future__ import annotations

import ctypes
import logging
import subprocess
import sys
from datetime import timedelta
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class ActivityProbe(Protocol):
    def idle_since(self) -> Optional[timedelta]:
        """Return the time since the last user input, or ``None`` when unknown."""


class XprintidleProbe:
    """Reads X11 idle time through the ``xprintidle`` utility."""

    def __init__(self, command: str = "xprintidle", timeout: float = 2.0) -> None:
        self._command = command
        self._timeout = timeout
        self._warned = False

    def idle_since(self) -> Optional[timedelta]:
        try:
            completed = subprocess.run(
                [self._command],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
            milliseconds = int(completed.stdout.strip())
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            if not self._warned:
                logger.warning("Idle time unavailable from %s: %s", self._command, exc)
                self._warned = True
            return None
        if milliseconds < 0:
            return None
        return timedelta(milliseconds=milliseconds)


class WindowsIdleProbe:
    """Detects idle time using Win32 APIs."""

    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_ulong)]

    def __init__(self) -> None:
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong

    def milliseconds_since_input(self) -> int:
        last_input = self.LASTINPUTINFO()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        # dwTime wraps every ~49.7 days, so compare on the low 32 bits.
        now = self._kernel32.GetTickCount64() & 0xFFFFFFFF
        return int((now - last_input.dwTime) & 0xFFFFFFFF)

    def idle_since(self) -> Optional[timedelta]:
        try:
            return timedelta(milliseconds=self.milliseconds_since_input())
        except OSError:  # pragma: no cover - platform specific
            logger.exception("Failed to query idle state; treating it as unknown.")
            return None


class StaticProbe:
    """Probe with a fixed answer, for headless runs and tests."""

    def __init__(self, idle: Optional[timedelta] = timedelta(0)) -> None:
        self.idle = idle

    def idle_since(self) -> Optional[timedelta]:
        return self.idle


def default_probe() -> ActivityProbe:
    if sys.platform == "win32":
        return WindowsIdleProbe()
    return XprintidleProbe()
