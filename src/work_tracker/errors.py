"""Exception hierarchy for the work tracker."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional


class WorkTrackerError(Exception):
    """Base class for all work tracker errors.

    Attributes:
        message: Human readable description.
        details: Extra context (timestamps, durations) for logs and API responses.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": {key: str(value) for key, value in self.details.items()},
        }


class ChunkLogError(WorkTrackerError):
    """A chunk log line could not be accepted."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[Path] = None,
        line_number: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path
        self.line_number = line_number

    def __str__(self) -> str:
        parts = [self.message]
        if self.path is not None:
            location = str(self.path)
            if self.line_number is not None:
                location = f"{location}:{self.line_number}"
            parts.append(f"({location})")
        return " ".join(parts)

    def at(self, path: Path, line_number: int) -> "ChunkLogError":
        """Attach file position to an error raised by a line-level parser."""
        self.path = path
        self.line_number = line_number
        return self


class MalformedRecordError(ChunkLogError):
    """The line is not a well-formed chunk record."""


class InvalidIntervalError(ChunkLogError):
    """The chunk does not finish strictly after it starts."""


class InvalidActiveTimeError(ChunkLogError):
    """The chunk's active time is outside [0, duration]."""


class FlushError(WorkTrackerError):
    """Appending a chunk to the day file failed."""


class ReportError(WorkTrackerError):
    """A report run was aborted."""
