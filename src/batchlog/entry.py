"""Value types carried through the whole pipeline: LogLevel and LogEntry.

Entries are frozen. Timestamp and thread id are captured on the producing
thread when the entry is built, never by a sink worker at flush time.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


class LogLevel(IntEnum):
    """Ordered severity. Comparison is the filter used by the dispatcher."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    @classmethod
    def parse(cls, text: str) -> LogLevel:
        """Parse a case-insensitive level name (``WARNING`` is accepted for WARN)."""
        name = text.strip().upper()
        if name == "WARNING":
            name = "WARN"
        try:
            return cls[name]
        except KeyError:
            raise ValueError(
                f"Unknown log level: {text!r}. Available: {[m.name for m in cls]}"
            ) from None


def level_to_string(level: LogLevel) -> str:
    return LogLevel(level).name


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class LogEntry:
    message: str
    level: LogLevel = LogLevel.INFO
    details: str = ""
    timestamp: datetime = field(default_factory=_now)  # tz-aware, local
    thread_id: int = field(default_factory=threading.get_native_id)

    @classmethod
    def create(
        cls, message: str, level: LogLevel = LogLevel.INFO, details: str = ""
    ) -> LogEntry:
        """Build an entry stamped with the calling thread and the current time."""
        return cls(
            message=message,
            level=level,
            details=details or "",
            timestamp=_now(),
            thread_id=threading.get_native_id(),
        )
