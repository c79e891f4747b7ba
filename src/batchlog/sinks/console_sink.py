"""Console sink: synchronous passthrough, one line per call, no queue."""

from __future__ import annotations

import sys
from typing import TextIO

from batchlog.entry import LogEntry, level_to_string
from batchlog.sinks.file_sink import format_timestamp


class ConsoleSink:
    """Write entries straight to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def log(self, entry: LogEntry) -> None:
        stream = self._stream or sys.stdout
        line = (
            f"[{format_timestamp(entry.timestamp)}] "
            f"[{level_to_string(entry.level)}] {entry.message}\n"
        )
        if entry.details:
            line += f"Details: {entry.details}\n"
        try:
            stream.write(line)
            stream.flush()
        except (OSError, ValueError):
            # closed or broken stream
            pass
