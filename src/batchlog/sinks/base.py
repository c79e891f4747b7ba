"""Sink protocols: where dispatched log entries go."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from batchlog.entry import LogEntry


@runtime_checkable
class LogSink(Protocol):
    """Destination for log entries.

    ``log`` is called synchronously on the producing thread and must not raise.
    """

    def log(self, entry: LogEntry) -> None: ...


@runtime_checkable
class ValidatingSink(Protocol):
    """A sink that can check its remote end on demand."""

    def validate_connection(self) -> bool: ...
