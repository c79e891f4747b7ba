"""Shared fixtures: a recording sink and default-dispatcher isolation."""

from __future__ import annotations

import os
import threading

import pytest

from batchlog.entry import LogEntry


class RecordingSink:
    """Synchronous sink that keeps every entry it sees."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []
        self._lock = threading.Lock()

    def log(self, entry: LogEntry) -> None:
        with self._lock:
            self.entries.append(entry)

    @property
    def messages(self) -> list[str]:
        with self._lock:
            return [e.message for e in self.entries]


@pytest.fixture(autouse=True)
def _reset_default_dispatcher(monkeypatch):
    """Isolate the process-wide dispatcher and its env config per test."""
    from batchlog.dispatcher import reset

    for key in list(os.environ):
        if key.startswith("BATCHLOG_"):
            monkeypatch.delenv(key)
    reset()
    yield
    reset()


@pytest.fixture()
def recorder() -> RecordingSink:
    return RecordingSink()
