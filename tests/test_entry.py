"""Tests for LogLevel and LogEntry value types."""

from __future__ import annotations

import threading
from dataclasses import FrozenInstanceError

import pytest

from batchlog.entry import LogEntry, LogLevel, level_to_string


class TestLogLevel:
    """Ordering, display names, parsing."""

    def test_total_order(self):
        assert LogLevel.TRACE < LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARN < LogLevel.ERROR

    def test_display_names(self):
        assert [level_to_string(lvl) for lvl in LogLevel] == [
            "TRACE", "DEBUG", "INFO", "WARN", "ERROR",
        ]

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("trace", LogLevel.TRACE),
            ("Debug", LogLevel.DEBUG),
            (" INFO ", LogLevel.INFO),
            ("warn", LogLevel.WARN),
            ("warning", LogLevel.WARN),
            ("ERROR", LogLevel.ERROR),
        ],
    )
    def test_parse(self, text, expected):
        assert LogLevel.parse(text) is expected

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            LogLevel.parse("loud")


class TestLogEntry:
    """Entries are immutable and stamped on the producing thread."""

    def test_frozen(self):
        e = LogEntry.create("hello")
        with pytest.raises(FrozenInstanceError):
            e.message = "changed"  # type: ignore[misc]

    def test_defaults(self):
        e = LogEntry.create("hello")
        assert e.level is LogLevel.INFO
        assert e.details == ""
        assert e.timestamp.tzinfo is not None

    def test_thread_id_is_callers(self):
        seen: list[int] = []

        def produce():
            seen.append(LogEntry.create("from worker").thread_id)
            seen.append(threading.get_native_id())

        t = threading.Thread(target=produce)
        t.start()
        t.join()
        assert seen[0] == seen[1]
        assert seen[0] != threading.get_native_id()

    def test_details_kept(self):
        e = LogEntry.create("m", LogLevel.ERROR, '{"big": "payload"}')
        assert e.details == '{"big": "payload"}'
        assert e.level is LogLevel.ERROR
