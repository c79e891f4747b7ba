"""Tests for the Dispatcher and the process-wide default.

Coverage:
- Level filtering, live threshold changes
- Registration: idempotent, unregister of unknown sink
- Fan-out order, failing sink isolation
- Concurrent producers
- configure()/get_dispatcher()/reset() and the convenience functions
"""

from __future__ import annotations

import io
import threading

import pytest

from batchlog.config import LoggingConfig
from batchlog.dispatcher import Dispatcher
from batchlog.entry import LogLevel


class ExplodingSink:
    def log(self, entry):
        raise RuntimeError("sink bug")


# =============================================================================
# Filtering
# =============================================================================


class TestFiltering:
    def test_below_threshold_never_reaches_sinks(self, recorder):
        d = Dispatcher(LogLevel.WARN)
        d.register_sink(recorder)

        for level in LogLevel:
            d.log(f"msg-{level.name}", level)

        assert recorder.messages == ["msg-WARN", "msg-ERROR"]

    def test_count_matches_accepted_calls(self, recorder):
        d = Dispatcher(LogLevel.INFO)
        d.register_sink(recorder)
        levels = [LogLevel.TRACE, LogLevel.INFO, LogLevel.DEBUG, LogLevel.ERROR] * 25
        for i, level in enumerate(levels):
            d.log(str(i), level)
        expected = sum(1 for lvl in levels if lvl >= LogLevel.INFO)
        assert len(recorder.entries) == expected

    def test_set_min_level_applies_to_later_calls(self, recorder):
        d = Dispatcher(LogLevel.INFO)
        d.register_sink(recorder)
        d.debug("dropped")
        d.set_min_level(LogLevel.TRACE)
        d.trace("kept")
        assert recorder.messages == ["kept"]
        assert d.min_level is LogLevel.TRACE

    def test_entry_fields(self, recorder):
        d = Dispatcher(LogLevel.TRACE)
        d.register_sink(recorder)
        d.log("boom", LogLevel.ERROR, "stack")
        e = recorder.entries[0]
        assert (e.message, e.level, e.details) == ("boom", LogLevel.ERROR, "stack")
        assert e.thread_id == threading.get_native_id()


# =============================================================================
# Registration + fan-out
# =============================================================================


class TestRegistration:
    def test_register_twice_is_noop(self, recorder):
        d = Dispatcher()
        d.register_sink(recorder)
        d.register_sink(recorder)
        d.info("once")
        assert recorder.messages == ["once"]
        assert d.sinks == (recorder,)

    def test_unregister(self, recorder):
        d = Dispatcher()
        d.register_sink(recorder)
        d.unregister_sink(recorder)
        d.info("nobody")
        assert recorder.entries == []

    def test_unregister_unknown_is_noop(self, recorder):
        d = Dispatcher()
        d.unregister_sink(recorder)
        assert d.sinks == ()

    def test_fan_out_in_registration_order(self):
        order: list[str] = []

        class Named:
            def __init__(self, name):
                self.name = name

            def log(self, entry):
                order.append(self.name)

        d = Dispatcher()
        for name in ("a", "b", "c"):
            d.register_sink(Named(name))
        d.info("x")
        assert order == ["a", "b", "c"]

    def test_failing_sink_does_not_block_others(self, recorder):
        d = Dispatcher()
        d.register_sink(ExplodingSink())
        d.register_sink(recorder)
        d.info("still delivered")
        assert recorder.messages == ["still delivered"]

    def test_sink_may_log_back_through_dispatcher(self, recorder):
        d = Dispatcher()

        class Echo:
            def __init__(self):
                self.calls = 0

            def log(self, entry):
                self.calls += 1
                if self.calls == 1:
                    d.info("echo")

        echo = Echo()
        d.register_sink(echo)
        d.register_sink(recorder)
        d.info("first")
        assert recorder.messages == ["echo", "first"]


class TestConcurrency:
    def test_concurrent_producers_no_loss(self, recorder):
        d = Dispatcher()
        d.register_sink(recorder)
        n_threads, per_thread = 8, 200

        def produce(tid):
            for i in range(per_thread):
                d.info(f"{tid}:{i}")

        threads = [threading.Thread(target=produce, args=(t,)) for t in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(recorder.entries) == n_threads * per_thread
        assert len(set(recorder.messages)) == n_threads * per_thread


# =============================================================================
# Process-wide default
# =============================================================================


class TestDefaultDispatcher:
    def test_configure_idempotent(self):
        from batchlog.dispatcher import configure, is_configured

        cfg = LoggingConfig(console_enabled=False)
        d1 = configure(cfg)
        d2 = configure(LoggingConfig(min_level="ERROR"))
        assert d1 is d2
        assert is_configured()
        assert d1.min_level is LogLevel.INFO

    def test_configure_builds_enabled_sinks(self, tmp_path):
        from batchlog.dispatcher import configure
        from batchlog.sinks import ConsoleSink, FileSink, NetworkSink

        cfg = LoggingConfig(
            console_enabled=True,
            file_enabled=True,
            file_path=str(tmp_path / "app.log"),
            network_url="http://127.0.0.1:1",
        )
        d = configure(cfg)
        kinds = [type(s) for s in d.sinks]
        assert kinds == [ConsoleSink, FileSink, NetworkSink]

    def test_no_network_sink_without_url(self):
        from batchlog.dispatcher import configure
        from batchlog.sinks import NetworkSink

        d = configure(LoggingConfig(console_enabled=False, network_url=""))
        assert not any(isinstance(s, NetworkSink) for s in d.sinks)

    def test_convenience_functions(self, recorder):
        from batchlog.dispatcher import (
            configure,
            log,
            log_debug,
            log_error,
            log_info,
            log_trace,
            log_warn,
        )

        d = configure(LoggingConfig(console_enabled=False, min_level="TRACE"))
        d.register_sink(recorder)
        log_trace("t")
        log_debug("d")
        log_info("i")
        log_warn("w")
        log_error("e")
        log("custom", LogLevel.WARN, "extra")
        assert [e.level for e in recorder.entries] == [
            LogLevel.TRACE, LogLevel.DEBUG, LogLevel.INFO,
            LogLevel.WARN, LogLevel.ERROR, LogLevel.WARN,
        ]
        assert recorder.entries[-1].details == "extra"

    def test_reset_clears_state(self):
        from batchlog.dispatcher import configure, is_configured, reset

        configure(LoggingConfig(console_enabled=False))
        reset()
        assert not is_configured()

    def test_console_sink_output(self, capsys):
        from batchlog.dispatcher import configure, log_info

        configure(LoggingConfig(console_enabled=True))
        log_info("to the console")
        out = capsys.readouterr().out
        assert "[INFO] to the console" in out

    def test_shutdown_drains_file_sink(self, tmp_path):
        from batchlog.dispatcher import configure, log_info, shutdown

        path = tmp_path / "app.log"
        configure(
            LoggingConfig(
                console_enabled=False,
                file_enabled=True,
                file_path=str(path),
                file_flush_interval=60.0,
                file_batch_size=1000,
            )
        )
        log_info("before shutdown")
        shutdown()
        assert "before shutdown" in path.read_text(encoding="utf-8")

    def test_invalid_env_level_falls_back_to_console(self, monkeypatch, capsys):
        from batchlog.dispatcher import get_dispatcher, is_configured, log
        from batchlog.sinks import ConsoleSink

        monkeypatch.setenv("BATCHLOG_MIN_LEVEL", "verbose")
        log("hello")
        log("again")

        assert is_configured()
        d = get_dispatcher()
        assert d.min_level is LogLevel.INFO
        assert [type(s) for s in d.sinks] == [ConsoleSink]
        captured = capsys.readouterr()
        assert "[INFO] hello" in captured.out
        assert "[INFO] again" in captured.out
        assert "dispatcher.config_invalid" in captured.err

    def test_unparsable_env_number_uses_default(self, monkeypatch, capsys):
        from batchlog.dispatcher import log_info

        monkeypatch.setenv("BATCHLOG_FILE_MAX_SIZE", "10MB")
        log_info("hello")
        assert "[INFO] hello" in capsys.readouterr().out

    def test_explicit_invalid_config_raises_before_starting_sinks(self, tmp_path):
        from batchlog.dispatcher import configure, is_configured

        cfg = LoggingConfig(
            console_enabled=False,
            file_enabled=True,
            file_path=str(tmp_path / "app.log"),
            network_url="http://seq.test",
            network_batch_size=0,
        )
        with pytest.raises(ValueError):
            configure(cfg)
        assert not is_configured()
        assert not any(t.name == "FileSink-worker" for t in threading.enumerate())

        with pytest.raises(ValueError, match="Unknown log level"):
            configure(LoggingConfig(min_level="verbose"))


class TestConsoleSink:
    def test_details_line(self):
        from batchlog.entry import LogEntry
        from batchlog.sinks import ConsoleSink

        stream = io.StringIO()
        ConsoleSink(stream).log(LogEntry.create("msg", LogLevel.WARN, "more"))
        lines = stream.getvalue().splitlines()
        assert lines[0].endswith("[WARN] msg")
        assert lines[1] == "Details: more"

    def test_closed_stream_swallowed(self):
        from batchlog.entry import LogEntry
        from batchlog.sinks import ConsoleSink

        stream = io.StringIO()
        stream.close()
        ConsoleSink(stream).log(LogEntry.create("msg"))  # must not raise


@pytest.mark.parametrize("level", list(LogLevel))
def test_every_level_at_trace_threshold(level, recorder):
    d = Dispatcher(LogLevel.TRACE)
    d.register_sink(recorder)
    d.log("x", level)
    assert recorder.entries[0].level is level
