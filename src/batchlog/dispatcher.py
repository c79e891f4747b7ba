"""Dispatcher: filter by level, fan each entry out to the registered sinks.

A Dispatcher can be constructed and owned explicitly. For the common case
there is one process-wide default built from LoggingConfig:

    configure(cfg)  -- build the default dispatcher and its sinks (idempotent)
    log(msg, level) -- log through the default dispatcher
    shutdown()      -- drain and close the sinks configure() created
    reset()         -- shutdown + forget state (tests)
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from batchlog.diagnostics import get_logger
from batchlog.entry import LogEntry, LogLevel

if TYPE_CHECKING:
    from batchlog.config import LoggingConfig
    from batchlog.sinks.base import LogSink


class Dispatcher:
    """Owns the registered-sink set and the minimum-level filter."""

    def __init__(self, min_level: LogLevel = LogLevel.INFO) -> None:
        self._min_level = LogLevel(min_level)
        self._sinks: list[LogSink] = []
        # Re-entrant: a sink may log back through its dispatcher on this thread.
        self._lock = threading.RLock()

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    def set_min_level(self, level: LogLevel) -> None:
        self._min_level = LogLevel(level)

    @property
    def sinks(self) -> tuple[LogSink, ...]:
        with self._lock:
            return tuple(self._sinks)

    def register_sink(self, sink: LogSink) -> None:
        with self._lock:
            if not any(s is sink for s in self._sinks):
                self._sinks.append(sink)

    def unregister_sink(self, sink: LogSink) -> None:
        with self._lock:
            self._sinks = [s for s in self._sinks if s is not sink]

    def log(
        self, message: str, level: LogLevel = LogLevel.INFO, details: str = ""
    ) -> None:
        if level < self._min_level:
            return

        entry = LogEntry.create(message, level, details)
        with self._lock:
            for sink in self._sinks:
                try:
                    sink.log(entry)
                except Exception:
                    get_logger(__name__).error(
                        "sink.log_failed", sink=type(sink).__name__, exc_info=True
                    )

    def trace(self, message: str, details: str = "") -> None:
        self.log(message, LogLevel.TRACE, details)

    def debug(self, message: str, details: str = "") -> None:
        self.log(message, LogLevel.DEBUG, details)

    def info(self, message: str, details: str = "") -> None:
        self.log(message, LogLevel.INFO, details)

    def warn(self, message: str, details: str = "") -> None:
        self.log(message, LogLevel.WARN, details)

    def error(self, message: str, details: str = "") -> None:
        self.log(message, LogLevel.ERROR, details)


# ---------------------------------------------------------------------------
# Process-wide default
# ---------------------------------------------------------------------------

_dispatcher: Dispatcher | None = None
_owned_sinks: list = []
_configure_lock = threading.Lock()


def configure(config: LoggingConfig | None = None) -> Dispatcher:
    """Build the default dispatcher and the sinks enabled in ``config``.

    Idempotent -- a second call returns the existing dispatcher. Invalid
    values raise ValueError before any sink is started.
    """
    global _dispatcher

    with _configure_lock:
        if _dispatcher is not None:
            return _dispatcher

        from batchlog.config import LoggingConfig
        from batchlog.diagnostics import setup_diagnostics

        cfg = config or LoggingConfig.load()
        level = cfg.level()
        file_cfg = cfg.file_sink_config() if cfg.file_enabled else None
        network_cfg = cfg.network_sink_config() if cfg.network_url else None
        setup_diagnostics(cfg)

        dispatcher = Dispatcher(level)
        sinks: list = []

        if cfg.console_enabled:
            from batchlog.sinks.console_sink import ConsoleSink

            sinks.append(ConsoleSink())

        if file_cfg is not None:
            from batchlog.sinks.file_sink import FileSink

            sinks.append(FileSink(file_cfg))

        if network_cfg is not None:
            from batchlog.sinks.network_sink import NetworkSink

            sinks.append(NetworkSink(network_cfg, dispatcher=dispatcher))

        for sink in sinks:
            dispatcher.register_sink(sink)

        get_logger(__name__).debug(
            "dispatcher.configured",
            min_level=dispatcher.min_level.name,
            sinks=[type(s).__name__ for s in sinks],
        )

        _owned_sinks[:] = sinks
        _dispatcher = dispatcher
        return dispatcher


def get_dispatcher() -> Dispatcher:
    """The default dispatcher, configured from env/YAML on first use.

    Called from the logging path, so invalid configuration never raises here:
    it is reported to diagnostics and a console-only dispatcher is used.
    """
    if _dispatcher is not None:
        return _dispatcher
    try:
        return configure()
    except ValueError as exc:
        from batchlog.config import LoggingConfig

        dispatcher = configure(LoggingConfig.fallback())
        get_logger(__name__).error(
            "dispatcher.config_invalid", error=str(exc), fallback="console"
        )
        return dispatcher


def is_configured() -> bool:
    return _dispatcher is not None


def shutdown() -> None:
    """Drain and close every sink configure() created. Call on process exit."""
    with _configure_lock:
        sinks = list(_owned_sinks)
    for sink in sinks:
        close = getattr(sink, "close", None)
        if close is not None:
            close()


def reset() -> None:
    """Reset for testing."""
    global _dispatcher
    from batchlog.diagnostics import teardown_diagnostics

    shutdown()
    with _configure_lock:
        _dispatcher = None
        _owned_sinks.clear()
    teardown_diagnostics()


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------


def log(message: str, level: LogLevel = LogLevel.INFO, details: str = "") -> None:
    get_dispatcher().log(message, level, details)


def log_trace(message: str) -> None:
    get_dispatcher().log(message, LogLevel.TRACE)


def log_debug(message: str) -> None:
    get_dispatcher().log(message, LogLevel.DEBUG)


def log_info(message: str) -> None:
    get_dispatcher().log(message, LogLevel.INFO)


def log_warn(message: str) -> None:
    get_dispatcher().log(message, LogLevel.WARN)


def log_error(message: str) -> None:
    get_dispatcher().log(message, LogLevel.ERROR)
