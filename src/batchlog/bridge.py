"""Stdlib bridge: route ``logging`` records into a Dispatcher.

    import logging
    from batchlog.bridge import DispatcherHandler

    logging.getLogger().addHandler(DispatcherHandler())

Records that batchlog itself causes are ignored, so a sink can never feed
its own output back into the dispatcher:
  - batchlog's diagnostics loggers
  - the HTTP client stack the network sink ships with (httpx, httpcore)
  - anything logged on a batching sink's worker thread
"""

from __future__ import annotations

import logging

from batchlog.diagnostics import LOGGER_NAME
from batchlog.dispatcher import Dispatcher, get_dispatcher
from batchlog.entry import LogLevel
from batchlog.sinks.batching import in_sink_worker

IGNORED_LOGGERS = (LOGGER_NAME, "httpx", "httpcore")


def level_from_stdlib(levelno: int) -> LogLevel:
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARN
    if levelno >= logging.INFO:
        return LogLevel.INFO
    if levelno >= logging.DEBUG:
        return LogLevel.DEBUG
    return LogLevel.TRACE


def is_internal(record: logging.LogRecord) -> bool:
    if in_sink_worker():
        return True
    return any(
        record.name == name or record.name.startswith(name + ".")
        for name in IGNORED_LOGGERS
    )


class DispatcherHandler(logging.Handler):
    """Handler that forwards formatted records to a dispatcher."""

    def __init__(
        self, dispatcher: Dispatcher | None = None, level: int = logging.NOTSET
    ) -> None:
        super().__init__(level)
        self._dispatcher = dispatcher

    def emit(self, record: logging.LogRecord) -> None:
        if is_internal(record):
            return
        try:
            details = ""
            if record.exc_info and record.exc_info[1]:
                details = logging.Formatter().formatException(record.exc_info)
            dispatcher = self._dispatcher if self._dispatcher is not None else get_dispatcher()
            dispatcher.log(record.getMessage(), level_from_stdlib(record.levelno), details)
        except Exception:
            self.handleError(record)
