"""Internal diagnostics: how batchlog reports on itself.

Sinks swallow their own failures so that logging never breaks the host
application. Those failures still need to be visible to whoever operates the
process, so they are reported here, on the stdlib ``batchlog`` logger, and
never fed back into a Dispatcher (that would loop a failing sink into itself).

Formatter is swappable via config:
    BATCHLOG_DIAGNOSTICS_FORMATTER=structlog   (default)
    BATCHLOG_DIAGNOSTICS_FORMATTER=stdlib
    BATCHLOG_DIAGNOSTICS_FORMAT=json | console

setup_diagnostics(config) builds a logging.Formatter from the chosen
formatter, wraps it in a stderr handler and attaches it to the ``batchlog``
logger, replacing only the handler it installed previously.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from batchlog.config import LoggingConfig

LOGGER_NAME = "batchlog"


@runtime_checkable
class DiagnosticsFormatter(Protocol):
    """Strategy: how diagnostic records are structured."""

    def setup(self, config: LoggingConfig) -> logging.Formatter: ...

    def get_logger(self, name: str, **kwargs: Any) -> Any: ...


class StructlogFormatter:
    """structlog processor pipeline bridged onto stdlib logging.

    Every event carries ``thread_name``; batching sink workers are named
    ``<SinkClass>-worker``, which identifies the sink behind a write failure.
    """

    def setup(self, config: LoggingConfig) -> logging.Formatter:
        import structlog

        shared_processors: list = [
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.CallsiteParameterAdder(
                {structlog.processors.CallsiteParameter.THREAD_NAME}
            ),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if config.diagnostics_format == "console":
            renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
        else:
            renderer = structlog.processors.JSONRenderer()

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *shared_processors,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        return structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )

    def get_logger(self, name: str, **kwargs: Any) -> Any:
        import structlog

        return structlog.get_logger(name, **kwargs)


class StdlibFormatter:
    """No structlog: key=value lines for the console, one JSON object otherwise."""

    def setup(self, config: LoggingConfig) -> logging.Formatter:
        if config.diagnostics_format == "console":
            return _KeyValueFormatter()
        return _JsonFormatter()

    def get_logger(self, name: str, **kwargs: Any) -> Any:
        return _KeywordLogger(logging.getLogger(name))


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "_structured", {})


class _KeyValueFormatter(logging.Formatter):
    """``<time> <LEVEL> <logger> [<thread>] <event> key=value ...``"""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-8s %(name)s [%(threadName)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        pairs = " ".join(f"{k}={v!r}" for k, v in _fields(record).items())
        return f"{line} {pairs}" if pairs else line


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        d: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "thread_name": record.threadName,
            "event": record.getMessage(),
        }
        d.update(_fields(record))
        if record.exc_info and record.exc_info[1]:
            d["exception"] = self.formatException(record.exc_info)
        return json.dumps(d, default=str)


class _KeywordLogger:
    """Gives a stdlib logger structlog's ``logger.info("event", key=value)`` API.

    Keyword fields ride on the record as ``_structured`` for the formatters
    above. Usable before setup_diagnostics(); records then reach whatever
    handlers the host application installed.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _log(self, level: int, event: str, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()
        record = self._logger.makeRecord(
            self._logger.name, level, "(unknown)", 0, event, (), exc_info or None
        )
        record._structured = kwargs  # type: ignore[attr-defined]
        self._logger.handle(record)

    def debug(self, event: str, **kw: Any) -> None:
        self._log(logging.DEBUG, event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._log(logging.INFO, event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log(logging.WARNING, event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._log(logging.ERROR, event, **kw)


_FORMATTERS: dict[str, type] = {
    "structlog": StructlogFormatter,
    "stdlib": StdlibFormatter,
}

_active_formatter: DiagnosticsFormatter | None = None


def setup_diagnostics(config: LoggingConfig) -> None:
    """Attach a managed stderr handler to the ``batchlog`` logger."""
    global _active_formatter

    formatter_cls = _FORMATTERS.get(config.diagnostics_formatter)
    if formatter_cls is None:
        raise ValueError(
            f"Unknown diagnostics formatter: {config.diagnostics_formatter!r}. "
            f"Available: {list(_FORMATTERS)}."
        )

    formatter = formatter_cls()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter.setup(config))
    handler._batchlog_managed = True  # type: ignore[attr-defined]

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers = [
        h for h in logger.handlers if not getattr(h, "_batchlog_managed", False)
    ]
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, config.diagnostics_level.upper(), logging.WARNING))

    _active_formatter = formatter


def get_logger(name: str = LOGGER_NAME, **kwargs: Any) -> Any:
    """Structured diagnostics logger, usable before setup_diagnostics()."""
    if _active_formatter is not None:
        return _active_formatter.get_logger(name, **kwargs)
    return _KeywordLogger(logging.getLogger(name))


def teardown_diagnostics() -> None:
    """Remove the managed handler. Used by reset()."""
    global _active_formatter
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers = [
        h for h in logger.handlers if not getattr(h, "_batchlog_managed", False)
    ]
    _active_formatter = None
