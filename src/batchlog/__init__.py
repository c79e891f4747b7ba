"""batchlog: structured logging with asynchronous, batched file and HTTP sinks.

Public API:
    log(message, level, details) -- log through the default dispatcher
    configure(cfg)               -- build the default dispatcher + sinks (once)
    shutdown()                   -- drain and close configured sinks
    reset()                      -- reset for testing

Sinks:
    ConsoleSink  -- synchronous stdout passthrough
    FileSink     -- batched, size-rotated text file
    NetworkSink  -- batched CLEF over HTTP with connection validation
"""

from batchlog.bridge import DispatcherHandler
from batchlog.config import LoggingConfig
from batchlog.dispatcher import (
    Dispatcher,
    configure,
    get_dispatcher,
    is_configured,
    log,
    log_debug,
    log_error,
    log_info,
    log_trace,
    log_warn,
    reset,
    shutdown,
)
from batchlog.entry import LogEntry, LogLevel, level_to_string
from batchlog.sinks import (
    BatchingSink,
    ConsoleSink,
    EngineState,
    FileSink,
    FileSinkConfig,
    LogSink,
    NetworkSink,
    NetworkSinkConfig,
    ValidatingSink,
    ValidationOutcome,
)

__all__ = [
    # Core API
    "log",
    "log_trace",
    "log_debug",
    "log_info",
    "log_warn",
    "log_error",
    "configure",
    "get_dispatcher",
    "is_configured",
    "shutdown",
    "reset",
    "Dispatcher",
    "LoggingConfig",
    "DispatcherHandler",
    # Values
    "LogEntry",
    "LogLevel",
    "level_to_string",
    # Sinks
    "LogSink",
    "ValidatingSink",
    "BatchingSink",
    "EngineState",
    "ConsoleSink",
    "FileSink",
    "FileSinkConfig",
    "NetworkSink",
    "NetworkSinkConfig",
    "ValidationOutcome",
]
