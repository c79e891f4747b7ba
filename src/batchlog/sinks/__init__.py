"""Log sinks: destinations a Dispatcher fans entries out to."""

from batchlog.sinks.base import LogSink, ValidatingSink
from batchlog.sinks.batching import BatchingSink, EngineState
from batchlog.sinks.console_sink import ConsoleSink
from batchlog.sinks.file_sink import FileSink, FileSinkConfig
from batchlog.sinks.network_sink import (
    NetworkSink,
    NetworkSinkConfig,
    ValidationOutcome,
)

__all__ = [
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
