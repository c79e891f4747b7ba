"""HTTP sink shipping CLEF (Compact Log Event Format) batches to a Seq-style server.

Each entry becomes one JSON object on its own line:

    {"@t": "2026-01-31T13:05:09.123Z", "@l": "Information", "@m": "...",
     "ThreadId": 4711, "Details": "...", "Instance": "...", "source": "..."}

Batches are POSTed to ``{server_url}/api/events/raw`` with content type
``application/vnd.serilog.clef``. Delivery is best-effort: transport errors
and error statuses are reported to diagnostics and the batch is dropped.

validate_connection() is the one diagnostic path that reports back to the
application: it GETs ``{server_url}/api`` and logs the classified outcome
through the dispatcher.
"""

from __future__ import annotations

import dataclasses
import json
import threading
from dataclasses import dataclass, field
from datetime import timezone
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from batchlog.diagnostics import get_logger
from batchlog.entry import LogEntry, LogLevel
from batchlog.sinks.batching import BatchingSink
from batchlog.sinks.file_sink import program_name

if TYPE_CHECKING:
    from batchlog.dispatcher import Dispatcher

CLEF_CONTENT_TYPE = "application/vnd.serilog.clef"
API_KEY_HEADER = "X-Seq-ApiKey"
EVENTS_PATH = "/api/events/raw"
STATUS_PATH = "/api"

# connect 5s, response 10s
TIMEOUT = httpx.Timeout(10.0, connect=5.0)

_SEQ_LEVELS = {
    LogLevel.TRACE: "Verbose",
    LogLevel.DEBUG: "Debug",
    LogLevel.INFO: "Information",
    LogLevel.WARN: "Warning",
    LogLevel.ERROR: "Error",
}


def seq_level(level: LogLevel) -> str:
    return _SEQ_LEVELS.get(level, "Information")


def format_clef(entry: LogEntry, *, source: str = "", instance: str = "") -> str:
    """Serialize one entry as a single-line CLEF JSON object."""
    ts = entry.timestamp
    if ts.tzinfo is None:
        ts = ts.astimezone()
    ts = ts.astimezone(timezone.utc)
    event: dict = {
        "@t": ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z",
        "@l": seq_level(entry.level),
        "@m": entry.message,
        "ThreadId": entry.thread_id,
    }
    if entry.details:
        event["Details"] = entry.details
    if instance:
        event["Instance"] = instance
    if source:
        event["source"] = source
    return json.dumps(event, ensure_ascii=False)


class ValidationOutcome(Enum):
    OK = "ok"
    NOT_CONFIGURED = "not_configured"
    AUTH_FAILED = "auth_failed"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    NETWORK_ERROR = "network_error"
    UNEXPECTED = "unexpected"


def classify_status(status_code: int) -> ValidationOutcome:
    if status_code == 200:
        return ValidationOutcome.OK
    if status_code in (401, 403):
        return ValidationOutcome.AUTH_FAILED
    if status_code == 404:
        return ValidationOutcome.NOT_FOUND
    return ValidationOutcome.FAILED


@dataclass(frozen=True)
class NetworkSinkConfig:
    """Immutable configuration snapshot. An empty ``server_url`` disables shipping."""

    server_url: str = ""
    api_key: str = ""
    source: str = field(default_factory=program_name)
    instance: str = ""
    batch_size: int = 10
    flush_interval: float = 2.0  # seconds

    def __post_init__(self) -> None:
        object.__setattr__(self, "server_url", (self.server_url or "").rstrip("/"))
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.flush_interval <= 0:
            raise ValueError(
                f"flush_interval must be positive, got {self.flush_interval}"
            )

    def headers(self) -> dict[str, str]:
        return {API_KEY_HEADER: self.api_key} if self.api_key else {}


class NetworkSink(BatchingSink):
    """Asynchronous, batched CLEF-over-HTTP sink."""

    def __init__(
        self,
        config: NetworkSinkConfig | None = None,
        *,
        dispatcher: Dispatcher | None = None,
        transport: httpx.BaseTransport | None = None,
        **engine_kwargs,
    ) -> None:
        self._lock = threading.Lock()
        self._config = config or NetworkSinkConfig()
        self._dispatcher = dispatcher
        self._transport = transport
        self._client = self._new_client()
        super().__init__(**engine_kwargs)

    def _new_client(self) -> httpx.Client:
        return httpx.Client(timeout=TIMEOUT, transport=self._transport)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> NetworkSinkConfig:
        with self._lock:
            return self._config

    def configure(self, **changes) -> NetworkSinkConfig:
        with self._lock:
            self._config = dataclasses.replace(self._config, **changes)
            return self._config

    def set_server_url(self, url: str) -> None:
        self.configure(server_url=url)

    def set_api_key(self, key: str) -> None:
        self.configure(api_key=key)

    def set_source(self, source: str) -> None:
        self.configure(source=source)

    def set_instance(self, instance: str) -> None:
        self.configure(instance=instance)

    def set_batch_size(self, size: int) -> None:
        self.configure(batch_size=size)

    def set_flush_interval(self, seconds: float) -> None:
        self.configure(flush_interval=seconds)

    # ------------------------------------------------------------------
    # Engine hooks
    # ------------------------------------------------------------------

    def _batch_size(self) -> int:
        return self.config.batch_size

    def _flush_interval(self) -> float:
        return self.config.flush_interval

    def write_batch(self, entries: list[LogEntry]) -> None:
        cfg = self.config
        if not cfg.server_url:
            return
        payload = "".join(
            format_clef(e, source=cfg.source, instance=cfg.instance) + "\n"
            for e in entries
        )
        try:
            response = self._client.post(
                cfg.server_url + EVENTS_PATH,
                content=payload.encode("utf-8"),
                headers={"Content-Type": CLEF_CONTENT_TYPE, **cfg.headers()},
            )
            if response.is_error:
                get_logger(__name__).warning(
                    "network.batch_rejected",
                    url=cfg.server_url,
                    status=response.status_code,
                    size=len(entries),
                )
        except httpx.HTTPError as exc:
            get_logger(__name__).warning(
                "network.batch_failed", url=cfg.server_url, size=len(entries),
                error=str(exc),
            )

    def _on_closed(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Connection validation
    # ------------------------------------------------------------------

    def _report(self, message: str, level: LogLevel) -> None:
        dispatcher = self._dispatcher
        if dispatcher is None:
            from batchlog.dispatcher import get_dispatcher

            dispatcher = get_dispatcher()
        dispatcher.log(message, level)

    def check_connection(self) -> ValidationOutcome:
        """Check the server and report the outcome. Never raises."""
        cfg = self.config
        url = cfg.server_url
        if not url:
            self._report(
                "Network sink configuration error: server URL is not configured",
                LogLevel.ERROR,
            )
            return ValidationOutcome.NOT_CONFIGURED

        try:
            with self._new_client() as client:
                response = client.get(url + STATUS_PATH, headers=cfg.headers())
        except httpx.TransportError as exc:
            self._report(
                f"Connection failed - Server: {url} - Network error: {exc}",
                LogLevel.ERROR,
            )
            return ValidationOutcome.NETWORK_ERROR
        except Exception as exc:
            self._report(
                f"Connection failed - Server: {url} - "
                f"Unexpected error ({type(exc).__name__}): {exc}",
                LogLevel.ERROR,
            )
            return ValidationOutcome.UNEXPECTED

        outcome = classify_status(response.status_code)
        status = f"{response.status_code} {response.reason_phrase}".rstrip()
        if outcome is ValidationOutcome.OK:
            self._report(
                f"Connection validated successfully - Server: {url}", LogLevel.INFO
            )
        elif outcome is ValidationOutcome.AUTH_FAILED:
            self._report(
                f"Authentication failed - Server: {url}, Status: {status} - "
                "Check your API key configuration",
                LogLevel.ERROR,
            )
        elif outcome is ValidationOutcome.NOT_FOUND:
            self._report(
                f"API endpoint not found - Server: {url}, Status: {status} - "
                "Verify the server URL is correct",
                LogLevel.ERROR,
            )
        else:
            self._report(
                f"Connection failed - Server: {url}, Status: {status}",
                LogLevel.ERROR,
            )
        get_logger(__name__).info(
            "network.validated", url=url, outcome=outcome.value,
            status=response.status_code,
        )
        return outcome

    def validate_connection(self) -> bool:
        return self.check_connection() is ValidationOutcome.OK
