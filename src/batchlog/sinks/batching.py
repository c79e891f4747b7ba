"""Batching engine shared by every sink that must not block the caller.

A bounded queue sits between producers and one worker thread. The worker
coalesces entries into a batch and hands it to ``write_batch`` when either
trigger fires:

    len(batch) >= batch_size
    monotonic() - last_flush >= flush_interval

Producers block while the queue is full (backpressure, no silent drop). On
close() the worker drains whatever is still queued, writes it in one final
batch and exits. Entries logged after close() began are dropped, as are
entries a sink logs into itself from its own worker thread.

Subclasses implement write_batch() and may override _batch_size() and
_flush_interval(); both are re-read on every trigger evaluation.
"""

from __future__ import annotations

import queue
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum

from batchlog.diagnostics import get_logger
from batchlog.entry import LogEntry

DEFAULT_BATCH_SIZE = 10
DEFAULT_FLUSH_INTERVAL = 0.1  # seconds
DEFAULT_QUEUE_DEPTH = 1000
DEFAULT_POLL_INTERVAL = 0.1  # seconds

_worker_local = threading.local()


def in_sink_worker() -> bool:
    """True on any batching sink's worker thread, including inside write_batch()."""
    return getattr(_worker_local, "active", False)


class EngineState(Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class BatchingSink(ABC):
    """Bounded queue + single worker + dual-trigger batch flush."""

    def __init__(
        self,
        *,
        queue_depth: int = DEFAULT_QUEUE_DEPTH,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if queue_depth <= 0:
            raise ValueError(f"queue_depth must be positive, got {queue_depth}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")

        self._queue: queue.Queue[LogEntry] = queue.Queue(maxsize=queue_depth)
        self._poll_interval = poll_interval
        self._closing = threading.Event()
        self._flush_requested = threading.Event()
        self._close_lock = threading.Lock()
        self._state = EngineState.RUNNING

        self._worker = threading.Thread(
            target=self._run,
            name=f"{type(self).__name__}-worker",
            daemon=True,
        )
        self._worker.start()

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def write_batch(self, entries: list[LogEntry]) -> None:
        """Write an ordered, non-empty batch. Exceptions are swallowed by the engine."""

    def _batch_size(self) -> int:
        return DEFAULT_BATCH_SIZE

    def _flush_interval(self) -> float:
        return DEFAULT_FLUSH_INTERVAL

    def _on_closed(self) -> None:
        """Called once after the worker has exited."""

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    def log(self, entry: LogEntry) -> None:
        """Enqueue an entry, blocking while the queue is full."""
        # The worker is the only consumer: putting from it could wait forever.
        if threading.current_thread() is self._worker:
            return
        while not self._closing.is_set():
            try:
                self._queue.put(entry, timeout=self._poll_interval)
                return
            except queue.Full:
                continue

    def flush(self) -> None:
        """Block until every entry enqueued before this call has been written."""
        if not self._worker.is_alive() or threading.current_thread() is self._worker:
            return
        self._flush_requested.set()
        try:
            while self._queue.unfinished_tasks and self._worker.is_alive():
                with self._queue.all_tasks_done:
                    if self._queue.unfinished_tasks:
                        self._queue.all_tasks_done.wait(self._poll_interval)
        finally:
            self._flush_requested.clear()

    def close(self) -> None:
        """Drain the queue, write the final batch and join the worker."""
        with self._close_lock:
            if self._state is not EngineState.RUNNING:
                return
            self._state = EngineState.DRAINING
            self._closing.set()
        self._worker.join()
        self._state = EngineState.STOPPED
        self._on_closed()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _run(self) -> None:
        _worker_local.active = True
        batch: list[LogEntry] = []
        last_flush = time.monotonic()

        while not self._closing.is_set():
            try:
                batch.append(self._queue.get(timeout=self._poll_interval))
            except queue.Empty:
                pass

            if batch and (
                len(batch) >= self._batch_size()
                or time.monotonic() - last_flush >= self._flush_interval()
                or (self._flush_requested.is_set() and self._queue.empty())
            ):
                self._write(batch)
                batch = []
                last_flush = time.monotonic()

        # Draining: everything still queued goes into the final batch.
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
        if batch:
            self._write(batch)

    def _write(self, batch: list[LogEntry]) -> None:
        try:
            self.write_batch(list(batch))
        except Exception:
            get_logger(__name__).warning(
                "batch.write_failed",
                sink=type(self).__name__,
                size=len(batch),
                exc_info=True,
            )
        finally:
            for _ in batch:
                self._queue.task_done()
