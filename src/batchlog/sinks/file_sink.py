"""Text file sink with size-based rotation.

Line format:
    [2026-01-31 14:05:09.123] [INFO] [Thread:4711] message
    [2026-01-31 14:05:09.123] [TRACE] [Thread:4711] details (only when present)

Rotation happens before a batch is appended: once the active file has reached
max_size it is renamed to ``<stem>.<yyyymmdd-hhmmsszzz><ext>`` (``_1``, ``_2``
... appended on a same-millisecond collision) and the next append starts a
fresh file.

Every file operation of one sink runs under that sink's lock, so rotation,
path changes and writes never interleave.
"""

from __future__ import annotations

import dataclasses
import os
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

from batchlog.diagnostics import get_logger
from batchlog.entry import LogEntry, LogLevel, level_to_string
from batchlog.sinks.batching import BatchingSink

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

_UNSET = object()


def program_name() -> str:
    """Stem of the running program, ``python`` when it can't be determined."""
    argv0 = sys.argv[0] if sys.argv and sys.argv[0] else ""
    stem = Path(argv0).stem
    if not stem or stem.startswith("-"):
        return "python"
    return stem


def default_log_path() -> Path:
    return Path.cwd() / f"{program_name()}.log"


def format_timestamp(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S.") + f"{ts.microsecond // 1000:03d}"


def format_line(entry: LogEntry) -> str:
    """Render an entry as one or two newline-terminated lines."""
    prefix = f"[{format_timestamp(entry.timestamp)}]"
    thread = f"[Thread:{entry.thread_id}]"
    text = f"{prefix} [{level_to_string(entry.level)}] {thread} {entry.message}\n"
    if entry.details:
        text += f"{prefix} [{level_to_string(LogLevel.TRACE)}] {thread} {entry.details}\n"
    return text


def backup_path(path: Path, now: datetime) -> Path:
    """First free backup name for ``path`` at time ``now``."""
    stamp = now.strftime("%Y%m%d-%H%M%S") + f"{now.microsecond // 1000:03d}"
    candidate = path.with_name(f"{path.stem}.{stamp}{path.suffix}")
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}.{stamp}_{counter}{path.suffix}")
        counter += 1
    return candidate


@dataclass(frozen=True)
class FileSinkConfig:
    """Immutable configuration snapshot. ``path=None`` disables the sink."""

    path: Path | None = field(default_factory=default_log_path)
    max_size: int = DEFAULT_MAX_FILE_SIZE
    batch_size: int = 50
    flush_interval: float = 0.2  # seconds

    def __post_init__(self) -> None:
        if self.path is not None and not isinstance(self.path, Path):
            object.__setattr__(self, "path", Path(self.path) if self.path else None)
        if self.max_size <= 0:
            raise ValueError(f"max_size must be positive, got {self.max_size}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.flush_interval <= 0:
            raise ValueError(
                f"flush_interval must be positive, got {self.flush_interval}"
            )


class FileSink(BatchingSink):
    """Asynchronous, batched, rotating text file sink."""

    def __init__(
        self,
        config: FileSinkConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        **engine_kwargs,
    ) -> None:
        self._lock = threading.Lock()
        self._config = config or FileSinkConfig()
        self._clock = clock or datetime.now
        super().__init__(**engine_kwargs)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> FileSinkConfig:
        with self._lock:
            return self._config

    @property
    def path(self) -> Path | None:
        return self.config.path

    def configure(self, **changes) -> FileSinkConfig:
        """Swap in a new snapshot. A path change goes through set_path()."""
        new_path = changes.pop("path", _UNSET)
        with self._lock:
            self._config = dataclasses.replace(self._config, **changes)
            snapshot = self._config
        if new_path is not _UNSET:
            self.set_path(new_path)
            snapshot = self.config
        return snapshot

    def set_max_size(self, size: int) -> None:
        self.configure(max_size=size)

    def set_path(self, new_path: str | os.PathLike | None) -> None:
        """Retarget the sink, carrying the existing file over when possible.

        If the old file can't be moved, logging continues in a fresh file at
        the new path that starts with a warning naming the old file.
        """
        target = Path(new_path) if new_path else None
        with self._lock:
            old = self._config.path
            self._config = dataclasses.replace(self._config, path=target)
            if target is None or old is None or old == target:
                return
            try:
                if not old.exists():
                    return
            except OSError:
                return
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.exists():
                    raise FileExistsError(f"{target} already exists")
                os.rename(old, target)
                get_logger(__name__).info(
                    "file.moved", old_path=str(old), new_path=str(target)
                )
            except OSError as exc:
                get_logger(__name__).warning(
                    "file.move_failed", old_path=str(old), new_path=str(target),
                    error=str(exc),
                )
                warning = LogEntry.create(
                    f"Could not move log file from {old} to {target} ({exc}); "
                    f"previous entries remain in {old}",
                    LogLevel.WARN,
                )
                try:
                    self._append(target, format_line(warning))
                except OSError:
                    pass

    # ------------------------------------------------------------------
    # Engine hooks
    # ------------------------------------------------------------------

    def _batch_size(self) -> int:
        return self.config.batch_size

    def _flush_interval(self) -> float:
        return self.config.flush_interval

    def write_batch(self, entries: list[LogEntry]) -> None:
        payload = "".join(format_line(e) for e in entries)
        with self._lock:
            cfg = self._config
            if cfg.path is None:
                return
            try:
                cfg.path.parent.mkdir(parents=True, exist_ok=True)
                self._rotate_if_needed(cfg.path, cfg.max_size)
                self._append(cfg.path, payload)
            except OSError:
                get_logger(__name__).warning(
                    "file.write_failed", path=str(cfg.path), size=len(entries),
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # File I/O (caller holds self._lock)
    # ------------------------------------------------------------------

    def _rotate_if_needed(self, path: Path, max_size: int) -> None:
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return
        if size < max_size:
            return
        backup = backup_path(path, self._clock())
        os.rename(path, backup)
        get_logger(__name__).debug(
            "file.rotated", path=str(path), backup=str(backup), size=size
        )

    @staticmethod
    def _append(path: Path, text: str) -> None:
        with open(path, "a", encoding="utf-8", newline="") as f:
            f.write(text)
