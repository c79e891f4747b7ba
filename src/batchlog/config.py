"""Logging configuration: YAML file + env var overrides.

All settings have safe defaults; zero config gives console logging at INFO.

Priority: env var > YAML file > default.
Env vars use the BATCHLOG_{FIELD_NAME} convention (e.g. BATCHLOG_MIN_LEVEL=debug,
BATCHLOG_NETWORK_URL=https://seq.example.com).
YAML file default: ~/.batchlog/config.yaml
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from batchlog.entry import LogLevel
from batchlog.sinks.file_sink import DEFAULT_MAX_FILE_SIZE, FileSinkConfig, default_log_path
from batchlog.sinks.network_sink import NetworkSinkConfig

_TRUTHY = {"1", "true", "on", "yes"}
_FALSY = {"0", "false", "off", "no"}
_DEFAULT_PATH = Path("~/.batchlog/config.yaml").expanduser()
_ENV_PREFIX = "BATCHLOG_"


def _env(name: str, default: str) -> str:
    return os.environ.get(_ENV_PREFIX + name.upper(), default)


def _env_number(name: str, default: int | float) -> int | float:
    raw = os.environ.get(_ENV_PREFIX + name.upper())
    if raw is None:
        return default
    try:
        return type(default)(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(_ENV_PREFIX + name.upper())
    if raw is None:
        return default
    if raw.lower() in _TRUTHY:
        return True
    if raw.lower() in _FALSY:
        return False
    return default


@dataclass
class LoggingConfig:
    """Process-wide logging configuration, env-var driven."""

    # --- Dispatcher ---
    min_level: str = field(default_factory=lambda: _env("min_level", "INFO"))

    # --- Console sink ---
    console_enabled: bool = field(
        default_factory=lambda: _env_flag("console_enabled", True)
    )

    # --- File sink ---
    file_enabled: bool = field(default_factory=lambda: _env_flag("file_enabled", False))
    file_path: str = field(
        default_factory=lambda: _env("file_path", str(default_log_path()))
    )
    file_max_size: int = field(
        default_factory=lambda: _env_number("file_max_size", DEFAULT_MAX_FILE_SIZE)
    )
    file_batch_size: int = field(
        default_factory=lambda: _env_number("file_batch_size", 50)
    )
    file_flush_interval: float = field(
        default_factory=lambda: _env_number("file_flush_interval", 0.2)
    )

    # --- Network sink (disabled while the URL is empty) ---
    network_url: str = field(default_factory=lambda: _env("network_url", ""))
    network_api_key: str = field(default_factory=lambda: _env("network_api_key", ""))
    network_source: str = field(default_factory=lambda: _env("network_source", ""))
    network_instance: str = field(default_factory=lambda: _env("network_instance", ""))
    network_batch_size: int = field(
        default_factory=lambda: _env_number("network_batch_size", 10)
    )
    network_flush_interval: float = field(
        default_factory=lambda: _env_number("network_flush_interval", 2.0)
    )

    # --- Internal diagnostics ---
    diagnostics_level: str = field(
        default_factory=lambda: _env("diagnostics_level", "WARNING")
    )
    diagnostics_formatter: str = field(
        default_factory=lambda: _env("diagnostics_formatter", "structlog")
    )  # "structlog" | "stdlib"
    diagnostics_format: str = field(
        default_factory=lambda: _env("diagnostics_format", "console")
    )  # "json" | "console"

    @classmethod
    def load(cls, path: Path | None = None) -> LoggingConfig:
        """Load settings from a YAML file; env vars still win."""
        file_path = path or _DEFAULT_PATH
        kwargs: dict[str, Any] = {}

        if file_path.exists():
            try:
                raw = yaml.safe_load(file_path.read_text()) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid config file {file_path}: {exc}") from exc
            if isinstance(raw, dict):
                known = {f.name: f for f in fields(cls)}
                for k, v in raw.items():
                    if k not in known or (_ENV_PREFIX + k.upper()) in os.environ:
                        continue
                    kwargs[k] = _coerce(known[k].type, v)

        return cls(**kwargs)

    @classmethod
    def fallback(cls) -> LoggingConfig:
        """Console-only at INFO; used when the configured values are invalid."""
        return cls(
            min_level="INFO",
            console_enabled=True,
            file_enabled=False,
            network_url="",
            diagnostics_level="WARNING",
            diagnostics_formatter="structlog",
            diagnostics_format="console",
        )

    def level(self) -> LogLevel:
        return LogLevel.parse(self.min_level)

    def file_sink_config(self) -> FileSinkConfig:
        return FileSinkConfig(
            path=Path(self.file_path) if self.file_path else None,
            max_size=self.file_max_size,
            batch_size=self.file_batch_size,
            flush_interval=self.file_flush_interval,
        )

    def network_sink_config(self) -> NetworkSinkConfig:
        kwargs: dict[str, Any] = {}
        if self.network_source:
            kwargs["source"] = self.network_source
        return NetworkSinkConfig(
            server_url=self.network_url,
            api_key=self.network_api_key,
            instance=self.network_instance,
            batch_size=self.network_batch_size,
            flush_interval=self.network_flush_interval,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(type_name: Any, value: Any) -> Any:
    # Annotations are strings under `from __future__ import annotations`.
    if type_name == "bool":
        if isinstance(value, str):
            return value.lower() in _TRUTHY
        return bool(value)
    if type_name == "int":
        return int(value)
    if type_name == "float":
        return float(value)
    return "" if value is None else str(value)
