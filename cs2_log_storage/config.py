"""
Relay configuration.

Settings come from a YAML file, environment variables, or both
(environment wins):

```yaml
server:
  host: "0.0.0.0"
  port: 8081
storage:
  path: "./logs"
  static_dir: "./web"
live:
  correlation_window_seconds: 7200
  viewer_queue_size: 256
logging:
  level: "INFO"
  json: false
```

Environment Variables:
    CS2_LOG_HOST, CS2_LOG_PORT, CS2_LOG_DATA_DIR, CS2_LOG_STATIC_DIR,
    CS2_LOG_CORRELATION_WINDOW, CS2_LOG_VIEWER_QUEUE_SIZE,
    CS2_LOG_LEVEL, CS2_LOG_JSON
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ValidationError

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_int(field: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(field, "must be an integer", str(value)) from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass
class RelayConfig:
    """Configuration for the log relay service."""

    host: str = "0.0.0.0"
    port: int = 8081
    data_dir: str = "./logs"
    static_dir: str | None = "./web"
    correlation_window_seconds: int = 2 * 60 * 60
    viewer_queue_size: int = 256
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValidationError("port", "must be between 1 and 65535", str(self.port))
        if self.correlation_window_seconds <= 0:
            raise ValidationError(
                "correlation_window_seconds", "must be positive",
                str(self.correlation_window_seconds),
            )
        if self.viewer_queue_size <= 0:
            raise ValidationError(
                "viewer_queue_size", "must be positive", str(self.viewer_queue_size)
            )
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ValidationError("log_level", "unknown logging level", self.log_level)

    @classmethod
    def from_env(cls, base: RelayConfig | None = None) -> RelayConfig:
        """Create config from environment variables, on top of ``base``."""
        config = base or cls()
        overrides: dict[str, Any] = {}

        if "CS2_LOG_HOST" in os.environ:
            overrides["host"] = os.environ["CS2_LOG_HOST"]
        if "CS2_LOG_PORT" in os.environ:
            overrides["port"] = _as_int("port", os.environ["CS2_LOG_PORT"])
        if "CS2_LOG_DATA_DIR" in os.environ:
            overrides["data_dir"] = os.environ["CS2_LOG_DATA_DIR"]
        if "CS2_LOG_STATIC_DIR" in os.environ:
            overrides["static_dir"] = os.environ["CS2_LOG_STATIC_DIR"] or None
        if "CS2_LOG_CORRELATION_WINDOW" in os.environ:
            overrides["correlation_window_seconds"] = _as_int(
                "correlation_window_seconds", os.environ["CS2_LOG_CORRELATION_WINDOW"]
            )
        if "CS2_LOG_VIEWER_QUEUE_SIZE" in os.environ:
            overrides["viewer_queue_size"] = _as_int(
                "viewer_queue_size", os.environ["CS2_LOG_VIEWER_QUEUE_SIZE"]
            )
        if "CS2_LOG_LEVEL" in os.environ:
            overrides["log_level"] = os.environ["CS2_LOG_LEVEL"].upper()
        if "CS2_LOG_JSON" in os.environ:
            overrides["json_logs"] = _as_bool(os.environ["CS2_LOG_JSON"])

        return replace(config, **overrides)

    @classmethod
    def from_yaml(cls, path: Path | str) -> RelayConfig:
        """Create config from a YAML settings file.

        Raises:
            ValidationError: If the file is not a YAML mapping or holds bad values
        """
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValidationError("config", f"invalid YAML: {e}", str(path)) from e

        if not isinstance(data, dict):
            raise ValidationError("config", "top level must be a mapping", str(path))

        server = data.get("server") or {}
        storage = data.get("storage") or {}
        live = data.get("live") or {}
        logging_section = data.get("logging") or {}
        defaults = cls()

        return cls(
            host=server.get("host", defaults.host),
            port=_as_int("port", server.get("port", defaults.port)),
            data_dir=storage.get("path", defaults.data_dir),
            static_dir=storage.get("static_dir", defaults.static_dir),
            correlation_window_seconds=_as_int(
                "correlation_window_seconds",
                live.get("correlation_window_seconds", defaults.correlation_window_seconds),
            ),
            viewer_queue_size=_as_int(
                "viewer_queue_size", live.get("viewer_queue_size", defaults.viewer_queue_size)
            ),
            log_level=str(logging_section.get("level", defaults.log_level)).upper(),
            json_logs=_as_bool(logging_section.get("json", defaults.json_logs)),
        )

    @classmethod
    def load(cls, path: Path | str | None = None) -> RelayConfig:
        """Load the YAML file if it exists, then apply environment overrides."""
        base = None
        if path is not None and Path(path).expanduser().is_file():
            base = cls.from_yaml(Path(path).expanduser())
        return cls.from_env(base)

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "data_dir": self.data_dir,
            "static_dir": self.static_dir,
            "correlation_window_seconds": self.correlation_window_seconds,
            "viewer_queue_size": self.viewer_queue_size,
            "log_level": self.log_level,
            "json_logs": self.json_logs,
        }
