"""
Logging setup for the relay.

Every record about a chunk can carry the ingesting token and the log id
it landed in. ``ChunkLogAdapter`` attaches them; both formatters below
render them, as top-level JSON keys or as a ``[token log_id]`` prefix.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Context keys rendered by the formatters, in output order.
RELAY_CONTEXT_KEYS = ("token", "log_id", "client_id")

_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "context"}


def _relay_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in RELAY_CONTEXT_KEYS
        if getattr(record, key, None) is not None
    }


class RelayJsonFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: ``ts`` (record creation time, UTC), ``level``, ``logger``,
    ``msg``, any of ``token``/``log_id``/``client_id`` present on the
    record, ``extra`` for remaining ad-hoc fields and ``exc`` for
    exception text.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(_relay_context(record))

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in RELAY_CONTEXT_KEYS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class RelayTextFormatter(logging.Formatter):
    """Plain text with the chunk context in brackets after the logger name."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s%(context)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        context = _relay_context(record)
        record.context = f" [{' '.join(str(v) for v in context.values())}]" if context else ""
        return super().format(record)


def configure_relay_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    logger_name: str | None = None,
) -> logging.Logger:
    """Install a single stdout handler on ``logger_name`` (root by default).

    Existing handlers on that logger are replaced.
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(RelayJsonFormatter() if json_format else RelayTextFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_component_logger(component: str) -> logging.Logger:
    """Logger named ``cs2_log_storage.<component>``."""
    return logging.getLogger(f"cs2_log_storage.{component}")


class ChunkLogAdapter(logging.LoggerAdapter):
    """Tags records with a chunk's token and, once known, its log id.

    Example:
        >>> log = ChunkLogAdapter(logger, token="srv-7f3a")
        >>> log = log.for_log("srv-7f3a_01_30_2025_-_16_33_56.470")
        >>> log.info("Appended 120 bytes")
    """

    def __init__(self, logger: logging.Logger, token: str, log_id: str | None = None):
        super().__init__(logger, {"token": token, "log_id": log_id})

    @property
    def token(self) -> str:
        return self.extra["token"]

    def for_log(self, log_id: str) -> "ChunkLogAdapter":
        """Same token, bound to ``log_id``."""
        return ChunkLogAdapter(self.logger, self.token, log_id)

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {key: value for key, value in self.extra.items() if value is not None}
        kwargs["extra"] = {**context, **kwargs.get("extra", {})}
        return msg, kwargs
