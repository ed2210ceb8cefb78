"""Timestamp helpers for chunk metadata.

CS2 stamps every log-address POST with ``MM/DD/YYYY - HH:MM:SS.mmm``
(e.g. ``01/30/2025 - 16:33:56.470``). ISO 8601 is accepted as well so
other senders and tests are not tied to the game's format.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from .exceptions import ValidationError

CS2_TIMESTAMP_FORMATS = (
    "%m/%d/%Y - %H:%M:%S.%f",
    "%m/%d/%Y - %H:%M:%S",
)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9.\-]")


def parse_timestamp(value: str) -> datetime:
    """Parse a chunk timestamp.

    Raises:
        ValidationError: If the value matches neither the CS2 format nor ISO 8601
    """
    if not value or not value.strip():
        raise ValidationError("timestamp", "timestamp cannot be empty")

    text = value.strip()
    for fmt in CS2_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError("timestamp", "unrecognized timestamp format", value) from None

    # Offset-aware values are compared as naive UTC.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def elapsed(first: str, second: str) -> timedelta:
    """Time from ``first`` to ``second``; negative if ``second`` is earlier."""
    return parse_timestamp(second) - parse_timestamp(first)


def encode_for_filename(value: str) -> str:
    """Map a timestamp to a string usable in a file name."""
    return _UNSAFE_FILENAME_CHARS.sub("_", value.strip())
