"""
Local file-based log storage.

Key classes:
- LogStore: server states, chunk records and append-only byte logs
"""

from .file_ops import (
    append_bytes,
    read_bytes,
    read_json,
    truncate_file,
    write_json_atomic,
)
from .log_store import LogStore, validate_name

__all__ = [
    "LogStore",
    "validate_name",
    # Low-level file operations
    "read_json",
    "write_json_atomic",
    "append_bytes",
    "read_bytes",
    "truncate_file",
]
