"""
Custom exceptions for log storage.

The store, the reassembly engine and the HTTP boundary raise these
so callers can tell bad input, missing logs and broken storage apart.
"""


class LogStorageError(Exception):
    """Base exception for all log storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(LogStorageError):
    """Raised when incoming data fails validation."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class ChunkRangeError(ValidationError):
    """Raised when a chunk's declared offsets cannot be mapped onto its bytes."""

    def __init__(self, log_id: str, begin_offset: int, end_offset: int, reason: str):
        super().__init__("offsets", reason, f"[{begin_offset}, {end_offset})")
        self.details["log_id"] = log_id
        self.log_id = log_id
        self.begin_offset = begin_offset
        self.end_offset = end_offset


class LogNotFoundError(LogStorageError):
    """Raised when a log was never written."""

    def __init__(self, log_id: str):
        super().__init__(f"Log not found: {log_id}", {"log_id": log_id})
        self.log_id = log_id


class StorageIOError(LogStorageError):
    """Raised when a storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause
