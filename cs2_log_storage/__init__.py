"""
CS2 Log Storage

Reassembles log chunks streamed by CS2 game servers over HTTP into
ordered, de-duplicated per-session log files, and relays new content
to live viewers over WebSocket.

Provides:
- Offset-based session correlation (no handshake with the game server)
- Idempotent appends with overlap trimming
- Subscription hub with drop-on-full delivery to slow viewers

Usage:

    >>> from cs2_log_storage import BroadcastHub, LogStore, ReassemblyEngine
    >>> engine = ReassemblyEngine(LogStore("./logs"), BroadcastHub())
    >>> is_new = await engine.submit_chunk(
    ...     token="abc123",
    ...     data=chunk_bytes,
    ...     begin_offset=0,
    ...     end_offset=len(chunk_bytes),
    ...     timestamp="01/30/2025 - 16:33:56.470",
    ...     game_map="de_dust2",
    ... )

Serving:

    from cs2_log_storage.api import create_app
    app = create_app(RelayConfig.load("relay.yaml"))
"""

from .config import RelayConfig
from .exceptions import (
    ChunkRangeError,
    LogNotFoundError,
    LogStorageError,
    StorageIOError,
    ValidationError,
)
from .live import BroadcastHub, LiveViewServer, ViewerConnection
from .local import LogStore
from .models import ChunkRecord, GameState, LogSession, LogSummary, ServerState
from .reassembly import (
    CORRELATION_WINDOW_SECONDS,
    LOG_CHUNK_EVENT,
    NEW_LOG_EVENT,
    NEW_LOG_TOPIC,
    ReassemblyEngine,
)

__all__ = [
    # Core
    "ReassemblyEngine",
    "LogStore",
    "BroadcastHub",
    "LiveViewServer",
    "ViewerConnection",
    "RelayConfig",
    # Model
    "ServerState",
    "LogSession",
    "ChunkRecord",
    "GameState",
    "LogSummary",
    # Events
    "CORRELATION_WINDOW_SECONDS",
    "LOG_CHUNK_EVENT",
    "NEW_LOG_EVENT",
    "NEW_LOG_TOPIC",
    # Exceptions
    "LogStorageError",
    "ValidationError",
    "ChunkRangeError",
    "LogNotFoundError",
    "StorageIOError",
]

__version__ = "0.1.0"
