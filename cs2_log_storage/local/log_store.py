"""
Local file-based log store.

Owns all durable state of the relay:

    {base_dir}/
      servers/
        {token}.json          - ServerState (sessions known for a token)
      logs/
        {log_id}.log          - Append-only reassembled log bytes
        {log_id}_chunks.json  - ChunkRecord list for the log

State files are replaced atomically (temp file + rename). A log's byte
file is readable on its own even when its chunk list is stale or missing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

from ..exceptions import LogNotFoundError, StorageIOError, ValidationError
from ..models import ChunkRecord, LogSession, ServerState
from ..timestamps import parse_timestamp
from .file_ops import (
    append_bytes,
    ensure_directory,
    list_files,
    read_bytes,
    read_json,
    truncate_file,
    write_json_atomic,
)

logger = logging.getLogger(__name__)

SERVERS_DIR = "servers"
LOGS_DIR = "logs"
CHUNKS_SUFFIX = "_chunks.json"


def validate_name(value: str, field: str) -> None:
    """Reject identifiers that would escape the storage directory.

    Raises:
        ValidationError: If value is empty or contains path components
    """
    if not value or not value.strip():
        raise ValidationError(field, "cannot be empty")

    if "/" in value or "\\" in value or "\x00" in value or value in (".", ".."):
        raise ValidationError(field, "contains path separators", value)

    if value.startswith("."):
        raise ValidationError(field, "cannot start with '.'", value)


def _activity_key(session: LogSession) -> datetime:
    try:
        return parse_timestamp(session.last_activity)
    except ValidationError:
        return datetime.min


class LogStore:
    """
    Durable storage for server states, chunk records and byte logs.

    Contract:
    - Inputs: tokens, log ids, ServerState, ChunkRecord, raw bytes
    - Outputs: loaded models and log bytes
    - Side Effects: Filesystem writes under base_dir
    - Concurrency: token_lock() serializes writers per token
    """

    def __init__(self, base_dir: Path | str):
        """Initialize with base directory for log storage.

        Args:
            base_dir: Directory holding the servers/ and logs/ trees
        """
        self.base_dir = Path(base_dir).expanduser()
        self._token_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def _server_path(self, token: str) -> Path:
        return self.base_dir / SERVERS_DIR / f"{token}.json"

    def _log_path(self, log_id: str) -> Path:
        return self.base_dir / LOGS_DIR / f"{log_id}.log"

    def _chunks_path(self, log_id: str) -> Path:
        return self.base_dir / LOGS_DIR / f"{log_id}{CHUNKS_SUFFIX}"

    async def initialize(self) -> None:
        """Create the directory layout."""
        await ensure_directory(self.base_dir / SERVERS_DIR)
        await ensure_directory(self.base_dir / LOGS_DIR)

    # =========================================================================
    # Per-token serialization
    # =========================================================================

    @asynccontextmanager
    async def token_lock(self, token: str) -> AsyncIterator[None]:
        """Hold the writer lock for a token.

        Writers for the same token run one at a time; other tokens are
        unaffected. The lock is released however the block exits, and
        dropped once no writer holds or waits for it.
        """
        lock = self._token_locks.setdefault(token, asyncio.Lock())
        self._lock_users[token] = self._lock_users.get(token, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[token] -= 1
            if not self._lock_users[token]:
                del self._lock_users[token]
                del self._token_locks[token]

    @property
    def held_token_locks(self) -> int:
        """Tokens with a writer holding or waiting for their lock."""
        return len(self._token_locks)

    # =========================================================================
    # Server state
    # =========================================================================

    async def load_server_state(self, token: str) -> ServerState:
        """Load the state for a token, or an empty one if none is stored."""
        validate_name(token, "token")
        data = await read_json(self._server_path(token))
        if data is None:
            return ServerState(token=token)
        return ServerState.from_dict(data)

    async def save_server_state(self, token: str, state: ServerState) -> None:
        """Replace the stored state for a token."""
        validate_name(token, "token")
        await write_json_atomic(self._server_path(token), state.to_dict())

    async def list_servers(self) -> list[str]:
        """Tokens that have a stored server state."""
        return await list_files(self.base_dir / SERVERS_DIR, ".json")

    # =========================================================================
    # Chunk records and byte logs
    # =========================================================================

    async def load_chunk_records(self, log_id: str) -> list[ChunkRecord]:
        """Load a log's chunk records in commit order (empty if none)."""
        validate_name(log_id, "log_id")
        data = await read_json(self._chunks_path(log_id))
        if not data:
            return []
        return [ChunkRecord.from_dict(item) for item in data]

    async def append_chunk(self, log_id: str, data: bytes, record: ChunkRecord) -> None:
        """Append bytes to a log and record the range they cover.

        The byte append happens first; if writing the record list then
        fails, the log file is cut back to its previous length so neither
        change is kept.

        Raises:
            StorageIOError: If either write fails
        """
        validate_name(log_id, "log_id")
        records = await self.load_chunk_records(log_id)
        record.chunk_number = len(records)
        records.append(record)

        log_path = self._log_path(log_id)
        previous_size = await append_bytes(log_path, data)
        try:
            await write_json_atomic(
                self._chunks_path(log_id), [item.to_dict() for item in records]
            )
        except StorageIOError:
            logger.error(f"Chunk record write failed for {log_id}, rolling back log append")
            await truncate_file(log_path, previous_size)
            raise

        logger.debug(
            f"Appended {len(data)} bytes to {log_id} "
            f"[{record.begin_offset}, {record.end_offset})"
        )

    async def read_full_log(self, log_id: str) -> bytes:
        """Return the whole reassembled log.

        Raises:
            LogNotFoundError: If nothing was ever written for this log
        """
        validate_name(log_id, "log_id")
        content = await read_bytes(self._log_path(log_id))
        if content is None:
            raise LogNotFoundError(log_id)
        return content

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_sessions(self) -> list[tuple[str, LogSession]]:
        """All (token, session) pairs, most recent activity first."""
        return [(state.token, session) for state, session in await self.list_session_states()]

    async def list_session_states(self) -> list[tuple[ServerState, LogSession]]:
        """Like list_sessions, but paired with the owning ServerState."""
        pairs: list[tuple[ServerState, LogSession]] = []
        for token in await self.list_servers():
            try:
                state = await self.load_server_state(token)
            except StorageIOError as e:
                logger.warning(f"Skipping unreadable server state {token}: {e}")
                continue
            pairs.extend((state, session) for session in state.logs)

        pairs.sort(key=lambda pair: _activity_key(pair[1]), reverse=True)
        return pairs
