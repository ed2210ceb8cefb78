"""
Chunk reassembly and session correlation.

Game servers stream their log as self-describing chunks: every POST
carries the byte offsets it covers, a timestamp and the current map.
The engine uses those to decide which log session a chunk continues,
whether its bytes are new, duplicate or partially overlapping, and
exactly what to append. Nothing is cached between calls; every
submission reloads state under the token's lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .exceptions import ChunkRangeError, ValidationError
from .live.hub import BroadcastHub
from .local.log_store import LogStore, validate_name
from .logging_utils import ChunkLogAdapter
from .models import ChunkRecord, GameState, LogSession, LogSummary, ServerState, make_log_id
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)

CORRELATION_WINDOW_SECONDS = 2 * 60 * 60

LOG_CHUNK_EVENT = "log_chunk"
NEW_LOG_EVENT = "new_log"
NEW_LOG_TOPIC = "*"


@dataclass
class AppendPlan:
    """Bytes to append to a log and the record covering them."""

    data: bytes
    record: ChunkRecord


def plan_append(
    log_id: str,
    records: list[ChunkRecord],
    data: bytes,
    begin_offset: int,
    end_offset: int,
    timestamp: str,
    game_state: GameState,
) -> AppendPlan | None:
    """Decide what part of an incoming chunk is new.

    Returns:
        The append to perform, or None for a duplicate or subset chunk

    Raises:
        ChunkRangeError: If the unseen suffix cannot be located in ``data``
    """
    if end_offset == begin_offset:
        return None

    by_begin = {r.begin_offset: r for r in records}
    matched = by_begin.get(begin_offset)

    if matched is None:
        return AppendPlan(
            data=data,
            record=ChunkRecord(begin_offset, end_offset, timestamp, game_state),
        )

    # Follow records stored back to back after the match so the new
    # range never overlaps one of them.
    resume_at = matched.end_offset
    while resume_at in by_begin and by_begin[resume_at].end_offset > resume_at:
        resume_at = by_begin[resume_at].end_offset

    if end_offset <= resume_at:
        return None

    # Re-send reaching past what is stored: keep only the unseen suffix.
    start = resume_at - begin_offset
    if start < 0 or start >= len(data):
        raise ChunkRangeError(
            log_id,
            begin_offset,
            end_offset,
            f"suffix start {start} outside payload of {len(data)} bytes",
        )
    return AppendPlan(
        data=data[start:],
        record=ChunkRecord(resume_at, end_offset, timestamp, game_state),
    )


class ReassemblyEngine:
    """Correlates incoming chunks with log sessions and appends new bytes.

    Args:
        store: Durable storage for states, records and logs
        hub: Receives log_chunk and new_log events after each commit
        correlation_window_seconds: Maximum quiet time before a matching
            offset no longer continues a session
    """

    def __init__(
        self,
        store: LogStore,
        hub: BroadcastHub,
        correlation_window_seconds: float = CORRELATION_WINDOW_SECONDS,
    ):
        self.store = store
        self.hub = hub
        self.correlation_window_seconds = correlation_window_seconds

    async def submit_chunk(
        self,
        token: str,
        data: bytes,
        begin_offset: int,
        end_offset: int,
        timestamp: str,
        game_map: str = "",
        server_addr: str = "",
        steam_id: str = "",
        game_state: GameState | None = None,
    ) -> bool:
        """Store a chunk and notify viewers.

        Returns:
            True if the chunk opened a new log session

        Raises:
            ValidationError: Bad token, offsets or timestamp (nothing stored)
            ChunkRangeError: Overlapping chunk whose suffix cannot be located
            StorageIOError: Storage failure; bookkeeping is not left ahead
                of the stored bytes
        """
        validate_name(token, "token")
        if begin_offset < 0:
            raise ValidationError("begin_offset", "cannot be negative", str(begin_offset))
        if end_offset < begin_offset:
            raise ValidationError(
                "end_offset", "cannot be before begin_offset", str(end_offset)
            )
        parse_timestamp(timestamp)
        game_state = game_state or GameState()
        log = ChunkLogAdapter(logger, token)

        async with self.store.token_lock(token):
            state = await self.store.load_server_state(token)
            previous = ServerState.from_dict(state.to_dict())

            session = state.find_continuation(
                begin_offset, timestamp, game_map, self.correlation_window_seconds
            )
            is_new_session = False
            if session is not None:
                session.last_activity = timestamp
                session.last_byte_offset = end_offset
            else:
                # A re-sent opening chunk maps to the log it opened before.
                session = state.find_resend(begin_offset, timestamp, game_map)
                if session is not None:
                    log.for_log(session.log_id).info("Chunk re-sent for existing log")
                    session.last_byte_offset = max(session.last_byte_offset, end_offset)
                else:
                    session = self._open_session(state, begin_offset, end_offset, timestamp,
                                                 game_map, server_addr, steam_id, log)
                    is_new_session = True
            log = log.for_log(session.log_id)

            records = await self.store.load_chunk_records(session.log_id)
            try:
                plan = plan_append(session.log_id, records, data, begin_offset,
                                   end_offset, timestamp, game_state)
            except ChunkRangeError as e:
                log.warning(f"Rejected malformed chunk: {e.reason}")
                raise

            commit = asyncio.ensure_future(self._commit(token, state, previous, session, plan))
            try:
                await asyncio.shield(commit)
            except asyncio.CancelledError:
                # Finish the commit before the token lock is released, and
                # announce what it stored.
                if not commit.done():
                    await asyncio.wait([commit])
                if not commit.cancelled():
                    if commit.exception() is not None:
                        log.error(f"Commit failed after cancellation: {commit.exception()!r}")
                    else:
                        await self._publish(state, session, plan, is_new_session, log)
                raise

            await self._publish(state, session, plan, is_new_session, log)

        return is_new_session

    async def _publish(
        self,
        state: ServerState,
        session: LogSession,
        plan: AppendPlan | None,
        is_new_session: bool,
        log: ChunkLogAdapter,
    ) -> None:
        # Called under the token lock so viewers see appends in commit order.
        if plan is not None:
            await self.hub.publish(LOG_CHUNK_EVENT, session.log_id, plan.data)

        if is_new_session:
            summary = LogSummary.from_session(state.token, state.steam_id, session)
            log.info("New log")
            await self.hub.publish(NEW_LOG_EVENT, NEW_LOG_TOPIC, summary.to_dict())

    def _open_session(
        self,
        state: ServerState,
        begin_offset: int,
        end_offset: int,
        timestamp: str,
        game_map: str,
        server_addr: str,
        steam_id: str,
        log: ChunkLogAdapter,
    ) -> LogSession:
        if begin_offset != 0:
            log.warning(f"Creating new log from non-zero offset: {begin_offset}")

        session = LogSession(
            log_id=state.unused_log_id(make_log_id(state.token, timestamp)),
            log_start_time=timestamp,
            game_map=game_map,
            server_addr=server_addr,
            last_activity=timestamp,
            last_byte_offset=end_offset,
            first_byte_offset=begin_offset,
        )
        state.logs.append(session)
        if steam_id:
            state.steam_id = steam_id
        return session

    async def _commit(
        self,
        token: str,
        state: ServerState,
        previous: ServerState,
        session: LogSession,
        plan: AppendPlan | None,
    ) -> None:
        """Persist bookkeeping, then the append; undo bookkeeping if the append fails."""
        await self.store.save_server_state(token, state)
        if plan is None:
            return
        try:
            await self.store.append_chunk(session.log_id, plan.data, plan.record)
        except Exception:
            logger.error(f"Append to {session.log_id} failed, restoring server state")
            await self.store.save_server_state(token, previous)
            raise

    async def list_logs(self) -> list[LogSummary]:
        """Summaries of every stored session, most recent activity first."""
        return [
            LogSummary.from_session(state.token, state.steam_id, session)
            for state, session in await self.store.list_session_states()
        ]
