"""
Data model for reassembled game-server logs.

A ServerState exists per ingesting token and lists the LogSessions
that token has produced. Each LogSession owns an append-only byte log
and an ordered list of ChunkRecords describing the byte ranges stored
in it. Everything here is persisted as JSON via to_dict/from_dict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .timestamps import encode_for_filename, parse_timestamp


def make_log_id(token: str, timestamp: str) -> str:
    """Derive a session's log id from its token and start timestamp."""
    return f"{token}_{encode_for_filename(timestamp)}"


@dataclass
class GameState:
    """Game-state scalars reported with every chunk.

    Carried through unchanged for audit; reassembly never looks at them.
    """

    score_ct: int = 0
    score_t: int = 0
    state: str = ""
    team_ct: str = ""
    team_t: str = ""
    tick_start: int = 0
    tick_end: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_score_ct": self.score_ct,
            "game_score_t": self.score_t,
            "game_state": self.state,
            "game_team_ct": self.team_ct,
            "game_team_t": self.team_t,
            "tick_start": self.tick_start,
            "tick_end": self.tick_end,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameState:
        return cls(
            score_ct=data.get("game_score_ct", 0),
            score_t=data.get("game_score_t", 0),
            state=data.get("game_state", ""),
            team_ct=data.get("game_team_ct", ""),
            team_t=data.get("game_team_t", ""),
            tick_start=data.get("tick_start", 0),
            tick_end=data.get("tick_end", 0),
        )


@dataclass
class ChunkRecord:
    """A durably stored byte range within one log session.

    Attributes:
        begin_offset: First byte of the range
        end_offset: Exclusive end of the range
        timestamp: Timestamp of the chunk that produced this range
        game_state: Game-state scalars of that chunk
        chunk_number: Position in the session's record list
    """

    begin_offset: int
    end_offset: int
    timestamp: str
    game_state: GameState = field(default_factory=GameState)
    chunk_number: int = 0

    @property
    def size(self) -> int:
        return self.end_offset - self.begin_offset

    def to_dict(self) -> dict[str, Any]:
        data = {
            "chunk_number": self.chunk_number,
            "begin_offset": self.begin_offset,
            "end_offset": self.end_offset,
            "timestamp": self.timestamp,
        }
        data.update(self.game_state.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkRecord:
        return cls(
            begin_offset=data["begin_offset"],
            end_offset=data["end_offset"],
            timestamp=data.get("timestamp", ""),
            game_state=GameState.from_dict(data),
            chunk_number=data.get("chunk_number", 0),
        )


@dataclass
class LogSession:
    """One contiguous match/round recording produced by a server.

    Attributes:
        log_id: Token plus encoded start timestamp
        log_start_time: Timestamp of the chunk that opened the session
        game_map: Map the session was recorded on
        server_addr: Network address of the game server
        last_activity: Timestamp of the latest chunk correlated to the session
        last_byte_offset: Exclusive upper bound of the bytes stored so far
        first_byte_offset: Begin offset of the opening chunk; non-zero
            means the start of the log was never received
    """

    log_id: str
    log_start_time: str
    game_map: str
    server_addr: str
    last_activity: str
    last_byte_offset: int
    first_byte_offset: int = 0

    @property
    def missing_prefix_bytes(self) -> int:
        return self.first_byte_offset

    def accepts(self, begin_offset: int, timestamp: str, game_map: str, window_seconds: float) -> bool:
        """Whether a chunk with these properties continues this session."""
        if self.last_byte_offset != begin_offset or self.game_map != game_map:
            return False
        gap = parse_timestamp(timestamp) - parse_timestamp(self.last_activity)
        return gap.total_seconds() < window_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "log_id": self.log_id,
            "log_start_time": self.log_start_time,
            "game_map": self.game_map,
            "server_addr": self.server_addr,
            "last_activity": self.last_activity,
            "last_byte_offset": self.last_byte_offset,
            "first_byte_offset": self.first_byte_offset,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogSession:
        return cls(
            log_id=data["log_id"],
            log_start_time=data.get("log_start_time", ""),
            game_map=data.get("game_map", ""),
            server_addr=data.get("server_addr", ""),
            last_activity=data.get("last_activity", ""),
            last_byte_offset=data.get("last_byte_offset", 0),
            first_byte_offset=data.get("first_byte_offset", 0),
        )


@dataclass
class ServerState:
    """Everything known about one ingesting token."""

    token: str
    steam_id: str = ""
    logs: list[LogSession] = field(default_factory=list)

    def find_continuation(
        self, begin_offset: int, timestamp: str, game_map: str, window_seconds: float
    ) -> LogSession | None:
        """First session in storage order that the chunk continues, if any."""
        for session in self.logs:
            if session.accepts(begin_offset, timestamp, game_map, window_seconds):
                return session
        return None

    def find_resend(self, begin_offset: int, timestamp: str, game_map: str) -> LogSession | None:
        """Session that a re-sent chunk of its opening batch belongs to, if any.

        Matches on start time and map; the chunk must begin inside the
        bytes already stored.
        """
        for session in self.logs:
            if (
                session.log_start_time == timestamp
                and session.game_map == game_map
                and begin_offset < session.last_byte_offset
            ):
                return session
        return None

    def find_log(self, log_id: str) -> LogSession | None:
        return next((session for session in self.logs if session.log_id == log_id), None)

    def unused_log_id(self, log_id: str) -> str:
        """``log_id``, or ``log_id_2``, ``log_id_3``... if already taken."""
        candidate, n = log_id, 1
        while self.find_log(candidate) is not None:
            n += 1
            candidate = f"{log_id}_{n}"
        return candidate

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_instance_token": self.token,
            "steam_id": self.steam_id,
            "logs": [log.to_dict() for log in self.logs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerState:
        return cls(
            token=data["server_instance_token"],
            steam_id=data.get("steam_id", ""),
            logs=[LogSession.from_dict(item) for item in data.get("logs", [])],
        )


@dataclass
class LogSummary:
    """Read-only projection of a session for listings and new_log events."""

    token: str
    log_id: str
    log_start_time: str
    game_map: str
    server_addr: str
    steam_id: str
    last_activity: str
    missing_prefix_bytes: int = 0

    @classmethod
    def from_session(cls, token: str, steam_id: str, session: LogSession) -> LogSummary:
        return cls(
            token=token,
            log_id=session.log_id,
            log_start_time=session.log_start_time,
            game_map=session.game_map,
            server_addr=session.server_addr,
            steam_id=steam_id,
            last_activity=session.last_activity,
            missing_prefix_bytes=session.missing_prefix_bytes,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "log_id": self.log_id,
            "server_instance_token": self.token,
            "log_start_time": self.log_start_time,
            "metadata": {
                "server_instance_token": self.token,
                "game_map": self.game_map,
                "steam_id": self.steam_id,
                "server_addr": self.server_addr,
            },
            "last_activity": self.last_activity,
        }
        if self.missing_prefix_bytes:
            data["missing_prefix_bytes"] = self.missing_prefix_bytes
        return data
