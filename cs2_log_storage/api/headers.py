"""Parsing of the CS2 log-address HTTP headers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from ..exceptions import ValidationError
from ..models import GameState


@dataclass
class ChunkHeaders:
    """Chunk metadata sent alongside every log POST."""

    token: str
    begin_offset: int
    end_offset: int
    timestamp: str
    game_map: str = ""
    server_addr: str = ""
    steam_id: str = ""
    game_state: GameState = field(default_factory=GameState)

    @property
    def declared_length(self) -> int:
        return self.end_offset - self.begin_offset


def _int_header(headers: Mapping[str, str], name: str, required: bool = False) -> int:
    value = headers.get(name)
    if value is None or value.strip() == "":
        if required:
            raise ValidationError(name, "header is required")
        return 0
    try:
        return int(value.strip())
    except ValueError:
        raise ValidationError(name, "must be an integer", value) from None


def parse_chunk_headers(headers: Mapping[str, str]) -> ChunkHeaders:
    """Build ChunkHeaders from request headers (case-insensitive mapping).

    Raises:
        ValidationError: Missing token or offsets, or non-integer numbers
    """
    token = (headers.get("X-Server-Instance-Token") or "").strip()
    if not token:
        raise ValidationError("X-Server-Instance-Token", "header is required")

    return ChunkHeaders(
        token=token,
        begin_offset=_int_header(headers, "X-Logbytes-Beginoffset", required=True),
        end_offset=_int_header(headers, "X-Logbytes-Endoffset", required=True),
        timestamp=(headers.get("X-Timestamp") or "").strip(),
        game_map=headers.get("X-Game-Map", ""),
        server_addr=headers.get("X-Server-Addr", ""),
        steam_id=headers.get("X-Steamid", ""),
        game_state=GameState(
            score_ct=_int_header(headers, "X-Game-Scorect"),
            score_t=_int_header(headers, "X-Game-Scoret"),
            state=headers.get("X-Game-State", ""),
            team_ct=headers.get("X-Game-Teamct", ""),
            team_t=headers.get("X-Game-Teamt", ""),
            tick_start=_int_header(headers, "X-Tick-Start"),
            tick_end=_int_header(headers, "X-Tick-End"),
        ),
    )
