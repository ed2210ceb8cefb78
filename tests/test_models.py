"""Tests for the data model and timestamp helpers."""

from datetime import datetime, timedelta

import pytest

from cs2_log_storage.exceptions import ValidationError
from cs2_log_storage.models import (
    ChunkRecord,
    GameState,
    LogSession,
    LogSummary,
    ServerState,
    make_log_id,
)
from cs2_log_storage.timestamps import elapsed, encode_for_filename, parse_timestamp

CS2_TS = "01/30/2025 - 16:33:56.470"


class TestTimestamps:
    """Parsing and encoding chunk timestamps."""

    def test_parse_cs2_format(self):
        assert parse_timestamp(CS2_TS) == datetime(2025, 1, 30, 16, 33, 56, 470000)

    def test_parse_without_millis(self):
        assert parse_timestamp("01/30/2025 - 16:33:56") == datetime(2025, 1, 30, 16, 33, 56)

    def test_parse_iso(self):
        assert parse_timestamp("2025-01-30T16:33:56+00:00") == datetime(2025, 1, 30, 16, 33, 56)

    def test_parse_iso_offset_normalized_to_utc(self):
        assert parse_timestamp("2025-01-30T18:33:56+02:00") == datetime(2025, 1, 30, 16, 33, 56)

    def test_elapsed_across_offsets(self):
        """The same instant written with different offsets is zero apart."""
        assert elapsed("2025-01-30T16:33:56+00:00", "2025-01-30T11:33:56-05:00") == timedelta(0)

    @pytest.mark.parametrize("value", ["", "  ", "yesterday", "30/01/2025 16:33"])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_timestamp(value)
        assert exc_info.value.field == "timestamp"

    def test_elapsed_across_midnight(self):
        """Comparison is by time, not by string order."""
        assert elapsed("01/30/2025 - 23:59:00.000", "01/31/2025 - 00:01:00.000") == timedelta(
            minutes=2
        )

    def test_encode_for_filename(self):
        assert encode_for_filename(CS2_TS) == "01_30_2025_-_16_33_56.470"

    def test_log_id(self):
        assert make_log_id("srv-7f3a", CS2_TS) == "srv-7f3a_01_30_2025_-_16_33_56.470"


class TestLogSession:
    """Continuation rule for a single session."""

    @pytest.fixture
    def session(self) -> LogSession:
        return LogSession(
            log_id="srv_1",
            log_start_time=CS2_TS,
            game_map="de_dust2",
            server_addr="",
            last_activity=CS2_TS,
            last_byte_offset=100,
        )

    def test_accepts_contiguous_chunk(self, session: LogSession):
        assert session.accepts(100, "01/30/2025 - 17:00:00.000", "de_dust2", 7200)

    def test_rejects_offset_mismatch(self, session: LogSession):
        assert not session.accepts(101, CS2_TS, "de_dust2", 7200)

    def test_rejects_other_map(self, session: LogSession):
        assert not session.accepts(100, CS2_TS, "de_nuke", 7200)

    def test_rejects_exactly_window(self, session: LogSession):
        assert not session.accepts(100, "01/30/2025 - 18:33:56.470", "de_dust2", 7200)

    def test_round_trip(self, session: LogSession):
        session.first_byte_offset = 40
        assert LogSession.from_dict(session.to_dict()) == session
        assert session.missing_prefix_bytes == 40


class TestServerState:
    """Session lookup within one token."""

    def test_first_matching_session_wins(self):
        a = LogSession("a", CS2_TS, "de_dust2", "", CS2_TS, 100)
        b = LogSession("b", CS2_TS, "de_dust2", "", CS2_TS, 100)
        state = ServerState(token="srv", logs=[a, b])

        assert state.find_continuation(100, CS2_TS, "de_dust2", 7200) is a
        assert state.find_continuation(5, CS2_TS, "de_dust2", 7200) is None

    def test_find_resend_requires_map_and_stored_range(self):
        a = LogSession("a", CS2_TS, "de_dust2", "", CS2_TS, 100)
        state = ServerState(token="srv", logs=[a])

        assert state.find_resend(0, CS2_TS, "de_dust2") is a
        assert state.find_resend(0, CS2_TS, "de_nuke") is None
        assert state.find_resend(100, CS2_TS, "de_dust2") is None

    def test_unused_log_id(self):
        state = ServerState(
            token="srv",
            logs=[
                LogSession("srv_x", CS2_TS, "de_dust2", "", CS2_TS, 1),
                LogSession("srv_x_2", CS2_TS, "de_nuke", "", CS2_TS, 1),
            ],
        )

        assert state.unused_log_id("srv_y") == "srv_y"
        assert state.unused_log_id("srv_x") == "srv_x_3"

    def test_find_log(self):
        a = LogSession("a", CS2_TS, "de_dust2", "", CS2_TS, 100)
        state = ServerState(token="srv", logs=[a])

        assert state.find_log("a") is a
        assert state.find_log("b") is None

    def test_legacy_state_without_new_fields(self):
        state = ServerState.from_dict(
            {
                "server_instance_token": "srv",
                "logs": [{"log_id": "srv_1", "game_map": "de_dust2", "last_byte_offset": 10}],
            }
        )
        assert state.steam_id == ""
        assert state.logs[0].first_byte_offset == 0


class TestRecordsAndSummaries:
    """Serialized shapes."""

    def test_chunk_record_flattens_game_state(self):
        record = ChunkRecord(0, 50, CS2_TS, GameState(score_ct=7, team_t="NAVI"), chunk_number=3)

        data = record.to_dict()

        assert data["game_score_ct"] == 7
        assert data["game_team_t"] == "NAVI"
        assert data["chunk_number"] == 3
        assert record.size == 50
        assert ChunkRecord.from_dict(data) == record

    def test_summary_shape(self):
        session = LogSession("srv_1", CS2_TS, "de_dust2", "1.2.3.4:27015", CS2_TS, 100)

        data = LogSummary.from_session("srv", "7656", session).to_dict()

        assert data == {
            "log_id": "srv_1",
            "server_instance_token": "srv",
            "log_start_time": CS2_TS,
            "metadata": {
                "server_instance_token": "srv",
                "game_map": "de_dust2",
                "steam_id": "7656",
                "server_addr": "1.2.3.4:27015",
            },
            "last_activity": CS2_TS,
        }
