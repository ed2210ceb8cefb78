"""Tests for the command line entry point."""

import asyncio
import json
from pathlib import Path

import pytest
from chunks import MAP, TOKEN, cs2_timestamp, log_bytes

from cs2_log_storage import cli
from cs2_log_storage.live import BroadcastHub
from cs2_log_storage.local import LogStore
from cs2_log_storage.models import make_log_id
from cs2_log_storage.reassembly import ReassemblyEngine


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep main() from replacing pytest's log handlers."""
    monkeypatch.setattr(cli, "configure_relay_logging", lambda **kwargs: None)


def seed(data_dir: Path) -> str:
    async def run() -> None:
        engine = ReassemblyEngine(LogStore(data_dir), BroadcastHub())
        await engine.submit_chunk(TOKEN, log_bytes(0, 80), 0, 80, cs2_timestamp(), MAP)

    asyncio.run(run())
    return make_log_id(TOKEN, cs2_timestamp())


class TestCommands:
    def test_list(self, temp_dir: Path, capsys):
        log_id = seed(temp_dir)

        assert cli.main(["--data-dir", str(temp_dir), "list"]) == 0

        listing = json.loads(capsys.readouterr().out)
        assert [item["log_id"] for item in listing] == [log_id]

    def test_list_empty_store(self, temp_dir: Path, capsys):
        assert cli.main(["--data-dir", str(temp_dir), "list"]) == 0
        assert json.loads(capsys.readouterr().out) == []

    def test_dump(self, temp_dir: Path, capsysbinary):
        log_id = seed(temp_dir)

        assert cli.main(["--data-dir", str(temp_dir), "dump", log_id]) == 0
        assert capsysbinary.readouterr().out == log_bytes(0, 80)

    def test_dump_unknown_log(self, temp_dir: Path):
        assert cli.main(["--data-dir", str(temp_dir), "dump", "missing"]) == 1

    def test_serve_applies_overrides(self, temp_dir: Path, monkeypatch):
        captured = []
        monkeypatch.setattr(cli, "serve", captured.append)

        assert cli.main(["--data-dir", str(temp_dir), "serve", "--port", "9001"]) == 0

        assert captured[0].port == 9001
        assert captured[0].data_dir == str(temp_dir)

    def test_invalid_config_file(self, temp_dir: Path, capsys):
        path = temp_dir / "relay.yaml"
        path.write_text("server:\n  port: 0\n")

        assert cli.main(["--config", str(path), "list"]) == 2
        assert "Invalid configuration" in capsys.readouterr().err

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.main([])
