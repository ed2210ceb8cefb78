"""
Shared test configuration and fixtures.

Provides a temporary storage directory and a LogStore, BroadcastHub
and ReassemblyEngine wired together on top of it.
"""

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from cs2_log_storage.live import BroadcastHub
from cs2_log_storage.local import LogStore
from cs2_log_storage.reassembly import ReassemblyEngine


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir: Path) -> LogStore:
    return LogStore(temp_dir)


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub(queue_size=64)


@pytest.fixture
def engine(store: LogStore, hub: BroadcastHub) -> ReassemblyEngine:
    return ReassemblyEngine(store, hub)
