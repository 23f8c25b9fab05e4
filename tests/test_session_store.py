"""Tests for session persistence."""

import json
from pathlib import Path

from winboard.adapters.session_store import JsonFileSessionStore, MemorySessionStore
from winboard.domain.session import StoredSession, UserIdentity

STORED = StoredSession(
    token="T1", user=UserIdentity(id="user-alice", username="alice", role="user")
)


def test_file_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "state" / "session.json"
    store = JsonFileSessionStore(path)

    store.save(STORED)

    assert store.load() == STORED
    assert json.loads(path.read_text()) == {
        "token": "T1",
        "user": {"id": "user-alice", "username": "alice", "role": "user"},
    }
    assert path.stat().st_mode & 0o777 == 0o600


def test_file_store_clear(tmp_path: Path) -> None:
    store = JsonFileSessionStore(tmp_path / "session.json")
    store.save(STORED)

    store.clear()
    store.clear()

    assert store.load() is None


def test_corrupt_file_counts_as_no_session(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{not json")

    assert JsonFileSessionStore(path).load() is None

    path.write_text(json.dumps({"token": "T1"}))

    assert JsonFileSessionStore(path).load() is None


def test_memory_store() -> None:
    store = MemorySessionStore()
    store.save(STORED)
    assert store.load() == STORED
    store.clear()
    assert store.load() is None
