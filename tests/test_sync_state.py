"""Tests for the sync state store."""

import json
from pathlib import Path

from tasksync.models import SyncState
from tasksync.sync import STATE_FILENAME, SyncStateStore
from tasksync.sync.state import record


class TestSyncStateStore:
    """Tests for SyncStateStore."""

    def test_missing_file_is_fresh_state(self, tmp_path: Path):
        """No state file means nothing has been synced."""
        state = SyncStateStore(tmp_path).load()
        assert state.issues == {}

    def test_malformed_file_is_fresh_state(self, tmp_path: Path, caplog):
        """A corrupt state file is reported and ignored."""
        (tmp_path / STATE_FILENAME).write_text("{not json")
        state = SyncStateStore(tmp_path).load()
        assert state.issues == {}
        assert "starting fresh" in caplog.text

    def test_save_and_load(self, tmp_path: Path):
        """Entries survive a save/load cycle with camelCase keys on disk."""
        store = SyncStateStore(tmp_path)
        state = SyncState()
        record(state, 12, "aaaa", "bbbb")
        store.save(state)

        data = json.loads((tmp_path / STATE_FILENAME).read_text())
        assert data["issues"]["12"]["localHash"] == "aaaa"
        assert "lastSync" in data

        loaded = store.load()
        assert loaded.issues[12].remote_hash == "bbbb"

    def test_record_replaces_entry(self):
        """Recording twice keeps only the latest hash pair."""
        state = SyncState()
        record(state, 3, "a", "b")
        record(state, 3, "c", "d")
        assert state.issues[3].local_hash == "c"
        assert state.issues[3].remote_hash == "d"
