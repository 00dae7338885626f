"""Persisted per-issue sync state (``.sync-state.json``)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ..models import SyncState, SyncStateEntry
from ..utils import now_utc

logger = logging.getLogger(__name__)

STATE_FILENAME = ".sync-state.json"


class SyncStateStore:
    """Reads and writes the sync state file at the project root."""

    def __init__(self, project_root: Path) -> None:
        self.path = project_root / STATE_FILENAME

    def load(self) -> SyncState:
        """Load state; a missing or unreadable file yields a fresh state."""
        if not self.path.exists():
            return SyncState()
        try:
            with self.path.open() as f:
                return SyncState.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Failed to load sync state from %s, starting fresh: %s", self.path, e)
            return SyncState()

    def save(self, state: SyncState) -> None:
        data = state.model_dump(mode="json", by_alias=True)
        with self.path.open("w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        logger.debug("Saved sync state for %d issues", len(state.issues))


def record(state: SyncState, issue_number: int, local_hash: str, remote_hash: str) -> None:
    """Replace the entry for ``issue_number`` with a fresh hash pair."""
    state.issues[issue_number] = SyncStateEntry(
        local_hash=local_hash,
        remote_hash=remote_hash,
        last_synced_at=now_utc(),
    )
