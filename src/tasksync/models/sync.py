"""Sync-related data models: persisted state, decisions and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .remote import RemoteIssue
from .task import TaskDocument

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class SyncStateEntry(BaseModel):
    """Hash pair recorded after the last successful reconciliation of one issue."""

    model_config = ConfigDict(populate_by_name=True)

    local_hash: str = Field(alias="localHash")
    remote_hash: str = Field(alias="remoteHash")
    last_synced_at: datetime = Field(alias="lastSyncedAt")


class SyncState(BaseModel):
    """Contents of ``.sync-state.json``."""

    model_config = ConfigDict(populate_by_name=True)

    last_sync: datetime = Field(default=EPOCH, alias="lastSync")
    issues: dict[int, SyncStateEntry] = Field(default_factory=dict)


class SyncAction(str, Enum):
    """Classification of one local/remote pair."""

    UNCHANGED = "unchanged"  # Neither side changed since last sync
    PUSH = "push"  # Local changed, remote did not
    PULL = "pull"  # Remote changed, local did not
    CONFLICT = "conflict"  # Both changed (or never synced)
    ORPHAN = "orphan"  # Remote issue confirmed missing
    UNAVAILABLE = "unavailable"  # Remote fetch failed, state unknown


class ConflictResolution(str, Enum):
    """Operator decision for one conflict."""

    LOCAL = "local"
    REMOTE = "remote"
    SKIP = "skip"


class OrphanDecision(str, Enum):
    """Answer to the per-orphan cleanup prompt."""

    YES = "yes"
    NO = "no"
    ALL = "all"
    QUIT = "quit"


@dataclass
class SyncFilter:
    """Restricts a run to one document, by path or by issue number."""

    filepath: Path | None = None
    issue_number: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.filepath is None and self.issue_number is None


@dataclass
class SyncConflict:
    """Both sides changed since the last sync."""

    issue_number: int
    local: TaskDocument
    remote: RemoteIssue


@dataclass
class SyncItemError:
    """A per-item failure accumulated during a batch run."""

    issue_number: int
    error: str


@dataclass
class SyncResult:
    """Result of a sync, push or pull run."""

    pushed: list[int] = field(default_factory=list)
    pulled: list[int] = field(default_factory=list)
    conflicts: list[int] = field(default_factory=list)  # Left unresolved (skipped)
    skipped: list[int] = field(default_factory=list)  # Unchanged or not applicable
    orphaned: list[int] = field(default_factory=list)  # Remote confirmed missing
    unavailable: list[int] = field(default_factory=list)  # Remote fetch failed
    errors: list[SyncItemError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Whether any errors occurred."""
        return len(self.errors) > 0


@dataclass
class StatusReport:
    """Dry-run classification of every discovered document."""

    to_push: list[int] = field(default_factory=list)
    to_pull: list[int] = field(default_factory=list)
    conflicts: list[int] = field(default_factory=list)
    orphaned: list[int] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)
    unavailable: list[int] = field(default_factory=list)
    new_local: list[str] = field(default_factory=list)  # Filenames without an issue number

    @property
    def has_changes(self) -> bool:
        """Whether a sync would do anything."""
        return bool(self.to_push or self.to_pull or self.conflicts or self.new_local)


@dataclass
class CreatedIssue:
    """A local document that received a GitHub issue number."""

    issue_number: int
    title: str
    filepath: Path


@dataclass
class CreateError:
    """A local document whose issue could not be created."""

    filename: str
    error: str


@dataclass
class CreateResult:
    """Result of creating issues for new local documents."""

    created: list[CreatedIssue] = field(default_factory=list)
    errors: list[CreateError] = field(default_factory=list)
    reabsorbed: list[int] = field(default_factory=list)  # Orphan numbers stripped first

    @property
    def has_errors(self) -> bool:
        """Whether any errors occurred."""
        return len(self.errors) > 0


@dataclass
class CleanResult:
    """Result of deleting orphaned local documents."""

    deleted: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    errors: list[SyncItemError] = field(default_factory=list)


@dataclass
class StripResult:
    """Result of removing issue numbers from orphaned local documents."""

    stripped: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    errors: list[SyncItemError] = field(default_factory=list)
