"""Data models."""

from .remote import IssuePayload, RemoteIssue
from .sync import (
    CleanResult,
    ConflictResolution,
    CreatedIssue,
    CreateError,
    CreateResult,
    OrphanDecision,
    StatusReport,
    StripResult,
    SyncAction,
    SyncConflict,
    SyncFilter,
    SyncItemError,
    SyncResult,
    SyncState,
    SyncStateEntry,
)
from .task import (
    NO_ISSUE_NUMBER,
    PRIORITIES,
    SEVERITIES,
    STATUSES,
    TASK_TYPES,
    SourceType,
    TaskDocument,
    TaskMetadata,
)

__all__ = [
    "NO_ISSUE_NUMBER",
    "PRIORITIES",
    "SEVERITIES",
    "STATUSES",
    "TASK_TYPES",
    "CleanResult",
    "ConflictResolution",
    "CreateError",
    "CreateResult",
    "CreatedIssue",
    "IssuePayload",
    "OrphanDecision",
    "RemoteIssue",
    "SourceType",
    "StatusReport",
    "StripResult",
    "SyncAction",
    "SyncConflict",
    "SyncFilter",
    "SyncItemError",
    "SyncResult",
    "SyncState",
    "SyncStateEntry",
    "TaskDocument",
    "TaskMetadata",
]
