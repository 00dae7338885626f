"""Bidirectional sync between task documents and GitHub issues."""

from .engine import SyncEngine, SyncError
from .field_mapper import FieldMapper, is_valid_label, resolve_assignee
from .resolver import ConflictResolver, orphan_prompter
from .state import STATE_FILENAME, SyncStateStore

__all__ = [
    "STATE_FILENAME",
    "ConflictResolver",
    "FieldMapper",
    "SyncEngine",
    "SyncError",
    "SyncStateStore",
    "is_valid_label",
    "orphan_prompter",
    "resolve_assignee",
]
