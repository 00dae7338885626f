"""Source parsers for local task storage backends."""

from .openspec import OpenSpecParser
from .protocol import (
    SourceParser,
    SupportsDelete,
    SupportsMove,
    SupportsStatusResolution,
    SupportsStripNumber,
    SupportsTaskDirs,
    TaskFileExistsError,
    TaskParseError,
)
from .registry import ALL_SOURCES, ParserRegistry
from .tasks import TasksParser

__all__ = [
    "ALL_SOURCES",
    "OpenSpecParser",
    "ParserRegistry",
    "SourceParser",
    "SupportsDelete",
    "SupportsMove",
    "SupportsStatusResolution",
    "SupportsStripNumber",
    "SupportsTaskDirs",
    "TaskFileExistsError",
    "TaskParseError",
    "TasksParser",
]
