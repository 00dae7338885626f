"""Source parser protocol for task storage backends."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from ..models import SourceType, SyncFilter, TaskDocument, TaskMetadata
from ..models.task import TaskStatus


class TaskParseError(Exception):
    """A task document could not be parsed."""

    def __init__(self, filepath: Path, reason: str):
        self.filepath = filepath
        self.reason = reason
        super().__init__(f"{filepath}: {reason}")


class TaskFileExistsError(Exception):
    """A rename, move or create would overwrite an existing document."""

    def __init__(self, path: Path, message: str = "Task file already exists"):
        self.path = path
        super().__init__(f"{message}: {path}")


@runtime_checkable
class SourceParser(Protocol):
    """Interface every task storage backend implements.

    Backends that encode status spatially, or can delete and renumber
    documents, additionally implement the capability protocols below. The
    sync engine checks for those with ``isinstance`` before calling them.
    """

    source_type: SourceType

    def discover_tasks(self, sync_filter: SyncFilter | None = None) -> list[TaskDocument]:
        """Load every document that carries an issue number.

        Args:
            sync_filter: Restrict discovery to one path or issue number

        Returns:
            Parsed documents. Unparseable documents are logged and skipped.
        """
        ...

    def discover_new_tasks(self) -> list[TaskDocument]:
        """Load documents that have not been created on GitHub yet."""
        ...

    def read_task(self, filepath: Path) -> TaskDocument:
        """Parse a single document.

        Raises:
            TaskParseError: If the document is malformed
        """
        ...

    def write_task(self, task: TaskDocument) -> None:
        """Persist metadata and body of an existing document."""
        ...

    def create_task(
        self,
        issue_number: int,
        metadata: TaskMetadata,
        body: str,
        status: TaskStatus | None = None,
    ) -> TaskDocument:
        """Create a new document for an issue that only exists remotely.

        Raises:
            TaskFileExistsError: If the target already exists
        """
        ...

    def task_exists(self, issue_number: int) -> bool:
        """Whether a document for ``issue_number`` exists."""
        ...

    def rename_task(self, filepath: Path, issue_number: int, title: str | None = None) -> Path:
        """Attach ``issue_number`` (and optionally a new title) to a document.

        Returns:
            The document's path after the rename

        Raises:
            TaskFileExistsError: If the new path is taken
        """
        ...


@runtime_checkable
class SupportsMove(Protocol):
    """Backend that stores status as the document's location."""

    def move_task(self, task: TaskDocument, status: TaskStatus) -> TaskDocument: ...


@runtime_checkable
class SupportsStatusResolution(Protocol):
    """Backend that can arbitrate between metadata status and location."""

    def resolve_status_conflict(self, task: TaskDocument) -> TaskStatus: ...


@runtime_checkable
class SupportsTaskDirs(Protocol):
    """Backend with one directory per status."""

    def get_task_dir(self, status: TaskStatus) -> Path: ...


@runtime_checkable
class SupportsDelete(Protocol):
    """Backend that can delete a document."""

    def delete_task(self, task: TaskDocument) -> None: ...


@runtime_checkable
class SupportsStripNumber(Protocol):
    """Backend that can detach a document from its issue number."""

    def strip_issue_number(self, task: TaskDocument) -> Path: ...
