"""Task document domain model."""

from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["P0", "P1", "P2", "P3"]
Priority = Literal["blocker", "critical", "high", "medium", "low"]
TaskType = Literal["epic", "feature", "bug", "enhancement"]
TaskStatus = Literal["backlog", "active", "completed"]

SEVERITIES: tuple[str, ...] = ("P0", "P1", "P2", "P3")
PRIORITIES: tuple[str, ...] = ("blocker", "critical", "high", "medium", "low")
TASK_TYPES: tuple[str, ...] = ("epic", "feature", "bug", "enhancement")
STATUSES: tuple[str, ...] = ("backlog", "active", "completed")

# Issue number sentinel for documents not yet created on GitHub
NO_ISSUE_NUMBER = -1

REQUIRED_FIELDS: tuple[str, ...] = ("created_utc", "reporter", "title", "severity", "priority")


class SourceType(str, Enum):
    """Storage backend that owns a task document."""

    TASKS = "tasks"  # docs/tasks/{status}/NNN-slug.md
    OPENSPEC = "openspec"  # openspec/changes/{change}/tasks.md


class TaskMetadata(BaseModel):
    """Front matter of a task document.

    Keys the model does not know are kept (``extra="allow"``) so they survive a
    read/write cycle untouched.
    """

    model_config = ConfigDict(extra="allow")

    created_utc: str
    reporter: str
    title: str
    severity: Severity
    priority: Priority
    type: TaskType | None = None
    component: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    assignee: str | None = None
    status: TaskStatus | None = None
    status_last_modified: str | None = None
    completed_utc: str | None = None

    # Lineage fields, opaque to sync and only round-tripped
    parent_epic: str | None = None
    epic_progress: str | None = None
    commit: str | None = None
    commit_url: str | None = None
    relates_to: list[str] | None = None
    due_date: str | None = None

    @field_validator(
        "created_utc",
        "reporter",
        "title",
        "assignee",
        "status_last_modified",
        "completed_utc",
        "parent_epic",
        "epic_progress",
        "commit",
        "commit_url",
        "due_date",
        mode="before",
    )
    @classmethod
    def coerce_scalar(cls, v: Any) -> Any:
        """YAML turns timestamps, dates and bare numbers into non-strings."""
        if isinstance(v, (datetime, date)):
            return v.isoformat()
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("component", "labels", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> Any:
        """Accept a single string or null where a list is expected."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("relates_to", mode="before")
    @classmethod
    def coerce_relates_to(cls, v: Any) -> Any:
        if isinstance(v, (str, int)):
            return [str(v)]
        if isinstance(v, list):
            return [str(item) for item in v]
        return v

    def to_frontmatter(self) -> dict:
        """Convert to dict suitable for YAML front matter.

        Keys whose value is None are dropped: the format cannot represent a
        present key with an absent value.
        """
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_frontmatter(cls, metadata: dict) -> "TaskMetadata":
        """Create metadata from parsed front matter.

        Raises:
            ValueError: If a required field is missing or a value is invalid
        """
        missing = [name for name in REQUIRED_FIELDS if metadata.get(name) in (None, "")]
        if missing:
            raise ValueError(f"Missing required frontmatter fields: {', '.join(missing)}")
        return cls.model_validate(dict(metadata))


class TaskDocument(BaseModel):
    """One work item as known locally, independent of the storage backend."""

    issue_number: int = NO_ISSUE_NUMBER
    source_type: SourceType = SourceType.TASKS
    filename: str
    filepath: Path
    frontmatter: TaskMetadata
    body: str = ""
    last_modified: datetime
    folder_last_modified: datetime

    # Status implied by where the document lives (directory or checklist);
    # None when the backend does not encode status spatially
    location_status: TaskStatus | None = None

    @property
    def has_issue_number(self) -> bool:
        """Whether the document is linked to a GitHub issue."""
        return self.issue_number != NO_ISSUE_NUMBER

    @property
    def effective_status(self) -> TaskStatus:
        """Status of the document as currently stored.

        The storage location wins over the metadata field.
        """
        return self.location_status or self.frontmatter.status or "backlog"

    @property
    def display_name(self) -> str:
        """Short label for messages: "#7 (007-fix-login.md)" or the filename."""
        if self.has_issue_number:
            return f"#{self.issue_number} ({self.filename})"
        return self.filename
