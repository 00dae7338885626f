"""GitHub issue record models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

IssueState = Literal["open", "closed"]


class RemoteIssue(BaseModel):
    """An issue as returned by the GitHub REST API, normalized."""

    number: int
    title: str
    body: str | None = None
    state: IssueState = "open"
    labels: list[str] = Field(default_factory=list)
    assignee: str | None = None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RemoteIssue:
        """Build from a REST ``/issues/{n}`` payload.

        Labels may be objects (``{"name": ...}``) or bare strings.
        """
        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in data.get("labels") or []
        ]
        assignee = data.get("assignee")
        return cls(
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body"),
            state=data.get("state", "open"),
            labels=labels,
            assignee=assignee.get("login") if isinstance(assignee, dict) else assignee,
            created_at=data["created_at"],
            updated_at=data.get("updated_at") or data["created_at"],
            closed_at=data.get("closed_at"),
        )


class IssuePayload(BaseModel):
    """Outgoing issue fields produced from a local task."""

    title: str
    body: str
    labels: list[str] = Field(default_factory=list)
    assignee: str | None = None
    state: IssueState = "open"

    def to_api(self) -> dict[str, Any]:
        """Request body for ``PATCH /repos/{repo}/issues/{n}``.

        An absent assignee clears the assignee list.
        """
        return {
            "title": self.title,
            "body": self.body,
            "labels": list(self.labels),
            "assignees": [self.assignee] if self.assignee else [],
            "state": self.state,
        }
