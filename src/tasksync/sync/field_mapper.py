"""Bidirectional mapping between task documents and GitHub issues.

Structured metadata travels as prefixed labels:
    priority:high  severity:P1  type:bug  component:auth  status:active

Fields without a label form are written into an HTML comment at the top of
the issue body, and a footer marks the issue as synced:

    <!-- metadata
    **Reporter:** alice
    **Due Date:** 2025-03-01
    -->

    Body text

    ---

    *Synced from local task: Fix login*
"""

from __future__ import annotations

import json
import logging
import re
import zlib
from dataclasses import dataclass, field
from typing import Any

from ..models import (
    PRIORITIES,
    SEVERITIES,
    STATUSES,
    TASK_TYPES,
    IssuePayload,
    RemoteIssue,
    TaskDocument,
    TaskMetadata,
)
from ..utils import strip_title_prefix, to_iso

logger = logging.getLogger(__name__)

# Local assignee name -> GitHub login
ASSIGNEE_ALIASES: dict[str, str] = {"thom": "thunter009"}

# Placeholder assignee values that mean "nobody"
INVALID_ASSIGNEES = frozenset({"", "unassigned", "none", "completed", "active", "backlog"})

STRUCTURED_PREFIXES = ("priority", "severity", "type", "component", "status")

# Fields with no label form, kept from the local document on pull
LINEAGE_FIELDS = ("parent_epic", "epic_progress", "commit", "commit_url", "relates_to", "due_date")

METADATA_BLOCK = re.compile(r"<!-- metadata\n([\s\S]*?)\n-->")
METADATA_BLOCK_WITH_GAP = re.compile(r"<!-- metadata\n[\s\S]*?\n-->\n\n")
METADATA_LINE = re.compile(r"\*\*(.+?):\*\*\s*(.+)")
SYNC_FOOTER = re.compile(r"\n\n---\n\n\*Synced from local task:.*?\*\s*$", re.DOTALL)

DEFAULT_PRIORITY = "medium"
DEFAULT_SEVERITY = "P2"
DEFAULT_REPORTER = "System"


def is_valid_label(label: str) -> bool:
    """A label must be ``key:value`` with both parts non-empty."""
    index = label.find(":")
    return 0 < index < len(label) - 1


def resolve_assignee(assignee: str | None) -> str | None:
    """Map a local assignee to a GitHub login, or None for placeholders."""
    if assignee is None or assignee.strip().lower() in INVALID_ASSIGNEES:
        return None
    name = assignee.strip()
    return ASSIGNEE_ALIASES.get(name, name)


@dataclass
class ParsedLabels:
    """Structured fields recovered from an issue's labels."""

    labels: list[str] = field(default_factory=list)
    priority: str | None = None
    severity: str | None = None
    type: str | None = None
    component: list[str] = field(default_factory=list)
    status: str | None = None


@dataclass
class ParsedBody:
    """Issue body split into clean text and metadata block values."""

    body: str
    metadata: dict[str, str] = field(default_factory=dict)


class FieldMapper:
    """Stateless transform between TaskDocument and GitHub issue fields.

    The only state is the set of invalid labels already warned about, so a
    bad label is reported once per mapper instance.
    """

    def __init__(self, keep_title_prefixes: bool = False) -> None:
        """
        Args:
            keep_title_prefixes: Keep a leading ``[#NNN]`` marker in titles
                instead of stripping it before pushing and hashing
        """
        self.keep_title_prefixes = keep_title_prefixes
        self._warned_labels: set[str] = set()

    # --- Local -> Remote ---

    def normalize_title(self, title: str) -> str:
        if self.keep_title_prefixes:
            return title
        return strip_title_prefix(title)

    def build_labels(self, metadata: TaskMetadata, status: str | None = None) -> list[str]:
        """Outgoing label set: free-form labels, components, then structured fields."""
        labels = self.validate_labels(metadata.labels)
        labels += [f"component:{c}" for c in metadata.component]
        labels.append(f"priority:{metadata.priority}")
        labels.append(f"severity:{metadata.severity}")
        if metadata.type:
            labels.append(f"type:{metadata.type}")
        if status:
            labels.append(f"status:{status}")
        return list(dict.fromkeys(labels))

    def validate_labels(self, labels: list[str]) -> list[str]:
        """Drop labels that are not ``key:value``, warning once per label."""
        valid = []
        for label in labels:
            if is_valid_label(label):
                valid.append(label)
            elif label not in self._warned_labels:
                self._warned_labels.add(label)
                logger.warning("Dropping invalid label %r (labels must be key:value)", label)
        return valid

    def build_issue_body(self, metadata: TaskMetadata, body: str) -> str:
        """Issue body with the metadata block (when any field is set) and footer."""
        lines = []
        if metadata.reporter:
            lines.append(f"**Reporter:** {metadata.reporter}")
        if metadata.due_date:
            lines.append(f"**Due Date:** {metadata.due_date}")
        if metadata.parent_epic:
            lines.append(f"**Epic:** {metadata.parent_epic}")
        if metadata.epic_progress:
            lines.append(f"**Progress:** {metadata.epic_progress}")
        if metadata.relates_to:
            lines.append(f"**Related:** {', '.join(metadata.relates_to)}")
        if metadata.commit_url:
            lines.append(f"**Commit:** {metadata.commit_url}")

        issue_body = body
        if lines:
            block = "\n".join(lines)
            issue_body = f"<!-- metadata\n{block}\n-->\n\n{body}"

        title = self.normalize_title(metadata.title)
        return f"{issue_body}\n\n---\n\n*Synced from local task: {title}*"

    def to_remote(self, task: TaskDocument) -> IssuePayload:
        """Issue fields for a task.

        State follows where the task currently lives, not a possibly stale
        ``status`` field.
        """
        metadata = task.frontmatter
        status = task.effective_status
        return IssuePayload(
            title=self.normalize_title(metadata.title),
            body=self.build_issue_body(metadata, task.body),
            labels=self.build_labels(metadata, status),
            assignee=resolve_assignee(metadata.assignee),
            state="closed" if status == "completed" else "open",
        )

    # --- Remote -> Local ---

    def parse_labels(self, labels: list[str]) -> ParsedLabels:
        """Split labels into structured fields and remaining free-form labels."""
        result = ParsedLabels()
        for label in labels:
            prefix, _, value = label.partition(":")
            if prefix == "priority" and value in PRIORITIES:
                result.priority = value
            elif prefix == "severity" and value in SEVERITIES:
                result.severity = value
            elif prefix == "type" and value in TASK_TYPES:
                result.type = value
            elif prefix == "status" and value in STATUSES:
                result.status = value
            elif prefix == "component" and value:
                result.component.append(value)
            elif prefix in STRUCTURED_PREFIXES:
                if label not in self._warned_labels:
                    self._warned_labels.add(label)
                    logger.warning("Ignoring unknown %s label %r", prefix, label)
            else:
                result.labels.extend(self.validate_labels([label]))
        return result

    def parse_issue_body(self, body: str | None) -> ParsedBody:
        """Strip the metadata block and footer; block keys are lowercased."""
        text = body or ""
        metadata: dict[str, str] = {}

        match = METADATA_BLOCK.search(text)
        if match:
            for line in match.group(1).split("\n"):
                line_match = METADATA_LINE.search(line)
                if line_match:
                    metadata[line_match.group(1).lower()] = line_match.group(2).strip()
            text = METADATA_BLOCK_WITH_GAP.sub("", text, count=1)

        text = SYNC_FOOTER.sub("", text)
        return ParsedBody(body=text.strip(), metadata=metadata)

    def from_remote(
        self, issue: RemoteIssue, existing: TaskDocument | None = None
    ) -> tuple[dict[str, Any], str]:
        """Front matter updates and body for a task, from an issue.

        Args:
            issue: The remote issue
            existing: Local document being updated, if any. Its lineage
                fields, reporter and creation time are kept.

        Returns:
            (front matter fields to set, body). The dict always includes
            ``assignee`` so that an unassigned issue clears it locally.
        """
        parsed = self.parse_labels(issue.labels)
        parsed_body = self.parse_issue_body(issue.body)
        block = parsed_body.metadata
        current = existing.frontmatter if existing is not None else None

        fields: dict[str, Any] = {
            "title": issue.title,
            "labels": parsed.labels,
            "priority": parsed.priority or DEFAULT_PRIORITY,
            "severity": parsed.severity or DEFAULT_SEVERITY,
            "component": parsed.component,
            "assignee": self._local_assignee(issue.assignee, current),
        }

        if current is not None:
            fields["created_utc"] = current.created_utc
            fields["reporter"] = current.reporter
            for name in LINEAGE_FIELDS:
                fields[name] = getattr(current, name)
        else:
            fields["created_utc"] = to_iso(issue.created_at)
            fields["reporter"] = block.get("reporter") or DEFAULT_REPORTER
            if block.get("due date"):
                fields["due_date"] = block["due date"]
            if block.get("epic"):
                fields["parent_epic"] = block["epic"]
            if block.get("progress"):
                fields["epic_progress"] = block["progress"]
            if block.get("related"):
                fields["relates_to"] = [r.strip() for r in block["related"].split(",") if r.strip()]
            if block.get("commit"):
                fields["commit_url"] = block["commit"]

        if parsed.type:
            fields["type"] = parsed.type

        if issue.state == "closed":
            fields["status"] = "completed"
            if current is not None and current.completed_utc and current.status == "completed":
                fields["completed_utc"] = current.completed_utc
            else:
                fields["completed_utc"] = to_iso(issue.closed_at or issue.updated_at)
        else:
            if parsed.status and parsed.status != "completed":
                fields["status"] = parsed.status
            elif current is not None and current.status == "completed":
                # Reopened without a status label
                fields["status"] = "active"
            fields["completed_utc"] = None

        return fields, parsed_body.body

    def apply_remote(self, task: TaskDocument, issue: RemoteIssue) -> TaskDocument:
        """Copy of ``task`` with metadata and body replaced from ``issue``."""
        fields, body = self.from_remote(issue, task)
        merged = {**task.frontmatter.model_dump(), **fields}
        metadata = TaskMetadata.model_validate(merged)
        return task.model_copy(update={"frontmatter": metadata, "body": body})

    # --- Hashing ---

    def hash_task(self, task: TaskDocument) -> str:
        """Content hash of what a push would send for ``task``."""
        payload = self.to_remote(task)
        return _hash(
            {
                "title": payload.title,
                "body": payload.body,
                "labels": sorted(payload.labels),
                "assignee": payload.assignee,
                "state": payload.state,
            }
        )

    def hash_issue(self, issue: RemoteIssue) -> str:
        """Content hash of an issue's synced fields, label order ignored."""
        return _hash(
            {
                "title": self.normalize_title(issue.title),
                "body": issue.body or "",
                "labels": sorted(issue.labels),
                "assignee": issue.assignee,
                "state": issue.state,
            }
        )

    def _local_assignee(self, login: str | None, current: TaskMetadata | None) -> str | None:
        if login is None:
            return None
        # Keep the local alias when it still points at the same login
        if current is not None and resolve_assignee(current.assignee) == login:
            return current.assignee
        return login


def _hash(data: dict[str, Any]) -> str:
    encoded = json.dumps(data, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return f"{zlib.crc32(encoded):08x}"
