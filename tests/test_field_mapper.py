"""Tests for the field mapper: labels, bodies, remote parsing and hashing."""

import logging
from datetime import UTC, datetime
from pathlib import Path

import pytest

from tasksync.models import RemoteIssue, TaskDocument, TaskMetadata
from tasksync.sync import FieldMapper, is_valid_label, resolve_assignee

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def make_task(location_status="backlog", body="Body text", **fields) -> TaskDocument:
    data = {
        "created_utc": "2025-01-01T00:00:00+00:00",
        "reporter": "alice",
        "title": "Fix login",
        "severity": "P2",
        "priority": "medium",
    }
    data.update(fields)
    return TaskDocument(
        issue_number=7,
        filename="007-fix-login.md",
        filepath=Path(f"docs/tasks/{location_status}/007-fix-login.md"),
        frontmatter=TaskMetadata(**data),
        body=body,
        last_modified=NOW,
        folder_last_modified=NOW,
        location_status=location_status,
    )


def make_issue(**fields) -> RemoteIssue:
    data = {
        "number": 7,
        "title": "Fix login",
        "body": "Body text",
        "state": "open",
        "labels": ["priority:medium", "severity:P2"],
        "created_at": datetime(2025, 1, 1, tzinfo=UTC),
        "updated_at": NOW,
    }
    data.update(fields)
    return RemoteIssue(**data)


@pytest.fixture
def mapper() -> FieldMapper:
    return FieldMapper()


class TestLabelValidation:
    """Tests for is_valid_label and validate_labels."""

    def test_key_value_required(self):
        """Labels need a non-empty key and value around the colon."""
        assert is_valid_label("area:auth")
        assert not is_valid_label("bug")
        assert not is_valid_label(":auth")
        assert not is_valid_label("area:")

    def test_invalid_labels_dropped(self, mapper: FieldMapper):
        """Free-form labels without a colon are removed."""
        assert mapper.validate_labels(["area:auth", "bug"]) == ["area:auth"]

    def test_warns_once_per_label(self, mapper: FieldMapper, caplog):
        """The same invalid label is only reported once."""
        with caplog.at_level(logging.WARNING, logger="tasksync"):
            mapper.validate_labels(["bug"])
            mapper.validate_labels(["bug"])
            mapper.parse_labels(["bug", "wontfix"])

        messages = [r.getMessage() for r in caplog.records]
        assert sum("'bug'" in m for m in messages) == 1
        assert sum("'wontfix'" in m for m in messages) == 1


class TestAssignee:
    """Tests for resolve_assignee."""

    def test_alias_resolved(self):
        """Local aliases map to GitHub logins."""
        assert resolve_assignee("thom") == "thunter009"

    def test_placeholders_are_none(self):
        """Placeholder values never reach GitHub."""
        for value in (None, "", "unassigned", "None", "completed"):
            assert resolve_assignee(value) is None

    def test_other_names_pass_through(self):
        """Unknown names are used as logins, trimmed."""
        assert resolve_assignee(" octocat ") == "octocat"


class TestToRemote:
    """Tests for FieldMapper.to_remote."""

    def test_label_order(self, mapper: FieldMapper):
        """Free-form labels, components, priority, severity, type, status."""
        task = make_task(
            location_status="active",
            labels=["area:auth", "bug"],
            component=["api"],
            priority="high",
            severity="P1",
            type="bug",
        )
        payload = mapper.to_remote(task)
        assert payload.labels == [
            "area:auth",
            "component:api",
            "priority:high",
            "severity:P1",
            "type:bug",
            "status:active",
        ]

    def test_labels_deduplicated(self, mapper: FieldMapper):
        """A label given twice is sent once."""
        task = make_task(labels=["priority:medium", "area:x", "area:x"])
        labels = mapper.to_remote(task).labels
        assert labels.count("priority:medium") == 1
        assert labels.count("area:x") == 1

    def test_state_follows_location(self, mapper: FieldMapper):
        """A task in completed/ closes the issue even if its field says active."""
        task = make_task(location_status="completed", status="active")
        payload = mapper.to_remote(task)
        assert payload.state == "closed"
        assert "status:completed" in payload.labels

    def test_title_prefix_stripped(self, mapper: FieldMapper):
        """The [#NNN] marker is removed from the title and footer."""
        payload = mapper.to_remote(make_task(title="[#7] Fix login"))
        assert payload.title == "Fix login"
        assert payload.body.endswith("*Synced from local task: Fix login*")

    def test_title_prefix_kept_when_configured(self):
        """keep_title_prefixes leaves the marker in place."""
        payload = FieldMapper(keep_title_prefixes=True).to_remote(
            make_task(title="[#7] Fix login")
        )
        assert payload.title == "[#7] Fix login"

    def test_body_has_metadata_block_and_footer(self, mapper: FieldMapper):
        """Reporter and lineage fields go into the comment block."""
        task = make_task(due_date="2025-03-01", parent_epic="001-auth", relates_to=["#3", "#4"])
        body = mapper.to_remote(task).body
        assert body.startswith("<!-- metadata\n**Reporter:** alice\n**Due Date:** 2025-03-01\n")
        assert "**Epic:** 001-auth" in body
        assert "**Related:** #3, #4" in body
        assert "-->\n\nBody text\n\n---\n\n*Synced from local task: Fix login*" in body

    def test_assignee_resolved(self, mapper: FieldMapper):
        """Aliases are resolved and placeholders dropped."""
        assert mapper.to_remote(make_task(assignee="thom")).assignee == "thunter009"
        assert mapper.to_remote(make_task(assignee="unassigned")).assignee is None


class TestParseIssueBody:
    """Tests for FieldMapper.parse_issue_body."""

    def test_strips_block_and_footer(self, mapper: FieldMapper):
        """The metadata block and sync footer are removed."""
        body = mapper.build_issue_body(make_task(due_date="2025-03-01").frontmatter, "Hello")
        parsed = mapper.parse_issue_body(body)
        assert parsed.body == "Hello"
        assert parsed.metadata == {"reporter": "alice", "due date": "2025-03-01"}

    def test_plain_body_unchanged(self, mapper: FieldMapper):
        """A body written on GitHub is returned as is."""
        assert mapper.parse_issue_body("Just text\n").body == "Just text"

    def test_none_body(self, mapper: FieldMapper):
        """A null body parses to an empty string."""
        assert mapper.parse_issue_body(None).body == ""


class TestFromRemote:
    """Tests for FieldMapper.from_remote and apply_remote."""

    def test_structured_labels_parsed(self, mapper: FieldMapper):
        """Prefixed labels fill structured fields; the rest stay labels."""
        issue = make_issue(
            labels=[
                "priority:high",
                "severity:P0",
                "type:feature",
                "component:api",
                "status:active",
                "area:auth",
            ]
        )
        fields, body = mapper.from_remote(issue)
        assert fields["priority"] == "high"
        assert fields["severity"] == "P0"
        assert fields["type"] == "feature"
        assert fields["component"] == ["api"]
        assert fields["status"] == "active"
        assert fields["labels"] == ["area:auth"]
        assert body == "Body text"

    def test_defaults_without_labels(self, mapper: FieldMapper):
        """Missing priority and severity fall back to defaults."""
        fields, _ = mapper.from_remote(make_issue(labels=[]))
        assert fields["priority"] == "medium"
        assert fields["severity"] == "P2"
        assert fields["reporter"] == "System"

    def test_new_task_uses_metadata_block(self, mapper: FieldMapper):
        """Without an existing document the block's values are used."""
        issue = make_issue(
            body="<!-- metadata\n**Reporter:** bob\n**Epic:** 001-auth\n-->\n\nText"
        )
        fields, body = mapper.from_remote(issue)
        assert fields["reporter"] == "bob"
        assert fields["parent_epic"] == "001-auth"
        assert body == "Text"

    def test_closed_sets_completed(self, mapper: FieldMapper):
        """A closed issue completes the task with the close time."""
        closed_at = datetime(2025, 1, 10, tzinfo=UTC)
        fields, _ = mapper.from_remote(make_issue(state="closed", closed_at=closed_at))
        assert fields["status"] == "completed"
        assert fields["completed_utc"] == "2025-01-10T00:00:00+00:00"

    def test_closed_keeps_existing_completion_time(self, mapper: FieldMapper):
        """An already completed task keeps its completion timestamp."""
        existing = make_task(
            location_status="completed", status="completed", completed_utc="2024-12-01"
        )
        fields, _ = mapper.from_remote(make_issue(state="closed"), existing)
        assert fields["completed_utc"] == "2024-12-01"

    def test_reopened_becomes_active(self, mapper: FieldMapper):
        """Reopening a completed task without a status label makes it active."""
        existing = make_task(
            location_status="completed", status="completed", completed_utc="2024-12-01"
        )
        fields, _ = mapper.from_remote(make_issue(state="open"), existing)
        assert fields["status"] == "active"
        assert fields["completed_utc"] is None

    def test_local_alias_kept(self, mapper: FieldMapper):
        """The local alias survives when it resolves to the remote login."""
        existing = make_task(assignee="thom")
        fields, _ = mapper.from_remote(make_issue(assignee="thunter009"), existing)
        assert fields["assignee"] == "thom"

    @pytest.mark.parametrize("location", ["backlog", "active", "completed"])
    def test_round_trip(self, mapper: FieldMapper, location: str):
        """Structured fields survive to_remote followed by from_remote."""
        task = make_task(
            location_status=location,
            title="[#7] Fix login",
            priority="high",
            severity="P1",
            component=["api", "auth"],
        )
        payload = mapper.to_remote(task)
        issue = make_issue(
            title=payload.title,
            body=payload.body,
            labels=payload.labels,
            state=payload.state,
            closed_at=NOW if payload.state == "closed" else None,
        )

        fields, body = mapper.from_remote(issue)

        assert fields["title"] == "Fix login"
        assert fields["priority"] == "high"
        assert fields["severity"] == "P1"
        assert fields["component"] == ["api", "auth"]
        assert fields.get("status", "backlog") == location
        assert body == "Body text"

    def test_apply_remote_keeps_lineage(self, mapper: FieldMapper):
        """Fields with no remote form are copied from the existing document."""
        existing = make_task(parent_epic="001-auth", commit="abc123", reporter="carol")
        updated = mapper.apply_remote(existing, make_issue(title="Fix login flow", body="New"))
        assert updated.frontmatter.title == "Fix login flow"
        assert updated.frontmatter.parent_epic == "001-auth"
        assert updated.frontmatter.commit == "abc123"
        assert updated.frontmatter.reporter == "carol"
        assert updated.body == "New"
        assert existing.frontmatter.title == "Fix login"


class TestHashing:
    """Tests for hash_task and hash_issue."""

    def test_issue_hash_ignores_label_order(self, mapper: FieldMapper):
        """Label order does not change the remote hash."""
        a = make_issue(labels=["priority:high", "severity:P1"])
        b = make_issue(labels=["severity:P1", "priority:high"])
        assert mapper.hash_issue(a) == mapper.hash_issue(b)

    def test_issue_hash_changes_with_content(self, mapper: FieldMapper):
        """Title, body and state all feed the hash."""
        base = mapper.hash_issue(make_issue())
        assert mapper.hash_issue(make_issue(title="Other")) != base
        assert mapper.hash_issue(make_issue(body="Other")) != base
        assert mapper.hash_issue(make_issue(state="closed")) != base

    def test_task_hash_ignores_title_prefix(self, mapper: FieldMapper):
        """A cosmetic [#NNN] marker is not a change."""
        assert mapper.hash_task(make_task(title="[#7] Fix login")) == mapper.hash_task(
            make_task(title="Fix login")
        )

    def test_task_hash_sees_prefix_when_kept(self):
        """With prefixes kept, the marker is part of the content."""
        mapper = FieldMapper(keep_title_prefixes=True)
        assert mapper.hash_task(make_task(title="[#7] Fix login")) != mapper.hash_task(
            make_task(title="Fix login")
        )

    def test_issue_hash_ignores_title_prefix(self, mapper: FieldMapper):
        """Adding a [#NNN] marker on GitHub is not a remote change."""
        assert mapper.hash_issue(make_issue(title="[#001] Fix X")) == mapper.hash_issue(
            make_issue(title="Fix X")
        )

    def test_issue_hash_sees_prefix_when_kept(self):
        """With prefixes kept, a remote marker changes the hash."""
        mapper = FieldMapper(keep_title_prefixes=True)
        assert mapper.hash_issue(make_issue(title="[#001] Fix X")) != mapper.hash_issue(
            make_issue(title="Fix X")
        )

    def test_task_hash_follows_location(self, mapper: FieldMapper):
        """Moving a task to another status directory changes its hash."""
        assert mapper.hash_task(make_task("backlog")) != mapper.hash_task(make_task("active"))

    def test_hash_format(self, mapper: FieldMapper):
        """Hashes are short hex strings."""
        value = mapper.hash_task(make_task())
        assert len(value) == 8
        int(value, 16)
