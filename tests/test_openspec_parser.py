"""Integration tests for the OpenSpec change-folder backend."""

import json
from pathlib import Path

import pytest

from tasksync.models import SourceType, SyncFilter, TaskMetadata
from tasksync.parsers import OpenSpecParser, TaskFileExistsError
from tasksync.parsers.openspec import format_title, infer_status
from tasksync.parsers.sidecar import SIDECAR_FILENAME, load_sidecar, update_sidecar

CHECKLIST = "## Tasks\n\n- [x] Add login form\n- [ ] Add logout\n"


def make_change(
    root: Path,
    name: str,
    content: str = CHECKLIST,
    issue: int | None = None,
    proposal: str | None = None,
) -> Path:
    change_dir = root / "openspec" / "changes" / name
    change_dir.mkdir(parents=True)
    (change_dir / "tasks.md").write_text(content)
    if issue is not None:
        (change_dir / SIDECAR_FILENAME).write_text(
            json.dumps({"github_issue": issue, "created": "2025-01-01T00:00:00+00:00"})
        )
    if proposal is not None:
        (change_dir / "proposal.md").write_text(proposal)
    return change_dir


@pytest.fixture
def parser(tmp_path: Path) -> OpenSpecParser:
    return OpenSpecParser(tmp_path)


class TestHelpers:
    """Tests for title and status inference."""

    def test_format_title(self):
        """Kebab-case folder names become Title Case."""
        assert format_title("add-user-auth") == "Add User Auth"

    def test_infer_status(self):
        """Completion ratio decides the status."""
        assert infer_status("- [ ] a\n- [ ] b") == "backlog"
        assert infer_status("- [x] a\n- [ ] b") == "active"
        assert infer_status("- [X] a\n- [x] b") == "completed"
        assert infer_status("No checklist") == "backlog"

    def test_archived_is_completed(self):
        """The archive marker short-circuits to completed."""
        assert infer_status("- [ ] a", archived=True) == "completed"


class TestSidecar:
    """Tests for sidecar helpers."""

    def test_malformed_sidecar_is_absent(self, tmp_path: Path):
        """Unreadable JSON is treated as no sidecar."""
        (tmp_path / SIDECAR_FILENAME).write_text("{not json")
        assert load_sidecar(tmp_path) is None

    def test_update_merges_and_removes(self, tmp_path: Path):
        """Updates merge into the file and None removes a key."""
        update_sidecar(tmp_path, github_issue=4, created="2025-01-01")
        meta = update_sidecar(tmp_path, github_issue=None, last_synced="2025-02-01")
        assert meta.github_issue is None
        assert meta.created == "2025-01-01"
        data = json.loads((tmp_path / SIDECAR_FILENAME).read_text())
        assert "github_issue" not in data


class TestDiscovery:
    """Tests for discover_tasks and discover_new_tasks."""

    def test_linked_changes_discovered(self, tmp_path: Path, parser: OpenSpecParser):
        """Only folders whose sidecar has an issue number are synced."""
        make_change(tmp_path, "add-user-auth", issue=5)
        make_change(tmp_path, "drop-legacy-api")

        tasks = parser.discover_tasks()

        assert [t.issue_number for t in tasks] == [5]
        assert tasks[0].source_type == SourceType.OPENSPEC
        assert [t.filepath.parent.name for t in parser.discover_new_tasks()] == [
            "drop-legacy-api"
        ]

    def test_filter_by_unreadable_path(self, tmp_path: Path, parser: OpenSpecParser, caplog):
        """An undecodable checklist addressed by path yields nothing."""
        change_dir = make_change(tmp_path, "add-user-auth", issue=5)
        (change_dir / "tasks.md").write_bytes(b"\xff\xfe broken")

        tasks = parser.discover_tasks(SyncFilter(filepath=change_dir / "tasks.md"))

        assert tasks == []
        assert "Skipping unparseable change" in caplog.text

    def test_folders_without_checklist_ignored(self, tmp_path: Path, parser: OpenSpecParser):
        """A change folder without tasks.md is not a task."""
        (tmp_path / "openspec" / "changes" / "empty").mkdir(parents=True)
        assert parser.discover_new_tasks() == []

    def test_filter_by_path(self, tmp_path: Path, parser: OpenSpecParser):
        """Any path inside a change folder selects that change."""
        make_change(tmp_path, "add-user-auth", issue=5)
        make_change(tmp_path, "other", issue=6)

        tasks = parser.discover_tasks(
            SyncFilter(filepath=Path("openspec/changes/add-user-auth/proposal.md"))
        )

        assert [t.issue_number for t in tasks] == [5]

    def test_filter_by_number(self, tmp_path: Path, parser: OpenSpecParser):
        """A number filter matches the sidecar issue."""
        make_change(tmp_path, "add-user-auth", issue=5)
        make_change(tmp_path, "other", issue=6)
        assert [t.issue_number for t in parser.discover_tasks(SyncFilter(issue_number=6))] == [6]

    def test_task_exists(self, tmp_path: Path, parser: OpenSpecParser):
        """task_exists checks sidecars."""
        make_change(tmp_path, "add-user-auth", issue=5)
        assert parser.task_exists(5)
        assert not parser.task_exists(9)


class TestReadWrite:
    """Tests for read_task and write_task."""

    def test_synthetic_metadata(self, tmp_path: Path, parser: OpenSpecParser):
        """Metadata is derived from the folder and checklist."""
        change_dir = make_change(tmp_path, "add-user-auth", issue=5)

        task = parser.read_task(change_dir / "tasks.md")

        meta = task.frontmatter
        assert meta.title == "Add User Auth"
        assert meta.reporter == "openspec"
        assert meta.component == ["openspec"]
        assert meta.labels == ["source:openspec", "change:add-user-auth"]
        assert meta.created_utc == "2025-01-01T00:00:00+00:00"
        assert task.location_status == "active"

    def test_archived_change_completed(self, tmp_path: Path, parser: OpenSpecParser):
        """An .archived marker completes the change."""
        change_dir = make_change(tmp_path, "old-change", issue=5)
        (change_dir / ".archived").touch()
        assert parser.read_task(change_dir / "tasks.md").effective_status == "completed"

    def test_description_prepended_and_stripped(self, tmp_path: Path, parser: OpenSpecParser):
        """The proposal description is shown in the body but never written back."""
        change_dir = make_change(
            tmp_path,
            "add-user-auth",
            issue=5,
            proposal="# Add user auth\n\nAllow users to log in.\n\n## Details\n",
        )

        task = parser.read_task(change_dir / "tasks.md")
        assert task.body.startswith("Allow users to log in.\n\n---\n\n## Tasks")

        parser.write_task(task.model_copy(update={"body": task.body + "\n- [ ] Add MFA"}))

        content = (change_dir / "tasks.md").read_text()
        assert content.startswith("## Tasks")
        assert content.endswith("- [ ] Add MFA")
        meta = load_sidecar(change_dir)
        assert meta is not None
        assert meta.github_issue == 5
        assert meta.last_synced is not None

    def test_body_with_rule_kept_without_proposal(self, tmp_path: Path, parser: OpenSpecParser):
        """Without a proposal nothing is stripped on write."""
        change_dir = make_change(tmp_path, "x", content="Intro\n\n---\n\n- [ ] a", issue=5)
        task = parser.read_task(change_dir / "tasks.md")
        parser.write_task(task)
        assert (change_dir / "tasks.md").read_text() == "Intro\n\n---\n\n- [ ] a"


class TestCreateAndRename:
    """Tests for create_task, rename_task and strip_issue_number."""

    def test_create_task(self, tmp_path: Path, parser: OpenSpecParser):
        """A change folder with checklist and sidecar is created."""
        metadata = TaskMetadata(
            created_utc="2025-01-01T00:00:00+00:00",
            reporter="alice",
            title="Add MFA",
            severity="P2",
            priority="medium",
        )

        task = parser.create_task(8, metadata, "- [ ] Add TOTP")

        assert task.filepath == tmp_path / "openspec" / "changes" / "add-mfa" / "tasks.md"
        assert task.issue_number == 8
        with pytest.raises(TaskFileExistsError):
            parser.create_task(8, metadata, "- [ ] Add TOTP")

    def test_rename_records_number(self, tmp_path: Path, parser: OpenSpecParser):
        """Renaming stores the number in the sidecar and keeps the path."""
        change_dir = make_change(tmp_path, "add-user-auth")
        path = change_dir / "tasks.md"

        assert parser.rename_task(path, 11, "Anything") == path
        assert parser.read_task(path).issue_number == 11

    def test_strip_issue_number(self, tmp_path: Path, parser: OpenSpecParser):
        """Stripping unlinks the change from its issue."""
        change_dir = make_change(tmp_path, "add-user-auth", issue=5)
        task = parser.read_task(change_dir / "tasks.md")

        parser.strip_issue_number(task)

        assert parser.discover_tasks() == []
        assert len(parser.discover_new_tasks()) == 1
