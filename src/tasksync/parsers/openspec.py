"""OpenSpec backend: one ``openspec/changes/<change>/tasks.md`` per issue."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from ..models import NO_ISSUE_NUMBER, SourceType, SyncFilter, TaskDocument, TaskMetadata
from ..models.task import TaskStatus
from ..utils import from_timestamp, generate_slug, now_utc, to_iso
from .protocol import TaskFileExistsError, TaskParseError
from .sidecar import SidecarMeta, load_sidecar, save_sidecar, update_sidecar

logger = logging.getLogger(__name__)

PROPOSAL_FILENAME = "proposal.md"
ARCHIVED_MARKER = ".archived"
DESCRIPTION_SEPARATOR = "\n\n---\n\n"

# First non-empty line after the proposal's heading
PROPOSAL_DESCRIPTION = re.compile(r"^#[^\n]*\n+([^\n]+)")
DESCRIPTION_PREFIX = re.compile(r"^[^\n]*\n*---\n\n")
CHECKED_BOX = re.compile(r"- \[x\]", re.IGNORECASE)
UNCHECKED_BOX = re.compile(r"- \[ \]")
CHANGE_PATH = re.compile(r"openspec/changes/([^/]+)")


def format_title(change_name: str) -> str:
    """``add-user-auth`` -> ``Add User Auth``."""
    return " ".join(word[:1].upper() + word[1:] for word in change_name.split("-"))


def infer_status(content: str, archived: bool = False) -> TaskStatus:
    """Status from checklist completion; an archive marker means completed."""
    if archived:
        return "completed"
    checked = len(CHECKED_BOX.findall(content))
    total = checked + len(UNCHECKED_BOX.findall(content))
    if total == 0 or checked == 0:
        return "backlog"
    if checked == total:
        return "completed"
    return "active"


class OpenSpecParser:
    """Each change folder is one task.

    The issue number lives in a sidecar file instead of the filename, status
    is derived from the checklist, and the rest of the metadata is synthetic.
    """

    source_type = SourceType.OPENSPEC
    CHANGES_DIR = Path("openspec") / "changes"

    def __init__(self, project_root: Path, task_filename: str = "tasks.md") -> None:
        self.project_root = project_root
        self.changes_dir = project_root / self.CHANGES_DIR
        self.task_filename = task_filename

    # --- Discovery ---

    def discover_tasks(self, sync_filter: SyncFilter | None = None) -> list[TaskDocument]:
        """Load every change folder linked to an issue."""
        if sync_filter is not None and sync_filter.filepath is not None:
            change_dir = self._change_dir_for(sync_filter.filepath)
            if change_dir is None:
                return []
            task = self._try_read(change_dir)
            return [task] if task is not None and task.has_issue_number else []

        tasks = []
        for change_dir in self._iter_change_dirs():
            meta = load_sidecar(change_dir)
            if meta is None or meta.github_issue is None:
                continue
            if sync_filter is not None and sync_filter.issue_number is not None:
                if meta.github_issue != sync_filter.issue_number:
                    continue
            task = self._try_read(change_dir)
            if task is not None:
                tasks.append(task)
        return sorted(tasks, key=lambda t: t.issue_number)

    def discover_new_tasks(self) -> list[TaskDocument]:
        """Load change folders without a linked issue."""
        tasks = []
        for change_dir in self._iter_change_dirs():
            meta = load_sidecar(change_dir)
            if meta is not None and meta.github_issue is not None:
                continue
            task = self._try_read(change_dir)
            if task is not None:
                tasks.append(task)
        return tasks

    def task_exists(self, issue_number: int) -> bool:
        for change_dir in self._iter_change_dirs():
            meta = load_sidecar(change_dir)
            if meta is not None and meta.github_issue == issue_number:
                return True
        return False

    # --- Read / Write ---

    def read_task(self, filepath: Path) -> TaskDocument:
        """Parse a change folder from the path of its checklist."""
        change_dir = filepath.parent
        try:
            content = filepath.read_text(encoding="utf-8")
            file_stat = filepath.stat()
            dir_stat = change_dir.stat()
        except (OSError, UnicodeDecodeError) as e:
            raise TaskParseError(filepath, str(e)) from e

        meta = load_sidecar(change_dir)
        change_name = change_dir.name
        status = infer_status(content, archived=(change_dir / ARCHIVED_MARKER).exists())
        created = meta.created if meta and meta.created else None
        if created is None:
            birth = getattr(dir_stat, "st_birthtime", dir_stat.st_ctime)
            created = to_iso(from_timestamp(birth))

        metadata = TaskMetadata(
            title=format_title(change_name),
            created_utc=created,
            reporter="openspec",
            severity="P2",
            priority="medium",
            component=["openspec"],
            labels=["source:openspec", f"change:{change_name}"],
            status=status,
        )

        description = self._read_description(change_dir)
        body = f"{description}{DESCRIPTION_SEPARATOR}{content}" if description else content

        issue_number = NO_ISSUE_NUMBER
        if meta is not None and meta.github_issue is not None:
            issue_number = meta.github_issue

        return TaskDocument(
            issue_number=issue_number,
            source_type=self.source_type,
            filename=filepath.name,
            filepath=filepath,
            frontmatter=metadata,
            body=body.strip(),
            last_modified=from_timestamp(file_stat.st_mtime),
            folder_last_modified=from_timestamp(dir_stat.st_mtime),
            location_status=status,
        )

    def write_task(self, task: TaskDocument) -> None:
        """Write the checklist, dropping the proposal description prepended on read."""
        change_dir = task.filepath.parent
        content = task.body
        if self._read_description(change_dir):
            content = DESCRIPTION_PREFIX.sub("", content, count=1)
        task.filepath.write_text(content, encoding="utf-8")

        updates = {"last_synced": to_iso(now_utc())}
        if task.has_issue_number:
            updates["github_issue"] = task.issue_number
        update_sidecar(change_dir, **updates)

    def create_task(
        self,
        issue_number: int,
        metadata: TaskMetadata,
        body: str,
        status: TaskStatus | None = None,  # noqa: ARG002
    ) -> TaskDocument:
        """Create a change folder for an issue; status follows the checklist."""
        change_dir = self.changes_dir / generate_slug(metadata.title)
        filepath = change_dir / self.task_filename
        if filepath.exists():
            raise TaskFileExistsError(filepath)

        change_dir.mkdir(parents=True, exist_ok=True)
        filepath.write_text(body, encoding="utf-8")
        now = to_iso(now_utc())
        save_sidecar(
            change_dir, SidecarMeta(github_issue=issue_number, created=now, last_synced=now)
        )
        logger.info("Created OpenSpec change %s", change_dir.name)
        return self.read_task(filepath)

    def rename_task(
        self,
        filepath: Path,
        issue_number: int,
        title: str | None = None,  # noqa: ARG002
    ) -> Path:
        """Record the issue number in the sidecar; the folder keeps its name."""
        update_sidecar(
            filepath.parent, github_issue=issue_number, last_synced=to_iso(now_utc())
        )
        return filepath

    def strip_issue_number(self, task: TaskDocument) -> Path:
        update_sidecar(task.filepath.parent, github_issue=None)
        logger.info("Unlinked %s from #%d", task.filepath.parent.name, task.issue_number)
        return task.filepath

    # --- Private Methods ---

    def _iter_change_dirs(self) -> Iterator[Path]:
        if not self.changes_dir.is_dir():
            return
        for change_dir in sorted(self.changes_dir.iterdir()):
            if change_dir.is_dir() and (change_dir / self.task_filename).is_file():
                yield change_dir

    def _try_read(self, change_dir: Path) -> TaskDocument | None:
        try:
            return self.read_task(change_dir / self.task_filename)
        except TaskParseError as e:
            logger.warning("Skipping unparseable change: %s", e)
            return None

    def _read_description(self, change_dir: Path) -> str:
        proposal = change_dir / PROPOSAL_FILENAME
        if not proposal.is_file():
            return ""
        match = PROPOSAL_DESCRIPTION.match(proposal.read_text(encoding="utf-8"))
        return match.group(1).strip() if match else ""

    def _change_dir_for(self, filepath: Path) -> Path | None:
        match = CHANGE_PATH.search(filepath.as_posix())
        if not match:
            return None
        change_dir = self.changes_dir / match.group(1)
        if not (change_dir / self.task_filename).is_file():
            logger.warning("No %s in %s", self.task_filename, change_dir)
            return None
        return change_dir
