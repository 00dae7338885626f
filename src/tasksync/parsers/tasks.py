"""Directory-per-status backend: ``docs/tasks/{status}/NNN-slug.md``."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

import frontmatter
import yaml
from pydantic import ValidationError

from ..models import NO_ISSUE_NUMBER, STATUSES, SourceType, SyncFilter, TaskDocument, TaskMetadata
from ..models.task import TaskStatus
from ..utils import from_iso, from_timestamp, generate_slug, now_utc, to_iso
from .protocol import TaskFileExistsError, TaskParseError

logger = logging.getLogger(__name__)

NUMBERED_FILENAME = re.compile(r"^(\d+)-(.+)\.md$")
IGNORED_FILENAMES = frozenset({"README.md"})


def format_filename(issue_number: int, slug: str) -> str:
    """Filename for a numbered document, zero-padded to three digits."""
    return f"{issue_number:03d}-{slug}.md"


def parse_issue_number(filename: str) -> int:
    """Issue number encoded in a filename, or NO_ISSUE_NUMBER."""
    match = NUMBERED_FILENAME.match(filename)
    return int(match.group(1)) if match else NO_ISSUE_NUMBER


def existing_slug(filename: str) -> str:
    """Filename stem with any numeric prefix removed."""
    stem = filename[:-3] if filename.endswith(".md") else filename
    return re.sub(r"^\d+-", "", stem)


class TasksParser:
    """Markdown task files grouped into one directory per status.

    The directory a file lives in is its status; the ``status`` front matter
    field may lag behind and is reconciled by ``resolve_status_conflict``.
    """

    source_type = SourceType.TASKS
    TASKS_DIR = Path("docs") / "tasks"

    def __init__(self, project_root: Path, ignored_dirs: Iterable[str] = ()) -> None:
        """
        Initialize the parser.

        Args:
            project_root: Repository root containing ``docs/tasks``
            ignored_dirs: Status directories excluded from discovery
        """
        self.project_root = project_root
        self.tasks_root = project_root / self.TASKS_DIR
        self.ignored_dirs = frozenset(ignored_dirs)

    def get_task_dir(self, status: TaskStatus) -> Path:
        return self.tasks_root / status

    # --- Discovery ---

    def discover_tasks(self, sync_filter: SyncFilter | None = None) -> list[TaskDocument]:
        """Load all numbered task files, optionally filtered."""
        if sync_filter is not None and sync_filter.filepath is not None:
            filepath = self._resolve(sync_filter.filepath)
            if not self._owns(filepath):
                return []
            if not filepath.exists():
                logger.warning("Task file not found: %s", filepath)
                return []
            task = self._try_read(filepath)
            return [task] if task is not None and task.has_issue_number else []

        tasks = []
        for filepath in self._iter_task_files():
            issue_number = parse_issue_number(filepath.name)
            if issue_number == NO_ISSUE_NUMBER:
                continue
            if sync_filter is not None and sync_filter.issue_number is not None:
                if issue_number != sync_filter.issue_number:
                    continue
            task = self._try_read(filepath)
            if task is not None:
                tasks.append(task)
        return sorted(tasks, key=lambda t: t.issue_number)

    def discover_new_tasks(self) -> list[TaskDocument]:
        """Load task files that have no issue number prefix."""
        tasks = []
        for filepath in self._iter_task_files():
            if parse_issue_number(filepath.name) != NO_ISSUE_NUMBER:
                continue
            task = self._try_read(filepath)
            if task is not None:
                tasks.append(task)
        return tasks

    def task_exists(self, issue_number: int) -> bool:
        return self._find_by_number(issue_number) is not None

    # --- Read / Write ---

    def read_task(self, filepath: Path) -> TaskDocument:
        """Parse a task file.

        Raises:
            TaskParseError: On unreadable YAML or missing required fields
        """
        try:
            post = frontmatter.load(filepath)  # pyrefly: ignore[bad-argument-type]
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise TaskParseError(filepath, str(e)) from e
        try:
            metadata = TaskMetadata.from_frontmatter(post.metadata)
        except (ValidationError, ValueError) as e:
            raise TaskParseError(filepath, str(e)) from e

        status_dir = filepath.parent.name
        return TaskDocument(
            issue_number=parse_issue_number(filepath.name),
            source_type=self.source_type,
            filename=filepath.name,
            filepath=filepath,
            frontmatter=metadata,
            body=post.content,
            last_modified=from_timestamp(filepath.stat().st_mtime),
            folder_last_modified=from_timestamp(filepath.parent.stat().st_mtime),
            location_status=status_dir if status_dir in STATUSES else None,
        )

    def write_task(self, task: TaskDocument) -> None:
        """Write front matter and body back to ``task.filepath``."""
        post = frontmatter.Post(task.body)
        post.metadata = task.frontmatter.to_frontmatter()

        # Write file (sort_keys=False preserves original key order)
        task.filepath.parent.mkdir(parents=True, exist_ok=True)
        with task.filepath.open("w") as f:
            f.write(frontmatter.dumps(post, sort_keys=False))

    def create_task(
        self,
        issue_number: int,
        metadata: TaskMetadata,
        body: str,
        status: TaskStatus | None = None,
    ) -> TaskDocument:
        """Create ``{status}/NNN-slug.md`` for an issue that exists only remotely."""
        status = status or metadata.status or "backlog"
        filepath = self.get_task_dir(status) / format_filename(
            issue_number, generate_slug(metadata.title)
        )
        if filepath.exists():
            raise TaskFileExistsError(filepath)

        metadata = metadata.model_copy(update={"status": status})
        task = TaskDocument(
            issue_number=issue_number,
            source_type=self.source_type,
            filename=filepath.name,
            filepath=filepath,
            frontmatter=metadata,
            body=body,
            last_modified=now_utc(),
            folder_last_modified=now_utc(),
            location_status=status,
        )
        self.write_task(task)
        logger.info("Created task file %s", filepath)
        return self.read_task(filepath)

    # --- Rename / Move ---

    def rename_task(self, filepath: Path, issue_number: int, title: str | None = None) -> Path:
        """Rename to ``NNN-slug.md``; the slug comes from ``title`` or the old name."""
        slug = generate_slug(title) if title else existing_slug(filepath.name)
        new_path = filepath.with_name(format_filename(issue_number, slug))
        if new_path == filepath:
            return filepath
        if new_path.exists():
            raise TaskFileExistsError(new_path, "Cannot rename: file already exists")

        filepath.rename(new_path)
        logger.info("Renamed %s -> %s", filepath.name, new_path.name)
        return new_path

    def move_task(self, task: TaskDocument, status: TaskStatus) -> TaskDocument:
        """Move the file into the directory for ``status``."""
        target_dir = self.get_task_dir(status)
        if task.filepath.parent == target_dir:
            return task

        new_path = target_dir / task.filepath.name
        if new_path.exists():
            raise TaskFileExistsError(new_path, "Cannot move: file already exists")

        target_dir.mkdir(parents=True, exist_ok=True)
        task.filepath.rename(new_path)
        logger.info("Moved %s to %s/", task.filename, status)
        return task.model_copy(
            update={
                "filepath": new_path,
                "location_status": status,
                "frontmatter": task.frontmatter.model_copy(update={"status": status}),
            }
        )

    def resolve_status_conflict(self, task: TaskDocument) -> TaskStatus:
        """Choose between the ``status`` field and the file's directory.

        The more recent signal wins: ``status_last_modified`` against the
        directory's modification time. Without a timestamp the directory wins.
        """
        directory_status = task.location_status or "backlog"
        field_status = task.frontmatter.status
        if field_status is None or field_status == directory_status:
            return directory_status

        modified = task.frontmatter.status_last_modified
        if not modified:
            return directory_status
        try:
            field_time = from_iso(modified)
        except ValueError:
            logger.warning("Invalid status_last_modified in %s: %r", task.filename, modified)
            return directory_status

        if field_time > task.folder_last_modified:
            logger.debug(
                "%s: status field (%s) newer than directory (%s)",
                task.filename,
                to_iso(field_time),
                to_iso(task.folder_last_modified),
            )
            return field_status
        return directory_status

    # --- Orphan Handling ---

    def delete_task(self, task: TaskDocument) -> None:
        task.filepath.unlink(missing_ok=True)
        logger.info("Deleted %s", task.filepath)

    def strip_issue_number(self, task: TaskDocument) -> Path:
        """Rename ``NNN-slug.md`` back to ``slug.md``."""
        new_path = task.filepath.with_name(f"{existing_slug(task.filename)}.md")
        if new_path.exists():
            raise TaskFileExistsError(new_path, "Cannot strip number: file already exists")
        task.filepath.rename(new_path)
        logger.info("Stripped issue number: %s -> %s", task.filename, new_path.name)
        return new_path

    # --- Private Methods ---

    def _iter_task_files(self) -> Iterator[Path]:
        """Iterate over .md files in the status directories."""
        for status in STATUSES:
            if status in self.ignored_dirs:
                continue
            status_dir = self.get_task_dir(status)
            if not status_dir.is_dir():
                continue
            for filepath in sorted(status_dir.glob("*.md")):
                if filepath.name in IGNORED_FILENAMES or not filepath.is_file():
                    continue
                yield filepath

    def _try_read(self, filepath: Path) -> TaskDocument | None:
        try:
            return self.read_task(filepath)
        except TaskParseError as e:
            logger.warning("Skipping unparseable task: %s", e)
            return None

    def _find_by_number(self, issue_number: int) -> Path | None:
        for filepath in self._iter_task_files():
            if parse_issue_number(filepath.name) == issue_number:
                return filepath
        return None

    def _resolve(self, filepath: Path) -> Path:
        return filepath if filepath.is_absolute() else self.project_root / filepath

    def _owns(self, filepath: Path) -> bool:
        try:
            filepath.resolve().relative_to(self.tasks_root.resolve())
        except ValueError:
            return False
        return filepath.suffix == ".md"
