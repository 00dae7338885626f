"""Reconciliation engine between local task documents and GitHub issues.

Each run loads the persisted sync state, discovers local documents through the
active parsers, fetches the matching issues and classifies every pair against
the hashes recorded at the last successful sync:

    local changed  remote changed  action
    no             no              skip
    yes            no              push
    no             yes             pull
    yes            yes             conflict (resolved by the operator)

Documents whose issue is confirmed missing are orphans and are only reported;
deleting or renumbering them are separate, explicit operations. The state file
is written once at the end of a run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ..models import (
    CleanResult,
    ConflictResolution,
    CreatedIssue,
    CreateError,
    CreateResult,
    OrphanDecision,
    RemoteIssue,
    SourceType,
    StatusReport,
    StripResult,
    SyncAction,
    SyncConflict,
    SyncFilter,
    SyncItemError,
    SyncResult,
    SyncState,
    TaskDocument,
    TaskMetadata,
)
from ..parsers import (
    ALL_SOURCES,
    ParserRegistry,
    SourceParser,
    SupportsDelete,
    SupportsMove,
    SupportsStatusResolution,
    SupportsStripNumber,
    TaskFileExistsError,
)
from ..utils import now_utc, to_iso
from .field_mapper import FieldMapper
from .state import SyncStateStore, record

if TYPE_CHECKING:
    from ..github.client import GitHubClient, IssueFetchResult

logger = logging.getLogger(__name__)

ResolveConflicts = Callable[[list[SyncConflict]], dict[int, ConflictResolution]]
ConfirmOrphan = Callable[[TaskDocument, int, int], OrphanDecision]


class SyncError(Exception):
    """Engine-level failure, such as no parser for a document's source."""

    pass


class IssueCreator(Protocol):
    """Creates an issue and returns the number GitHub assigned."""

    def create(
        self, title: str, body: str, labels: list[str], assignee: str | None = None
    ) -> int: ...


@dataclass
class _Plan:
    """Discovered documents, fetched issues and the action for each number."""

    tasks: list[TaskDocument]
    fetched: IssueFetchResult
    actions: dict[int, SyncAction] = field(default_factory=dict)
    remote_only: list[RemoteIssue] = field(default_factory=list)


class SyncEngine:
    """Bidirectional sync between task documents and GitHub issues."""

    def __init__(
        self,
        client: GitHubClient,
        registry: ParserRegistry,
        mapper: FieldMapper,
        project_root: Path,
        issue_creator: IssueCreator | None = None,
        sources: tuple[str, ...] = (ALL_SOURCES,),
    ) -> None:
        """Initialize the sync engine.

        Args:
            client: Authenticated GitHub client
            registry: Registered source parsers
            mapper: Field mapper (carries the title prefix option)
            project_root: Directory holding ``.sync-state.json``
            issue_creator: Used to create issues for new documents
            sources: Source types to operate on, or ``("all",)``

        Raises:
            SyncError: If no registered parser matches ``sources``
        """
        self._client = client
        self._registry = registry
        self._mapper = mapper
        self._issue_creator = issue_creator
        self._state_store = SyncStateStore(project_root)
        self._parsers = registry.get_by_types(sources)
        if not self._parsers:
            raise SyncError(f"No source parser registered for: {', '.join(sources)}")

    # --- Public API ---

    def sync(
        self,
        sync_filter: SyncFilter | None = None,
        resolve_conflicts: ResolveConflicts | None = None,
    ) -> SyncResult:
        """Push, pull or queue each document according to what changed.

        Conflicts are collected first and handed to ``resolve_conflicts`` in
        one call; without a resolver they are all skipped.
        """
        state = self._state_store.load()
        plan = self._plan(state, sync_filter)
        result = SyncResult()
        conflicts: list[SyncConflict] = []

        for task in plan.tasks:
            number = task.issue_number
            action = plan.actions[number]
            try:
                if self._report_unpaired(action, number, result):
                    continue
                issue = plan.fetched.found[number]
                if action == SyncAction.UNCHANGED:
                    self._refresh(state, task, issue)
                    result.skipped.append(number)
                elif action == SyncAction.CONFLICT:
                    conflicts.append(SyncConflict(number, task, issue))
                elif action == SyncAction.PUSH:
                    self._push(task, issue, state)
                    result.pushed.append(number)
                elif action == SyncAction.PULL:
                    self._pull(task, issue, state)
                    result.pulled.append(number)
            except Exception as e:
                logger.error("Failed to sync #%d: %s", number, e)
                result.errors.append(SyncItemError(number, str(e)))

        self._materialize_all(plan.remote_only, state, result)

        if conflicts:
            decisions = resolve_conflicts(conflicts) if resolve_conflicts else {}
            self._apply_resolutions(conflicts, decisions, state, result)

        self._save(state)
        return result

    def push(self, sync_filter: SyncFilter | None = None) -> SyncResult:
        """Update issues from every local document that differs from the last sync.

        Local wins: remote-only changes and conflicts are overwritten.
        """
        state = self._state_store.load()
        plan = self._plan(state, sync_filter)
        result = SyncResult()

        for task in plan.tasks:
            number = task.issue_number
            action = plan.actions[number]
            try:
                if self._report_unpaired(action, number, result):
                    continue
                issue = plan.fetched.found[number]
                if action == SyncAction.UNCHANGED:
                    result.skipped.append(number)
                    continue
                self._push(task, issue, state)
                result.pushed.append(number)
            except Exception as e:
                logger.error("Failed to push #%d: %s", number, e)
                result.errors.append(SyncItemError(number, str(e)))

        self._save(state)
        return result

    def pull(self, sync_filter: SyncFilter | None = None) -> SyncResult:
        """Update local documents from every issue that differs from the last sync.

        Remote wins: local-only changes and conflicts are overwritten.
        """
        state = self._state_store.load()
        plan = self._plan(state, sync_filter)
        result = SyncResult()

        for task in plan.tasks:
            number = task.issue_number
            action = plan.actions[number]
            try:
                if self._report_unpaired(action, number, result):
                    continue
                issue = plan.fetched.found[number]
                if action == SyncAction.UNCHANGED:
                    result.skipped.append(number)
                    continue
                self._pull(task, issue, state)
                result.pulled.append(number)
            except Exception as e:
                logger.error("Failed to pull #%d: %s", number, e)
                result.errors.append(SyncItemError(number, str(e)))

        self._materialize_all(plan.remote_only, state, result)
        self._save(state)
        return result

    def status(self, sync_filter: SyncFilter | None = None) -> StatusReport:
        """Classify everything without writing anything."""
        state = self._state_store.load()
        plan = self._plan(state, sync_filter)
        report = StatusReport()

        buckets = {
            SyncAction.PUSH: report.to_push,
            SyncAction.PULL: report.to_pull,
            SyncAction.CONFLICT: report.conflicts,
            SyncAction.ORPHAN: report.orphaned,
            SyncAction.UNCHANGED: report.unchanged,
            SyncAction.UNAVAILABLE: report.unavailable,
        }
        for task in plan.tasks:
            buckets[plan.actions[task.issue_number]].append(task.issue_number)
        report.to_pull.extend(issue.number for issue in plan.remote_only)

        if sync_filter is None or sync_filter.is_empty:
            for parser in self._parsers:
                report.new_local.extend(t.filename for t in parser.discover_new_tasks())
        return report

    def create_new_issues(self) -> CreateResult:
        """Create issues for documents without a number and renumber them.

        Documents whose number is confirmed missing on GitHub are stripped of
        it first so they are created like any other new document.
        """
        creator = self._issue_creator
        if creator is None:
            raise SyncError("No issue creator configured")

        result = CreateResult()
        result.reabsorbed = self.strip_orphans().stripped

        new_tasks: list[TaskDocument] = []
        for parser in self._parsers:
            new_tasks.extend(parser.discover_new_tasks())
        if not new_tasks:
            logger.info("No new tasks to create")
            return result

        logger.info("Found %d new tasks to create on GitHub", len(new_tasks))
        state = self._state_store.load()
        for task in new_tasks:
            try:
                result.created.append(self._create(task, state, creator))
            except Exception as e:
                logger.error("Failed to create issue for %s: %s", task.filename, e)
                result.errors.append(CreateError(task.filename, str(e)))

        self._save(state)
        return result

    def find_orphans(self, sync_filter: SyncFilter | None = None) -> list[TaskDocument]:
        """Documents whose issue GitHub confirms does not exist.

        Issues that could not be fetched are not orphans.
        """
        tasks = self._discover(sync_filter)
        fetched = self._client.fetch_issues([t.issue_number for t in tasks])
        return [t for t in tasks if t.issue_number in fetched.missing]

    def clean_orphans(self, confirm: ConfirmOrphan) -> CleanResult:
        """Delete orphaned documents, asking ``confirm`` for each one.

        ``confirm`` receives (task, index, total) and may answer yes, no,
        all (yes to the rest) or quit (no to the rest).
        """
        orphans = self.find_orphans()
        result = CleanResult()
        if not orphans:
            return result

        state = self._state_store.load()
        delete_all = False
        for index, task in enumerate(orphans, start=1):
            number = task.issue_number
            parser = self._parser_for(task)
            if not isinstance(parser, SupportsDelete):
                logger.warning(
                    "Cannot delete %s: %s source does not support it",
                    task.filename,
                    parser.source_type.value,
                )
                result.skipped.append(number)
                continue

            decision = OrphanDecision.YES if delete_all else confirm(task, index, len(orphans))
            if decision == OrphanDecision.QUIT:
                result.skipped.extend(t.issue_number for t in orphans[index - 1 :])
                break
            if decision == OrphanDecision.NO:
                result.skipped.append(number)
                continue
            if decision == OrphanDecision.ALL:
                delete_all = True

            try:
                parser.delete_task(task)
            except OSError as e:
                logger.error("Failed to delete %s: %s", task.filepath, e)
                result.errors.append(SyncItemError(number, str(e)))
                continue
            state.issues.pop(number, None)
            result.deleted.append(number)

        if result.deleted:
            self._state_store.save(state)
        return result

    def strip_orphans(self) -> StripResult:
        """Remove the issue number from every orphaned document."""
        result = StripResult()
        for task in self.find_orphans():
            number = task.issue_number
            parser = self._parser_for(task)
            if not isinstance(parser, SupportsStripNumber):
                result.skipped.append(number)
                continue
            try:
                parser.strip_issue_number(task)
            except (TaskFileExistsError, OSError) as e:
                logger.error("Failed to strip #%d from %s: %s", number, task.filename, e)
                result.errors.append(SyncItemError(number, str(e)))
                continue
            result.stripped.append(number)
        return result

    def ensure_status_sync(self, task: TaskDocument) -> TaskDocument:
        """Write the resolved status back to a document whose status disagrees.

        Returns the document unchanged when nothing needed fixing.
        """
        parser = self._parser_for(task)
        if not isinstance(parser, SupportsStatusResolution):
            return task

        resolved = parser.resolve_status_conflict(task)
        location = task.location_status
        if resolved == task.frontmatter.status and location in (None, resolved):
            return task

        metadata = task.frontmatter.model_copy(
            update={"status": resolved, "status_last_modified": to_iso(now_utc())}
        )
        updated = task.model_copy(update={"frontmatter": metadata})
        if isinstance(parser, SupportsMove) and location not in (None, resolved):
            updated = parser.move_task(updated, resolved)
        parser.write_task(updated)
        logger.info("%s: status reconciled to %s", task.filename, resolved)
        return updated

    # --- Planning ---

    def _discover(self, sync_filter: SyncFilter | None) -> list[TaskDocument]:
        """Numbered documents from all active parsers, one per issue number."""
        tasks: dict[int, TaskDocument] = {}
        for parser in self._parsers:
            for task in parser.discover_tasks(sync_filter):
                if task.issue_number in tasks:
                    logger.warning(
                        "Duplicate issue #%d: ignoring %s (already found %s)",
                        task.issue_number,
                        task.filepath,
                        tasks[task.issue_number].filepath,
                    )
                    continue
                tasks[task.issue_number] = task
        logger.info("Found %d local tasks", len(tasks))
        return sorted(tasks.values(), key=lambda t: t.issue_number)

    def _plan(self, state: SyncState, sync_filter: SyncFilter | None) -> _Plan:
        tasks = self._discover(sync_filter)
        numbers = [t.issue_number for t in tasks]

        # An issue addressed by number that has no local document yet
        wanted = sync_filter.issue_number if sync_filter else None
        if wanted is not None and wanted not in numbers:
            numbers.append(wanted)

        plan = _Plan(tasks=tasks, fetched=self._client.fetch_issues(numbers))
        for task in tasks:
            plan.actions[task.issue_number] = self._classify(task, plan.fetched, state)

        if wanted is not None and wanted not in plan.actions:
            if wanted in plan.fetched.found:
                plan.remote_only.append(plan.fetched.found[wanted])
            elif wanted in plan.fetched.missing:
                logger.warning("Issue #%d not found locally or on GitHub", wanted)
        return plan

    def _classify(
        self, task: TaskDocument, fetched: IssueFetchResult, state: SyncState
    ) -> SyncAction:
        number = task.issue_number
        if number in fetched.missing:
            return SyncAction.ORPHAN
        issue = fetched.found.get(number)
        if issue is None:
            return SyncAction.UNAVAILABLE

        entry = state.issues.get(number)
        if entry is None:
            # Never synced: either side may hold the truth
            return SyncAction.CONFLICT

        local_hash = self._local_hash(task)
        remote_hash = self._mapper.hash_issue(issue)
        logger.debug(
            "#%d local %s/%s remote %s/%s",
            number,
            local_hash,
            entry.local_hash,
            remote_hash,
            entry.remote_hash,
        )
        local_changed = local_hash != entry.local_hash
        remote_changed = remote_hash != entry.remote_hash

        if local_changed and remote_changed:
            return SyncAction.CONFLICT
        if local_changed:
            return SyncAction.PUSH
        if remote_changed:
            return SyncAction.PULL
        return SyncAction.UNCHANGED

    def _local_hash(self, task: TaskDocument) -> str:
        """Hash of a document as it will be once its status is reconciled."""
        parser = self._registry.get(task.source_type)
        if isinstance(parser, SupportsStatusResolution):
            resolved = parser.resolve_status_conflict(task)
            if resolved != task.effective_status:
                task = task.model_copy(update={"location_status": resolved})
        return self._mapper.hash_task(task)

    def _report_unpaired(self, action: SyncAction, number: int, result: SyncResult) -> bool:
        """Record orphans and unfetchable issues; True if the item is done."""
        if action == SyncAction.ORPHAN:
            logger.warning("Issue #%d not found on GitHub - skipping (orphan)", number)
            result.orphaned.append(number)
            return True
        if action == SyncAction.UNAVAILABLE:
            logger.warning("Issue #%d could not be fetched - skipping", number)
            result.unavailable.append(number)
            return True
        return False

    # --- Actions ---

    def _push(self, task: TaskDocument, issue: RemoteIssue, state: SyncState) -> None:
        """Send the local document to GitHub."""
        parser = self._parser_for(task)
        reconciled = self.ensure_status_sync(task)
        if reconciled is not task:
            task = parser.read_task(reconciled.filepath)

        payload = self._mapper.to_remote(task)
        self._client.ensure_labels(payload.labels)
        updated = self._client.update_issue(issue.number, payload)
        record(state, issue.number, self._local_hash(task), self._mapper.hash_issue(updated))
        logger.info("Pushed #%d to GitHub", issue.number)

    def _pull(self, task: TaskDocument, issue: RemoteIssue, state: SyncState) -> None:
        """Overwrite the local document with the issue."""
        parser = self._parser_for(task)
        updated = self._mapper.apply_remote(task, issue)

        # Regenerate the slug from the remote title
        try:
            new_path = parser.rename_task(task.filepath, issue.number, issue.title)
        except TaskFileExistsError as e:
            logger.warning("Could not rename #%d, keeping %s: %s", issue.number, task.filename, e)
        else:
            updated = updated.model_copy(update={"filepath": new_path, "filename": new_path.name})

        new_status = updated.frontmatter.status or task.effective_status
        if new_status != task.frontmatter.status:
            metadata = updated.frontmatter.model_copy(
                update={"status": new_status, "status_last_modified": to_iso(now_utc())}
            )
            updated = updated.model_copy(update={"frontmatter": metadata})
        if isinstance(parser, SupportsMove) and task.location_status not in (None, new_status):
            updated = parser.move_task(updated, new_status)

        parser.write_task(updated)
        written = parser.read_task(updated.filepath)
        record(state, issue.number, self._local_hash(written), self._mapper.hash_issue(issue))
        logger.info("Pulled #%d from GitHub", issue.number)

    def _create(
        self, task: TaskDocument, state: SyncState, creator: IssueCreator
    ) -> CreatedIssue:
        parser = self._parser_for(task)
        payload = self._mapper.to_remote(task)
        self._client.ensure_labels(payload.labels)

        number = creator.create(
            payload.title, payload.body, payload.labels, payload.assignee
        )
        logger.info("Created issue #%d for %s", number, task.filename)

        # Always the number GitHub assigned
        new_path = parser.rename_task(task.filepath, number)
        created = parser.read_task(new_path)

        issue = self._client.close_issue(number) if payload.state == "closed" else None
        if issue is None:
            issue = self._client.get_issue(number)
        if issue is not None:
            record(state, number, self._local_hash(created), self._mapper.hash_issue(issue))
        return CreatedIssue(issue_number=number, title=payload.title, filepath=new_path)

    def _materialize_all(
        self, issues: list[RemoteIssue], state: SyncState, result: SyncResult
    ) -> None:
        for issue in issues:
            try:
                self._materialize(issue, state)
                result.pulled.append(issue.number)
            except Exception as e:
                logger.error("Failed to create local task for #%d: %s", issue.number, e)
                result.errors.append(SyncItemError(issue.number, str(e)))

    def _materialize(self, issue: RemoteIssue, state: SyncState) -> TaskDocument:
        """Create a local document for an issue that only exists on GitHub."""
        for parser in self._parsers:
            if parser.task_exists(issue.number):
                raise SyncError(
                    f"A local task for #{issue.number} exists but could not be loaded"
                )

        fields, body = self._mapper.from_remote(issue)
        metadata = TaskMetadata.model_validate(fields)
        parser = self._default_parser()
        task = parser.create_task(issue.number, metadata, body, metadata.status or "backlog")
        record(state, issue.number, self._local_hash(task), self._mapper.hash_issue(issue))
        logger.info("Pulled new task #%d from GitHub", issue.number)
        return task

    def _apply_resolutions(
        self,
        conflicts: list[SyncConflict],
        decisions: dict[int, ConflictResolution],
        state: SyncState,
        result: SyncResult,
    ) -> None:
        for conflict in conflicts:
            number = conflict.issue_number
            decision = decisions.get(number, ConflictResolution.SKIP)
            try:
                if decision == ConflictResolution.LOCAL:
                    self._push(conflict.local, conflict.remote, state)
                    result.pushed.append(number)
                elif decision == ConflictResolution.REMOTE:
                    self._pull(conflict.local, conflict.remote, state)
                    result.pulled.append(number)
                else:
                    result.conflicts.append(number)
            except Exception as e:
                logger.error("Failed to resolve conflict for #%d: %s", number, e)
                result.errors.append(SyncItemError(number, str(e)))

    def _refresh(self, state: SyncState, task: TaskDocument, issue: RemoteIssue) -> None:
        record(state, task.issue_number, self._local_hash(task), self._mapper.hash_issue(issue))

    # --- Helpers ---

    def _parser_for(self, task: TaskDocument) -> SourceParser:
        """The parser that owns ``task``; never a fallback."""
        parser = self._registry.get(task.source_type)
        if parser is None:
            raise SyncError(f"No parser registered for source type {task.source_type.value!r}")
        return parser

    def _default_parser(self) -> SourceParser:
        """Parser for documents created from GitHub: tasks if active, else the first."""
        for parser in self._parsers:
            if parser.source_type == SourceType.TASKS:
                return parser
        return self._parsers[0]

    def _save(self, state: SyncState) -> None:
        state.last_sync = now_utc()
        self._state_store.save(state)
