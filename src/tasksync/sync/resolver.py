"""Interactive conflict resolution and orphan cleanup prompts."""

from __future__ import annotations

import difflib
from collections.abc import Callable
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from ..models import ConflictResolution, OrphanDecision, SyncConflict, TaskDocument
from .field_mapper import FieldMapper

RULE = "━" * 40
CONTEXT_LINES = 2

SKIP_ALL = "skip-all"


class Ask(Protocol):
    """Prompt function: returns one of ``choices``."""

    def __call__(self, prompt: str, choices: list[str], default: str) -> str: ...


def rich_ask(console: Console) -> Ask:
    """Ask using ``rich.prompt.Prompt`` on ``console``."""

    def ask(prompt: str, choices: list[str], default: str) -> str:
        return Prompt.ask(prompt, choices=choices, default=default, console=console)

    return ask


def body_diff(local: str, remote: str, context: int = CONTEXT_LINES) -> list[str]:
    """Unified diff lines from local to remote, without file headers."""
    lines = difflib.unified_diff(
        local.splitlines(), remote.splitlines(), lineterm="", n=context
    )
    return [line for line in lines if not line.startswith(("---", "+++"))]


class ConflictResolver:
    """Walks the operator through conflicts, one prompt each.

    The only state across prompts is the "skip all remaining" flag.
    """

    CHOICES = {
        "l": ConflictResolution.LOCAL,
        "r": ConflictResolution.REMOTE,
        "s": ConflictResolution.SKIP,
    }

    def __init__(
        self,
        mapper: FieldMapper,
        console: Console | None = None,
        ask: Ask | None = None,
    ) -> None:
        self._mapper = mapper
        self._console = console or Console()
        self._ask = ask or rich_ask(self._console)

    def resolve_conflicts(self, conflicts: list[SyncConflict]) -> dict[int, ConflictResolution]:
        """Collect a decision for each conflict, in order."""
        resolutions: dict[int, ConflictResolution] = {}
        if not conflicts:
            return resolutions

        self._console.print(f"\n[yellow]Found {len(conflicts)} conflict(s)[/yellow]\n")
        skip_all = False
        total = len(conflicts)
        for index, conflict in enumerate(conflicts, start=1):
            if skip_all:
                resolutions[conflict.issue_number] = ConflictResolution.SKIP
                continue
            choice = self.resolve_conflict(conflict, index, total)
            if choice == SKIP_ALL:
                skip_all = True
                resolutions[conflict.issue_number] = ConflictResolution.SKIP
            else:
                resolutions[conflict.issue_number] = choice

        self.show_summary(resolutions)
        return resolutions

    def resolve_conflict(
        self, conflict: SyncConflict, index: int, total: int
    ) -> ConflictResolution | str:
        """Show one conflict and ask what to do.

        "Skip all remaining" is only offered while more conflicts follow.
        """
        self.show_conflict(conflict, index, total)

        console = self._console
        console.print("  [red]l[/red]  Use local version (keep file, update GitHub)")
        console.print("  [green]r[/green]  Use remote version (keep GitHub, update file)")
        console.print("  [yellow]s[/yellow]  Skip this conflict for now")
        choices = list(self.CHOICES)
        if total > 1 and index < total:
            console.print("  [dim]a[/dim]  Skip all remaining conflicts")
            choices.append("a")

        answer = self._ask("How do you want to resolve this conflict?", choices, "s")
        if answer == "a":
            return SKIP_ALL
        return self.CHOICES[answer]

    def show_conflict(self, conflict: SyncConflict, index: int, total: int) -> None:
        console = self._console
        local = conflict.local
        remote = conflict.remote
        outgoing = self._mapper.to_remote(local)

        console.print(f"\n[bold]{RULE}[/bold]")
        console.print(
            f"[bold cyan]Conflict {index}/{total}: Issue #{conflict.issue_number}[/bold cyan]"
        )
        console.print(f"[bold]{RULE}[/bold]\n")
        console.print(f"[dim]File: {escape(str(local.filepath))}[/dim]")
        console.print(f"[dim]Local modified:  {local.last_modified:%Y-%m-%d %H:%M:%S}[/dim]")
        console.print(f"[dim]Remote modified: {remote.updated_at:%Y-%m-%d %H:%M:%S}[/dim]\n")

        if outgoing.title != remote.title:
            console.print("[bold]Title:[/bold]")
            console.print(f"[red]  Local:  {escape(outgoing.title)}[/red]")
            console.print(f"[green]  Remote: {escape(remote.title)}[/green]\n")

        self._show_metadata_diff(conflict)
        self._show_body_diff(conflict)
        self._show_labels_diff(outgoing.labels, remote.labels)

        if outgoing.state != remote.state:
            console.print("[bold]State:[/bold]")
            console.print(f"[red]  Local:  {outgoing.state}[/red]")
            console.print(f"[green]  Remote: {remote.state}[/green]\n")

    def show_summary(self, resolutions: dict[int, ConflictResolution]) -> None:
        """Print which issues use local, which use remote and which were skipped."""
        groups: dict[ConflictResolution, list[str]] = {r: [] for r in ConflictResolution}
        for number, resolution in resolutions.items():
            groups[resolution].append(f"#{number}")

        rows = [
            (ConflictResolution.LOCAL, "red", "Use local: "),
            (ConflictResolution.REMOTE, "green", "Use remote:"),
            (ConflictResolution.SKIP, "yellow", "Skipped:   "),
        ]
        console = self._console
        console.print("\n[bold]Resolution summary:[/bold]")
        for resolution, color, label in rows:
            if groups[resolution]:
                console.print(f"[{color}]  {label} {', '.join(groups[resolution])}[/{color}]")
        console.print()

    def _show_metadata_diff(self, conflict: SyncConflict) -> None:
        local = conflict.local.frontmatter
        remote = self._mapper.parse_labels(conflict.remote.labels)
        local_assignee = self._mapper.to_remote(conflict.local).assignee

        rows = []
        if local_assignee != conflict.remote.assignee:
            remote_assignee = conflict.remote.assignee or "(none)"
            rows.append(("Assignee", local_assignee or "(none)", remote_assignee))
        if remote.priority and remote.priority != local.priority:
            rows.append(("Priority", local.priority, remote.priority))
        if remote.severity and remote.severity != local.severity:
            rows.append(("Severity", local.severity, remote.severity))

        for name, local_value, remote_value in rows:
            self._console.print(f"[bold]{name}:[/bold]")
            self._console.print(f"[red]  Local:  {escape(local_value)}[/red]")
            self._console.print(f"[green]  Remote: {escape(remote_value)}[/green]")
        if rows:
            self._console.print()

    def _show_body_diff(self, conflict: SyncConflict) -> None:
        local_body = conflict.local.body
        remote_body = self._mapper.parse_issue_body(conflict.remote.body).body
        if local_body.strip() == remote_body:
            return

        self._console.print("[bold]Body:[/bold]")
        lines = body_diff(local_body, remote_body)
        if not lines:
            self._console.print("[dim]  (No changes detected)[/dim]")
        for line in lines:
            text = escape(line[1:])
            if line.startswith("@@"):
                self._console.print(f"[cyan]  {escape(line)}[/cyan]")
            elif line.startswith("+"):
                self._console.print(f"[green]  + {text}[/green]")
            elif line.startswith("-"):
                self._console.print(f"[red]  - {text}[/red]")
            else:
                self._console.print(f"[dim]    {text}[/dim]")
        self._console.print()

    def _show_labels_diff(self, local_labels: list[str], remote_labels: list[str]) -> None:
        added = sorted(set(remote_labels) - set(local_labels))
        removed = sorted(set(local_labels) - set(remote_labels))
        if not added and not removed:
            return

        self._console.print("[bold]Labels:[/bold]")
        for label in added:
            self._console.print(f"[green]  + {escape(label)}[/green]")
        for label in removed:
            self._console.print(f"[red]  - {escape(label)}[/red]")
        self._console.print()


def orphan_prompter(
    console: Console | None = None, ask: Ask | None = None
) -> Callable[[TaskDocument, int, int], OrphanDecision]:
    """Build the per-orphan confirmation used by cleanup."""
    console = console or Console()
    ask = ask or rich_ask(console)
    answers = {
        "y": OrphanDecision.YES,
        "n": OrphanDecision.NO,
        "a": OrphanDecision.ALL,
        "q": OrphanDecision.QUIT,
    }

    def confirm(task: TaskDocument, index: int, total: int) -> OrphanDecision:
        console.print(
            f"\n[yellow]Orphan {index}/{total}:[/yellow] #{task.issue_number} "
            f"{escape(task.frontmatter.title)}"
        )
        console.print(f"[dim]  {escape(str(task.filepath))}[/dim]")
        answer = ask("Delete local file? (y)es/(n)o/(a)ll/(q)uit", list(answers), "n")
        return answers[answer]

    return confirm
