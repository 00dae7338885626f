"""Status command: show what a sync would do without changing anything."""

import logging
from collections.abc import Iterable

from ..config import Settings
from ..github import GitHubClientError
from ..models import StatusReport, SyncFilter
from ..sync import SyncError
from .common import SetupError, build_context, report_setup_error
from .output import error, header, info, numbers, warning

logger = logging.getLogger(__name__)


def run_status(
    settings: Settings,
    sources: Iterable[str] = ("all",),
    sync_filter: SyncFilter | None = None,
    extra_ignore_dirs: Iterable[str] = (),
) -> int:
    """Print the dry-run classification of every task.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        ctx = build_context(settings, sources, extra_ignore_dirs)
    except SetupError as e:
        return report_setup_error(e)

    try:
        header("Checking sync status...")
        report = ctx.engine.status(sync_filter)
    except (GitHubClientError, SyncError) as e:
        logger.error("Status failed: %s", e)
        error(f"Status failed: {e}")
        return 1
    finally:
        ctx.close()

    print_status(report)
    return 0


def print_status(report: StatusReport) -> None:
    print()
    rows = [
        ("To push", report.to_push),
        ("To pull", report.to_pull),
        ("Conflicts", report.conflicts),
    ]
    for label, items in rows:
        detail = f" ({numbers(items)})" if items else ""
        print(f"  {label}: {len(items)}{detail}")
    print(f"  Unchanged: {len(report.unchanged)}")
    print()

    if report.orphaned:
        warning(f"Orphaned (missing on GitHub): {numbers(report.orphaned)}")
    if report.unavailable:
        warning(f"Could not fetch: {numbers(report.unavailable)}")
    if report.new_local:
        info(f"New local tasks (use 'create' or 'sync --create'): {', '.join(report.new_local)}")
    if not report.has_changes:
        info("Everything is up to date")
