"""Sync command: bidirectional reconciliation with interactive conflicts."""

import logging
from collections.abc import Iterable

from ..config import Settings
from ..github import GitHubClientError
from ..models import SyncFilter
from ..sync import ConflictResolver, SyncEngine, SyncError, orphan_prompter
from .common import SetupError, build_context, report_setup_error
from .create import print_create_result
from .output import error, header, info, numbers, success, sync_summary, warning

logger = logging.getLogger(__name__)


def run_sync(
    settings: Settings,
    sources: Iterable[str] = ("all",),
    sync_filter: SyncFilter | None = None,
    create: bool = False,
    clean_orphans: bool = False,
    strip_orphans: bool = False,
    extra_ignore_dirs: Iterable[str] = (),
) -> int:
    """Synchronize local tasks and GitHub issues in both directions.

    Args:
        settings: Loaded settings
        sources: Source types to sync, or ("all",)
        sync_filter: Restrict to one file or issue number
        create: Create issues for new local tasks first
        clean_orphans: Offer to delete tasks whose issue no longer exists
        strip_orphans: Remove issue numbers from tasks whose issue no longer exists
        extra_ignore_dirs: Status directories to skip in addition to settings

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        ctx = build_context(settings, sources, extra_ignore_dirs)
    except SetupError as e:
        return report_setup_error(e)

    try:
        failed = False
        if strip_orphans:
            failed |= _strip(ctx.engine)
        if clean_orphans:
            failed |= _clean(ctx.engine)
        if create:
            header("Creating issues for new tasks...")
            created = ctx.engine.create_new_issues()
            print_create_result(created)
            failed |= created.has_errors

        header("Syncing with GitHub...")
        resolver = ConflictResolver(ctx.mapper)
        result = ctx.engine.sync(sync_filter, resolve_conflicts=resolver.resolve_conflicts)
        sync_summary(result)
        return 1 if failed or result.has_errors else 0
    except (GitHubClientError, SyncError) as e:
        logger.error("Sync failed: %s", e)
        error(f"Sync failed: {e}")
        return 1
    finally:
        ctx.close()


def _strip(engine: SyncEngine) -> bool:
    header("Stripping issue numbers from orphaned tasks...")
    result = engine.strip_orphans()
    if result.stripped:
        success(f"Stripped {numbers(result.stripped)}; they will be created as new issues")
    if result.skipped:
        warning(f"Source cannot renumber: {numbers(result.skipped)}")
    if not result.stripped and not result.skipped and not result.errors:
        info("No orphaned tasks")
    for item in result.errors:
        error(f"#{item.issue_number}: {item.error}")
    return bool(result.errors)


def _clean(engine: SyncEngine) -> bool:
    header("Cleaning up orphaned tasks...")
    result = engine.clean_orphans(orphan_prompter())
    if result.deleted:
        success(f"Deleted {numbers(result.deleted)}")
    if result.skipped:
        info(f"Kept {numbers(result.skipped)}")
    if not result.deleted and not result.skipped and not result.errors:
        info("No orphaned tasks")
    for item in result.errors:
        error(f"#{item.issue_number}: {item.error}")
    return bool(result.errors)
