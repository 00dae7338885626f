"""Create command: open issues for local tasks that have no number yet."""

import logging
from collections.abc import Iterable

from ..config import Settings
from ..github import GitHubClientError
from ..models import CreateResult
from ..sync import SyncError
from .common import SetupError, build_context, report_setup_error
from .output import error, header, info, numbers, success

logger = logging.getLogger(__name__)


def run_create(
    settings: Settings,
    sources: Iterable[str] = ("all",),
    extra_ignore_dirs: Iterable[str] = (),
) -> int:
    """Create GitHub issues for new local tasks and renumber the files.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        ctx = build_context(settings, sources, extra_ignore_dirs)
    except SetupError as e:
        return report_setup_error(e)

    try:
        header("Creating issues for new tasks...")
        result = ctx.engine.create_new_issues()
        print_create_result(result)
        return 1 if result.has_errors else 0
    except (GitHubClientError, SyncError) as e:
        logger.error("Create failed: %s", e)
        error(f"Create failed: {e}")
        return 1
    finally:
        ctx.close()


def print_create_result(result: CreateResult) -> None:
    if result.reabsorbed:
        info(f"Re-absorbed orphaned numbers: {numbers(result.reabsorbed)}")
    for created in result.created:
        success(f"#{created.issue_number} {created.title} -> {created.filepath.name}")
    for item in result.errors:
        error(f"{item.filename}: {item.error}")
    if not result.created and not result.errors:
        info("No new tasks to create")
