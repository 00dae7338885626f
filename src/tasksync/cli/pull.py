"""Pull command: update local tasks from GitHub issues."""

import logging
from collections.abc import Iterable

from ..config import Settings
from ..github import GitHubClientError
from ..models import SyncFilter
from ..sync import SyncError
from .common import SetupError, build_context, report_setup_error
from .output import error, header, sync_summary

logger = logging.getLogger(__name__)


def run_pull(
    settings: Settings,
    sources: Iterable[str] = ("all",),
    sync_filter: SyncFilter | None = None,
    extra_ignore_dirs: Iterable[str] = (),
) -> int:
    """Overwrite local tasks with every issue that changed since the last sync.

    An issue addressed with ``--issue`` that has no local task gets one.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        ctx = build_context(settings, sources, extra_ignore_dirs)
    except SetupError as e:
        return report_setup_error(e)

    try:
        header("Pulling changes from GitHub...")
        result = ctx.engine.pull(sync_filter)
        sync_summary(result)
        return 1 if result.has_errors else 0
    except (GitHubClientError, SyncError) as e:
        logger.error("Pull failed: %s", e)
        error(f"Pull failed: {e}")
        return 1
    finally:
        ctx.close()
