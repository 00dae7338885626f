"""Shared setup for CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ..config import Settings
from ..github import GhIssueCreator, GitHubAuthError, GitHubClient
from ..models import SyncFilter
from ..parsers import OpenSpecParser, ParserRegistry, TasksParser
from ..sync import FieldMapper, SyncEngine
from .output import error, info

logger = logging.getLogger(__name__)


class SetupError(Exception):
    """Configuration problem that stops a command before any sync I/O."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


@dataclass
class CommandContext:
    """Everything a command needs, built once per invocation."""

    settings: Settings
    client: GitHubClient
    mapper: FieldMapper
    engine: SyncEngine

    def close(self) -> None:
        self.client.close()


def build_registry(settings: Settings, extra_ignore_dirs: Iterable[str] = ()) -> ParserRegistry:
    ignored = [*settings.ignore_dirs, *extra_ignore_dirs]
    return ParserRegistry(
        [
            TasksParser(settings.project_root, ignored_dirs=ignored),
            OpenSpecParser(settings.project_root),
        ]
    )


def build_context(
    settings: Settings,
    sources: Iterable[str] = ("all",),
    extra_ignore_dirs: Iterable[str] = (),
) -> CommandContext:
    """Validate configuration and wire up client, parsers and engine.

    Raises:
        SetupError: Missing credentials or repository, inaccessible repository,
            or no parser for the requested sources
    """
    sources = tuple(sources)
    registry = build_registry(settings, extra_ignore_dirs)
    if not registry.get_by_types(sources):
        raise SetupError(
            f"No source parser matches: {', '.join(sources)}",
            hint=f"Available sources: {', '.join(t.value for t in registry.types())}, all",
        )

    repo = settings.resolve_repo()
    if not repo:
        raise SetupError(
            "No GitHub repository configured",
            hint="Set GITHUB_REPO=owner/repo in the environment or .env",
        )

    try:
        if settings.github_token:
            client = GitHubClient(settings.github_token, repo, settings.github_api_url)
        else:
            client = GitHubClient.from_environment(repo, settings.github_api_url)
    except GitHubAuthError as e:
        raise SetupError(str(e)) from e
    except ValueError as e:
        raise SetupError(str(e), hint="GITHUB_REPO must look like owner/repo") from e

    if not client.verify_access():
        client.close()
        raise SetupError(
            f"Cannot access repository {repo}",
            hint="Check GITHUB_TOKEN and that the repository exists",
        )

    mapper = FieldMapper(keep_title_prefixes=settings.keep_title_prefixes)
    engine = SyncEngine(
        client,
        registry,
        mapper,
        settings.project_root,
        issue_creator=GhIssueCreator(repo),
        sources=sources,
    )
    logger.info("Syncing %s with %s (sources: %s)", settings.project_root, repo, ", ".join(sources))
    return CommandContext(settings=settings, client=client, mapper=mapper, engine=engine)


def report_setup_error(e: SetupError) -> int:
    error(str(e))
    if e.hint:
        info(e.hint)
    return 1


def make_filter(filepath: Path | None, issue_number: int | None) -> SyncFilter | None:
    if filepath is None and issue_number is None:
        return None
    return SyncFilter(filepath=filepath, issue_number=issue_number)
