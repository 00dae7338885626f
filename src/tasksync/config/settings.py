"""Application settings."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_FILES = (".env", ".env.local")

GITHUB_REMOTE = re.compile(r"github\.com[:/]([^/]+/[^/.\s]+?)(?:\.git)?/?$")


class Settings(BaseSettings):
    """Application settings.

    Values come from keyword arguments (CLI flags), the environment, then the
    ``.env`` and ``.env.local`` files of the project root.
    """

    project_root: Path = Field(
        default=Path(),
        description="Project root containing docs/tasks, openspec/ and .sync-state.json",
    )

    github_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GITHUB_TOKEN", "github_token"),
        description="GitHub token with repo scope",
    )

    github_repo: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GITHUB_REPO", "github_repo"),
        description='Repository as "owner/repo"; defaults to the origin remote',
    )

    github_api_url: str = Field(
        default="api.github.com",
        description="API host (use custom for Enterprise)",
    )

    sync_ignore_dirs: str = Field(
        default="",
        validation_alias=AliasChoices("SYNC_IGNORE_DIRS", "sync_ignore_dirs"),
        description="Comma-separated status directories excluded from discovery",
    )

    keep_title_prefixes: bool = Field(
        default=False,
        description="Keep leading [#NNN] markers in titles",
    )

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    model_config = SettingsConfigDict(
        env_prefix="TASKSYNC_",
        env_file=ENV_FILES,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def load(cls, project_root: Path | None = None, **overrides: object) -> Settings:
        """Load settings using the env files of ``project_root``."""
        root = project_root or Path()
        env_files = tuple(root / name for name in ENV_FILES)
        return cls(_env_file=env_files, project_root=root, **overrides)  # type: ignore[call-arg]

    @property
    def ignore_dirs(self) -> list[str]:
        return [d.strip() for d in self.sync_ignore_dirs.split(",") if d.strip()]

    def resolve_repo(self) -> str | None:
        """Configured repository, else the one the origin remote points at."""
        return self.github_repo or detect_github_repo(self.project_root)


def parse_github_remote(url: str) -> str | None:
    """``git@github.com:owner/repo.git`` -> ``owner/repo``."""
    match = GITHUB_REMOTE.search(url.strip())
    return match.group(1) if match else None


def detect_github_repo(project_root: Path) -> str | None:
    """Read ``owner/repo`` from the origin remote of the git checkout."""
    try:
        result = subprocess.run(
            ["git", "config", "--get", "remote.origin.url"],
            cwd=project_root,
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        logger.debug("No git origin remote in %s", project_root)
        return None
    repo = parse_github_remote(result.stdout)
    if repo:
        logger.debug("Detected repository %s from origin remote", repo)
    return repo
