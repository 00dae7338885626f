"""Issue creation through the ``gh`` CLI."""

from __future__ import annotations

import logging
import re
import subprocess

logger = logging.getLogger(__name__)

ISSUE_URL = re.compile(r"https?://\S+/issues/(\d+)")


class IssueCreationError(Exception):
    """``gh issue create`` failed or printed no issue URL."""

    pass


class GhIssueCreator:
    """Creates issues by running ``gh issue create`` against one repository."""

    def __init__(self, repo: str, gh_binary: str = "gh") -> None:
        self.repo = repo
        self.gh_binary = gh_binary

    def create(
        self,
        title: str,
        body: str,
        labels: list[str],
        assignee: str | None = None,
    ) -> int:
        """Create an issue and return the number GitHub assigned to it.

        Raises:
            IssueCreationError: If gh fails or its output has no issue URL
        """
        args = [
            self.gh_binary,
            "issue",
            "create",
            "--repo",
            self.repo,
            "--title",
            title,
            "--body-file",
            "-",
        ]
        if labels:
            args += ["--label", ",".join(labels)]
        if assignee:
            args += ["--assignee", assignee]

        logger.debug("Running: %s", " ".join(args))
        try:
            result = subprocess.run(
                args,
                input=body,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise IssueCreationError(f"{self.gh_binary} not found; install the GitHub CLI") from e
        except subprocess.CalledProcessError as e:
            message = (e.stderr or e.stdout or "").strip()
            raise IssueCreationError(f"gh issue create failed: {message}") from e

        return parse_issue_number(result.stdout)


def parse_issue_number(output: str) -> int:
    """Issue number from gh output such as ``https://github.com/o/r/issues/123``."""
    match = ISSUE_URL.search(output)
    if not match:
        raise IssueCreationError(f"Failed to parse issue number from gh output: {output.strip()}")
    return int(match.group(1))
