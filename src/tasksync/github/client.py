"""GitHub REST API client for issues and labels."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..models import IssuePayload, RemoteIssue

logger = logging.getLogger(__name__)

# Concurrent issue fetches per batch
FETCH_CHUNK_SIZE = 10

LABEL_COLORS: dict[str, str] = {
    "priority:blocker": "b60205",
    "priority:critical": "d93f0b",
    "priority:high": "fbca04",
    "priority:medium": "fef2c0",
    "priority:low": "e4e4e4",
    "severity:P0": "5319e7",
    "severity:P1": "7057ff",
    "severity:P2": "9d84ff",
    "severity:P3": "d4c5f9",
    "status:backlog": "ededed",
    "status:active": "0075ca",
    "status:completed": "0e8a16",
    "type:epic": "b60205",
    "type:feature": "1d76db",
    "type:bug": "d93f0b",
    "type:enhancement": "a2eeef",
    "component:frontend": "006b75",
    "component:backend": "0e8a16",
    "component:ui": "1d76db",
    "component:api": "5319e7",
    "component:database": "d93f0b",
    "component:docs": "c5def5",
    "component:tests": "fbca04",
}

PREFIX_COLORS: dict[str, str] = {
    "priority:": "fbca04",
    "severity:": "9d84ff",
    "status:": "0075ca",
    "type:": "1d76db",
    "component:": "006b75",
}

DEFAULT_LABEL_COLOR = "ededed"


def label_color(name: str) -> str:
    """Colour for a label: exact match, then prefix fallback, then grey."""
    if name in LABEL_COLORS:
        return LABEL_COLORS[name]
    for prefix, color in PREFIX_COLORS.items():
        if name.startswith(prefix):
            return color
    return DEFAULT_LABEL_COLOR


class GitHubClientError(Exception):
    """Base exception for GitHub client errors."""

    pass


class GitHubAuthError(GitHubClientError):
    """Authentication failed."""

    pass


class GitHubNotFoundError(GitHubClientError):
    """Resource not found."""

    pass


class GitHubForbiddenError(GitHubClientError):
    """Permission denied."""

    pass


class GitHubRateLimitError(GitHubClientError):
    """Rate limit exceeded."""

    pass


@dataclass
class IssueFetchResult:
    """Outcome of fetching a batch of issues by number."""

    found: dict[int, RemoteIssue] = field(default_factory=dict)
    missing: set[int] = field(default_factory=set)  # Confirmed 404 or pull request
    failed: dict[int, str] = field(default_factory=dict)  # Number -> error message


class GitHubClient:
    """GitHub REST API client scoped to one repository.

    Provides a thin wrapper around the issues and labels endpoints with:
    - Token authentication (from env var or gh CLI)
    - Enterprise support via custom base_url
    - Error handling and rate limit awareness
    - Bounded concurrent batch fetches
    """

    def __init__(self, token: str, repo: str, base_url: str = "api.github.com"):
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token
            repo: Repository as "owner/repo"
            base_url: API host (default: api.github.com, use custom for Enterprise)

        Raises:
            ValueError: If repo is not "owner/repo"
        """
        parts = repo.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f'Invalid repo format: {repo}. Expected "owner/repo"')
        self.token = token
        self.repo = repo
        self.base_url = base_url
        self._label_cache: dict[str, str] | None = None
        self._client = httpx.Client(
            base_url=f"https://{base_url}",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=30.0,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @classmethod
    def from_environment(cls, repo: str, base_url: str = "api.github.com") -> GitHubClient:
        """Create a client from GITHUB_TOKEN or the gh CLI.

        Raises:
            GitHubAuthError: If no token is available
        """
        token = os.environ.get("GITHUB_TOKEN")
        if token:
            logger.debug("Using token from GITHUB_TOKEN environment variable")
            return cls(token, repo, base_url)

        try:
            result = subprocess.run(
                ["gh", "auth", "token"],
                capture_output=True,
                text=True,
                check=True,
            )
            token = result.stdout.strip()
            if token:
                logger.debug("Using token from gh CLI")
                return cls(token, repo, base_url)
        except (subprocess.CalledProcessError, FileNotFoundError):
            logger.debug("gh CLI not available or not authenticated")

        logger.error("No GitHub token found")
        raise GitHubAuthError(
            "No GitHub token found. Either:\n"
            "  - Set GITHUB_TOKEN environment variable\n"
            "  - Run 'gh auth login' to authenticate with GitHub CLI"
        )

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            GitHubAuthError: Authentication failed
            GitHubNotFoundError: Resource not found
            GitHubForbiddenError: Permission denied
            GitHubRateLimitError: Rate limit exceeded
            GitHubClientError: Other errors
        """
        op_name = f"{method} {path}"
        logger.debug("REST %s: json=%s params=%s", op_name, json, params)

        start_time = time.monotonic()
        try:
            response = self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("REST %s failed after %.0fms: %s", op_name, elapsed_ms, e)
            raise GitHubClientError(f"Request failed: {e}") from e

        elapsed_ms = (time.monotonic() - start_time) * 1000

        if response.status_code == 401:
            logger.error("REST %s: 401 Unauthorized (%.0fms)", op_name, elapsed_ms)
            raise GitHubAuthError(
                "Authentication failed. Check your GITHUB_TOKEN.\nRequired scope: repo"
            )
        if response.status_code == 403:
            if "rate limit" in response.text.lower():
                logger.error("REST %s: 403 Rate Limited (%.0fms)", op_name, elapsed_ms)
                raise GitHubRateLimitError("GitHub API rate limit exceeded. Try again later.")
            logger.error("REST %s: 403 Forbidden (%.0fms)", op_name, elapsed_ms)
            raise GitHubForbiddenError(
                "Permission denied. Check that your token has the 'repo' scope "
                f"and access to {self.repo}."
            )
        if response.status_code == 404:
            # Normal for issue lookups, so not logged as an error
            logger.debug("REST %s: 404 Not Found (%.0fms)", op_name, elapsed_ms)
            raise GitHubNotFoundError(f"Not found: {path}")

        if response.status_code >= 400:
            logger.error("REST %s: HTTP %d (%.0fms)", op_name, response.status_code, elapsed_ms)
            raise GitHubClientError(f"HTTP {response.status_code}: {response.text}")

        logger.info("REST %s: %d (%.0fms)", op_name, response.status_code, elapsed_ms)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("REST %s: Invalid JSON response (%.0fms)", op_name, elapsed_ms)
            raise GitHubClientError(f"Invalid JSON response: {e}") from e

    # --- Issues ---

    def get_issue(self, issue_number: int) -> RemoteIssue | None:
        """Fetch one issue.

        Returns:
            The issue, or None if it does not exist or is a pull request
        """
        try:
            data = self._request("GET", f"/repos/{self.repo}/issues/{issue_number}")
        except GitHubNotFoundError:
            return None
        if data.get("pull_request"):
            logger.debug("#%d is a pull request, not an issue", issue_number)
            return None
        try:
            return RemoteIssue.from_api(data)
        except (ValidationError, KeyError, TypeError) as e:
            raise GitHubClientError(f"Invalid issue payload for #{issue_number}: {e}") from e

    def fetch_issues(self, issue_numbers: list[int]) -> IssueFetchResult:
        """Fetch many issues, ``FETCH_CHUNK_SIZE`` at a time.

        Failures are recorded per number and never abort the batch.
        """
        result = IssueFetchResult()
        numbers = list(dict.fromkeys(issue_numbers))
        if not numbers:
            return result

        with ThreadPoolExecutor(max_workers=FETCH_CHUNK_SIZE) as executor:
            for start in range(0, len(numbers), FETCH_CHUNK_SIZE):
                chunk = numbers[start : start + FETCH_CHUNK_SIZE]
                futures = {number: executor.submit(self.get_issue, number) for number in chunk}
                for number, future in futures.items():
                    try:
                        issue = future.result()
                    except GitHubClientError as e:
                        logger.warning("Failed to fetch #%d: %s", number, e)
                        result.failed[number] = str(e)
                        continue
                    if issue is None:
                        result.missing.add(number)
                    else:
                        result.found[number] = issue

        logger.info(
            "Fetched %d issues (%d missing, %d failed)",
            len(result.found),
            len(result.missing),
            len(result.failed),
        )
        return result

    def get_issues(self, issue_numbers: list[int]) -> dict[int, RemoteIssue]:
        """Fetch many issues; numbers that are missing or failed are omitted."""
        return self.fetch_issues(issue_numbers).found

    def create_issue(
        self,
        title: str,
        body: str,
        labels: list[str],
        assignee: str | None = None,
    ) -> RemoteIssue:
        payload: dict[str, Any] = {"title": title, "body": body, "labels": labels}
        if assignee:
            payload["assignees"] = [assignee]
        data = self._request("POST", f"/repos/{self.repo}/issues", json=payload)
        return RemoteIssue.from_api(data)

    def update_issue(self, issue_number: int, update: IssuePayload | dict[str, Any]) -> RemoteIssue:
        """Update an issue and return its new state.

        Args:
            issue_number: Issue to update
            update: Full payload, or a dict with only the fields to change
        """
        payload = update.to_api() if isinstance(update, IssuePayload) else update
        data = self._request("PATCH", f"/repos/{self.repo}/issues/{issue_number}", json=payload)
        return RemoteIssue.from_api(data)

    def close_issue(self, issue_number: int) -> RemoteIssue:
        return self.update_issue(issue_number, {"state": "closed"})

    def reopen_issue(self, issue_number: int) -> RemoteIssue:
        return self.update_issue(issue_number, {"state": "open"})

    def verify_access(self) -> bool:
        """Check that the token can read the repository."""
        try:
            self._request("GET", f"/repos/{self.repo}")
        except GitHubClientError as e:
            logger.error("Cannot access %s: %s", self.repo, e)
            return False
        return True

    # --- Labels ---

    def ensure_labels(self, labels: list[str]) -> None:
        """Create missing labels and fix colours of existing ones.

        Failures are logged; GitHub creates unknown labels on issue update.
        """
        cache = self._load_label_cache()
        for name in dict.fromkeys(labels):
            color = label_color(name)
            cached = cache.get(name)
            if cached is not None and cached.lower() == color:
                continue
            try:
                if cached is not None:
                    self._request(
                        "PATCH",
                        f"/repos/{self.repo}/labels/{quote(name, safe='')}",
                        json={"color": color},
                    )
                else:
                    self._request(
                        "POST", f"/repos/{self.repo}/labels", json={"name": name, "color": color}
                    )
            except GitHubClientError as e:
                logger.warning("Could not ensure label %r: %s", name, e)
                continue
            cache[name] = color

    def _load_label_cache(self) -> dict[str, str]:
        """Label name -> colour, fetched once per client."""
        if self._label_cache is not None:
            return self._label_cache
        self._label_cache = {}
        try:
            data = self._request("GET", f"/repos/{self.repo}/labels", params={"per_page": 100})
        except GitHubClientError as e:
            logger.warning("Could not list labels, will try to create them: %s", e)
            return self._label_cache
        for label in data or []:
            self._label_cache[label["name"]] = label.get("color", "")
        return self._label_cache
