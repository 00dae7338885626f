"""GitHub access: REST client and gh CLI issue creation."""

from .client import (
    GitHubAuthError,
    GitHubClient,
    GitHubClientError,
    GitHubForbiddenError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    IssueFetchResult,
    label_color,
)
from .issue_cli import GhIssueCreator, IssueCreationError

__all__ = [
    "GhIssueCreator",
    "GitHubAuthError",
    "GitHubClient",
    "GitHubClientError",
    "GitHubForbiddenError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "IssueCreationError",
    "IssueFetchResult",
    "label_color",
]
