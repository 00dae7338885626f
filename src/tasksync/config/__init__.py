"""Configuration."""

from .settings import Settings, detect_github_repo, parse_github_remote

__all__ = ["Settings", "detect_github_repo", "parse_github_remote"]
