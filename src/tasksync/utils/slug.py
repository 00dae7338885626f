"""Utilities for generating filesystem-safe slugs."""

import re
import unicodedata

MAX_SLUG_LENGTH = 80

# Leading "[#123]" marker that older task titles carry
TITLE_PREFIX_PATTERN = re.compile(r"^\[#\d+\]\s*")


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Example: "Fix Login Bug!" -> "fix-login-bug"
    """
    # Normalize unicode characters
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")

    # Convert to lowercase
    text = text.lower()

    # Replace spaces and underscores with hyphens
    text = re.sub(r"[\s_]+", "-", text)

    # Remove any character that isn't alphanumeric or hyphen
    text = re.sub(r"[^a-z0-9\-]", "", text)

    # Remove leading/trailing hyphens and collapse multiple hyphens
    text = re.sub(r"-+", "-", text).strip("-")

    return text


def strip_title_prefix(title: str) -> str:
    """Remove a leading ``[#NNN]`` marker from a title.

    Example: "[#005] Fix login" -> "Fix login"
    """
    return TITLE_PREFIX_PATTERN.sub("", title)


def generate_slug(title: str) -> str:
    """Generate the slug part of a task filename from its title.

    The ``[#NNN]`` marker is dropped so the issue number never appears twice
    in a filename, and the result is capped at ``MAX_SLUG_LENGTH``.
    """
    slug = slugify(strip_title_prefix(title))[:MAX_SLUG_LENGTH].strip("-")
    if not slug:
        slug = "untitled"
    return slug
