"""Shared utilities."""

from .datetime import from_iso, from_timestamp, now_utc, to_iso
from .slug import generate_slug, slugify, strip_title_prefix

__all__ = [
    "from_iso",
    "from_timestamp",
    "generate_slug",
    "now_utc",
    "slugify",
    "strip_title_prefix",
    "to_iso",
]
