"""Colorful CLI output helpers."""

import sys

from ..models import SyncResult

# ANSI color codes
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
RESET = "\033[0m"
CHECK = "\u2713"  # ✓
BULLET = "\u2022"  # •
CROSS = "\u2717"  # ✗
WARN = "!"


def _supports_color() -> bool:
    """Check if terminal supports color output."""
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    return True


def _colorize(text: str, color: str) -> str:
    """Apply color to text if terminal supports it."""
    if _supports_color():
        return f"{color}{text}{RESET}"
    return text


def success(message: str) -> None:
    """Print success message with green checkmark."""
    check = _colorize(CHECK, GREEN)
    print(f"{check} {message}")


def info(message: str) -> None:
    """Print info message with yellow bullet."""
    bullet = _colorize(BULLET, YELLOW)
    print(f"{bullet} {message}")


def warning(message: str) -> None:
    """Print warning message with yellow exclamation mark."""
    mark = _colorize(WARN, YELLOW)
    print(f"{mark} {message}")


def header(message: str) -> None:
    """Print header message in blue."""
    print(_colorize(message, BLUE))


def error(message: str) -> None:
    """Print error message with red cross."""
    cross = _colorize(CROSS, RED)
    print(f"{cross} {message}")


def numbers(items: list[int]) -> str:
    """``[3, 7]`` -> ``#3, #7``."""
    return ", ".join(f"#{n}" for n in items)


def sync_summary(result: SyncResult) -> None:
    """Print the categorized summary every run ends with."""
    print()
    header("Summary:")
    if result.pushed:
        success(f"Pushed {len(result.pushed)}: {numbers(result.pushed)}")
    if result.pulled:
        success(f"Pulled {len(result.pulled)}: {numbers(result.pulled)}")
    if result.conflicts:
        warning(f"Unresolved conflicts {len(result.conflicts)}: {numbers(result.conflicts)}")
    if result.skipped:
        info(f"Unchanged {len(result.skipped)}")
    if result.orphaned:
        warning(
            f"Orphaned {len(result.orphaned)} (missing on GitHub): {numbers(result.orphaned)}"
        )
        info("Use 'sync --strip-orphans' or 'sync --clean-orphans' to handle them")
    if result.unavailable:
        warning(
            f"Could not fetch {len(result.unavailable)}: {numbers(result.unavailable)}"
        )
    for item in result.errors:
        error(f"#{item.issue_number}: {item.error}")
    if not any(
        [result.pushed, result.pulled, result.conflicts, result.orphaned, result.errors]
    ):
        info("Everything is up to date")
