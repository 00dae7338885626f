"""Logging configuration for tasksync."""

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

LOGGER_NAME = "tasksync"


def setup_logging(verbose: int = 0, log_file: Path | None = None) -> None:
    """Configure logging based on verbosity level and optional file output.

    Args:
        verbose: Verbosity level (0=warnings only, 1=INFO, 2+=DEBUG)
        log_file: Optional path to write logs to file
    """
    logger = logging.getLogger(LOGGER_NAME)

    if verbose == 0 and log_file is None:
        # Skipped items and per-item failures still reach stderr
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        handler.setLevel(logging.WARNING)
        logger.addHandler(handler)
        logger.setLevel(logging.WARNING)
        return

    level = logging.DEBUG if verbose >= 2 else logging.INFO
    logger.setLevel(level)

    # Detailed format: timestamp - module - level - message
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if verbose > 0:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(level)
        stderr_handler.setFormatter(formatter)
        logger.addHandler(stderr_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Log startup delimiter with timestamp
    level_name = logging.getLevelName(level)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    logger.info("")
    logger.info("=" * 60)
    logger.info("tasksync starting | %s | level=%s", timestamp, level_name)
    logger.info("=" * 60)
