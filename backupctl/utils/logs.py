"""
Logging setup for backupctl.

Library modules log through loguru's global ``logger``; the CLI calls
``configure_logging`` once to route records to the console and to the
append-only ``backup.log`` in the backup destination.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = "[{time:YYYY-MM-DD HH:mm:ss}] {level}: {message}"

# Dry-run notices sit between INFO (20) and SUCCESS (25)
DRY_LEVEL = "DRY"
DRY_LEVEL_NO = 22


def register_levels() -> None:
    """Register the DRY level with loguru (safe to call repeatedly)."""
    try:
        logger.level(DRY_LEVEL)
    except ValueError:
        logger.level(DRY_LEVEL, no=DRY_LEVEL_NO)


def configure_logging(log_file: Path | None = None, quiet: bool = False) -> list[int]:
    """
    Replace loguru's default sink with the backupctl sinks.

    Args:
        log_file: Append-only log file (skipped when None)
        quiet: Only report errors on the console

    Returns:
        Handler ids of the sinks that were added
    """
    register_levels()
    logger.remove()

    handler_ids = []
    if quiet:
        handler_ids.append(logger.add(sys.stderr, level="ERROR", format=LOG_FORMAT))
    else:
        handler_ids.append(logger.add(sys.stdout, level="INFO", format=LOG_FORMAT))

    if log_file is not None:
        handler_ids.append(
            logger.add(
                str(log_file),
                level="INFO",
                format=LOG_FORMAT,
                mode="a",
                encoding="utf-8",
            )
        )

    return handler_ids


def log_dry(message: str) -> None:
    """Log a dry-run notice."""
    register_levels()
    logger.log(DRY_LEVEL, message)
