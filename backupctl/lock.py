"""
Process-wide lock for backup and restore runs.

One lock file per host. A run that finds the file already present fails
immediately with LockHeldError; there is no waiting and no stale-lock
detection, so a lock left by a crashed process must be removed by hand.
"""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

from backupctl.errors import LockHeldError


class ProcessLock:
    """
    Exclusive lock file, usable as a context manager.

    Usage:
        with ProcessLock(config.lock_file):
            run_backup()
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """
        Create the lock file and record our PID in it.

        Raises:
            LockHeldError: If the lock file already exists
        """
        if self._held:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as e:
            owner = self._read_owner()
            detail = f" (pid {owner})" if owner else ""
            raise LockHeldError(
                f"Backup already running. Lock file exists: {self.path}{detail}"
            ) from e

        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()}\n")

        self._held = True
        logger.debug(f"Acquired lock: {self.path}")

    def release(self) -> None:
        """Remove the lock file if this instance holds it."""
        if not self._held:
            return

        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Lock file already removed: {self.path}")
        self._held = False
        logger.debug(f"Released lock: {self.path}")

    def _read_owner(self) -> str | None:
        try:
            return self.path.read_text().strip() or None
        except OSError:
            return None

    def __enter__(self) -> ProcessLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
