"""
Backup records found in the destination directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from backupctl.retention.naming import (
    ARCHIVE_GLOB,
    CHECKSUM_SUFFIX,
    derive_timestamp,
    timestamp_token,
)


@dataclass(frozen=True)
class BackupRecord:
    """
    One archive and its checksum sidecar.

    Attributes:
        path: Archive path
        checksum_path: Sidecar path (``<archive>.md5``), which may not exist
        archive_id: Timestamp token from the name, None if the name does not parse
        captured_at: Capture time from the name, None if the name does not parse
    """

    path: Path
    checksum_path: Path
    archive_id: str | None
    captured_at: datetime | None

    @classmethod
    def from_path(cls, path: Path | str) -> BackupRecord:
        """Build a record from an archive path, parsing its name."""
        path = Path(path)
        return cls(
            path=path,
            checksum_path=path.with_name(path.name + CHECKSUM_SUFFIX),
            archive_id=timestamp_token(path.name),
            captured_at=derive_timestamp(path.name),
        )

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def parseable(self) -> bool:
        return self.captured_at is not None


def scan_backups(destination: Path | str) -> list[BackupRecord]:
    """
    List the archives in a destination directory, newest first.

    Ordering follows file modification time (newest first), with the file
    name as a descending tie-break so the order is total.

    Args:
        destination: Backup destination directory

    Returns:
        BackupRecords for every ``backup-*.tar.gz`` regular file
    """
    destination = Path(destination)
    if not destination.is_dir():
        logger.debug(f"Backup destination does not exist: {destination}")
        return []

    entries = []
    for path in destination.glob(ARCHIVE_GLOB):
        try:
            if not path.is_file():
                continue
            entries.append((path.stat().st_mtime, path.name, path))
        except FileNotFoundError:
            # Removed between glob and stat
            continue

    entries.sort(key=lambda entry: (entry[0], entry[1]), reverse=True)
    return [BackupRecord.from_path(path) for _, _, path in entries]
