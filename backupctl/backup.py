"""
Backup, rotation, restore and listing for a single source directory.

Provides integrity-verified archives with tiered retention. Designed for
scheduled execution by cron or another periodic runner.

Usage:
    # Programmatic
    from backupctl.backup import BackupJob, restore_backup, list_backups
    from backupctl.config import load_config

    config = load_config("backup.config")
    result = BackupJob(config).execute("/home/me/documents")
    print(result["path"], result["rotation"].decision.delete)

    # CLI
    backupctl --backup /path/to/source
    backupctl --dry-run --backup /path/to/source
    backupctl --restore /backups/backup-2025-11-01-0300.tar.gz /path/to/target
    backupctl --list
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator

from loguru import logger

from backupctl.archive import (
    checksum_path_for,
    compress_directory,
    extract_archive,
    human_size,
    read_checksum,
    check_archive_integrity,
    verify_checksum,
    write_checksum,
)
from backupctl.config import BackupConfig
from backupctl.errors import (
    ArchiveCreationError,
    BackupError,
    ChecksumCreationError,
    ChecksumVerificationError,
    ExtractionTestError,
    RestoreSourceMissing,
    SourceNotFound,
)
from backupctl.retention.naming import archive_name_for
from backupctl.retention.policy import RetentionDecision, classify
from backupctl.retention.records import BackupRecord, scan_backups
from backupctl.utils.logs import log_dry


class BackupStage(Enum):
    """Steps of one backup run, in execution order."""

    INIT = "init"
    VALIDATE = "validate"
    ARCHIVE = "archive"
    CHECKSUM = "checksum"
    VERIFY_CHECKSUM = "verify_checksum"
    TEST_EXTRACTION = "test_extraction"
    ROTATE = "rotate"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RotationResult:
    """
    Result of one rotation.

    Attributes:
        decision: Keep/delete classification of the archives found
        dry_run: Whether deletions were only logged
        deleted: Archives removed from disk
        errors: Messages for archives that could not be removed
    """

    decision: RetentionDecision = field(default_factory=RetentionDecision)
    dry_run: bool = False
    deleted: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if every deletion succeeded."""
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "dry_run": self.dry_run,
            "kept": [record.name for record in self.decision.keep],
            "deleted": [path.name for path in self.deleted],
            "skipped": [record.name for record in self.decision.skipped],
            "errors": self.errors,
        }


def _delete_record(record: BackupRecord) -> None:
    """Remove an archive and its checksum sidecar."""
    record.path.unlink()
    try:
        record.checksum_path.unlink()
    except FileNotFoundError:
        logger.debug(f"No checksum file to remove for {record.name}")


def rotate_backups(config: BackupConfig, dry_run: bool = False) -> RotationResult:
    """
    Apply the retention policy to the archives in the destination.

    Each archive the policy rejects is deleted on its own; a failed deletion
    is logged and recorded without stopping the others.

    Args:
        config: Backup configuration
        dry_run: Only log what would be deleted

    Returns:
        RotationResult
    """
    logger.info("Starting rotation")
    result = RotationResult(dry_run=dry_run)

    records = scan_backups(config.destination)
    if not records:
        logger.info("No backups to rotate")
        return result

    result.decision = classify(records, config.policy)

    for record in result.decision.skipped:
        logger.warning(f"Skipping backup with unparseable name: {record.path}")

    for record in result.decision.delete:
        if dry_run:
            log_dry(f"Would delete old backup {record.path}")
            continue
        try:
            _delete_record(record)
        except OSError as e:
            error_msg = f"Failed to delete old backup {record.path}: {e}"
            logger.error(error_msg)
            result.errors.append(error_msg)
            continue
        result.deleted.append(record.path)
        logger.info(f"Deleted old backup {record.path}")

    logger.log(
        "SUCCESS" if result.success else "ERROR",
        f"Rotation completed (kept {len(result.decision.keep)}, "
        f"deleted {len(result.deleted)}, errors {len(result.errors)})",
    )
    return result


def verify_backup(archive_path: Path | str, algorithm: str = "sha256") -> bool:
    """
    Verify an archive against its sidecar and check that it can be listed.

    Args:
        archive_path: Archive to check
        algorithm: hashlib algorithm the sidecar was written with

    Returns:
        True if the checksum matches and the archive opens, False otherwise
    """
    archive_path = Path(archive_path)
    if not archive_path.is_file():
        logger.error(f"Backup archive does not exist: {archive_path}")
        return False

    record = read_checksum(checksum_path_for(archive_path), algorithm)
    if not verify_checksum(archive_path, record):
        logger.error(f"Checksum verification FAILED for {archive_path.name}")
        return False

    if not check_archive_integrity(archive_path):
        logger.error(f"Archive extraction test FAILED for {archive_path.name}")
        return False

    logger.info(f"Backup verified successfully: {archive_path}")
    return True


class BackupJob:
    """
    One backup run: archive, checksum, verify, self-test, then rotate.

    ``stage`` tracks progress through BackupStage. A fatal error moves the
    job to FAILED and is re-raised; rotation only runs after the new archive
    has passed both checksum verification and the extraction test.
    """

    def __init__(
        self,
        config: BackupConfig,
        dry_run: bool = False,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize backup job.

        Args:
            config: Backup configuration
            dry_run: Log mutating steps instead of performing them
            clock: Source of the capture time (default: datetime.now)
        """
        self.config = config
        self.dry_run = dry_run
        self.clock = clock or datetime.now
        self.stage = BackupStage.INIT
        self.rotation: RotationResult | None = None

    def execute(self, source: Path | str) -> dict[str, Any]:
        """
        Create a verified backup of ``source`` and rotate old backups.

        Returns:
            Dictionary with the keys of ``create`` plus:
            - rotation: RotationResult
            - success: True if the backup and every deletion succeeded

        Raises:
            BackupError: If a fatal step fails (rotation is not attempted)
        """
        result = self.create(source)

        self._enter(BackupStage.ROTATE)
        self.rotation = rotate_backups(self.config, dry_run=self.dry_run)

        self._enter(BackupStage.DONE)
        result["rotation"] = self.rotation
        result["success"] = self.rotation.success
        return result

    def create(self, source: Path | str) -> dict[str, Any]:
        """
        Archive ``source`` and verify the new archive.

        Returns:
            Dictionary with backup metadata:
            - path: Archive path
            - checksum_path: Sidecar path
            - name: Archive file name
            - timestamp: ISO format capture time
            - size_bytes: Archive size (0 in dry-run)
            - verified: Whether checksum and extraction test passed
            - dry_run: Whether this was a dry run

        Raises:
            SourceNotFound, ArchiveCreationError, ChecksumVerificationError,
            ExtractionTestError
        """
        try:
            return self._create(Path(source))
        except BackupError as e:
            self.stage = BackupStage.FAILED
            logger.error(str(e))
            raise

    def _create(self, source: Path) -> dict[str, Any]:
        self._enter(BackupStage.VALIDATE)
        if not source.is_dir():
            raise SourceNotFound(f"Source folder not found: {source}")
        source = source.resolve()

        captured_at = self.clock()
        name = archive_name_for(captured_at)
        dest = self.config.destination / name
        sidecar = checksum_path_for(dest)

        result = {
            "path": str(dest),
            "checksum_path": str(sidecar),
            "name": name,
            "timestamp": captured_at.isoformat(),
            "size_bytes": 0,
            "verified": False,
            "dry_run": self.dry_run,
        }

        logger.info(f"Starting backup of {source} -> {dest}")

        self._enter(BackupStage.ARCHIVE)
        if self.dry_run:
            log_dry(f"Would run: {self._tar_command(source, dest)}")
            return result

        try:
            self.config.destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveCreationError(
                f"Cannot create backup destination {self.config.destination}: {e}"
            ) from e

        compress_directory(source, self.config.exclude_patterns, dest)
        try:
            result["size_bytes"] = dest.stat().st_size
        except OSError as e:
            raise ArchiveCreationError(f"Archive disappeared after creation: {dest}: {e}") from e
        logger.success(f"Backup created: {name} ({human_size(result['size_bytes'])})")

        self._enter(BackupStage.CHECKSUM)
        try:
            write_checksum(dest, self.config.checksum_algorithm)
            logger.info(f"Checksum file created: {sidecar.name}")
        except ChecksumCreationError as e:
            logger.error(f"Failed to create checksum for {name}: {e}")

        self._enter(BackupStage.VERIFY_CHECKSUM)
        record = read_checksum(sidecar, self.config.checksum_algorithm)
        if not verify_checksum(dest, record):
            raise ChecksumVerificationError(f"Checksum verification FAILED for {name}")
        logger.info("Checksum verified successfully")

        self._enter(BackupStage.TEST_EXTRACTION)
        if not check_archive_integrity(dest):
            raise ExtractionTestError(f"Archive extraction test FAILED for {name}")
        logger.info("Archive extraction test succeeded")

        result["verified"] = True
        return result

    def _tar_command(self, source: Path, dest: Path) -> str:
        """Shell equivalent of the archive step, for dry-run logs."""
        args = ["tar", "-czf", str(dest)]
        args += [f"--exclude={pattern}" for pattern in self.config.exclude_patterns]
        args += ["-C", str(source.parent), source.name]
        return shlex.join(args)

    def _enter(self, stage: BackupStage) -> None:
        logger.debug(f"Backup stage: {stage.value}")
        self.stage = stage


def create_backup(
    source: Path | str,
    config: BackupConfig,
    dry_run: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """
    Create and verify a backup without rotating.

    See ``BackupJob.create`` for the returned dictionary.
    """
    return BackupJob(config, dry_run=dry_run, clock=clock).create(source)


def restore_backup(
    archive_path: Path | str,
    target_dir: Path | str,
    dry_run: bool = False,
) -> Path:
    """
    Extract an archive into a target directory.

    Args:
        archive_path: Archive to restore
        target_dir: Directory to extract into (created if absent)
        dry_run: Only log what would be extracted

    Returns:
        Target directory

    Raises:
        RestoreSourceMissing: If the archive does not exist
        RestoreTargetError: If the target cannot be created or extraction fails
    """
    archive_path = Path(archive_path)
    target_dir = Path(target_dir)

    if not archive_path.is_file():
        raise RestoreSourceMissing(f"Restore failed: archive not found: {archive_path}")

    if dry_run:
        log_dry(f"Would extract {archive_path} to {target_dir}")
        return target_dir

    extract_archive(archive_path, target_dir)
    logger.success(f"Restored {archive_path} to {target_dir}")
    return target_dir


def iter_backups(destination: Path | str) -> Iterator[tuple[str, int]]:
    """
    Yield ``(name, size_bytes)`` for each archive, newest first.

    The directory is scanned when iteration starts; call again for a fresh
    listing. Archives removed mid-iteration are skipped.
    """
    for record in scan_backups(destination):
        try:
            size = record.path.stat().st_size
        except FileNotFoundError:
            continue
        yield record.name, size


def list_backups(destination: Path | str) -> list[dict[str, Any]]:
    """
    List all available backups.

    Returns:
        List of backup info dictionaries, sorted newest first
    """
    destination = Path(destination)
    backups = []

    for name, size in iter_backups(destination):
        record = BackupRecord.from_path(destination / name)
        backups.append({
            "name": name,
            "path": str(record.path),
            "size_bytes": size,
            "size": human_size(size),
            "timestamp": record.captured_at.isoformat() if record.captured_at else None,
        })

    return backups
