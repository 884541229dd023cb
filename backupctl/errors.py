"""
Error taxonomy for backup, rotation and restore operations.

Every error is a BackupError. Fatal errors abort the current command and
make the CLI exit with status 1; ChecksumCreationError is only logged.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base class for all backupctl errors."""

    fatal = True


class ConfigError(BackupError):
    """Configuration file missing or invalid."""


class SourceNotFound(BackupError):
    """Source directory to back up does not exist."""


class ArchiveCreationError(BackupError):
    """Archive could not be written."""


class ChecksumCreationError(BackupError):
    """Checksum sidecar could not be written."""

    fatal = False


class ChecksumVerificationError(BackupError):
    """Archive does not match its checksum sidecar."""


class ExtractionTestError(BackupError):
    """Archive could not be opened and listed."""


class RestoreSourceMissing(BackupError):
    """Archive selected for restore does not exist."""


class RestoreTargetError(BackupError):
    """Restore target could not be created or extraction failed."""


class LockHeldError(BackupError):
    """Another run holds the process lock."""
