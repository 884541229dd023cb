"""
Configuration for backupctl.

Settings live in a shell-style ``KEY=VALUE`` file (``backup.config``):

    BACKUP_DESTINATION=/var/backups/home
    EXCLUDE_PATTERNS=*.tmp,.cache,node_modules
    DAILY_KEEP=7
    WEEKLY_KEEP=4
    MONTHLY_KEEP=6
    CHECKSUM_CMD=sha256sum

The file is read once at startup into an immutable ``BackupConfig`` that is
passed explicitly to the backup, rotation and restore operations.
"""

from __future__ import annotations

import fnmatch
import hashlib
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger

from backupctl.errors import ConfigError
from backupctl.retention.policy import RetentionPolicy

CONFIG_ENV_VAR = "BACKUP_CONFIG"
DEFAULT_CONFIG_FILE = Path("backup.config")
DEFAULT_CHECKSUM_ALGORITHM = "sha256"
DEFAULT_LOCK_FILE = Path(tempfile.gettempdir()) / "backup.lock"
LOG_FILE_NAME = "backup.log"


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable backup settings.

    Attributes:
        destination: Directory holding archives, sidecars and backup.log
        exclude_patterns: Glob patterns left out of archives
        policy: Daily/weekly/monthly keep-counts
        checksum_algorithm: hashlib algorithm name used for sidecars
        lock_file: Process lock path shared by all runs on this host
    """

    destination: Path
    exclude_patterns: tuple[str, ...] = ()
    policy: RetentionPolicy = field(default_factory=RetentionPolicy)
    checksum_algorithm: str = DEFAULT_CHECKSUM_ALGORITHM
    lock_file: Path = DEFAULT_LOCK_FILE

    @property
    def log_file(self) -> Path:
        """Append-only run log inside the destination."""
        return self.destination / LOG_FILE_NAME


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Config path from the argument, ``$BACKUP_CONFIG`` or the working directory."""
    if path:
        return Path(path).expanduser()

    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    return DEFAULT_CONFIG_FILE


def parse_exclude_patterns(raw: str | None) -> tuple[str, ...]:
    """
    Split a comma-separated glob list into validated patterns.

    Blank entries are dropped. Raises ConfigError for patterns that do not
    compile as globs.
    """
    if not raw:
        return ()

    patterns = []
    for part in raw.split(","):
        pattern = part.strip()
        if not pattern:
            continue
        try:
            re.compile(fnmatch.translate(pattern))
        except re.error as e:
            raise ConfigError(f"Invalid exclude pattern {pattern!r}: {e}") from e
        patterns.append(pattern)

    return tuple(patterns)


def parse_keep_count(values: dict[str, str | None], key: str) -> int:
    """Read a non-negative keep-count; absent or empty values count as 0."""
    raw = values.get(key)
    if raw is None or not raw.strip():
        logger.warning(f"{key} not set, treating as 0")
        return 0

    try:
        count = int(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{key} must be a non-negative integer, got {raw!r}") from e

    if count < 0:
        raise ConfigError(f"{key} must be a non-negative integer, got {count}")
    return count


def parse_checksum_algorithm(raw: str | None) -> str:
    """
    Map a CHECKSUM_CMD value onto a hashlib algorithm name.

    Accepts both coreutils command names (``sha256sum``, ``md5sum``) and
    plain algorithm names (``sha256``, ``SHA-1``).
    """
    if raw is None or not raw.strip():
        return DEFAULT_CHECKSUM_ALGORITHM

    name = Path(raw.strip().split()[0]).name.lower().replace("-", "")
    if name.endswith("sum"):
        name = name[: -len("sum")]

    if name not in hashlib.algorithms_guaranteed:
        raise ConfigError(
            f"Unsupported CHECKSUM_CMD: {raw!r}. "
            f"Valid options: {', '.join(sorted(hashlib.algorithms_guaranteed))}"
        )
    return name


def load_config(path: Path | str | None = None) -> BackupConfig:
    """
    Load and validate the configuration file.

    Args:
        path: Config file (default: $BACKUP_CONFIG, then ./backup.config)

    Returns:
        BackupConfig

    Raises:
        ConfigError: If the file is missing or any setting is invalid
    """
    config_path = resolve_config_path(path)
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    values = dotenv_values(config_path)

    destination = (values.get("BACKUP_DESTINATION") or "").strip()
    if not destination:
        raise ConfigError(f"BACKUP_DESTINATION is required in {config_path}")

    policy = RetentionPolicy(
        daily_keep=parse_keep_count(values, "DAILY_KEEP"),
        weekly_keep=parse_keep_count(values, "WEEKLY_KEEP"),
        monthly_keep=parse_keep_count(values, "MONTHLY_KEEP"),
    )

    lock_file = (values.get("LOCK_FILE") or "").strip()

    config = BackupConfig(
        destination=Path(destination).expanduser(),
        exclude_patterns=parse_exclude_patterns(values.get("EXCLUDE_PATTERNS")),
        policy=policy,
        checksum_algorithm=parse_checksum_algorithm(values.get("CHECKSUM_CMD")),
        lock_file=Path(lock_file).expanduser() if lock_file else DEFAULT_LOCK_FILE,
    )

    logger.debug(f"Loaded configuration from {config_path}")
    return config
