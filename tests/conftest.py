"""
Shared fixtures for backupctl tests.
"""

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from loguru import logger

from backupctl.config import BackupConfig
from backupctl.retention.policy import RetentionPolicy
from backupctl.utils.logs import register_levels


@pytest.fixture(autouse=True)
def reset_loguru():
    """Restore loguru's default sink after each test (the CLI replaces it)."""
    register_levels()
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def log_messages():
    """Capture loguru output as ``"LEVEL: message"`` strings."""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append(message.rstrip("\n")),
        format="{level}: {message}",
        level="DEBUG",
    )
    yield messages
    try:
        logger.remove(handler_id)
    except ValueError:
        pass


@pytest.fixture
def backup_env(tmp_path):
    """Isolated source tree, destination and config."""
    source = tmp_path / "project"
    (source / "docs").mkdir(parents=True)
    (source / "cache").mkdir()
    (source / "README.md").write_text("# project\n")
    (source / "docs" / "guide.txt").write_text("how to use it\n")
    (source / "docs" / "debug.log").write_text("noise\n")
    (source / "cache" / "blob.bin").write_bytes(b"\x00" * 64)

    destination = tmp_path / "backups"

    config = BackupConfig(
        destination=destination,
        exclude_patterns=("*.log", "cache"),
        policy=RetentionPolicy(daily_keep=3, weekly_keep=2, monthly_keep=2),
        checksum_algorithm="sha256",
        lock_file=tmp_path / "backup.lock",
    )

    return {
        "tmp_path": tmp_path,
        "source": source,
        "destination": destination,
        "config": config,
    }


@pytest.fixture
def make_archive():
    """Create a placeholder archive (and sidecar) with a chosen mtime."""

    def _make(directory: Path, name: str, mtime: datetime | None = None, sidecar: bool = True) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(b"archive " + name.encode())
        if sidecar:
            (directory / f"{name}.md5").write_text(f"0000  {name}\n")
        if mtime is not None:
            stamp = mtime.timestamp()
            os.utime(path, (stamp, stamp))
        return path

    return _make
