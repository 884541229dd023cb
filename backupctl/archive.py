"""
Archive, checksum and extraction primitives.

Thin wrappers over tarfile and hashlib used by the backup orchestrator:

- compress_directory: gzip tar of one directory with glob excludes
- write_checksum / read_checksum / verify_checksum: coreutils-style sidecars
- check_archive_integrity: open and list an archive without extracting
- extract_archive: unpack into a target directory
"""

from __future__ import annotations

import fnmatch
import hashlib
import tarfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Sequence

from loguru import logger

from backupctl.errors import (
    ArchiveCreationError,
    ChecksumCreationError,
    RestoreTargetError,
)
from backupctl.retention.naming import CHECKSUM_SUFFIX

_CHUNK_SIZE = 8192


@dataclass(frozen=True)
class ChecksumRecord:
    """Digest of one archive as stored in its sidecar."""

    algorithm: str
    digest: str
    filename: str

    def to_line(self) -> str:
        """Sidecar line in ``sha256sum`` output format."""
        return f"{self.digest}  {self.filename}\n"


def checksum_path_for(archive_path: Path) -> Path:
    """Sidecar path for an archive (``<archive>.md5``)."""
    return archive_path.with_name(archive_path.name + CHECKSUM_SUFFIX)


def is_excluded(arcname: str, patterns: Sequence[str]) -> bool:
    """
    Check an archive member name against exclude globs.

    Like ``tar --exclude``, a pattern matches when it matches any trailing
    run of path components, so ``*.log`` excludes ``src/a/b.log`` and
    ``cache/*`` excludes ``src/cache/x``.
    """
    if not patterns:
        return False

    parts = PurePosixPath(arcname).parts
    tails = ["/".join(parts[i:]) for i in range(len(parts))]
    return any(
        fnmatch.fnmatchcase(tail, pattern)
        for pattern in patterns
        for tail in tails
    )


def compress_directory(
    source: Path | str,
    exclude_patterns: Sequence[str],
    dest: Path | str,
) -> Path:
    """
    Write a gzip-compressed tar of ``source`` to ``dest``.

    The archive holds a single top-level entry named after the source
    directory. Members matching an exclude pattern are skipped together with
    everything below them. A partial archive is removed on failure.

    Args:
        source: Directory to archive
        exclude_patterns: Glob patterns to leave out
        dest: Archive path to create (must not exist)

    Returns:
        Path to the created archive

    Raises:
        ArchiveCreationError: If the source is not a directory, the
            destination already exists, or writing fails
    """
    source = Path(source)
    dest = Path(dest)

    if not source.is_dir():
        raise ArchiveCreationError(f"Source is not a directory: {source}")
    if dest.exists():
        raise ArchiveCreationError(f"Archive already exists: {dest}")

    def _filter(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo | None:
        if is_excluded(tarinfo.name, exclude_patterns):
            logger.debug(f"Excluding {tarinfo.name}")
            return None
        return tarinfo

    try:
        with tarfile.open(dest, "x:gz") as tar:
            tar.add(source, arcname=source.name, recursive=True, filter=_filter)
    except (OSError, tarfile.TarError) as e:
        if dest.exists():
            try:
                dest.unlink()
            except OSError as cleanup_error:
                logger.warning(f"Failed to remove partial archive {dest}: {cleanup_error}")
        raise ArchiveCreationError(f"Failed to create archive {dest}: {e}") from e

    return dest


def compute_checksum(path: Path | str, algorithm: str = "sha256") -> ChecksumRecord:
    """
    Hash a file in chunks.

    Raises:
        ChecksumCreationError: If the file cannot be read
    """
    path = Path(path)
    try:
        digest = hashlib.new(algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except (OSError, ValueError) as e:
        raise ChecksumCreationError(f"Failed to checksum {path}: {e}") from e

    return ChecksumRecord(algorithm=algorithm, digest=digest.hexdigest(), filename=path.name)


def write_checksum(archive_path: Path | str, algorithm: str = "sha256") -> Path:
    """
    Compute an archive's checksum and write it to the sidecar file.

    Returns:
        Sidecar path

    Raises:
        ChecksumCreationError: If hashing or writing fails
    """
    archive_path = Path(archive_path)
    record = compute_checksum(archive_path, algorithm)
    sidecar = checksum_path_for(archive_path)
    try:
        sidecar.write_text(record.to_line(), encoding="utf-8")
    except OSError as e:
        raise ChecksumCreationError(f"Failed to write checksum file {sidecar}: {e}") from e
    return sidecar


def read_checksum(sidecar: Path | str, algorithm: str = "sha256") -> ChecksumRecord | None:
    """
    Parse the first entry of a sidecar file.

    Returns:
        ChecksumRecord, or None if the sidecar is missing or malformed
    """
    sidecar = Path(sidecar)
    try:
        text = sidecar.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read checksum file {sidecar}: {e}")
        return None

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split(maxsplit=1)
        if len(parts) != 2:
            return None
        digest, filename = parts
        # sha256sum marks binary-mode entries with a leading '*'
        filename = Path(filename.lstrip("*")).name
        return ChecksumRecord(algorithm=algorithm, digest=digest.lower(), filename=filename)

    return None


def verify_checksum(path: Path | str, record: ChecksumRecord | None) -> bool:
    """Check that ``path`` matches a checksum record."""
    path = Path(path)
    if record is None:
        return False

    if record.filename != path.name:
        logger.debug(f"Checksum entry names {record.filename}, expected {path.name}")
        return False

    try:
        actual = compute_checksum(path, record.algorithm)
    except ChecksumCreationError as e:
        logger.debug(str(e))
        return False

    if actual.digest != record.digest:
        logger.debug(
            f"Checksum mismatch for {path.name}: expected {record.digest}, got {actual.digest}"
        )
        return False
    return True


def check_archive_integrity(path: Path | str) -> bool:
    """Open an archive and read its full member listing without extracting."""
    try:
        with tarfile.open(path, "r:gz") as tar:
            tar.getmembers()
            # Read past the end-of-archive marker so the gzip CRC is checked
            while tar.fileobj.read(_CHUNK_SIZE):
                pass
    except (OSError, EOFError, tarfile.TarError, zlib.error) as e:
        logger.debug(f"Archive integrity check failed for {path}: {e}")
        return False
    return True


def extract_archive(path: Path | str, dest: Path | str) -> Path:
    """
    Extract an archive into ``dest``, creating it if needed.

    Members that would escape ``dest`` (absolute paths, ``..``, unsafe
    links) are rejected by tarfile's ``data`` filter.

    Raises:
        RestoreTargetError: If the target cannot be created or extraction fails
    """
    dest = Path(dest)
    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RestoreTargetError(f"Cannot create restore target {dest}: {e}") from e

    try:
        with tarfile.open(path, "r:*") as tar:
            tar.extractall(dest, filter="data")
    except (OSError, EOFError, tarfile.TarError, zlib.error) as e:
        raise RestoreTargetError(f"Restore failed: tar extraction failed: {e}") from e

    return dest


def human_size(size_bytes: int) -> str:
    """
    Format a byte count like ``du -h --apparent-size``.

    Values below 1024 are plain integers; larger values use K/M/G/T/P with
    one decimal below 10 and whole numbers above, always rounded up.
    """
    if size_bytes < 1024:
        return str(size_bytes)

    # Integer ceiling division keeps the rounding exact
    for exponent, unit in enumerate("KMGTPE", start=1):
        base = 1024**exponent
        tenths = -(-size_bytes * 10 // base)
        if tenths < 100:
            return f"{tenths // 10}.{tenths % 10}{unit}"
        whole = -(-size_bytes // base)
        if whole < 1024 or unit == "E":
            return f"{whole}{unit}"
    return str(size_bytes)
