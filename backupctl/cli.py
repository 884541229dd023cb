"""
Command-line interface for backupctl.

    backupctl --backup <src_dir>
    backupctl --restore <archive> <target_dir>
    backupctl --list
    backupctl --dry-run --backup <src_dir>

Backup and restore runs hold the host-wide process lock for their whole
duration; the lock is released on every exit path, including SIGTERM.
"""

from __future__ import annotations

import argparse
import signal
import sys
from contextlib import contextmanager
from typing import Iterator

from loguru import logger

from backupctl.archive import human_size
from backupctl.backup import BackupJob, iter_backups, restore_backup
from backupctl.config import BackupConfig, load_config
from backupctl.errors import (
    BackupError,
    ChecksumVerificationError,
    ConfigError,
    ExtractionTestError,
)
from backupctl.lock import ProcessLock
from backupctl.utils.logs import configure_logging

PROG = "backupctl"

USAGE = f"""Usage:
  {PROG} --backup <src_dir>
  {PROG} --restore <archive> <target_dir>
  {PROG} --list
  {PROG} --dry-run --backup <src_dir>
"""


class _UsageRequested(Exception):
    """Arguments did not form a known command."""


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that reports bad arguments as a usage request."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageRequested(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = _Parser(prog=PROG, add_help=False)

    parser.add_argument("--backup", nargs="?", const="", metavar="SRC_DIR")
    parser.add_argument("--restore", nargs="*", metavar="ARG")
    parser.add_argument("--list", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--config", metavar="PATH")
    parser.add_argument("--quiet", "-q", action="store_true")
    parser.add_argument("--help", "-h", action="store_true")

    return parser


@contextmanager
def _exit_on_signals() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into SystemExit so ``finally`` blocks still run."""

    def _handler(signum, frame):
        raise SystemExit(128 + signum)

    previous = {}
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            previous[signum] = signal.signal(signum, _handler)
        except ValueError:
            # Not the main thread
            pass

    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _run_backup(config: BackupConfig, source: str, dry_run: bool) -> int:
    if not source:
        logger.error(f"Usage: {PROG} --backup /path/to/source")
        return 1

    job = BackupJob(config, dry_run=dry_run)
    try:
        result = job.execute(source)
    except (ChecksumVerificationError, ExtractionTestError):
        print("FAILED")
        return 1
    except BackupError:
        # BackupJob already logged the failure
        return 1

    if dry_run:
        return 0

    if not result["success"]:
        print("FAILED")
        return 1

    print("SUCCESS")
    return 0


def _run_restore(args: list[str], dry_run: bool) -> int:
    if len(args) != 2:
        logger.error(f"Usage: {PROG} --restore backup.tar.gz /path/to/restore")
        return 1

    archive, target_dir = args
    restore_backup(archive, target_dir, dry_run=dry_run)
    return 0


def _run_list(config: BackupConfig) -> int:
    print("Available backups (newest first):")
    for name, size in iter_backups(config.destination):
        print(f"{name} - {human_size(size)}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point for backup operations.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    try:
        args, extra = parser.parse_known_args(argv)
    except _UsageRequested:
        print(USAGE, end="")
        return 0

    if extra or args.help or (args.backup is None and args.restore is None and not args.list):
        print(USAGE, end="")
        return 0

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # A dry run never creates the destination just to hold backup.log
    log_file = config.log_file
    if args.dry_run and not config.destination.is_dir():
        log_file = None

    try:
        configure_logging(log_file, quiet=args.quiet)
    except OSError as e:
        print(f"Error: Cannot open log file {config.log_file}: {e}", file=sys.stderr)
        return 1

    if args.backup is None and args.restore is None:
        return _run_list(config)

    lock = ProcessLock(config.lock_file)
    try:
        with _exit_on_signals():
            lock.acquire()
            try:
                if args.backup is not None:
                    return _run_backup(config, args.backup, args.dry_run)
                return _run_restore(args.restore, args.dry_run)
            finally:
                lock.release()
    except BackupError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Unexpected filesystem error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
