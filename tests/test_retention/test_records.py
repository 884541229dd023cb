"""
Tests for BackupRecord and destination scanning.
"""

from datetime import datetime
from pathlib import Path

from backupctl.retention.records import BackupRecord, scan_backups


class TestBackupRecord:
    """Tests for BackupRecord.from_path()."""

    def test_parses_name(self):
        record = BackupRecord.from_path("/srv/backups/backup-2025-11-01-0300.tar.gz")

        assert record.name == "backup-2025-11-01-0300.tar.gz"
        assert record.checksum_path == Path("/srv/backups/backup-2025-11-01-0300.tar.gz.md5")
        assert record.archive_id == "2025-11-01-0300"
        assert record.captured_at == datetime(2025, 11, 1, 3, 0)
        assert record.parseable

    def test_unparseable_name(self):
        record = BackupRecord.from_path("/srv/backups/backup-manual.tar.gz")

        assert record.archive_id is None
        assert record.captured_at is None
        assert not record.parseable

    def test_records_are_hashable(self):
        a = BackupRecord.from_path("/x/backup-2025-11-01-0300.tar.gz")
        b = BackupRecord.from_path("/x/backup-2025-11-01-0300.tar.gz")
        assert a == b
        assert len({a, b}) == 1


class TestScanBackups:
    """Tests for scan_backups()."""

    def test_missing_directory(self, tmp_path):
        assert scan_backups(tmp_path / "nope") == []

    def test_newest_first_by_mtime(self, tmp_path, make_archive):
        make_archive(tmp_path, "backup-2025-11-01-0300.tar.gz", datetime(2025, 11, 1, 3))
        make_archive(tmp_path, "backup-2025-11-03-0300.tar.gz", datetime(2025, 11, 3, 3))
        make_archive(tmp_path, "backup-2025-11-02-0300.tar.gz", datetime(2025, 11, 2, 3))

        names = [r.name for r in scan_backups(tmp_path)]
        assert names == [
            "backup-2025-11-03-0300.tar.gz",
            "backup-2025-11-02-0300.tar.gz",
            "backup-2025-11-01-0300.tar.gz",
        ]

    def test_mtime_wins_over_name(self, tmp_path, make_archive):
        """Order follows the filesystem listing time, not the embedded date."""
        make_archive(tmp_path, "backup-2025-11-05-0300.tar.gz", datetime(2025, 11, 1))
        make_archive(tmp_path, "backup-2025-11-01-0300.tar.gz", datetime(2025, 11, 5))

        names = [r.name for r in scan_backups(tmp_path)]
        assert names[0] == "backup-2025-11-01-0300.tar.gz"

    def test_equal_mtime_ordered_by_name(self, tmp_path, make_archive):
        same = datetime(2025, 11, 5, 12, 0)
        make_archive(tmp_path, "backup-2025-11-05-1100.tar.gz", same)
        make_archive(tmp_path, "backup-2025-11-05-1200.tar.gz", same)

        names = [r.name for r in scan_backups(tmp_path)]
        assert names == ["backup-2025-11-05-1200.tar.gz", "backup-2025-11-05-1100.tar.gz"]

    def test_ignores_other_files(self, tmp_path, make_archive):
        make_archive(tmp_path, "backup-2025-11-01-0300.tar.gz")
        (tmp_path / "backup.log").write_text("log\n")
        (tmp_path / "other-2025-11-01.tar.gz").write_bytes(b"x")
        (tmp_path / "backup-2025-11-02-0300.zip").write_bytes(b"x")
        (tmp_path / "backup-dir.tar.gz").mkdir()

        names = [r.name for r in scan_backups(tmp_path)]
        assert names == ["backup-2025-11-01-0300.tar.gz"]

    def test_includes_unparseable_archives(self, tmp_path, make_archive):
        make_archive(tmp_path, "backup-manual.tar.gz")

        records = scan_backups(tmp_path)
        assert len(records) == 1
        assert not records[0].parseable
