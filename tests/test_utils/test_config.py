"""Tests for backup configuration loading."""

from pathlib import Path

import pytest

from backupctl.config import (
    DEFAULT_CHECKSUM_ALGORITHM,
    DEFAULT_LOCK_FILE,
    BackupConfig,
    load_config,
    parse_checksum_algorithm,
    parse_exclude_patterns,
    parse_keep_count,
    resolve_config_path,
)
from backupctl.errors import ConfigError
from backupctl.retention.policy import RetentionPolicy


def _write_config(path: Path, **values) -> Path:
    path.write_text("".join(f"{key}={value}\n" for key, value in values.items()))
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_full_config(self, tmp_path):
        config_file = _write_config(
            tmp_path / "backup.config",
            BACKUP_DESTINATION=str(tmp_path / "backups"),
            EXCLUDE_PATTERNS="*.tmp, .cache ,node_modules",
            DAILY_KEEP="7",
            WEEKLY_KEEP="4",
            MONTHLY_KEEP="6",
            CHECKSUM_CMD="sha256sum",
            LOCK_FILE=str(tmp_path / "run" / "backup.lock"),
        )

        config = load_config(config_file)

        assert config.destination == tmp_path / "backups"
        assert config.exclude_patterns == ("*.tmp", ".cache", "node_modules")
        assert config.policy == RetentionPolicy(daily_keep=7, weekly_keep=4, monthly_keep=6)
        assert config.checksum_algorithm == "sha256"
        assert config.lock_file == tmp_path / "run" / "backup.lock"
        assert config.log_file == tmp_path / "backups" / "backup.log"

    def test_defaults(self, tmp_path, log_messages):
        config_file = _write_config(
            tmp_path / "backup.config", BACKUP_DESTINATION=str(tmp_path / "backups")
        )

        config = load_config(config_file)

        assert config.exclude_patterns == ()
        assert config.policy == RetentionPolicy(0, 0, 0)
        assert config.checksum_algorithm == DEFAULT_CHECKSUM_ALGORITHM
        assert config.lock_file == DEFAULT_LOCK_FILE
        assert "WARNING: DAILY_KEEP not set, treating as 0" in log_messages

    def test_quoted_values_and_comments(self, tmp_path):
        config_file = tmp_path / "backup.config"
        config_file.write_text(
            "# nightly home backup\n"
            f'BACKUP_DESTINATION="{tmp_path / "my backups"}"\n'
            "DAILY_KEEP=2\n"
        )

        config = load_config(config_file)

        assert config.destination == tmp_path / "my backups"
        assert config.policy.daily_keep == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_config(tmp_path / "missing.config")

    def test_missing_destination(self, tmp_path):
        config_file = _write_config(tmp_path / "backup.config", DAILY_KEEP="3")

        with pytest.raises(ConfigError, match="BACKUP_DESTINATION is required"):
            load_config(config_file)

    def test_invalid_keep_count(self, tmp_path):
        config_file = _write_config(
            tmp_path / "backup.config",
            BACKUP_DESTINATION=str(tmp_path),
            WEEKLY_KEEP="four",
        )

        with pytest.raises(ConfigError, match="WEEKLY_KEEP"):
            load_config(config_file)

    def test_unknown_checksum_command(self, tmp_path):
        config_file = _write_config(
            tmp_path / "backup.config",
            BACKUP_DESTINATION=str(tmp_path),
            CHECKSUM_CMD="crc32",
        )

        with pytest.raises(ConfigError, match="Unsupported CHECKSUM_CMD"):
            load_config(config_file)

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        config_file = _write_config(
            tmp_path / "elsewhere.config", BACKUP_DESTINATION=str(tmp_path / "b")
        )
        monkeypatch.setenv("BACKUP_CONFIG", str(config_file))

        assert load_config().destination == tmp_path / "b"

    def test_config_is_immutable(self, tmp_path):
        config = BackupConfig(destination=tmp_path)
        with pytest.raises(AttributeError):
            config.destination = tmp_path / "other"


class TestResolveConfigPath:
    """Tests for resolve_config_path()."""

    def test_explicit_path_wins(self, monkeypatch):
        monkeypatch.setenv("BACKUP_CONFIG", "/etc/from-env.config")
        assert resolve_config_path("/etc/explicit.config") == Path("/etc/explicit.config")

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("BACKUP_CONFIG", "/etc/from-env.config")
        assert resolve_config_path() == Path("/etc/from-env.config")

    def test_default(self, monkeypatch):
        monkeypatch.delenv("BACKUP_CONFIG", raising=False)
        assert resolve_config_path() == Path("backup.config")


class TestParsers:
    """Tests for the individual setting parsers."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, ()),
            ("", ()),
            ("*.log", ("*.log",)),
            ("*.log,,cache, ", ("*.log", "cache")),
            ("[abc]*.tmp", ("[abc]*.tmp",)),
        ],
    )
    def test_exclude_patterns(self, raw, expected):
        assert parse_exclude_patterns(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("sha256sum", "sha256"),
            ("/usr/bin/md5sum", "md5"),
            ("SHA1SUM", "sha1"),
            ("sha512", "sha512"),
            ("SHA-256", "sha256"),
            ("", DEFAULT_CHECKSUM_ALGORITHM),
            (None, DEFAULT_CHECKSUM_ALGORITHM),
        ],
    )
    def test_checksum_algorithm(self, raw, expected):
        assert parse_checksum_algorithm(raw) == expected

    def test_keep_count_values(self):
        assert parse_keep_count({"DAILY_KEEP": " 5 "}, "DAILY_KEEP") == 5
        assert parse_keep_count({"DAILY_KEEP": "0"}, "DAILY_KEEP") == 0
        assert parse_keep_count({"DAILY_KEEP": None}, "DAILY_KEEP") == 0
        assert parse_keep_count({}, "DAILY_KEEP") == 0

    def test_keep_count_negative(self):
        with pytest.raises(ConfigError, match="non-negative"):
            parse_keep_count({"MONTHLY_KEEP": "-1"}, "MONTHLY_KEEP")
