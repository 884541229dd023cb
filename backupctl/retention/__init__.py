"""
Backup retention for backupctl.

Provides archive name parsing, calendar bucket keys and the tiered
daily/weekly/monthly classifier.

Usage:
    from backupctl.retention import RetentionPolicy, classify, scan_backups

    records = scan_backups("/var/backups")
    decision = classify(records, RetentionPolicy(daily_keep=7, weekly_keep=4, monthly_keep=6))
    for record in decision.delete:
        print(record.name)
"""

from backupctl.retention.naming import (
    BucketKey,
    Granularity,
    archive_name_for,
    bucket_key_for,
    derive_timestamp,
)
from backupctl.retention.policy import (
    RetentionDecision,
    RetentionPolicy,
    RetentionTier,
    classify,
)
from backupctl.retention.records import BackupRecord, scan_backups

__all__ = [
    "BackupRecord",
    "BucketKey",
    "Granularity",
    "RetentionDecision",
    "RetentionPolicy",
    "RetentionTier",
    "archive_name_for",
    "bucket_key_for",
    "classify",
    "derive_timestamp",
    "scan_backups",
]
