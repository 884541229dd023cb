"""
Tiered retention policy for backup archives.

Classifies a newest-first sequence of archives into keep and delete sets
under daily, weekly and monthly keep-counts. The classifier is a pure
function of (records, policy): it is recomputed from the directory listing
on every rotation and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from backupctl.retention.naming import BucketKey, bucket_keys_for
from backupctl.retention.records import BackupRecord


class RetentionTier(Enum):
    """Retention tier that claimed a kept archive."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class RetentionPolicy:
    """
    How many distinct periods each tier keeps.

    A keep-count of 0 disables that tier.
    """

    daily_keep: int = 0
    weekly_keep: int = 0
    monthly_keep: int = 0

    def __post_init__(self) -> None:
        """Validate keep-counts after initialization."""
        for name in ("daily_keep", "weekly_keep", "monthly_keep"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @property
    def max_kept(self) -> int:
        """Upper bound on the number of archives kept by one rotation."""
        return self.daily_keep + self.weekly_keep + self.monthly_keep


@dataclass(frozen=True)
class RetentionDecision:
    """
    Outcome of classifying a set of archives.

    ``keep`` and ``delete`` are disjoint and together hold every record
    whose name parsed; records that did not parse are in ``skipped`` only.
    All three preserve input order.
    """

    keep: tuple[BackupRecord, ...] = ()
    delete: tuple[BackupRecord, ...] = ()
    skipped: tuple[BackupRecord, ...] = ()
    tiers: dict[Path, RetentionTier] = field(default_factory=dict)

    def tier_of(self, record: BackupRecord) -> RetentionTier | None:
        """Tier that kept ``record``, or None if it was not kept."""
        return self.tiers.get(record.path)

    @property
    def is_empty(self) -> bool:
        return not (self.keep or self.delete or self.skipped)


class _BucketAccumulator:
    """Insertion-ordered set of bucket keys capped in cardinality."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.keys: dict[BucketKey, None] = {}

    def claim(self, key: BucketKey) -> bool:
        """Add ``key`` if there is room and it is new; report whether it was added."""
        if len(self.keys) >= self.capacity or key in self.keys:
            return False
        self.keys[key] = None
        return True


def classify(records: Iterable[BackupRecord], policy: RetentionPolicy) -> RetentionDecision:
    """
    Partition newest-first archives into keep and delete sets.

    Each parseable record is offered, in order, to the daily, weekly and
    monthly tiers. A tier keeps the record when it still has room and the
    record's day / ISO week / month is not yet represented in it; the first
    tier that accepts wins, so one archive never fills slots in two tiers.
    Records no tier accepts are deleted. Records without a timestamp in
    their name are skipped and leave the tiers untouched.

    Args:
        records: Archives ordered newest first; ties keep input order
        policy: Keep-counts per tier

    Returns:
        RetentionDecision with at most ``policy.max_kept`` kept records
    """
    tiers = (
        (RetentionTier.DAILY, _BucketAccumulator(policy.daily_keep)),
        (RetentionTier.WEEKLY, _BucketAccumulator(policy.weekly_keep)),
        (RetentionTier.MONTHLY, _BucketAccumulator(policy.monthly_keep)),
    )

    keep: list[BackupRecord] = []
    delete: list[BackupRecord] = []
    skipped: list[BackupRecord] = []
    kept_tiers: dict[Path, RetentionTier] = {}

    for record in records:
        if record.captured_at is None:
            skipped.append(record)
            continue

        for (tier, accumulator), key in zip(tiers, bucket_keys_for(record.captured_at)):
            if accumulator.claim(key):
                keep.append(record)
                kept_tiers[record.path] = tier
                break
        else:
            delete.append(record)

    return RetentionDecision(
        keep=tuple(keep),
        delete=tuple(delete),
        skipped=tuple(skipped),
        tiers=kept_tiers,
    )
