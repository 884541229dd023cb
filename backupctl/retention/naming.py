"""
Archive naming and calendar bucket keys.

Archives are named ``backup-YYYY-MM-DD-HHMM.tar.gz``. The timestamp embedded
in the name (read as local calendar time) decides which day, ISO week and
month an archive belongs to; the file's own creation time is never used.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

ARCHIVE_PREFIX = "backup-"
ARCHIVE_SUFFIX = ".tar.gz"
ARCHIVE_GLOB = f"{ARCHIVE_PREFIX}*{ARCHIVE_SUFFIX}"
CHECKSUM_SUFFIX = ".md5"
TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M"

_DATE_TOKEN = re.compile(r"(\d{4})-(\d{2})-(\d{2})(?:-(\d{2})(\d{2}))?")


class Granularity(Enum):
    """Calendar period used to bucket archives."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class BucketKey:
    """
    Identifier of one calendar period.

    Two archives share a bucket iff granularity and value are equal.

    Attributes:
        granularity: Period kind
        value: "YYYY-MM-DD", "GGGG-Www" (ISO week-year and week) or "YYYY-MM"
    """

    granularity: Granularity
    value: str

    def __str__(self) -> str:
        return self.value


def archive_name_for(instant: datetime) -> str:
    """Archive file name for a backup captured at ``instant``."""
    return f"{ARCHIVE_PREFIX}{instant.strftime(TIMESTAMP_FORMAT)}{ARCHIVE_SUFFIX}"


def timestamp_token(name: str) -> str | None:
    """Return the raw ``YYYY-MM-DD[-HHMM]`` token of a name, if it parses."""
    match = _DATE_TOKEN.search(name)
    if match is None or derive_timestamp(name) is None:
        return None
    return match.group(0)


def derive_timestamp(name: str) -> datetime | None:
    """
    Extract the capture time embedded in an archive name.

    Looks for the first ``YYYY-MM-DD`` token, optionally followed by
    ``-HHMM``. Tokens that are not a real calendar date or clock time
    (``2025-13-40``, ``-2561``) do not parse.

    Args:
        name: Archive file name or path string

    Returns:
        Naive local datetime, or None if the name carries no valid timestamp
    """
    match = _DATE_TOKEN.search(name)
    if match is None:
        return None

    year, month, day, hour, minute = match.groups()
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour) if hour is not None else 0,
            int(minute) if minute is not None else 0,
        )
    except ValueError:
        return None


def bucket_key_for(instant: datetime, granularity: Granularity) -> BucketKey:
    """
    Map a capture time onto its calendar bucket.

    Weeks follow ISO-8601: week 1 is the week containing the first Thursday
    of the year, so late-December dates can belong to week 1 of the next
    week-year and early-January dates to week 52/53 of the previous one.
    """
    if granularity is Granularity.DAY:
        return BucketKey(granularity, instant.strftime("%Y-%m-%d"))
    if granularity is Granularity.WEEK:
        iso = instant.isocalendar()
        return BucketKey(granularity, f"{iso[0]:04d}-W{iso[1]:02d}")
    if granularity is Granularity.MONTH:
        return BucketKey(granularity, instant.strftime("%Y-%m"))
    raise ValueError(f"Unknown granularity: {granularity}")


def bucket_keys_for(instant: datetime) -> tuple[BucketKey, BucketKey, BucketKey]:
    """Day, week and month keys for a capture time."""
    return (
        bucket_key_for(instant, Granularity.DAY),
        bucket_key_for(instant, Granularity.WEEK),
        bucket_key_for(instant, Granularity.MONTH),
    )
