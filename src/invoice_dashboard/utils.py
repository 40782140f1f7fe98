"""Shared helpers — hashing, timestamps, epoch conversions."""

from __future__ import annotations

import hashlib
import math
from datetime import datetime, timedelta, timezone
from pathlib import Path

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +inf (not banker's rounding)."""
    return math.floor(value + 0.5)


def from_epoch_ms(ms: int) -> datetime:
    """UTC datetime for a count of milliseconds since 1970-01-01."""
    return UNIX_EPOCH + timedelta(milliseconds=ms)


def to_epoch_ms(moment: datetime) -> float:
    """Milliseconds since 1970-01-01 UTC; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - UNIX_EPOCH) / timedelta(milliseconds=1)
