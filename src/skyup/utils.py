"""Time helpers shared by storage and token code."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_datetime(value: datetime) -> datetime:
    """Treat naive values as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime) -> str:
    """Fixed-width ISO timestamp so text columns sort chronologically."""
    return normalize_datetime(value).isoformat(timespec="microseconds")


def epoch_millis(value: Optional[datetime] = None) -> int:
    return int(normalize_datetime(value or utc_now()).timestamp() * 1000)
