"""
Shared utility functions for the activity tracker.

This module contains common utilities used across the codebase.
"""

from __future__ import annotations

import math
import uuid
from datetime import date, datetime, timezone


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.

    Args:
        prefix: Optional prefix (e.g., "tok", "reset")

    Returns:
        A unique ID like "tok_a1b2c3d4e5f6"
    """
    uid = uuid.uuid4().hex[:12]
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Get the current naive local datetime (the reference clock for periods)."""
    return datetime.now()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def as_number(value: float) -> int | float:
    """Integral floats as int (55.0 -> 55); anything else unchanged."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


# =============================================================================
# Storage formats
# =============================================================================


def to_db_timestamp(value: datetime | None) -> str | None:
    """
    Fixed-width text form so timestamps compare correctly as strings.

    Aware datetimes are converted to naive local time first: period windows
    are naive local, and an offset suffix would break string comparison.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.isoformat(sep=" ", timespec="microseconds")


def to_db_date(value: date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def from_db_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def from_db_date(value: str | None) -> date | None:
    return date.fromisoformat(value[:10]) if value else None
