# src/stream_raffle/db/time.py
"""Timestamps for raffle rows.

Every column is ``DateTime(timezone=True)``, but SQLite hands values back
naive, so comparisons go through :func:`as_utc`.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to a naive timestamp read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
