"""Timezone helpers shared by time-window filters."""

from datetime import UTC, datetime


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)
