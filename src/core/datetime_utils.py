"""Timezone-aware datetime utilities.

Timestamps are stored as naive UTC datetimes (TIMESTAMP WITHOUT TIME ZONE)
and exposed to clients as ISO-8601 strings carrying an explicit UTC offset.
"""

from datetime import UTC, datetime

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def utc_now_naive() -> datetime:
    """Return current UTC time as naive datetime (for DB compatibility)."""
    return datetime.now(UTC).replace(tzinfo=None)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure datetime is timezone-aware UTC.

    Args:
        dt: Datetime to convert

    Returns:
        Timezone-aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def isoformat_utc(dt: datetime | None) -> str | None:
    """Serialize a stored timestamp as ISO-8601, or None when absent."""
    aware = ensure_utc(dt)
    return aware.isoformat() if aware is not None else None


def parse_timestamp(value: object) -> datetime | None:
    """Coerce a datetime or ISO-8601 string to aware UTC.

    Returns None for missing values and for strings that do not parse.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return ensure_utc(parsed)
    return None
