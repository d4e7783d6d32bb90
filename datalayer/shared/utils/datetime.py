"""UTC datetime helpers.

Datasources store timezone-aware UTC datetimes only. Naive values coming
from a backend are taken to be UTC.
"""

from datetime import UTC, datetime

_RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return dt as an aware UTC datetime (None passes through).

    Naive values get tzinfo=UTC attached; aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_datetime(value: datetime | str | None) -> datetime | None:
    """Parse an ISO 8601 / RFC 3339 string (a trailing 'Z' is accepted).

    Raises:
        ValueError: If the string is not a valid timestamp.
        TypeError: If value is neither a datetime, a string nor None.
    """
    if value is None or isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise TypeError(f"Expected datetime or ISO string, got {type(value).__name__}")


def format_rfc3339(dt: datetime) -> str:
    """Format as UTC RFC 3339 with microseconds, e.g. '2024-01-02T03:04:05.000000Z'."""
    return ensure_utc(dt).strftime(_RFC3339_FORMAT)
