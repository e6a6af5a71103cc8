"""
UTC DateTime Utilities for RentHive.

Provides consistent UTC datetime handling across the entire codebase.
All datetimes are stored and handled in UTC with timezone awareness;
calendar dates (lease dates, all-day events) are anchored at UTC midnight.
"""

from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    This is the standard function for all timestamps in RentHive.
    Always returns a datetime with tzinfo=timezone.utc.

    Example:
        from renthive.core.utc import utc_now

        created_at = utc_now()  # 2025-12-08 03:00:00+00:00
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current calendar date in UTC."""
    return utc_now().date()


def utc_now_iso() -> str:
    """
    Get current UTC time as ISO 8601 string with Z suffix.

    Returns format: "2025-12-08T03:00:00.123456Z"
    """
    return utc_now().isoformat().replace("+00:00", "Z")


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC timezone-aware datetime.

    - If naive: assumes UTC and adds timezone
    - If aware: converts to UTC

    SQLite hands back naive datetimes even for DateTime(timezone=True)
    columns, so anything read from the database goes through here before
    being compared with utc_now().
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(d: date) -> datetime:
    """UTC midnight of the given calendar date."""
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to timezone-aware UTC datetime.

    Handles:
    - "2025-12-08T03:00:00Z"
    - "2025-12-08T03:00:00+00:00"
    - "2025-12-08T03:00:00" (assumes UTC)
    - "2025-12-08" (UTC midnight)
    """
    cleaned = iso_string.strip().replace("Z", "+00:00")
    dt = datetime.fromisoformat(cleaned)
    return to_utc(dt)


def parse_date(value) -> date:
    """
    Coerce a date, datetime or ISO string to a calendar date.

    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return parse_iso(text).date()
    raise ValueError(f"Invalid date: {value!r}")
