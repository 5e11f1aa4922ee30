"""Time Utilities - UTC timestamps and SLA arithmetic"""
from datetime import datetime, timezone
from typing import Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (MongoDB returns naive values)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string

    Args:
        dt: Datetime object

    Returns:
        ISO formatted string with Z suffix for UTC
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime

    Args:
        iso_string: ISO formatted datetime string

    Returns:
        Datetime object in UTC
    """
    return ensure_utc(date_parser.isoparse(iso_string))


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours from start to end (negative if end is earlier)"""
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 3600


def is_sla_breached(
    entered_at: Optional[datetime],
    sla_hours: Optional[float],
    now: datetime
) -> bool:
    """
    Check whether a step has been open longer than its SLA

    A step with no SLA or no entry timestamp is never breached. The
    comparison is strict: exactly sla_hours elapsed is still on time.
    """
    if entered_at is None or sla_hours is None:
        return False
    return hours_between(entered_at, now) > sla_hours
