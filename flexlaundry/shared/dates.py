"""Date helpers - Airtable timestamps and en-GB display formats"""

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Serialize to the ISO 8601 form Airtable stores"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an Airtable date or datetime string. Naive values are treated as UTC."""
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def hours_since(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return ((now or utc_now()) - parsed).total_seconds() / 3600


def format_weekday_date(dt: datetime) -> str:
    """Monday 27 Oct"""
    return f"{dt:%A} {dt.day} {dt:%b}"


def format_short_weekday_date(dt: datetime) -> str:
    """Mon 27 Oct"""
    return f"{dt:%a} {dt.day} {dt:%b}"


def format_long_date(dt: datetime) -> str:
    """27 October 2025"""
    return f"{dt.day} {dt:%B %Y}"


def format_timestamp(dt: datetime) -> str:
    """27/10/2025, 14:05:00"""
    return dt.strftime("%d/%m/%Y, %H:%M:%S")


def format_weekday_evening(dt: datetime) -> str:
    """
    Friday 8pm - collection time shown to members.
    Hours are capped at 8pm and early morning rolls to 8pm.
    """
    hour = dt.hour
    if hour > 20 or hour < 6:
        hour = 20
    suffix = "am" if hour < 12 else "pm"
    display_hour = hour % 12 or 12
    return f"{dt:%A} {display_hour}{suffix}"
