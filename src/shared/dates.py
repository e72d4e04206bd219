"""Timestamp helpers shared by the list view and the analytics aggregator."""

import calendar
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime the way timestamps are stored (UTC, second precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Args:
        value: ISO-8601 string, datetime, or None

    Returns:
        Aware datetime, or None when the value is missing or unparseable
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def months_ago(value: datetime, months: int) -> datetime:
    """Shift a datetime back by whole calendar months, clamping the day."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_key(value: datetime) -> str:
    """Calendar month key (YYYY-MM)."""
    return value.strftime('%Y-%m')


def month_label(value: datetime) -> str:
    """Display label for a calendar month, e.g. 'Oct 2026'."""
    return value.strftime('%b %Y')
