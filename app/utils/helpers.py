"""Utility helper functions"""

from datetime import UTC, date, datetime, timedelta
from typing import Any, Optional


def utc_today() -> date:
    """Current calendar day in UTC"""
    return datetime.now(UTC).date()


def parse_day(value: Any) -> Optional[date]:
    """
    Parse a UTC calendar day from the formats found in project files, OSM payloads and the store

    Accepts date/datetime objects, ISO dates ("2024-05-01"), ISO timestamps
    with or without offset ("2024-05-01T10:00:00Z", "2024-05-01T00:30:00+01:00")
    and OSM API timestamps ("2024-05-01 10:00:00 UTC"). Aware values are
    converted to UTC before the day is taken; naive ones are read as UTC.

    Args:
        value: Raw value

    Returns:
        The calendar day, or None if the value is empty or unparseable
    """
    if isinstance(value, datetime):
        return _utc_day(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(" UTC"):
        text = text[: -len(" UTC")] + "+00:00"
    try:
        return _utc_day(datetime.fromisoformat(text))
    except ValueError:
        # Trailing garbage after a valid day still yields the day
        head = text.split(" ")[0].split("T")[0]
    try:
        return date.fromisoformat(head)
    except ValueError:
        return None


def _utc_day(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.date()


def day_range(start: date, end: date) -> list[date]:
    """Inclusive list of days from start to end (empty if start > end)"""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def format_day(day: date) -> str:
    """Format a day the way the plan and CSV files expect it"""
    return day.isoformat()
