"""Time-of-day and timestamp helpers."""
import re
from datetime import datetime, timezone
from typing import Optional

CANONICAL_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

_LOOSE_TIME = re.compile(r"(\d{1,2})(?::?(\d{2}))?(?!\d)\s*(am|pm|a\.m\.|p\.m\.)?", re.IGNORECASE)


def is_canonical_time(value) -> bool:
    """Return True for a well-formed 24-hour "HH:mm" string."""
    return isinstance(value, str) and CANONICAL_TIME.match(value) is not None


def normalize_time(value) -> Optional[str]:
    """
    Reparse a loosely formatted time into canonical "HH:mm".

    Args:
        value: Raw time such as "9", "9am", "9:30 pm", "930" or "21:05"

    Returns:
        Canonical time string, or None if nothing usable was found

    Examples:
        >>> normalize_time("9")
        '09:00'
        >>> normalize_time("7:15pm")
        '19:15'
        >>> normalize_time("12am")
        '00:00'
    """
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None

    match = _LOOSE_TIME.search(value)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = (match.group(3) or "").lower().replace(".", "")

    if meridiem:
        if hour < 1 or hour > 12:
            return None
        if meridiem == "pm" and hour != 12:
            hour += 12
        if meridiem == "am" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        return None

    return f"{hour:02d}:{minute:02d}"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
