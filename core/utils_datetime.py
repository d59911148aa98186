"""
DateTime utilities for wall-clock time labels and local calendar dates.
All day-level math happens in minutes since midnight in the restaurant timezone.
"""
from datetime import datetime, date
from typing import Optional, Union
import re
import pytz

from core.settings import settings


# Timezone configuration
TIMEZONE = pytz.timezone(settings.restaurant_timezone)

MINUTES_PER_DAY = 24 * 60

TIME_LABEL_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?\s*$')


def get_current_datetime() -> datetime:
    """Get current datetime in the restaurant timezone."""
    return datetime.now(TIMEZONE)


def localize(dt: datetime) -> datetime:
    """Return ``dt`` expressed in the restaurant timezone (naive values are assumed local)."""
    if dt.tzinfo is None:
        return TIMEZONE.localize(dt)
    return dt.astimezone(TIMEZONE)


def parse_time_to_minutes(label: str) -> int:
    """
    Parse an ``HH:MM`` or ``HH:MM:SS`` label into minutes since midnight.

    Seconds are ignored. ``24:00`` is accepted as the end of the day.

    Args:
        label: Wall-clock time label

    Returns:
        Minutes since midnight

    Raises:
        ValueError: if the label is not a valid time of day
    """
    if not isinstance(label, str):
        raise ValueError(f"Time label must be a string, got {type(label).__name__}")

    match = TIME_LABEL_PATTERN.match(label)
    if not match:
        raise ValueError(f"Invalid time label: {label!r}")

    hour = int(match.group(1))
    minute = int(match.group(2))
    if minute > 59 or hour > 24 or (hour == 24 and minute != 0):
        raise ValueError(f"Invalid time label: {label!r}")

    return hour * 60 + minute


def minutes_to_label(minutes: int) -> str:
    """Format minutes since midnight as a zero-padded ``HH:MM`` label."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def normalize_time_label(label: str) -> str:
    """Normalize ``H:M``, ``HH:MM`` or ``HH:MM:SS`` into ``HH:MM``."""
    return minutes_to_label(parse_time_to_minutes(label))


def to_seconds_label(label: str) -> str:
    """Return the ``HH:MM:SS`` form of a label, used for with-seconds comparisons."""
    match = TIME_LABEL_PATTERN.match(label)
    if not match:
        raise ValueError(f"Invalid time label: {label!r}")
    seconds = int(match.group(3)) if match.group(3) else 0
    return f"{normalize_time_label(label)}:{seconds:02d}"


def format_date_local(value: Union[date, datetime]) -> str:
    """
    Format a date as ``YYYY-MM-DD`` using the local calendar date.

    Aware datetimes are converted to the restaurant timezone first so a late
    evening moment never rolls over to the next UTC day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(TIMEZONE)
        value = value.date()
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date(value: Union[str, date, datetime]) -> date:
    """Parse ``YYYY-MM-DD`` strings; dates and datetimes pass through as local dates."""
    if isinstance(value, datetime):
        return localize(value).date() if value.tzinfo is not None else value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def day_of_week_sunday_based(value: Union[str, date, datetime]) -> int:
    """Day of week with 0 = Sunday, 6 = Saturday."""
    return (parse_date(value).weekday() + 1) % 7


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime in the restaurant timezone."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    return localize(value)


def minute_of_day(dt: datetime) -> int:
    """Minutes since local midnight for ``dt``."""
    local = localize(dt)
    return local.hour * 60 + local.minute
