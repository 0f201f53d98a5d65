"""
Minute-granularity time arithmetic shared by the availability engine.

All functions are pure. Intervals are half-open: a range ending at 10:30
does not overlap a range starting at 10:30.
"""

import re
from datetime import date, datetime
from typing import Any

import pendulum
from pendulum import DateTime

from .exceptions import TimeFormatError

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def time_to_minutes(value: str) -> int:
    """
    Parse an "HH:MM" string into minutes since midnight.

    Raises:
        TimeFormatError: If the string is not a valid time of day
    """
    if not isinstance(value, str):
        raise TimeFormatError(f"Time must be a string in HH:MM format, got {value!r}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise TimeFormatError(f"Invalid time format: {value!r} (expected HH:MM)")

    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as a zero-padded "HH:MM" string."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes must be within a single day, got {minutes}")

    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def intervals_overlap(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """Strict overlap test for half-open intervals; touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def is_within(point: Any, start: Any, end: Any) -> bool:
    """Inclusive containment test."""
    return start <= point <= end


def truncate_to_minute(value: DateTime) -> DateTime:
    """Drop seconds and microseconds (truncate, never round)."""
    return value.set(second=0, microsecond=0)


def weekday_index(day: date) -> int:
    """Weekday index with 0=Sunday and 6=Saturday."""
    return day.isoweekday() % 7


def to_local(value: datetime, timezone: str) -> DateTime:
    """
    Express an instant on the store-local clock.

    Naive values are read as wall-clock time in ``timezone``; aware values
    are converted.
    """
    if value.tzinfo is None:
        return pendulum.datetime(
            value.year, value.month, value.day,
            value.hour, value.minute, value.second, value.microsecond,
            tz=timezone,
        )
    return pendulum.instance(value).in_timezone(timezone)


def start_of_day(day: date, timezone: str) -> DateTime:
    """
    Return local midnight for a calendar day.

    Datetimes are first moved to ``timezone``, so the calendar day is the
    store-local one.
    """
    if isinstance(day, datetime):
        return to_local(day, timezone).start_of("day")

    return pendulum.datetime(day.year, day.month, day.day, tz=timezone)
