"""
Input validators returning tagged results.

Each validator rejects malformed input before it reaches the availability
logic and reports why as data (``Err``) rather than raising.
"""

from typing import Any, Iterable, List, Mapping

from pendulum import DateTime

from .exceptions import TimeFormatError
from .models import BusinessHours
from .result import Err, Ok, Result
from .timeutils import time_to_minutes

DEFAULT_MAX_SERVICE_DURATION = 480


def validate_time_string(value: Any) -> Result[int, str]:
    """Validate an "HH:MM" string, returning minutes since midnight."""
    try:
        return Ok(time_to_minutes(value))
    except TimeFormatError as exc:
        return Err(str(exc))


def validate_service_duration(
    minutes: Any,
    max_minutes: int = DEFAULT_MAX_SERVICE_DURATION,
) -> Result[int, str]:
    """Service durations are whole minutes in [1, max_minutes]."""
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        return Err(f"Service duration must be an integer number of minutes, got {minutes!r}")
    if minutes <= 0:
        return Err("Service duration must be greater than 0 minutes")
    if minutes > max_minutes:
        return Err(f"Service duration cannot exceed {max_minutes} minutes")
    return Ok(minutes)


def validate_business_hours(
    store_id: str,
    entries: Iterable[BusinessHours | Mapping[str, Any]],
) -> Result[List[BusinessHours], List[str]]:
    """
    Validate a week of business hours.

    Entries may be ``BusinessHours`` instances or mappings with
    ``day_of_week``, ``open_time``, ``close_time`` and optional
    ``is_closed``. All problems are collected, not just the first.
    """
    errors: List[str] = []
    validated: List[BusinessHours] = []
    seen_days: set[int] = set()

    for entry in entries:
        if isinstance(entry, BusinessHours):
            raw = {
                "day_of_week": entry.day_of_week,
                "open_time": entry.open_time,
                "close_time": entry.close_time,
                "is_closed": entry.is_closed,
            }
        else:
            raw = dict(entry)

        day = raw.get("day_of_week")
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            errors.append(f"day_of_week must be between 0 and 6, got {day!r}")
            continue

        if day in seen_days:
            errors.append(f"Duplicate business hours for day {day}")
            continue
        seen_days.add(day)

        is_closed = bool(raw.get("is_closed", False))
        open_result = validate_time_string(raw.get("open_time"))
        close_result = validate_time_string(raw.get("close_time"))

        day_errors = [
            f"Day {day}: {result.error}"
            for result in (open_result, close_result)
            if not result.is_ok
        ]
        if day_errors:
            errors.extend(day_errors)
            continue

        if not is_closed and open_result.value >= close_result.value:
            errors.append(f"Day {day}: opening time must be earlier than closing time")
            continue

        validated.append(
            BusinessHours(
                store_id=store_id,
                day_of_week=day,
                open_time=raw["open_time"].strip(),
                close_time=raw["close_time"].strip(),
                is_closed=is_closed,
            )
        )

    if errors:
        return Err(errors)

    return Ok(sorted(validated, key=lambda hours: hours.day_of_week))


def validate_booking_time(
    start_time: DateTime,
    now: DateTime,
    min_advance_minutes: int = 30,
    max_advance_days: int = 90,
) -> Result[DateTime, str]:
    """Bookings must be made at least ``min_advance_minutes`` ahead and at most ``max_advance_days`` ahead."""
    if start_time < now.add(minutes=min_advance_minutes):
        return Err(f"Bookings must be made at least {min_advance_minutes} minutes in advance")
    if start_time > now.add(days=max_advance_days):
        return Err(f"Bookings cannot be made more than {max_advance_days} days in advance")
    return Ok(start_time)
