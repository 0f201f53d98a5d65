"""
Business hours resolution and administration.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, List, Mapping

from pendulum import DateTime

from ..domain.exceptions import ValidationError
from ..domain.models import BusinessHours, OpeningWindow, TimeRange
from ..domain.timeutils import is_within, start_of_day, to_local, weekday_index
from ..domain.validation import validate_business_hours
from .store import BookingStoreProtocol

logger = logging.getLogger(__name__)


class BusinessHoursResolver:
    """
    Resolves a store's opening window for a calendar day.

    A weekday with no configured record is treated exactly like a closed day.
    """

    def __init__(self, store: BookingStoreProtocol, timezone: str) -> None:
        self._store = store
        self._timezone = timezone

    @property
    def timezone(self) -> str:
        return self._timezone

    def resolve(self, store_id: str, day: date) -> OpeningWindow | None:
        """
        Return the opening window for ``day``, or None if closed or unconfigured.

        Datetimes are read on the store clock before the weekday is taken.
        """
        weekday = weekday_index(start_of_day(day, self._timezone))
        hours = self._store.get_business_hours(store_id, weekday)

        if hours is None:
            logger.debug("Store %s has no business hours for weekday %s", store_id, weekday)
            return None

        return hours.window()

    def resolve_range(self, store_id: str, day: date) -> TimeRange | None:
        """Same as ``resolve`` but anchored to the day as a datetime range."""
        window = self.resolve(store_id, day)
        if window is None:
            return None
        return window.on(day, self._timezone)

    def configured_hours(self, store_id: str, day: date) -> BusinessHours | None:
        """Return the raw record for the day, closed or not."""
        return self._store.get_business_hours(
            store_id, weekday_index(start_of_day(day, self._timezone))
        )


class BusinessHoursService:
    """Administration of a store's weekly opening hours."""

    def __init__(self, store: BookingStoreProtocol, timezone: str) -> None:
        self._store = store
        self._resolver = BusinessHoursResolver(store, timezone)
        self._timezone = timezone

    def get_business_hours(self, store_id: str) -> List[BusinessHours]:
        """Return the configured week ordered by weekday."""
        return sorted(
            self._store.list_business_hours(store_id),
            key=lambda hours: hours.day_of_week,
        )

    def set_business_hours(
        self,
        store_id: str,
        entries: Iterable[BusinessHours | Mapping[str, Any]],
    ) -> List[BusinessHours]:
        """
        Replace the store's full week of business hours.

        Raises:
            ValidationError: With every problem found when any entry is invalid
        """
        result = validate_business_hours(store_id, entries)
        if not result.is_ok:
            raise ValidationError(result.error)

        saved = self._store.replace_business_hours(store_id, result.value)
        logger.info("Business hours replaced for store %s (%d days)", store_id, len(saved))
        return saved

    def update_day(
        self,
        store_id: str,
        weekday: int,
        open_time: str,
        close_time: str,
        is_closed: bool = False,
    ) -> BusinessHours:
        """Update (or create) the hours of a single weekday."""
        result = validate_business_hours(
            store_id,
            [{
                "day_of_week": weekday,
                "open_time": open_time,
                "close_time": close_time,
                "is_closed": is_closed,
            }],
        )
        if not result.is_ok:
            raise ValidationError(result.error)

        updated = result.value[0]
        week = {
            hours.day_of_week: hours
            for hours in self._store.list_business_hours(store_id)
        }
        week[weekday] = updated
        self._store.replace_business_hours(store_id, list(week.values()))
        return updated

    def is_within_business_hours(self, store_id: str, instant: DateTime) -> bool:
        """Check whether an instant falls inside opening hours (both ends inclusive)."""
        local = to_local(instant, self._timezone)
        opening = self._resolver.resolve_range(store_id, local)
        if opening is None:
            return False
        return is_within(local, opening.start, opening.end)

    def is_business_hours_complete(self, store_id: str) -> bool:
        """All seven weekdays have a record (open or closed)."""
        days = {hours.day_of_week for hours in self._store.list_business_hours(store_id)}
        return days == set(range(7))

    def get_next_business_day(self, store_id: str, from_day: date) -> DateTime | None:
        """Return the first open day within the 7 days after ``from_day``."""
        current = start_of_day(from_day, self._timezone)

        for _ in range(7):
            current = current.add(days=1)
            if self._resolver.resolve(store_id, current) is not None:
                return current

        return None
