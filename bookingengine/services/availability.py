"""
Per-staff availability checks and day slot listings.

The checker only ever looks at one staff member's bookings for one day, so
its cost is proportional to that staff's bookings, not the whole store's.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from ..domain.models import Booking, OpeningWindow, TimeRange, TimeSlot
from ..domain.slot_calculator import SlotCalculator, find_overlapping_booking, fits_window
from ..domain.timeutils import start_of_day, to_local
from .business_hours import BusinessHoursResolver
from .store import BookingStoreProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityVerdict:
    """Why a staff member is or is not free for a candidate interval."""
    available: bool
    window: Optional[OpeningWindow] = None
    conflicting_booking: Optional[Booking] = None

    @property
    def outside_hours(self) -> bool:
        return not self.available and self.conflicting_booking is None


class AvailabilityChecker:
    """
    Decides whether one staff member can take a candidate interval.

    Steps:
    1. Resolve business hours for the day (closed means unavailable)
    2. Require the interval to lie inside opening hours
    3. Reject any overlap with the staff member's existing bookings
    """

    def __init__(self, store: BookingStoreProtocol, resolver: BusinessHoursResolver) -> None:
        self._store = store
        self._resolver = resolver

    @property
    def resolver(self) -> BusinessHoursResolver:
        return self._resolver

    def staff_bookings_for_day(
        self,
        store_id: str,
        staff_id: str,
        day: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Fetch one staff member's non-cancelled bookings overlapping a calendar day."""
        day_start = start_of_day(day, self._resolver.timezone)
        return self._store.get_staff_bookings(
            store_id,
            staff_id,
            day_start,
            day_start.add(days=1),
            exclude_booking_id=exclude_booking_id,
        )

    def check(
        self,
        store_id: str,
        staff_id: str,
        candidate: TimeRange,
        bookings: Optional[Sequence[Booking]] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityVerdict:
        """
        Check one staff member against a candidate interval.

        Args:
            store_id: Store the staff member belongs to
            staff_id: Staff member to check
            candidate: Requested interval
            bookings: That staff's bookings for the day; fetched when omitted
            exclude_booking_id: Booking to ignore (reschedule of itself)
        """
        timezone = self._resolver.timezone
        candidate = TimeRange(
            start=to_local(candidate.start, timezone),
            end=to_local(candidate.end, timezone),
        )

        window = self._resolver.resolve(store_id, candidate.start)
        if window is None:
            return AvailabilityVerdict(available=False)

        opening = window.on(candidate.start, timezone)
        if not fits_window(candidate, opening):
            return AvailabilityVerdict(available=False, window=window)

        if bookings is None:
            bookings = self.staff_bookings_for_day(
                store_id, staff_id, candidate.start, exclude_booking_id
            )

        conflicting = find_overlapping_booking(candidate, bookings, exclude_booking_id)
        if conflicting is not None:
            logger.debug(
                "Staff %s busy for %s (booking %s)", staff_id, candidate, conflicting.id
            )
            return AvailabilityVerdict(
                available=False, window=window, conflicting_booking=conflicting
            )

        return AvailabilityVerdict(available=True, window=window)

    def is_available(
        self,
        store_id: str,
        staff_id: str,
        candidate: TimeRange,
        bookings: Optional[Sequence[Booking]] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return self.check(
            store_id, staff_id, candidate, bookings, exclude_booking_id
        ).available


class AvailabilityService:
    """
    Builds the per-day slot listing shown on booking calendars.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        checker: AvailabilityChecker,
        slot_calculator: SlotCalculator,
    ) -> None:
        self._store = store
        self._checker = checker
        self._slot_calculator = slot_calculator

    def find_available_slots(
        self,
        store_id: str,
        day: date,
        service_id: str,
        staff_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[TimeSlot]:
        """
        List every slot of the day for the store's active staff.

        Returns an empty list when the service is unknown or inactive, the
        store is closed, or the requested staff member is not active.
        """
        service = self._store.get_service(store_id, service_id)
        if service is None or not service.is_active:
            logger.info("Service %s not bookable in store %s", service_id, store_id)
            return []

        resolver = self._checker.resolver
        window = resolver.resolve(store_id, day)
        if window is None:
            return []

        roster = [
            staff for staff in self._store.get_active_staff(store_id)
            if staff_id is None or staff.id == staff_id
        ]
        roster.sort(key=lambda staff: staff.roster_key())
        if not roster:
            return []

        bookings_by_staff: Dict[str, List[Booking]] = {
            staff.id: self._checker.staff_bookings_for_day(store_id, staff.id, day)
            for staff in roster
        }

        slots = self._slot_calculator.build_day_slots(
            day=start_of_day(day, resolver.timezone),
            window=window,
            duration_minutes=service.duration_minutes,
            roster=roster,
            bookings_by_staff=bookings_by_staff,
            timezone=resolver.timezone,
        )

        if limit is not None:
            return slots[:limit]
        return slots

    def is_time_slot_available(self, store_id: str, staff_id: str, time_range: TimeRange) -> bool:
        """Standalone check for a single staff member and interval."""
        return self._checker.is_available(store_id, staff_id, time_range)
