"""
Core slot arithmetic for the availability engine.

This is pure domain logic without any external dependencies (no storage,
no I/O): it enumerates candidate start times inside a store's opening
window and tests candidate intervals against existing bookings.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from pendulum import DateTime

from .models import Booking, OpeningWindow, Staff, TimeRange, TimeSlot
from .timeutils import intervals_overlap, is_within

DEFAULT_SLOT_STEP_MINUTES = 30


def iter_slot_starts(
    window: OpeningWindow,
    duration_minutes: int,
    step_minutes: int = DEFAULT_SLOT_STEP_MINUTES,
) -> Iterator[int]:
    """
    Yield candidate start minutes ``open + k*step`` whose service fits before closing.

    Example:
    Window: 09:00 - 11:00, duration 45, step 30
    Result: [09:00, 09:30, 10:00]

    A duration longer than the window yields nothing.
    """
    if step_minutes <= 0:
        raise ValueError(f"Slot step must be positive, got {step_minutes}")
    if duration_minutes <= 0:
        return

    start = window.open_minutes
    while start + duration_minutes <= window.close_minutes:
        yield start
        start += step_minutes


def fits_window(candidate: TimeRange, opening: TimeRange) -> bool:
    """Both ends of the candidate must fall within opening hours (inclusive)."""
    return (
        is_within(candidate.start, opening.start, opening.end)
        and is_within(candidate.end, opening.start, opening.end)
    )


def find_overlapping_booking(
    candidate: TimeRange,
    bookings: Iterable[Booking],
    exclude_booking_id: Optional[str] = None,
) -> Booking | None:
    """
    Return the earliest non-cancelled booking overlapping the candidate.

    The booking with id ``exclude_booking_id`` is ignored so a booking being
    rescheduled never conflicts with itself.
    """
    overlapping = [
        booking for booking in bookings
        if not booking.is_cancelled
        and (exclude_booking_id is None or booking.id != exclude_booking_id)
        and intervals_overlap(candidate.start, candidate.end, booking.start_time, booking.end_time)
    ]

    if not overlapping:
        return None

    return min(overlapping, key=lambda booking: booking.start_time)


class SlotCalculator:
    """
    Lays out bookable slots for one day and marks them free or taken.

    Algorithm:
    1. Anchor the store's opening window to the requested day
    2. Enumerate start times on a fixed step from opening time
    3. For each staff member, test every slot against that staff's bookings
    4. Return slots ordered by start time, then roster order
    """

    def __init__(self, step_minutes: int = DEFAULT_SLOT_STEP_MINUTES):
        if step_minutes <= 0:
            raise ValueError(f"Slot step must be positive, got {step_minutes}")
        self.step_minutes = step_minutes

    def candidate_ranges(
        self,
        day: DateTime,
        window: OpeningWindow,
        duration_minutes: int,
        timezone: str,
    ) -> List[TimeRange]:
        """Anchor every enumerated start time to ``day``."""
        opening = window.on(day, timezone)
        midnight = opening.start.subtract(minutes=window.open_minutes)

        return [
            TimeRange.from_duration(midnight.add(minutes=start), duration_minutes)
            for start in iter_slot_starts(window, duration_minutes, self.step_minutes)
        ]

    def build_day_slots(
        self,
        day: DateTime,
        window: OpeningWindow,
        duration_minutes: int,
        roster: Sequence[Staff],
        bookings_by_staff: Dict[str, List[Booking]],
        timezone: str,
    ) -> List[TimeSlot]:
        """
        Build the slot grid for every staff member in ``roster``.

        Args:
            day: Calendar day to lay out
            window: Opening window for that day
            duration_minutes: Service duration
            roster: Staff members in roster order
            bookings_by_staff: Existing bookings for the day per staff id
            timezone: Store-local timezone

        Returns:
            List of TimeSlot objects, sorted by start time then roster order
        """
        ranges = self.candidate_ranges(day, window, duration_minutes, timezone)
        slots: List[TimeSlot] = []

        for staff in roster:
            staff_bookings = bookings_by_staff.get(staff.id, [])
            for time_range in ranges:
                slots.append(
                    TimeSlot(
                        time_range=time_range,
                        staff_id=staff.id,
                        staff_name=staff.name,
                        is_available=find_overlapping_booking(time_range, staff_bookings) is None,
                    )
                )

        order = {staff.id: position for position, staff in enumerate(roster)}
        return sorted(slots, key=lambda slot: (slot.start_time, order[slot.staff_id]))
