"""
Booking lifecycle: create, reschedule, cancel and complete, plus the
read views over stored bookings.

Every write re-runs the conflict check inside ``store.transaction`` for the
staff member concerned, so two concurrent requests for the same staff and
time cannot both observe a free slot and both commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, List, Optional

from pendulum import DateTime

from ..domain.models import (
    Booking,
    BookingRequest,
    BookingStatus,
    ConflictResult,
    ConflictType,
    ContactType,
    StaffCandidate,
    minute_now,
)
from ..domain.timeutils import start_of_day, to_local, truncate_to_minute
from ..domain.validation import validate_booking_time
from .conflict_detector import ConflictDetector
from .store import BookingStoreProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingOutcome:
    """Result of a booking write; failures carry a reason and, where relevant, the conflict."""
    success: bool
    booking: Optional[Booking] = None
    error: Optional[str] = None
    conflict: Optional[ConflictResult] = None

    @property
    def alternatives(self) -> List[StaffCandidate]:
        if self.conflict is None:
            return []
        return list(self.conflict.alternatives)

    @classmethod
    def succeeded(cls, booking: Booking) -> "BookingOutcome":
        return cls(success=True, booking=booking)

    @classmethod
    def failed(cls, error: str, conflict: Optional[ConflictResult] = None) -> "BookingOutcome":
        return cls(success=False, error=error, conflict=conflict)

    @classmethod
    def from_conflict(cls, conflict: ConflictResult) -> "BookingOutcome":
        return cls.failed(conflict.detail, conflict)


class BookingService:
    """
    Creates and mutates bookings on top of the conflict detector.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        detector: ConflictDetector,
        timezone: str,
        min_advance_minutes: int = 30,
        max_advance_days: int = 90,
        clock: Optional[Callable[[], DateTime]] = None,
        assignment_attempts: int = 2,
    ) -> None:
        if assignment_attempts < 1:
            raise ValueError(f"assignment_attempts must be at least 1, got {assignment_attempts}")
        self._store = store
        self._detector = detector
        self._timezone = timezone
        self._assignment_attempts = assignment_attempts
        self._min_advance_minutes = min_advance_minutes
        self._max_advance_days = max_advance_days
        self._clock = clock or (lambda: minute_now(timezone))

    def create_booking(
        self,
        request: BookingRequest,
        customer_name: str,
        customer_contact: str,
        contact_type: ContactType = ContactType.LINE,
        notes: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Create a confirmed booking, auto-assigning staff when none was requested.

        An auto-assigned staff member can be taken by a concurrent request
        between assignment and the locked re-check; the request is then
        reassigned, up to ``assignment_attempts`` times.

        Returns:
            BookingOutcome with the stored booking, or the failure reason and
            alternatives
        """
        request = replace(
            request,
            start_time=truncate_to_minute(to_local(request.start_time, self._timezone)),
        )
        timing = self._validate_timing(request.start_time)
        if timing is not None:
            return timing

        def write(staff_id: str) -> BookingOutcome:
            return self._insert_checked(
                replace(request, staff_id=staff_id),
                customer_name,
                customer_contact,
                contact_type,
                notes,
            )

        if request.staff_id is not None:
            return write(request.staff_id)

        lost: Optional[ConflictResult] = None
        for _ in range(self._assignment_attempts):
            preliminary = self._detector.check_conflicts(request)
            if preliminary.has_conflict:
                return BookingOutcome.from_conflict(preliminary)

            outcome = write(preliminary.assigned_staff_id)
            if outcome.success or outcome.conflict is None:
                return outcome
            if outcome.conflict.conflict_type != ConflictType.STAFF_UNAVAILABLE:
                return outcome

            logger.info(
                "Staff %s was taken before the booking at %s could be written",
                preliminary.assigned_staff_id, request.start_time,
            )
            lost = outcome.conflict

        return BookingOutcome.from_conflict(
            ConflictResult.conflict(
                ConflictType.TIME_OVERLAP,
                "No staff available for this time",
                lost.alternatives if lost is not None else None,
            )
        )

    def _insert_checked(
        self,
        request: BookingRequest,
        customer_name: str,
        customer_contact: str,
        contact_type: ContactType,
        notes: Optional[str],
    ) -> BookingOutcome:
        """Re-check and insert under the staff member's lock."""
        with self._store.transaction(request.store_id, request.staff_id):
            result = self._detector.check_conflicts(request)
            if result.has_conflict:
                return BookingOutcome.from_conflict(result)

            booking = self._store.insert_booking(
                Booking(
                    store_id=request.store_id,
                    staff_id=request.staff_id,
                    service_id=request.service_id,
                    start_time=request.start_time,
                    end_time=request.start_time.add(minutes=result.service_duration_minutes),
                    status=BookingStatus.CONFIRMED,
                    customer_name=customer_name,
                    customer_contact=customer_contact,
                    contact_type=contact_type,
                    notes=notes,
                )
            )

        logger.info(
            "Booking %s created for staff %s at %s",
            booking.id, booking.staff_id, booking.start_time,
        )
        return BookingOutcome.succeeded(booking)

    def reschedule_booking(
        self,
        booking_id: str,
        start_time: Optional[DateTime] = None,
        staff_id: Optional[str] = None,
        service_id: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Move a confirmed booking to a new time, staff member or service.

        The booking itself is excluded from the overlap test, so keeping
        its current slot never conflicts.
        """
        existing = self._store.get_booking(booking_id)
        if existing is None:
            return BookingOutcome.failed("Booking not found")
        if existing.status != BookingStatus.CONFIRMED:
            return BookingOutcome.failed(f"Cannot reschedule a {existing.status.value} booking")

        if start_time is not None:
            start_time = truncate_to_minute(to_local(start_time, self._timezone))
            timing = self._validate_timing(start_time)
            if timing is not None:
                return timing

        built = BookingRequest.build(
            store_id=existing.store_id,
            service_id=service_id or existing.service_id,
            start_time=start_time or existing.start_time,
            staff_id=staff_id or existing.staff_id,
            exclude_booking_id=existing.id,
            timezone=self._timezone,
        )
        if not built.is_ok:
            return BookingOutcome.failed(built.error)
        request = built.value

        with self._store.transaction(request.store_id, request.staff_id):
            result = self._detector.check_conflicts(request)
            if result.has_conflict:
                return BookingOutcome.from_conflict(result)

            updated = self._store.update_booking(
                existing.with_changes(
                    staff_id=request.staff_id,
                    service_id=request.service_id,
                    start_time=request.start_time,
                    end_time=request.start_time.add(minutes=result.service_duration_minutes),
                )
            )

        logger.info("Booking %s rescheduled to %s", updated.id, updated.start_time)
        return BookingOutcome.succeeded(updated)

    def cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> BookingOutcome:
        """Soft-delete a booking by moving it to ``cancelled``."""
        existing = self._store.get_booking(booking_id)
        if existing is None:
            return BookingOutcome.failed("Booking not found")
        if existing.is_cancelled:
            return BookingOutcome.failed("Booking is already cancelled")

        notes = existing.notes
        if reason:
            line = f"Cancellation reason: {reason}"
            notes = f"{notes}\n{line}" if notes else line

        with self._store.transaction(existing.store_id, existing.staff_id):
            cancelled = self._store.update_booking(
                existing.with_changes(status=BookingStatus.CANCELLED, notes=notes)
            )

        logger.info("Booking %s cancelled", booking_id)
        return BookingOutcome.succeeded(cancelled)

    def complete_booking(self, booking_id: str) -> BookingOutcome:
        existing = self._store.get_booking(booking_id)
        if existing is None:
            return BookingOutcome.failed("Booking not found")
        if existing.status != BookingStatus.CONFIRMED:
            return BookingOutcome.failed(f"Cannot complete a {existing.status.value} booking")

        with self._store.transaction(existing.store_id, existing.staff_id):
            completed = self._store.update_booking(
                existing.with_changes(status=BookingStatus.COMPLETED)
            )
        return BookingOutcome.succeeded(completed)

    def get_staff_calendar(
        self,
        store_id: str,
        staff_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Booking]:
        """Non-cancelled bookings of one staff member in [start, end), earliest first."""
        bookings = self._store.get_staff_bookings(store_id, staff_id, start, end)
        return sorted(bookings, key=lambda booking: booking.start_time)

    def get_customer_bookings(
        self,
        customer_contact: str,
        store_id: Optional[str] = None,
    ) -> List[Booking]:
        """Every booking made under a customer contact, most recent first."""
        bookings = self._store.find_bookings_by_contact(customer_contact, store_id)
        return sorted(bookings, key=lambda booking: booking.start_time, reverse=True)

    def get_store_day_overview(self, store_id: str, day: date) -> List[Booking]:
        """
        All bookings of a store starting on one local calendar day.

        Includes cancelled and completed bookings; ordered by start time,
        then staff id.
        """
        day_start = start_of_day(day, self._timezone)
        bookings = self._store.list_store_bookings(store_id, day_start, day_start.add(days=1))
        return sorted(bookings, key=lambda booking: (booking.start_time, booking.staff_id))

    def _validate_timing(self, start_time: DateTime) -> Optional[BookingOutcome]:
        result = validate_booking_time(
            start_time,
            self._clock(),
            self._min_advance_minutes,
            self._max_advance_days,
        )
        if result.is_ok:
            return None
        return BookingOutcome.failed(result.error)
