"""
Tests for the booking lifecycle service.
"""

import threading
from contextlib import contextmanager
from datetime import datetime

import pendulum
import pytest

from bookingengine.adapters.memory_store import InMemoryBookingStore
from bookingengine.domain.models import (
    Booking,
    BookingRequest,
    BookingStatus,
    ConflictType,
    ContactType,
)
from bookingengine.services.booking_service import BookingService
from bookingengine.services.engine import BookingEngine

TZ = "Asia/Taipei"
STORE = "downtown"


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _request(start: str, service_id="cut", staff_id=None):
    return BookingRequest.build(
        store_id=STORE,
        service_id=service_id,
        start_time=_at(start),
        staff_id=staff_id,
    ).value


def _create(engine, start, **kwargs):
    return engine.bookings.create_booking(
        _request(start, **kwargs), customer_name="Chen", customer_contact="line-chen"
    )


class TestCreateBooking:
    """Tests for BookingService.create_booking."""

    def test_creates_confirmed_booking(self, engine, store):
        outcome = engine.bookings.create_booking(
            _request("2024-11-25 10:00", service_id="color", staff_id="bob"),
            customer_name="Chen",
            customer_contact="chen@example.com",
            contact_type=ContactType.EMAIL,
            notes="Prefers short sides",
        )

        assert outcome.success
        booking = outcome.booking
        assert booking.id is not None
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.end_time == _at("2024-11-25 11:30")
        assert booking.contact_type == ContactType.EMAIL
        assert store.get_booking(booking.id) == booking

    def test_auto_assigns_first_free_staff(self, engine, book):
        book("alice", "2024-11-25 14:00", 30)

        outcome = _create(engine, "2024-11-25 14:00")

        assert outcome.success
        assert outcome.booking.staff_id == "bob"

    def test_conflict_returns_alternatives(self, engine, book):
        book("alice", "2024-11-25 10:00", 30)

        outcome = _create(engine, "2024-11-25 10:00", staff_id="alice")

        assert not outcome.success
        assert outcome.error == "Alice already has a booking at 10:00"
        assert outcome.conflict.conflict_type == ConflictType.STAFF_UNAVAILABLE
        assert len(outcome.alternatives) == 5

    def test_second_booking_for_same_slot_rejected(self, engine):
        assert _create(engine, "2024-11-25 10:00", staff_id="alice").success

        assert not _create(engine, "2024-11-25 10:15", staff_id="alice").success

    def test_too_soon(self, engine):
        outcome = _create(engine, "2024-11-20 08:15")

        assert not outcome.success
        assert outcome.error == "Bookings must be made at least 30 minutes in advance"
        assert outcome.conflict is None

    def test_too_far_ahead(self, engine):
        outcome = _create(engine, "2025-03-01 10:00")

        assert not outcome.success
        assert outcome.error == "Bookings cannot be made more than 90 days in advance"

    def test_closed_day(self, engine):
        outcome = _create(engine, "2024-11-24 11:00")

        assert not outcome.success
        assert outcome.conflict.conflict_type == ConflictType.OUTSIDE_BUSINESS_HOURS


class TestConcurrentCreation:
    """Concurrent requests for the same staff and time."""

    def test_only_one_of_two_racing_requests_wins(self, engine):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            outcome = _create(engine, "2024-11-25 10:00", staff_id="alice")
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcome.success for outcome in outcomes) == [False, True]

    def test_no_double_booking_under_auto_assignment(self, engine):
        barrier = threading.Barrier(6)

        def attempt():
            barrier.wait()
            _create(engine, "2024-11-25 10:00")

        threads = [threading.Thread(target=attempt) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for staff_id in ("alice", "bob", "carol"):
            calendar = engine.bookings.get_staff_calendar(
                STORE, staff_id, _at("2024-11-25 00:00"), _at("2024-11-26 00:00")
            )
            assert len(calendar) <= 1


class TestReschedule:
    """Tests for BookingService.reschedule_booking."""

    def test_same_time_does_not_conflict_with_itself(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.reschedule_booking(existing.id, start_time=_at("2024-11-25 10:00"))

        assert outcome.success
        assert outcome.booking.start_time == _at("2024-11-25 10:00")

    def test_move_to_free_time(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.reschedule_booking(existing.id, start_time=_at("2024-11-25 15:00"))

        assert outcome.success
        assert outcome.booking.id == existing.id
        assert outcome.booking.end_time == _at("2024-11-25 15:30")

    def test_move_onto_busy_time(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)
        book("alice", "2024-11-25 15:00", 30)

        outcome = engine.bookings.reschedule_booking(existing.id, start_time=_at("2024-11-25 15:00"))

        assert not outcome.success
        assert outcome.conflict.conflict_type == ConflictType.STAFF_UNAVAILABLE

    def test_change_staff(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.reschedule_booking(existing.id, staff_id="carol")

        assert outcome.success
        assert outcome.booking.staff_id == "carol"

    def test_change_service_recomputes_end(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.reschedule_booking(existing.id, service_id="color")

        assert outcome.success
        assert outcome.booking.end_time == _at("2024-11-25 11:30")

    def test_unknown_booking(self, engine):
        assert engine.bookings.reschedule_booking("nope").error == "Booking not found"

    def test_cancelled_booking(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30, status=BookingStatus.CANCELLED)

        outcome = engine.bookings.reschedule_booking(existing.id, start_time=_at("2024-11-25 11:00"))

        assert outcome.error == "Cannot reschedule a cancelled booking"


class TestCancelAndComplete:
    """Tests for status transitions."""

    def test_cancel_frees_the_slot(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.cancel_booking(existing.id, reason="Customer called")

        assert outcome.success
        assert outcome.booking.status == BookingStatus.CANCELLED
        assert outcome.booking.notes == "Cancellation reason: Customer called"
        assert _create(engine, "2024-11-25 10:00", staff_id="alice").success

    def test_cancel_reason_appended_to_notes(self, engine, store, book):
        existing = book("alice", "2024-11-25 10:00", 30)
        store.update_booking(existing.with_changes(notes="VIP"))

        outcome = engine.bookings.cancel_booking(existing.id, reason="Sick")

        assert outcome.booking.notes == "VIP\nCancellation reason: Sick"

    def test_cancel_twice(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)
        engine.bookings.cancel_booking(existing.id)

        assert engine.bookings.cancel_booking(existing.id).error == "Booking is already cancelled"

    def test_cancel_unknown(self, engine):
        assert engine.bookings.cancel_booking("nope").error == "Booking not found"

    def test_complete(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.complete_booking(existing.id)

        assert outcome.success
        assert outcome.booking.status == BookingStatus.COMPLETED
        assert engine.bookings.complete_booking(existing.id).error == "Cannot complete a completed booking"


class TestStaffCalendar:
    """Tests for BookingService.get_staff_calendar."""

    def test_sorted_and_excludes_cancelled(self, engine, book):
        book("alice", "2024-11-25 15:00", 30)
        book("alice", "2024-11-25 09:00", 30)
        book("alice", "2024-11-25 12:00", 30, status=BookingStatus.CANCELLED)
        book("bob", "2024-11-25 10:00", 30)

        calendar = engine.bookings.get_staff_calendar(
            STORE, "alice", _at("2024-11-25 00:00"), _at("2024-11-26 00:00")
        )

        assert [b.start_time.format("HH:mm") for b in calendar] == ["09:00", "15:00"]


class TestStoreClock:
    """Start times given in other timezones are stored on the local clock."""

    def test_utc_start_stored_as_local_time(self, engine):
        request = BookingRequest.build(
            store_id=STORE,
            service_id="cut",
            start_time=pendulum.datetime(2024, 11, 25, 2, 0, tz="UTC"),
            staff_id="alice",
        ).value

        outcome = engine.bookings.create_booking(request, customer_name="Chen", customer_contact="line-chen")

        assert outcome.success
        assert outcome.booking.start_time == _at("2024-11-25 10:00")
        assert outcome.booking.start_time.timezone_name == TZ
        assert outcome.booking.end_time == _at("2024-11-25 10:30")

    def test_utc_start_outside_local_hours(self, engine):
        # 17:00 UTC on Monday is 01:00 on Tuesday in Taipei
        request = BookingRequest.build(
            store_id=STORE,
            service_id="cut",
            start_time=pendulum.datetime(2024, 11, 25, 17, 0, tz="UTC"),
        ).value

        outcome = engine.bookings.create_booking(request, customer_name="Chen", customer_contact="line-chen")

        assert not outcome.success
        assert outcome.conflict.conflict_type == ConflictType.OUTSIDE_BUSINESS_HOURS

    def test_naive_start_is_local_wall_time(self, engine):
        request = BookingRequest.build(
            store_id=STORE, service_id="cut", start_time=datetime(2024, 11, 25, 10, 0)
        ).value

        outcome = engine.bookings.create_booking(request, customer_name="Chen", customer_contact="line-chen")

        assert outcome.success
        assert outcome.booking.start_time == _at("2024-11-25 10:00")

    def test_reschedule_with_utc_start(self, engine, book):
        existing = book("alice", "2024-11-25 10:00", 30)

        outcome = engine.bookings.reschedule_booking(
            existing.id, start_time=pendulum.datetime(2024, 11, 25, 6, 0, tz="UTC")
        )

        assert outcome.success
        assert outcome.booking.start_time == _at("2024-11-25 14:00")


class ContestedStore(InMemoryBookingStore):
    """Store where another client grabs a staff member's slot just before a locked write."""

    def __init__(self, intruders):
        super().__init__()
        self.intruders = dict(intruders)

    @contextmanager
    def transaction(self, store_id, staff_id):
        with super().transaction(store_id, staff_id):
            start = self.intruders.pop(staff_id, None)
            if start is not None:
                self.insert_booking(
                    Booking(
                        store_id=store_id,
                        staff_id=staff_id,
                        service_id="cut",
                        start_time=_at(start),
                        end_time=_at(start).add(minutes=30),
                        customer_name="Walk-in",
                    )
                )
            yield


def _contested_engine(store, intruders):
    contested = ContestedStore(intruders)
    contested.add_store(STORE, "Downtown Barbers")
    for hours in store.list_business_hours(STORE):
        contested.add_business_hours(hours)
    for staff in store.list_staff(STORE):
        contested.add_staff(staff)
    for service in store.list_services(STORE):
        contested.add_service(service)
    return BookingEngine.build(contested, TZ, clock=lambda: _at("2024-11-20 08:00"))


class TestAssignmentRace:
    """Auto-assigned requests whose staff member is taken before the write."""

    def test_reassigned_to_next_free_staff(self, store):
        engine = _contested_engine(store, {"alice": "2024-11-25 14:00"})

        outcome = _create(engine, "2024-11-25 14:00")

        assert outcome.success
        assert outcome.booking.staff_id == "bob"

    def test_reported_as_time_overlap_when_retries_run_out(self, store):
        engine = _contested_engine(store, {"alice": "2024-11-25 14:00", "bob": "2024-11-25 14:00"})

        outcome = _create(engine, "2024-11-25 14:00")

        assert not outcome.success
        assert outcome.conflict.conflict_type == ConflictType.TIME_OVERLAP
        assert outcome.error == "No staff available for this time"
        assert outcome.alternatives[0].staff_id == "carol"
        assert outcome.alternatives[0].start_time == _at("2024-11-25 14:00")

    def test_explicit_staff_is_not_reassigned(self, store):
        engine = _contested_engine(store, {"alice": "2024-11-25 14:00"})

        outcome = _create(engine, "2024-11-25 14:00", staff_id="alice")

        assert not outcome.success
        assert outcome.conflict.conflict_type == ConflictType.STAFF_UNAVAILABLE

    def test_attempts_must_be_positive(self, engine, store):
        with pytest.raises(ValueError, match="assignment_attempts"):
            BookingService(store, engine.detector, TZ, assignment_attempts=0)


class TestCustomerBookings:
    """Tests for BookingService.get_customer_bookings."""

    def test_most_recent_first_across_statuses(self, engine):
        first = _create(engine, "2024-11-25 10:00").booking
        second = _create(engine, "2024-11-27 15:00").booking
        engine.bookings.cancel_booking(first.id)
        _create(engine, "2024-11-26 11:00")
        engine.bookings.create_booking(
            _request("2024-11-26 12:00"), customer_name="Lin", customer_contact="line-lin"
        )

        bookings = engine.bookings.get_customer_bookings("line-chen")

        assert [b.start_time for b in bookings] == [
            _at("2024-11-27 15:00"),
            _at("2024-11-26 11:00"),
            _at("2024-11-25 10:00"),
        ]
        assert bookings[0].id == second.id
        assert bookings[2].status == BookingStatus.CANCELLED

    def test_filter_by_store(self, engine, store):
        _create(engine, "2024-11-25 10:00")
        store.insert_booking(
            Booking(
                store_id="uptown",
                staff_id="zoe",
                service_id="shave",
                start_time=_at("2024-11-25 10:00"),
                end_time=_at("2024-11-25 10:20"),
                customer_contact="line-chen",
            )
        )

        assert len(engine.bookings.get_customer_bookings("line-chen")) == 2
        downtown = engine.bookings.get_customer_bookings("line-chen", store_id=STORE)
        assert [b.store_id for b in downtown] == [STORE]

    def test_unknown_contact(self, engine):
        assert engine.bookings.get_customer_bookings("nobody") == []


class TestStoreDayOverview:
    """Tests for BookingService.get_store_day_overview."""

    def test_whole_day_sorted_by_time_then_staff(self, engine, book):
        book("carol", "2024-11-25 10:00", 30)
        book("alice", "2024-11-25 10:00", 30, status=BookingStatus.CANCELLED)
        book("bob", "2024-11-25 09:00", 30, status=BookingStatus.COMPLETED)
        book("alice", "2024-11-25 17:30", 30)
        book("alice", "2024-11-26 09:00", 30)

        overview = engine.bookings.get_store_day_overview(STORE, pendulum.date(2024, 11, 25))

        assert [(b.start_time.format("HH:mm"), b.staff_id) for b in overview] == [
            ("09:00", "bob"),
            ("10:00", "alice"),
            ("10:00", "carol"),
            ("17:30", "alice"),
        ]

    def test_other_stores_excluded(self, engine, store, book):
        book("alice", "2024-11-25 10:00", 30)
        store.insert_booking(
            Booking(
                store_id="uptown",
                staff_id="zoe",
                service_id="shave",
                start_time=_at("2024-11-25 11:00"),
                end_time=_at("2024-11-25 11:20"),
            )
        )

        overview = engine.bookings.get_store_day_overview(STORE, pendulum.date(2024, 11, 25))

        assert [b.staff_id for b in overview] == ["alice"]

    def test_empty_day(self, engine):
        assert engine.bookings.get_store_day_overview(STORE, pendulum.date(2024, 11, 24)) == []
