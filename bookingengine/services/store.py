"""
Storage protocol consumed by the booking services.

The engine never talks to a database directly. Any backend (SQL, document
store, the in-memory adapter used by the CLI and tests) plugs in by
implementing this protocol.
"""

from __future__ import annotations

from typing import ContextManager, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.models import Booking, BusinessHours, Service, Staff


class BookingStoreProtocol(Protocol):
    """
    Protocol describing the storage behaviour needed by the services.

    Implementations raise ``StorageError`` when the backend is unreachable.
    """

    def get_business_hours(self, store_id: str, weekday: int) -> Optional[BusinessHours]:
        """Return the hours for one weekday (0=Sunday), or None if unset."""

    def list_business_hours(self, store_id: str) -> List[BusinessHours]:
        """Return all configured weekdays ordered by weekday."""

    def replace_business_hours(
        self, store_id: str, hours: Sequence[BusinessHours]
    ) -> List[BusinessHours]:
        """Atomically replace the store's full week of hours."""

    def get_service(self, store_id: str, service_id: str) -> Optional[Service]:
        """Return a service of the store, or None."""

    def get_staff(self, store_id: str, staff_id: str) -> Optional[Staff]:
        """Return a staff member of the store, or None."""

    def get_active_staff(self, store_id: str) -> List[Staff]:
        """Return the store's active staff."""

    def get_staff_bookings(
        self,
        store_id: str,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Return non-cancelled bookings of one staff member overlapping [start, end)."""

    def list_store_bookings(self, store_id: str, start: DateTime, end: DateTime) -> List[Booking]:
        """Return every booking of the store, any status, starting in [start, end)."""

    def find_bookings_by_contact(
        self, customer_contact: str, store_id: Optional[str] = None
    ) -> List[Booking]:
        """Return every booking made under a customer contact, optionally in one store."""

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return a booking by id, or None."""

    def insert_booking(self, booking: Booking) -> Booking:
        """Persist a new booking, assigning an id when missing."""

    def update_booking(self, booking: Booking) -> Booking:
        """Persist changes to an existing booking."""

    def transaction(self, store_id: str, staff_id: str) -> ContextManager[None]:
        """Serialise check-then-write sequences for one staff member."""
