"""
In-memory storage backend for the booking engine.

Used by the CLI and the test-suite. It can be seeded from a YAML data file
so the engine can be exercised without a database. Check-then-write
sequences are serialised with one lock per (store, staff) pair.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import pendulum
import yaml
from pendulum import DateTime

from ..domain.exceptions import StorageError, ValidationError
from ..domain.models import (
    Booking,
    BookingStatus,
    BusinessHours,
    ContactType,
    Service,
    Staff,
)
from ..domain.timeutils import intervals_overlap, truncate_to_minute
from ..domain.validation import validate_business_hours

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """
    Dictionary-backed implementation of ``BookingStoreProtocol``.
    """

    def __init__(self) -> None:
        self._hours: Dict[Tuple[str, int], BusinessHours] = {}
        self._staff: Dict[Tuple[str, str], Staff] = {}
        self._services: Dict[Tuple[str, str], Service] = {}
        self._bookings: Dict[str, Booking] = {}
        self._store_names: Dict[str, str] = {}

        self._data_lock = threading.RLock()
        self._locks_guard = threading.Lock()
        self._staff_locks: Dict[Tuple[str, str], threading.RLock] = {}

    # -- seeding ---------------------------------------------------------

    def add_store(self, store_id: str, name: str = "") -> None:
        with self._data_lock:
            self._store_names[store_id] = name or store_id

    def add_business_hours(self, hours: BusinessHours) -> BusinessHours:
        with self._data_lock:
            self._store_names.setdefault(hours.store_id, hours.store_id)
            self._hours[(hours.store_id, hours.day_of_week)] = hours
        return hours

    def add_staff(self, staff: Staff) -> Staff:
        with self._data_lock:
            self._store_names.setdefault(staff.store_id, staff.store_id)
            self._staff[(staff.store_id, staff.id)] = staff
        return staff

    def add_service(self, service: Service) -> Service:
        with self._data_lock:
            self._store_names.setdefault(service.store_id, service.store_id)
            self._services[(service.store_id, service.id)] = service
        return service

    def store_ids(self) -> List[str]:
        with self._data_lock:
            return list(self._store_names)

    def store_name(self, store_id: str) -> Optional[str]:
        return self._store_names.get(store_id)

    def list_services(self, store_id: str) -> List[Service]:
        with self._data_lock:
            return [service for (sid, _), service in self._services.items() if sid == store_id]

    def list_staff(self, store_id: str) -> List[Staff]:
        with self._data_lock:
            return [staff for (sid, _), staff in self._staff.items() if sid == store_id]

    # -- protocol --------------------------------------------------------

    def get_business_hours(self, store_id: str, weekday: int) -> Optional[BusinessHours]:
        return self._hours.get((store_id, weekday))

    def list_business_hours(self, store_id: str) -> List[BusinessHours]:
        with self._data_lock:
            hours = [h for (sid, _), h in self._hours.items() if sid == store_id]
        return sorted(hours, key=lambda h: h.day_of_week)

    def replace_business_hours(
        self, store_id: str, hours: Sequence[BusinessHours]
    ) -> List[BusinessHours]:
        with self._data_lock:
            for key in [key for key in self._hours if key[0] == store_id]:
                del self._hours[key]
            for entry in hours:
                self._hours[(store_id, entry.day_of_week)] = entry
        return self.list_business_hours(store_id)

    def get_service(self, store_id: str, service_id: str) -> Optional[Service]:
        return self._services.get((store_id, service_id))

    def get_staff(self, store_id: str, staff_id: str) -> Optional[Staff]:
        return self._staff.get((store_id, staff_id))

    def get_active_staff(self, store_id: str) -> List[Staff]:
        return [staff for staff in self.list_staff(store_id) if staff.is_active]

    def get_staff_bookings(
        self,
        store_id: str,
        staff_id: str,
        start: DateTime,
        end: DateTime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        with self._data_lock:
            bookings = list(self._bookings.values())

        return [
            booking for booking in bookings
            if booking.store_id == store_id
            and booking.staff_id == staff_id
            and not booking.is_cancelled
            and booking.id != exclude_booking_id
            and intervals_overlap(booking.start_time, booking.end_time, start, end)
        ]

    def list_store_bookings(self, store_id: str, start: DateTime, end: DateTime) -> List[Booking]:
        with self._data_lock:
            bookings = list(self._bookings.values())

        return [
            booking for booking in bookings
            if booking.store_id == store_id and start <= booking.start_time < end
        ]

    def find_bookings_by_contact(
        self, customer_contact: str, store_id: Optional[str] = None
    ) -> List[Booking]:
        with self._data_lock:
            bookings = list(self._bookings.values())

        return [
            booking for booking in bookings
            if booking.customer_contact == customer_contact
            and (store_id is None or booking.store_id == store_id)
        ]

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def insert_booking(self, booking: Booking) -> Booking:
        if booking.id is None:
            booking = booking.with_changes(id=f"bk_{uuid.uuid4().hex[:12]}")

        with self._data_lock:
            if booking.id in self._bookings:
                raise StorageError(f"Booking {booking.id} already exists")
            self._bookings[booking.id] = booking
        return booking

    def update_booking(self, booking: Booking) -> Booking:
        with self._data_lock:
            if booking.id not in self._bookings:
                raise StorageError(f"Booking {booking.id} does not exist")
            self._bookings[booking.id] = booking
        return booking

    @contextmanager
    def transaction(self, store_id: str, staff_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._staff_locks.setdefault((store_id, staff_id), threading.RLock())
        with lock:
            yield

    # -- YAML seed data --------------------------------------------------

    @classmethod
    def from_yaml(cls, data_path: Path, timezone: str) -> "InMemoryBookingStore":
        """
        Build a store from a YAML seed file.

        Expected layout::

            stores:
              - id: downtown
                name: Downtown Barbers
                business_hours:
                  - {day_of_week: 1, open_time: "09:00", close_time: "18:00"}
                staff:
                  - {id: alice, name: Alice, rank: 1}
                services:
                  - {id: cut, name: Haircut, duration_minutes: 30}
                bookings:
                  - {id: b1, staff_id: alice, service_id: cut, start: "2024-11-25 10:00"}

        Entries that cannot be parsed, business hours that fail validation
        (or repeat a weekday) and bookings that overlap an already loaded
        booking of the same staff member are skipped with a warning.

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the file is not valid YAML or has no ``stores`` list
        """
        if not data_path.exists():
            raise FileNotFoundError(f"Data file not found: {data_path}")

        try:
            with open(data_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {data_path}: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("stores", []), list):
            raise ValueError("Data file must contain a 'stores' list at the root level.")

        store = cls()
        for store_data in data.get("stores", []):
            store._load_store(store_data, timezone)
        return store

    def _load_store(self, store_data: Dict[str, Any], timezone: str) -> None:
        store_id = str(store_data["id"])
        self.add_store(store_id, store_data.get("name", ""))

        for entry in store_data.get("business_hours", []):
            try:
                self._load_business_hours(store_id, entry)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning("Skipping business hours entry %r: %s", entry, e)

        for entry in store_data.get("staff", []):
            try:
                created_at = entry.get("created_at")
                self.add_staff(
                    Staff(
                        id=str(entry["id"]),
                        store_id=store_id,
                        name=str(entry.get("name", entry["id"])),
                        is_active=bool(entry.get("is_active", True)),
                        rank=int(entry.get("rank", 0)),
                        created_at=_parse_datetime(created_at, timezone) if created_at else None,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping staff entry %r: %s", entry, e)

        for entry in store_data.get("services", []):
            try:
                self.add_service(
                    Service(
                        id=str(entry["id"]),
                        store_id=store_id,
                        name=str(entry.get("name", entry["id"])),
                        duration_minutes=int(entry["duration_minutes"]),
                        is_active=bool(entry.get("is_active", True)),
                        price=float(entry.get("price", 0)),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping service entry %r: %s", entry, e)

        for entry in store_data.get("bookings", []):
            try:
                booking = self._parse_booking(store_id, entry, timezone)
                self._reject_overlap(booking)
                self.insert_booking(booking)
            except (KeyError, TypeError, ValueError, StorageError) as e:
                logger.warning("Skipping booking entry %r: %s", entry, e)

    def _load_business_hours(self, store_id: str, entry: Dict[str, Any]) -> None:
        """Validate one seed weekday with the same rules as the admin service."""
        raw = {
            "day_of_week": entry["day_of_week"],
            "open_time": str(entry.get("open_time", "00:00")),
            "close_time": str(entry.get("close_time", "00:00")),
            "is_closed": bool(entry.get("is_closed", False)),
        }
        result = validate_business_hours(store_id, [raw])
        if not result.is_ok:
            raise ValidationError(result.error)

        hours = result.value[0]
        if self.get_business_hours(store_id, hours.day_of_week) is not None:
            raise ValueError(f"Duplicate business hours for day {hours.day_of_week}")
        self.add_business_hours(hours)

    def _reject_overlap(self, booking: Booking) -> None:
        if booking.is_cancelled:
            return

        clashing = self.get_staff_bookings(
            booking.store_id, booking.staff_id, booking.start_time, booking.end_time
        )
        if clashing:
            raise ValueError(
                f"overlaps booking {clashing[0].id} of staff {booking.staff_id}"
            )

    def _parse_booking(self, store_id: str, entry: Dict[str, Any], timezone: str) -> Booking:
        start = _parse_datetime(entry["start"], timezone)

        if entry.get("end"):
            end = _parse_datetime(entry["end"], timezone)
        else:
            service = self.get_service(store_id, str(entry["service_id"]))
            if service is None:
                raise ValueError(f"unknown service {entry['service_id']!r}")
            end = start.add(minutes=service.duration_minutes)

        if end <= start:
            raise ValueError("booking must end after it starts")

        return Booking(
            id=str(entry["id"]) if entry.get("id") else None,
            store_id=store_id,
            staff_id=str(entry["staff_id"]),
            service_id=str(entry["service_id"]),
            start_time=start,
            end_time=end,
            status=BookingStatus(entry.get("status", BookingStatus.CONFIRMED.value)),
            customer_name=str(entry.get("customer_name", "")),
            customer_contact=str(entry.get("customer_contact", "")),
            contact_type=ContactType(entry.get("contact_type", ContactType.LINE.value)),
            notes=entry.get("notes"),
        )


def _parse_datetime(value: Any, timezone: str) -> DateTime:
    """Parse a seed-file timestamp in the store's timezone, truncated to the minute."""
    parsed = pendulum.parse(str(value), tz=timezone)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return truncate_to_minute(parsed)
