"""
Shared fixtures: a Taipei barbershop open Monday-Saturday 09:00-18:00.

2024-11-25 is a Monday and 2024-11-24 a Sunday (closed). The engine clock
is frozen at 2024-11-20 08:00 so advance-booking rules are deterministic.
"""

from typing import Callable, Optional

import pendulum
import pytest

from bookingengine.adapters.memory_store import InMemoryBookingStore
from bookingengine.domain.models import Booking, BookingStatus, BusinessHours, Service, Staff
from bookingengine.services.engine import BookingEngine

TZ = "Asia/Taipei"
STORE = "downtown"
NOW = "2024-11-20 08:00"


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


@pytest.fixture
def store() -> InMemoryBookingStore:
    memory = InMemoryBookingStore()
    memory.add_store(STORE, "Downtown Barbers")

    memory.add_business_hours(BusinessHours(STORE, 0, "00:00", "00:00", is_closed=True))
    for day in range(1, 7):
        memory.add_business_hours(BusinessHours(STORE, day, "09:00", "18:00"))

    # Inserted out of roster order on purpose
    memory.add_staff(Staff(id="carol", store_id=STORE, name="Carol", rank=3))
    memory.add_staff(Staff(id="alice", store_id=STORE, name="Alice", rank=1))
    memory.add_staff(Staff(id="dave", store_id=STORE, name="Dave", rank=0, is_active=False))
    memory.add_staff(Staff(id="bob", store_id=STORE, name="Bob", rank=2))

    memory.add_service(Service(id="cut", store_id=STORE, name="Haircut", duration_minutes=30))
    memory.add_service(Service(id="color", store_id=STORE, name="Coloring", duration_minutes=90))
    memory.add_service(Service(id="full-day", store_id=STORE, name="Training", duration_minutes=480))
    memory.add_service(
        Service(id="retired", store_id=STORE, name="Old service", duration_minutes=60, is_active=False)
    )
    return memory


@pytest.fixture
def engine(store) -> BookingEngine:
    return BookingEngine.build(store, TZ, clock=lambda: _at(NOW))


@pytest.fixture
def book(store) -> Callable[..., Booking]:
    """Insert a booking directly into the store, bypassing conflict checks."""

    def _book(
        staff_id: str,
        start: str,
        duration: int = 30,
        status: BookingStatus = BookingStatus.CONFIRMED,
        booking_id: Optional[str] = None,
        service_id: str = "cut",
    ) -> Booking:
        start_time = _at(start)
        return store.insert_booking(
            Booking(
                id=booking_id,
                store_id=STORE,
                staff_id=staff_id,
                service_id=service_id,
                start_time=start_time,
                end_time=start_time.add(minutes=duration),
                status=status,
                customer_name="Test Customer",
            )
        )

    return _book
