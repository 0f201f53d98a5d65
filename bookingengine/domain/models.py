"""
Domain models for stores, staff, services, bookings and conflict results.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional

import pendulum
from pendulum import DateTime

from .result import Err, Ok, Result
from .exceptions import DataIntegrityError, TimeFormatError
from .timeutils import (
    minutes_to_time,
    start_of_day,
    time_to_minutes,
    to_local,
    truncate_to_minute,
)


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def from_duration(cls, start: DateTime, duration_minutes: int) -> "TimeRange":
        """Build a range starting at ``start`` lasting ``duration_minutes``."""
        return cls(start=start, end=start.add(minutes=duration_minutes))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if another range lies fully inside this one (both ends inclusive)."""
        return self.start <= other.start and other.end <= self.end

    def shift(self, minutes: int) -> "TimeRange":
        """Return the same-length range moved by ``minutes`` (may be negative)."""
        return TimeRange(
            start=self.start.add(minutes=minutes),
            end=self.end.add(minutes=minutes),
        )

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class OpeningWindow:
    """Open/close window of a store for one day, in minutes since midnight."""
    open_minutes: int
    close_minutes: int

    @property
    def open_time(self) -> str:
        return minutes_to_time(self.open_minutes)

    @property
    def close_time(self) -> str:
        return minutes_to_time(self.close_minutes)

    def length_minutes(self) -> int:
        return self.close_minutes - self.open_minutes

    def on(self, day, timezone: str) -> TimeRange:
        """Anchor the window to a calendar day."""
        midnight = start_of_day(day, timezone)
        return TimeRange(
            start=midnight.add(minutes=self.open_minutes),
            end=midnight.add(minutes=self.close_minutes),
        )

    def __str__(self) -> str:
        return f"{self.open_time} - {self.close_time}"


@dataclass(frozen=True)
class BusinessHours:
    """
    Opening hours of a store for one weekday (0=Sunday, 6=Saturday).

    Times are kept as "HH:MM" strings; ``window()`` converts them.
    """
    store_id: str
    day_of_week: int
    open_time: str
    close_time: str
    is_closed: bool = False

    def window(self) -> OpeningWindow | None:
        """
        Return the opening window, or None when the day is closed.

        Raises:
            DataIntegrityError: If the stored times are malformed or the
                store would close before it opens
        """
        if self.is_closed:
            return None

        try:
            open_minutes = time_to_minutes(self.open_time)
            close_minutes = time_to_minutes(self.close_time)
        except TimeFormatError as exc:
            raise DataIntegrityError(
                f"Business hours for store {self.store_id} day {self.day_of_week}: {exc}"
            ) from exc

        if open_minutes >= close_minutes:
            raise DataIntegrityError(
                f"Business hours for store {self.store_id} day {self.day_of_week} "
                f"open at {self.open_time} but close at {self.close_time}"
            )

        return OpeningWindow(open_minutes=open_minutes, close_minutes=close_minutes)

    def format_display(self) -> str:
        if self.is_closed:
            return "Closed"
        return f"{self.open_time} - {self.close_time}"


@dataclass(frozen=True)
class Staff:
    """
    A bookable staff member ("barber") of one store.

    ``rank`` and ``created_at`` define the deterministic roster order.
    """
    id: str
    store_id: str
    name: str
    is_active: bool = True
    rank: int = 0
    created_at: Optional[DateTime] = None

    def roster_key(self):
        created = self.created_at.timestamp() if self.created_at else 0.0
        return (self.rank, created, self.id)


@dataclass(frozen=True)
class Service:
    """A bookable offering with a fixed duration."""
    id: str
    store_id: str
    name: str
    duration_minutes: int
    is_active: bool = True
    price: float = 0.0


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ContactType(str, Enum):
    LINE = "line"
    EMAIL = "email"


@dataclass(frozen=True)
class Booking:
    """
    A reservation of a staff member's time for one service.

    ``end_time`` is derived from the service duration at creation.
    """
    store_id: str
    staff_id: str
    service_id: str
    start_time: DateTime
    end_time: DateTime
    status: BookingStatus = BookingStatus.CONFIRMED
    id: Optional[str] = None
    customer_name: str = ""
    customer_contact: str = ""
    contact_type: ContactType = ContactType.LINE
    notes: Optional[str] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    def with_changes(self, **changes) -> "Booking":
        return replace(self, **changes)


@dataclass(frozen=True)
class BookingRequest:
    """
    Structured booking request consumed by the conflict detector.

    Use ``build`` to construct one from caller input; it validates ids,
    puts the start time on the store clock when ``timezone`` is given and
    truncates it to the minute. Without a timezone a naive start stays
    naive; the conflict detector localises it.
    """
    store_id: str
    service_id: str
    start_time: DateTime
    staff_id: Optional[str] = None
    exclude_booking_id: Optional[str] = None

    @classmethod
    def build(
        cls,
        *,
        store_id: str,
        service_id: str,
        start_time: DateTime,
        staff_id: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> Result["BookingRequest", str]:
        if not store_id or not str(store_id).strip():
            return Err("store_id is required")
        if not service_id or not str(service_id).strip():
            return Err("service_id is required")
        if not isinstance(start_time, datetime):
            return Err(f"start_time must be a datetime, got {type(start_time).__name__}")
        if timezone is not None:
            start_time = to_local(start_time, timezone)
        elif start_time.tzinfo is None:
            start_time = pendulum.naive(
                start_time.year, start_time.month, start_time.day,
                start_time.hour, start_time.minute, start_time.second,
                start_time.microsecond,
            )
        elif not isinstance(start_time, DateTime):
            start_time = pendulum.instance(start_time)
        if staff_id is not None and not str(staff_id).strip():
            return Err("staff_id must not be blank")

        return Ok(
            cls(
                store_id=store_id,
                service_id=service_id,
                start_time=truncate_to_minute(start_time),
                staff_id=staff_id or None,
                exclude_booking_id=exclude_booking_id or None,
            )
        )


class ConflictType(str, Enum):
    TIME_OVERLAP = "time_overlap"
    OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
    STAFF_UNAVAILABLE = "staff_unavailable"
    SERVICE_UNAVAILABLE = "service_unavailable"


@dataclass(frozen=True)
class StaffCandidate:
    """A staff member found free for a given interval."""
    staff_id: str
    staff_name: str
    start_time: DateTime
    end_time: DateTime

    def format_display(self) -> str:
        return (
            f"{self.staff_name}: {self.start_time.format('YYYY-MM-DD HH:mm')}"
            f" - {self.end_time.format('HH:mm')}"
        )


@dataclass(frozen=True)
class ConflictResult:
    """
    Outcome of a conflict check.

    ``assigned_staff_id`` is set on success when the staff member was picked
    by auto-assignment (or echoes the requested one).
    """
    has_conflict: bool
    conflict_type: Optional[ConflictType] = None
    detail: str = ""
    alternatives: List[StaffCandidate] = field(default_factory=list)
    assigned_staff_id: Optional[str] = None
    service_duration_minutes: Optional[int] = None

    @classmethod
    def ok(cls, staff_id: str, duration_minutes: int) -> "ConflictResult":
        return cls(
            has_conflict=False,
            assigned_staff_id=staff_id,
            service_duration_minutes=duration_minutes,
        )

    @classmethod
    def conflict(
        cls,
        conflict_type: ConflictType,
        detail: str,
        alternatives: Optional[List[StaffCandidate]] = None,
    ) -> "ConflictResult":
        return cls(
            has_conflict=True,
            conflict_type=conflict_type,
            detail=detail,
            alternatives=list(alternatives or []),
        )


@dataclass
class TimeSlot:
    """
    A candidate slot for one staff member, used for calendar display.
    """
    time_range: TimeRange
    staff_id: str
    staff_name: str
    is_available: bool

    @property
    def start_time(self) -> DateTime:
        return self.time_range.start

    @property
    def end_time(self) -> DateTime:
        return self.time_range.end

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM - HH:MM (staff)
        """
        start = self.time_range.start
        end = self.time_range.end

        weekday = start.format("ddd")
        date_str = start.format("YYYY-MM-DD")
        state = "free" if self.is_available else "booked"

        return (
            f"{weekday}, {date_str} | {start.format('HH:mm')} - {end.format('HH:mm')}"
            f" ({self.staff_name}, {state})"
        )


def minute_now(timezone: str) -> DateTime:
    """Current store-local time truncated to the minute."""
    return truncate_to_minute(pendulum.now(timezone))
