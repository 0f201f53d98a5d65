"""
Domain layer - Pure booking logic without external dependencies.
"""

from .exceptions import (
    BookingEngineError,
    DataIntegrityError,
    StorageError,
    TimeFormatError,
    ValidationError,
)
from .models import (
    Booking,
    BookingRequest,
    BookingStatus,
    BusinessHours,
    ConflictResult,
    ConflictType,
    ContactType,
    OpeningWindow,
    Service,
    Staff,
    StaffCandidate,
    TimeRange,
    TimeSlot,
)
from .result import Err, Ok, Result
from .slot_calculator import SlotCalculator, iter_slot_starts

__all__ = [
    "BookingEngineError",
    "DataIntegrityError",
    "StorageError",
    "TimeFormatError",
    "ValidationError",
    "Booking",
    "BookingRequest",
    "BookingStatus",
    "BusinessHours",
    "ConflictResult",
    "ConflictType",
    "ContactType",
    "OpeningWindow",
    "Service",
    "Staff",
    "StaffCandidate",
    "TimeRange",
    "TimeSlot",
    "Err",
    "Ok",
    "Result",
    "SlotCalculator",
    "iter_slot_starts",
]
