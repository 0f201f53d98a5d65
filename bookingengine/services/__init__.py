"""
Service layer helpers that orchestrate storage and domain logic.
"""

from .alternatives import AlternativeSlotSearch
from .assignment import AutoAssignmentPolicy
from .availability import AvailabilityChecker, AvailabilityService, AvailabilityVerdict
from .booking_service import BookingOutcome, BookingService
from .business_hours import BusinessHoursResolver, BusinessHoursService
from .conflict_detector import ConflictDetector
from .engine import BookingEngine
from .store import BookingStoreProtocol

__all__ = [
    "AlternativeSlotSearch",
    "AutoAssignmentPolicy",
    "AvailabilityChecker",
    "AvailabilityService",
    "AvailabilityVerdict",
    "BookingOutcome",
    "BookingService",
    "BusinessHoursResolver",
    "BusinessHoursService",
    "ConflictDetector",
    "BookingEngine",
    "BookingStoreProtocol",
]
