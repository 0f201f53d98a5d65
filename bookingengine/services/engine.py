"""
Wiring of the engine components around one storage backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import EngineConfig
from ..domain.slot_calculator import SlotCalculator
from .alternatives import AlternativeSlotSearch
from .assignment import AutoAssignmentPolicy
from .availability import AvailabilityChecker, AvailabilityService
from .booking_service import BookingService
from .business_hours import BusinessHoursResolver, BusinessHoursService
from .conflict_detector import ConflictDetector
from .store import BookingStoreProtocol


@dataclass
class BookingEngine:
    """All services sharing one store, resolver and configuration."""
    store: BookingStoreProtocol
    resolver: BusinessHoursResolver
    checker: AvailabilityChecker
    policy: AutoAssignmentPolicy
    alternatives: AlternativeSlotSearch
    detector: ConflictDetector
    availability: AvailabilityService
    bookings: BookingService
    business_hours: BusinessHoursService

    @classmethod
    def build(
        cls,
        store: BookingStoreProtocol,
        timezone: str,
        config: Optional[EngineConfig] = None,
        clock=None,
    ) -> "BookingEngine":
        config = config or EngineConfig()

        resolver = BusinessHoursResolver(store, timezone)
        checker = AvailabilityChecker(store, resolver)
        policy = AutoAssignmentPolicy(store, checker)
        alternatives = AlternativeSlotSearch(
            policy,
            offsets_minutes=config.alternative_offsets_minutes,
            max_results=config.max_alternatives,
        )
        detector = ConflictDetector(
            store,
            checker,
            policy,
            alternatives,
            max_service_duration=config.max_service_duration_minutes,
        )

        return cls(
            store=store,
            resolver=resolver,
            checker=checker,
            policy=policy,
            alternatives=alternatives,
            detector=detector,
            availability=AvailabilityService(
                store, checker, SlotCalculator(step_minutes=config.slot_step_minutes)
            ),
            bookings=BookingService(
                store,
                detector,
                timezone,
                min_advance_minutes=config.min_advance_minutes,
                max_advance_days=config.max_advance_days,
                clock=clock,
            ),
            business_hours=BusinessHoursService(store, timezone),
        )
