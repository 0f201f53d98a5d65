"""
Booking conflict detection.

Runs the service, business-hours and staff checks in order, stopping at the
first failure, and reports the outcome as a ``ConflictResult``. Expected
failures are returned as data; only storage failures and corrupt persisted
data raise.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..domain.exceptions import DataIntegrityError
from ..domain.models import (
    BookingRequest,
    ConflictResult,
    ConflictType,
    Service,
    StaffCandidate,
    TimeRange,
)
from ..domain.slot_calculator import fits_window
from ..domain.timeutils import to_local, truncate_to_minute
from ..domain.validation import DEFAULT_MAX_SERVICE_DURATION, validate_service_duration
from .alternatives import AlternativeSlotSearch
from .assignment import AutoAssignmentPolicy
from .availability import AvailabilityChecker
from .store import BookingStoreProtocol

logger = logging.getLogger(__name__)


class ConflictDetector:
    """
    Sequential gate deciding whether a booking request can be honoured.

    1. Service exists in the store and is active
    2. The interval lies inside the day's business hours
    3. The requested staff member is free, or some staff member is free
       when none was requested

    Staff-related failures carry alternative suggestions.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        checker: AvailabilityChecker,
        policy: AutoAssignmentPolicy,
        alternative_search: AlternativeSlotSearch,
        max_service_duration: int = DEFAULT_MAX_SERVICE_DURATION,
    ) -> None:
        self._store = store
        self._checker = checker
        self._policy = policy
        self._alternatives = alternative_search
        self._max_service_duration = max_service_duration

    def check_conflicts(self, request: BookingRequest) -> ConflictResult:
        """
        Check a booking request and classify the first failure, if any.

        The start time is read on the store clock: naive values as local wall
        time, aware values converted.
        """
        service = self._store.get_service(request.store_id, request.service_id)
        if service is None:
            return ConflictResult.conflict(
                ConflictType.SERVICE_UNAVAILABLE, "The requested service was not found"
            )
        if not service.is_active:
            return ConflictResult.conflict(
                ConflictType.SERVICE_UNAVAILABLE, "The requested service is currently unavailable"
            )

        duration = self._service_duration(service)
        start = to_local(request.start_time, self._checker.resolver.timezone)
        candidate = TimeRange.from_duration(truncate_to_minute(start), duration)

        hours_detail = self._business_hours_problem(request.store_id, candidate)
        if hours_detail is not None:
            return ConflictResult.conflict(ConflictType.OUTSIDE_BUSINESS_HOURS, hours_detail)

        if request.staff_id:
            return self._check_requested_staff(request, candidate, duration)

        chosen = self._policy.pick(request.store_id, candidate, request.exclude_booking_id)
        if chosen is None:
            logger.info("No staff free in store %s for %s", request.store_id, candidate)
            return ConflictResult.conflict(
                ConflictType.TIME_OVERLAP,
                "No staff available for this time",
                self._suggest(request, candidate),
            )

        return ConflictResult.ok(chosen.staff_id, duration)

    def _service_duration(self, service: Service) -> int:
        result = validate_service_duration(service.duration_minutes, self._max_service_duration)
        if not result.is_ok:
            raise DataIntegrityError(f"Service {service.id} has an invalid duration: {result.error}")
        return result.value

    def _business_hours_problem(self, store_id: str, candidate: TimeRange) -> Optional[str]:
        hours = self._checker.resolver.configured_hours(store_id, candidate.start)
        if hours is None:
            return "No business hours are configured for this day"
        if hours.is_closed:
            return "The store is closed on this day"

        window = hours.window()
        opening = window.on(candidate.start, self._checker.resolver.timezone)
        if not fits_window(candidate, opening):
            return f"Business hours are {window.open_time} - {window.close_time}"

        return None

    def _check_requested_staff(
        self,
        request: BookingRequest,
        candidate: TimeRange,
        duration: int,
    ) -> ConflictResult:
        staff = self._store.get_staff(request.store_id, request.staff_id)

        if staff is None:
            detail = "The requested staff member was not found"
        elif not staff.is_active:
            detail = "The requested staff member is currently unavailable"
        else:
            verdict = self._checker.check(
                request.store_id,
                staff.id,
                candidate,
                exclude_booking_id=request.exclude_booking_id,
            )
            if verdict.available:
                return ConflictResult.ok(staff.id, duration)

            if verdict.conflicting_booking is not None:
                taken_at = verdict.conflicting_booking.start_time.format("HH:mm")
                detail = f"{staff.name} already has a booking at {taken_at}"
            else:
                detail = f"{staff.name} is not available at this time"

        return ConflictResult.conflict(
            ConflictType.STAFF_UNAVAILABLE,
            detail,
            self._suggest(request, candidate),
        )

    def _suggest(self, request: BookingRequest, candidate: TimeRange) -> List[StaffCandidate]:
        return self._alternatives.search(
            request.store_id, candidate, request.exclude_booking_id
        )
