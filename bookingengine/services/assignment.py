"""
First-available staff assignment.

Staff are scanned in a stable roster order (rank, then creation time, then
id) and the first free one wins. There is no load balancing, so the same
inputs always produce the same assignment.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..domain.models import Staff, StaffCandidate, TimeRange
from .availability import AvailabilityChecker
from .store import BookingStoreProtocol

logger = logging.getLogger(__name__)


class AutoAssignmentPolicy:
    """Finds staff members free for an interval, in roster order."""

    def __init__(self, store: BookingStoreProtocol, checker: AvailabilityChecker) -> None:
        self._store = store
        self._checker = checker

    def roster(self, store_id: str) -> List[Staff]:
        """Active staff in deterministic roster order."""
        active = [staff for staff in self._store.get_active_staff(store_id) if staff.is_active]
        return sorted(active, key=lambda staff: staff.roster_key())

    def available_staff(
        self,
        store_id: str,
        candidate: TimeRange,
        exclude_booking_id: Optional[str] = None,
    ) -> List[StaffCandidate]:
        available: List[StaffCandidate] = []

        for staff in self.roster(store_id):
            if self._checker.is_available(
                store_id, staff.id, candidate, exclude_booking_id=exclude_booking_id
            ):
                available.append(
                    StaffCandidate(
                        staff_id=staff.id,
                        staff_name=staff.name,
                        start_time=candidate.start,
                        end_time=candidate.end,
                    )
                )

        logger.debug(
            "%d staff available in store %s for %s", len(available), store_id, candidate
        )
        return available

    def pick(
        self,
        store_id: str,
        candidate: TimeRange,
        exclude_booking_id: Optional[str] = None,
    ) -> StaffCandidate | None:
        """Return the first available staff member, or None."""
        available = self.available_staff(store_id, candidate, exclude_booking_id)
        return available[0] if available else None
