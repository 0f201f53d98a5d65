"""
Alternative slot search used when a requested slot is taken.

Same-time alternatives with other staff come first, then a short ladder of
shifted times. The ladder is fixed, so the search never costs more than
``(1 + len(offsets)) * staff`` availability checks.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from ..domain.models import StaffCandidate, TimeRange
from .assignment import AutoAssignmentPolicy

logger = logging.getLogger(__name__)

DEFAULT_OFFSETS_MINUTES: Tuple[int, ...] = (-30, 30, -60, 60)
DEFAULT_MAX_ALTERNATIVES = 5


class AlternativeSlotSearch:
    """Collects up to ``max_results`` substitute (staff, time) pairs."""

    def __init__(
        self,
        policy: AutoAssignmentPolicy,
        offsets_minutes: Sequence[int] = DEFAULT_OFFSETS_MINUTES,
        max_results: int = DEFAULT_MAX_ALTERNATIVES,
    ) -> None:
        if max_results < 1:
            raise ValueError(f"max_results must be at least 1, got {max_results}")
        self._policy = policy
        self._offsets = tuple(offsets_minutes)
        self._max_results = max_results

    def search(
        self,
        store_id: str,
        preferred: TimeRange,
        exclude_booking_id: Optional[str] = None,
    ) -> List[StaffCandidate]:
        """
        Search for alternatives around the preferred interval.

        Order:
        1. Every active staff member at the exact preferred time
        2. The same scan at each offset in turn (default -30, +30, -60, +60)
        Stops as soon as enough results are collected.
        """
        alternatives: List[StaffCandidate] = []

        for offset in (0,) + self._offsets:
            if len(alternatives) >= self._max_results:
                break

            candidate = preferred if offset == 0 else preferred.shift(offset)
            alternatives.extend(
                self._policy.available_staff(store_id, candidate, exclude_booking_id)
            )

        logger.debug(
            "Found %d alternative(s) for %s in store %s",
            len(alternatives), preferred, store_id,
        )
        return alternatives[:self._max_results]
