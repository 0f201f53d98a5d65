"""
Domain-specific exception hierarchy for the booking engine.

Expected booking outcomes (no free slot, store closed, inactive service) are
returned as data. Only the conditions below are raised.
"""

from typing import List, Sequence


class BookingEngineError(Exception):
    """Base class for all application-level errors."""


class ValidationError(BookingEngineError):
    """Raised when input is rejected before any availability computation."""

    def __init__(self, messages: Sequence[str] | str):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__("; ".join(self.messages))


class TimeFormatError(ValidationError):
    """Raised when a time-of-day string is not in HH:MM format."""


class StorageError(BookingEngineError):
    """Raised when the storage collaborator cannot be reached."""


class DataIntegrityError(BookingEngineError):
    """Raised when persisted data violates an entity invariant."""
