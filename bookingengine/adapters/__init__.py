"""
Adapters layer - Storage backends for the booking engine.
"""

from .memory_store import InMemoryBookingStore

__all__ = ["InMemoryBookingStore"]
