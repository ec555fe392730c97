"""Local state persistence."""

from predictstack_observer.storage.sqlite import SQLiteEventStore

__all__ = ["SQLiteEventStore"]
