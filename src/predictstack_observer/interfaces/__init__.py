"""Protocol interfaces for the observer components."""

from predictstack_observer.interfaces.api import ExplorerApi
from predictstack_observer.interfaces.handler import BatchHandler, EventHandler
from predictstack_observer.interfaces.store import EventStore

__all__ = [
    "ExplorerApi",
    "BatchHandler", "EventHandler",
    "EventStore",
]
