"""Handler protocols shared by both ingestion paths."""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from predictstack_observer.models.events import DecodedEvent, EventContext
from predictstack_observer.models.payload import EventBatch

# One callable per subscription id; receives the whole batch.
BatchHandler = Callable[[EventBatch], Awaitable[None]]


class EventHandler(Protocol):
    """Applies or compensates one decoded event."""

    async def handle(self, event: DecodedEvent, ctx: EventContext) -> bool:
        """Returns True if the event changed state, False if it was a duplicate/no-op."""
        ...
