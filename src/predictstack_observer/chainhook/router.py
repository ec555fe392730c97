"""Subscription-id keyed routing of push batches."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Iterable

from predictstack_observer.chainhook.adapters import extract_events
from predictstack_observer.interfaces.handler import BatchHandler, EventHandler
from predictstack_observer.interfaces.store import EventStore
from predictstack_observer.models.payload import EventBatch
from predictstack_observer.models.subscriptions import Subscription

log = logging.getLogger(__name__)


class RouteResult(str, Enum):
    HANDLED = "handled"
    UNKNOWN = "unknown"
    FAILED = "failed"


class BatchHandlingError(Exception):
    """A handler failed on one event of a batch."""

    def __init__(self, subscription_id: str, tx_hash: str, cause: Exception) -> None:
        super().__init__(f"{subscription_id}: tx {tx_hash}: {cause}")
        self.subscription_id = subscription_id
        self.tx_hash = tx_hash
        self.cause = cause


def make_batch_handler(sub: Subscription, handlers: EventHandler, store: EventStore) -> BatchHandler:
    """Bind a subscription to the shared HandlerSet.

    The whole batch (rollback then apply) runs as one store transaction, so a
    failure part-way leaves no partial effects behind.
    """

    async def _handle(batch: EventBatch) -> None:
        pairs = extract_events(batch, sub)
        async with store.transaction():
            for event, ctx in pairs:
                try:
                    await handlers.handle(event, ctx)
                except Exception as exc:
                    raise BatchHandlingError(sub.uuid, ctx.tx_hash, exc) from exc

    return _handle


class EventRouter:
    """Dispatches each batch to exactly one handler, chosen by subscription id.

    Batches are processed one at a time; concurrent deliveries wait on a lock
    so apply/rollback ordering is preserved.
    """

    def __init__(self, store: EventStore | None = None) -> None:
        self._store = store
        self._handlers: dict[str, BatchHandler] = {}
        self._labels: dict[str, str] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_subscriptions(
        cls,
        subscriptions: Iterable[Subscription],
        handlers: EventHandler,
        store: EventStore,
    ) -> EventRouter:
        router = cls(store)
        for sub in subscriptions:
            router.register(sub.uuid, make_batch_handler(sub, handlers, store), sub.label)
        return router

    def register(self, subscription_id: str, handler: BatchHandler, label: str = "") -> None:
        if subscription_id in self._handlers:
            raise ValueError(f"handler already registered for {subscription_id}")
        self._handlers[subscription_id] = handler
        self._labels[subscription_id] = label or subscription_id

    @property
    def subscription_ids(self) -> list[str]:
        return list(self._handlers)

    async def route(self, subscription_id: str, batch: EventBatch) -> RouteResult:
        """Run the handler bound to ``subscription_id``. Never raises."""
        handler = self._handlers.get(subscription_id)
        if handler is None:
            log.warning(
                "No handler for subscription %s (scope: %s)",
                subscription_id, batch.scope or "unknown",
            )
            return RouteResult.UNKNOWN

        label = self._labels[subscription_id]
        async with self._lock:
            try:
                await handler(batch)
            except Exception as exc:
                tx_hash = getattr(exc, "tx_hash", None)
                log.error(
                    "Handler for %s (%s) failed on tx %s: %s",
                    subscription_id, label, tx_hash or "?", exc, exc_info=True,
                )
                if self._store is not None:
                    await self._record_failure(subscription_id, label, tx_hash, exc)
                return RouteResult.FAILED

        log.debug(
            "Routed %s: %d apply / %d rollback blocks",
            label, len(batch.apply), len(batch.rollback),
        )
        return RouteResult.HANDLED

    async def _record_failure(
        self, subscription_id: str, label: str, tx_hash: str | None, exc: Exception
    ) -> None:
        try:
            await self._store.log_activity(
                "handler_error",
                f"{label} ({subscription_id}): {exc}",
                tx_hash=tx_hash,
                source="push",
            )
        except Exception as log_exc:
            log.error("Could not record handler failure: %s", log_exc)
