"""Explorer poller - the pull path for market contract print events."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from predictstack_observer.clarity.decoder import decode_repr
from predictstack_observer.interfaces.api import ExplorerApi
from predictstack_observer.interfaces.handler import EventHandler
from predictstack_observer.interfaces.store import EventStore
from predictstack_observer.models.config import CursorResume, ObserverConfig
from predictstack_observer.models.events import (
    DecodedEvent,
    EventContext,
    Phase,
    Source,
    as_int,
    as_str,
    build_event,
)
from predictstack_observer.models.records import PollCursor, PollReport

log = logging.getLogger(__name__)

CONTRACT_LOG_TYPE = "smart_contract_log"


def _position(tx: dict[str, Any]) -> tuple[int, int]:
    return as_int(tx.get("block_height")), as_int(tx.get("tx_index"))


class ContractPoller:
    """Polls the explorer for new market contract transactions.

    The cursor is the (block height, tx index) of the last transaction whose
    events were all handled. It only moves forward and is persisted in the
    same store transaction as the handler effects, so a crash never leaves a
    transaction half-applied or skipped.
    """

    def __init__(
        self,
        api: ExplorerApi,
        handlers: EventHandler,
        store: EventStore,
        cfg: ObserverConfig,
    ) -> None:
        self._api = api
        self._handlers = handlers
        self._store = store
        self._cfg = cfg
        self._contract_id = cfg.contracts.market_contract
        self._cursor: PollCursor | None = None
        self._attempts: dict[str, int] = {}

    @property
    def cursor(self) -> PollCursor | None:
        return self._cursor

    async def initialize(self) -> PollCursor:
        """Pick the starting cursor: configured seed, persisted cursor, or tip."""
        if self._cfg.start_height is not None:
            # tx_index -1 puts every transaction of the seed block after the cursor.
            cursor = PollCursor(self._cfg.start_height, -1)
            log.info("Starting from configured block %d", cursor.block_height)
        else:
            saved = None
            if self._cfg.cursor_resume == CursorResume.PERSISTED:
                saved = await self._store.get_cursor()
            if saved is not None:
                cursor = saved
                log.info(
                    "Resuming from block %d, tx %d", cursor.block_height, cursor.tx_index,
                )
            else:
                tip = await self._api.get_tip_height()
                cursor = PollCursor(tip, 0)
                log.info("Starting from chain tip, block %d", tip)

        await self._store.set_cursor(cursor)
        self._cursor = cursor
        return cursor

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll until ``stop_event`` is set."""
        log.info(
            "Polling %s every %.1fs", self._contract_id, self._cfg.poll_interval,
        )
        while not stop_event.is_set():
            delay = self._cfg.poll_interval
            try:
                report = await self.poll_once()
                if report.events or report.failed_tx or report.poisoned or report.backlog:
                    log.info(
                        "Poll: %d tx fetched, %d routed, %d events, %d backlog, cursor %d/%d",
                        report.fetched, report.routed, report.events, report.backlog,
                        report.finished_at.block_height, report.finished_at.tx_index,
                    )
            except Exception as exc:
                log.error("Poll cycle failed: %s", exc, exc_info=True)
                await self._store.log_activity("poll_error", str(exc), source=Source.POLL.value)
                delay = self._cfg.error_backoff

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        log.info("Poller stopped")

    async def poll_once(self) -> PollReport:
        """Fetch and route new transactions, oldest first, up to one window."""
        if self._cursor is None:
            await self.initialize()
        start = self._cursor
        assert start is not None

        fetched, pending, backlog = await self._fetch_new(start)
        report = PollReport(
            started_at=start, finished_at=start, fetched=fetched, backlog=backlog,
        )

        for tx in pending:
            tx_id = as_str(tx.get("tx_id"))
            try:
                events, skipped = await self._process_tx(tx)
            except Exception as exc:
                attempts = self._attempts.get(tx_id, 0) + 1
                self._attempts[tx_id] = attempts
                if attempts < self._cfg.max_tx_attempts:
                    log.error(
                        "Failed to process tx %s (attempt %d/%d): %s",
                        tx_id, attempts, self._cfg.max_tx_attempts, exc, exc_info=True,
                    )
                    await self._store.log_activity(
                        "handler_error", f"Poll tx failed: {exc}",
                        tx_hash=tx_id, source=Source.POLL.value,
                    )
                    report.failed_tx = tx_id
                    break

                log.error(
                    "Giving up on tx %s after %d attempts: %s", tx_id, attempts, exc,
                )
                await self._store.log_activity(
                    "tx_poisoned", f"Skipped after {attempts} failed attempts: {exc}",
                    tx_hash=tx_id, source=Source.POLL.value,
                )
                self._attempts.pop(tx_id, None)
                await self._advance(PollCursor(*_position(tx)))
                report.poisoned.append(tx_id)
                continue

            self._attempts.pop(tx_id, None)
            report.routed += 1
            report.events += events
            report.skipped_events += skipped

        report.finished_at = self._cursor
        return report

    async def _fetch_new(
        self, cursor: PollCursor
    ) -> tuple[int, list[dict[str, Any]], int]:
        """Successful transactions strictly after ``cursor``, ascending.

        The explorer lists newest first, so pages are fetched until one
        reaches the cursor or the listing ends. Only the oldest
        ``page_size * max_pages`` are returned; the rest are counted as
        backlog and picked up by later cycles.
        """
        fetched = 0
        newer: list[dict[str, Any]] = []
        reached = False
        page = 0
        while True:
            txs = await self._api.get_contract_transactions(
                self._contract_id,
                limit=self._cfg.page_size,
                offset=page * self._cfg.page_size,
            )
            fetched += len(txs)
            for tx in txs:
                if cursor.is_before(*_position(tx)):
                    newer.append(tx)
                else:
                    reached = True
            if reached or not txs or len(txs) < self._cfg.page_size:
                break
            page += 1

        pending = [tx for tx in newer if tx.get("tx_status") == "success"]
        pending.sort(key=_position)
        limit = self._cfg.page_size * self._cfg.max_pages
        backlog = max(len(pending) - limit, 0)
        if backlog:
            log.info(
                "%d transactions behind cursor %d/%d; routing the oldest %d this cycle",
                len(pending), cursor.block_height, cursor.tx_index, limit,
            )
        return fetched, pending[:limit], backlog

    async def _process_tx(self, tx: dict[str, Any]) -> tuple[int, int]:
        """Route one transaction's events and advance past it.

        Returns (events handled, events skipped).
        """
        tx_id = as_str(tx.get("tx_id"))
        block_height, tx_index = _position(tx)
        raw_events = await self._api.get_transaction_events(tx_id)

        decoded: list[tuple[DecodedEvent, EventContext]] = []
        skipped = 0
        for raw in sorted(raw_events, key=lambda e: as_int(e.get("event_index"))):
            event = self._decode(raw)
            if event is None:
                skipped += 1
                continue
            label = getattr(event, "name", None) or event.kind.value
            decoded.append((
                event,
                EventContext(
                    phase=Phase.APPLY,
                    source=Source.POLL,
                    tx_hash=tx_id,
                    block_height=block_height,
                    event_index=as_int(raw.get("event_index")),
                    label=label,
                ),
            ))

        async with self._store.transaction():
            for event, ctx in decoded:
                log.debug("tx %s event %d: %s", tx_id, ctx.event_index, event.kind.value)
                await self._handlers.handle(event, ctx)
            await self._advance(PollCursor(block_height, tx_index))

        return len(decoded), skipped

    def _decode(self, raw: dict[str, Any]) -> DecodedEvent | None:
        if raw.get("event_type") != CONTRACT_LOG_TYPE:
            return None
        contract_log = raw.get("contract_log") or {}
        if contract_log.get("contract_id") != self._contract_id:
            return None
        value = contract_log.get("value") or {}
        text = value.get("repr") if isinstance(value, dict) else None
        if not isinstance(text, str):
            return None
        return build_event(decode_repr(text))

    async def _advance(self, cursor: PollCursor) -> None:
        if self._cursor is not None and cursor <= self._cursor:
            return
        await self._store.set_cursor(cursor)
        self._cursor = cursor
