"""EventStore protocol - persists the cursor, the processed-event ledger and projections."""

from __future__ import annotations

from typing import AsyncContextManager, Protocol

from predictstack_observer.models.records import (
    ActivityRecord,
    BetRecord,
    MarketRecord,
    PollCursor,
    UserStats,
)


class EventStore(Protocol):
    """State derived from chain events, plus the poller's resume position."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    def transaction(self) -> AsyncContextManager[None]:
        """Group writes so they commit or roll back together."""
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> PollCursor | None:
        ...

    async def set_cursor(self, cursor: PollCursor) -> None:
        ...

    # ── Processed-event ledger ─────────────────────────────

    async def mark_applied(
        self, event_key: str, kind: str, source: str, block_height: int
    ) -> bool:
        """Record an event as applied. Returns False if it already was."""
        ...

    async def unmark_applied(self, event_key: str) -> bool:
        """Remove an applied event. Returns False if it was not applied."""
        ...

    # ── Projections ────────────────────────────────────────

    async def upsert_market(self, market: MarketRecord) -> None:
        ...

    async def get_market(self, market_id: int) -> MarketRecord | None:
        ...

    async def delete_market(self, market_id: int) -> None:
        ...

    async def update_market(
        self,
        market_id: int,
        status: str | None = None,
        yes_pool: int | None = None,
        no_pool: int | None = None,
        winning_outcome: bool | None = None,
        clear_outcome: bool = False,
    ) -> None:
        ...

    async def adjust_market_pools(self, market_id: int, yes_delta: int, no_delta: int) -> None:
        ...

    async def save_bet(self, bet: BetRecord) -> None:
        ...

    async def delete_bet(self, event_key: str) -> None:
        ...

    async def set_bet_status(
        self, market_id: int, user: str, status: str, from_status: str
    ) -> None:
        ...

    async def adjust_user_stats(
        self,
        user: str,
        wagered: int = 0,
        won: int = 0,
        refunded: int = 0,
        bets: int = 0,
    ) -> None:
        ...

    async def get_user_stats(self, user: str) -> UserStats:
        ...

    async def adjust_balance(self, asset: str, holder: str, delta: int) -> None:
        ...

    async def save_deployment(self, contract_id: str, tx_hash: str, block_height: int) -> None:
        ...

    async def delete_deployment(self, contract_id: str) -> None:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        tx_hash: str | None = None,
        market_id: int | None = None,
        amount: int | None = None,
        source: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
