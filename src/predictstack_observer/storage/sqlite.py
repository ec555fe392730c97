"""SQLite implementation of the EventStore protocol."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from predictstack_observer.models.records import (
    ActivityRecord,
    BetRecord,
    MarketRecord,
    PollCursor,
    UserStats,
)

SCHEMA = """
-- Poll cursor for resumption
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    block_height INTEGER NOT NULL,
    tx_index INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Events whose business effects are currently applied
CREATE TABLE IF NOT EXISTS processed_events (
    event_key TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    source TEXT NOT NULL,
    block_height INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Market projection
CREATE TABLE IF NOT EXISTS markets (
    market_id INTEGER PRIMARY KEY,
    question TEXT NOT NULL,
    creator TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'open',
    yes_pool INTEGER NOT NULL DEFAULT 0,
    no_pool INTEGER NOT NULL DEFAULT 0,
    winning_outcome INTEGER,
    resolve_date INTEGER NOT NULL DEFAULT 0,
    ipfs_hash TEXT,
    created_block INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_markets_status ON markets(status);

-- Wagers
CREATE TABLE IF NOT EXISTS bets (
    event_key TEXT PRIMARY KEY,
    market_id INTEGER NOT NULL,
    user TEXT NOT NULL,
    outcome INTEGER NOT NULL,
    amount INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'open',
    block_height INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_bets_market_user ON bets(market_id, user);

-- Per-user aggregates (leaderboard)
CREATE TABLE IF NOT EXISTS user_stats (
    user TEXT PRIMARY KEY,
    total_wagered INTEGER NOT NULL DEFAULT 0,
    total_won INTEGER NOT NULL DEFAULT 0,
    total_refunded INTEGER NOT NULL DEFAULT 0,
    bets INTEGER NOT NULL DEFAULT 0
);

-- Fungible token balances derived from mint/transfer/burn events
CREATE TABLE IF NOT EXISTS token_balances (
    asset TEXT NOT NULL,
    holder TEXT NOT NULL,
    balance INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (asset, holder)
);

-- Contract registry
CREATE TABLE IF NOT EXISTS deployments (
    contract_id TEXT PRIMARY KEY,
    tx_hash TEXT NOT NULL,
    block_height INTEGER NOT NULL,
    deployed_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    tx_hash TEXT,
    market_id INTEGER,
    amount INTEGER,
    source TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteEventStore:
    """SQLite-backed implementation of the EventStore protocol.

    Writes commit immediately unless they run inside ``transaction()``, in
    which case the whole block commits or rolls back together.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._tx_depth = 0

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Group writes into one atomic unit."""
        self._tx_depth += 1
        try:
            yield
        except BaseException:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                await self.db.rollback()
            raise
        else:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                await self.db.commit()

    async def _commit(self) -> None:
        if self._tx_depth == 0:
            await self.db.commit()

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> PollCursor | None:
        async with self.db.execute(
            "SELECT block_height, tx_index FROM cursor WHERE id=1"
        ) as cur:
            row = await cur.fetchone()
            return PollCursor(row["block_height"], row["tx_index"]) if row else None

    async def set_cursor(self, cursor: PollCursor) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, block_height, tx_index, updated_at) VALUES (1, ?, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET block_height=excluded.block_height,"
            " tx_index=excluded.tx_index, updated_at=excluded.updated_at",
            (cursor.block_height, cursor.tx_index, _now()),
        )
        await self._commit()

    # ── Processed-event ledger ─────────────────────────────

    async def mark_applied(
        self, event_key: str, kind: str, source: str, block_height: int
    ) -> bool:
        """Record an event as applied. False if it already was."""
        cur = await self.db.execute(
            "INSERT OR IGNORE INTO processed_events"
            " (event_key, kind, source, block_height, applied_at) VALUES (?, ?, ?, ?, ?)",
            (event_key, kind, source, block_height, _now()),
        )
        await self._commit()
        return cur.rowcount > 0

    async def unmark_applied(self, event_key: str) -> bool:
        """Forget an applied event. False if it was not applied."""
        cur = await self.db.execute(
            "DELETE FROM processed_events WHERE event_key=?", (event_key,)
        )
        await self._commit()
        return cur.rowcount > 0

    async def is_applied(self, event_key: str) -> bool:
        async with self.db.execute(
            "SELECT 1 FROM processed_events WHERE event_key=?", (event_key,)
        ) as cur:
            return await cur.fetchone() is not None

    # ── Markets ────────────────────────────────────────────

    async def upsert_market(self, market: MarketRecord) -> None:
        await self.db.execute(
            "INSERT INTO markets (market_id, question, creator, status, yes_pool, no_pool,"
            "  winning_outcome, resolve_date, ipfs_hash, created_block, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(market_id) DO UPDATE SET question=excluded.question,"
            " creator=excluded.creator, resolve_date=excluded.resolve_date,"
            " ipfs_hash=excluded.ipfs_hash, created_block=excluded.created_block,"
            " updated_at=excluded.updated_at",
            (
                market.market_id, market.question, market.creator, market.status,
                market.yes_pool, market.no_pool,
                None if market.winning_outcome is None else int(market.winning_outcome),
                market.resolve_date, market.ipfs_hash, market.created_block, _now(),
            ),
        )
        await self._commit()

    async def get_market(self, market_id: int) -> MarketRecord | None:
        async with self.db.execute(
            "SELECT * FROM markets WHERE market_id=?", (market_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_market(row) if row else None

    async def get_markets(self, status: str | None = None) -> list[MarketRecord]:
        if status:
            query, params = "SELECT * FROM markets WHERE status=? ORDER BY market_id", (status,)
        else:
            query, params = "SELECT * FROM markets ORDER BY market_id", ()
        async with self.db.execute(query, params) as cur:
            return [_row_to_market(row) async for row in cur]

    async def delete_market(self, market_id: int) -> None:
        await self.db.execute("DELETE FROM markets WHERE market_id=?", (market_id,))
        await self._commit()

    async def update_market(
        self,
        market_id: int,
        status: str | None = None,
        yes_pool: int | None = None,
        no_pool: int | None = None,
        winning_outcome: bool | None = None,
        clear_outcome: bool = False,
    ) -> None:
        sets: list[str] = []
        params: list[object] = []
        if status is not None:
            sets.append("status=?")
            params.append(status)
        if yes_pool is not None:
            sets.append("yes_pool=?")
            params.append(yes_pool)
        if no_pool is not None:
            sets.append("no_pool=?")
            params.append(no_pool)
        if winning_outcome is not None:
            sets.append("winning_outcome=?")
            params.append(int(winning_outcome))
        elif clear_outcome:
            sets.append("winning_outcome=NULL")
        if not sets:
            return
        sets.append("updated_at=?")
        params.append(_now())
        params.append(market_id)
        await self.db.execute(
            f"UPDATE markets SET {', '.join(sets)} WHERE market_id=?", params
        )
        await self._commit()

    async def adjust_market_pools(self, market_id: int, yes_delta: int, no_delta: int) -> None:
        await self.db.execute(
            "UPDATE markets SET yes_pool=MAX(yes_pool + ?, 0), no_pool=MAX(no_pool + ?, 0),"
            " updated_at=? WHERE market_id=?",
            (yes_delta, no_delta, _now(), market_id),
        )
        await self._commit()

    # ── Bets ───────────────────────────────────────────────

    async def save_bet(self, bet: BetRecord) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO bets"
            " (event_key, market_id, user, outcome, amount, status, block_height)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                bet.event_key, bet.market_id, bet.user, int(bet.outcome),
                bet.amount, bet.status, bet.block_height,
            ),
        )
        await self._commit()

    async def delete_bet(self, event_key: str) -> None:
        await self.db.execute("DELETE FROM bets WHERE event_key=?", (event_key,))
        await self._commit()

    async def get_bets(self, market_id: int | None = None) -> list[BetRecord]:
        if market_id is None:
            query, params = "SELECT * FROM bets ORDER BY block_height, event_key", ()
        else:
            query, params = (
                "SELECT * FROM bets WHERE market_id=? ORDER BY block_height, event_key",
                (market_id,),
            )
        async with self.db.execute(query, params) as cur:
            return [
                BetRecord(
                    event_key=row["event_key"],
                    market_id=row["market_id"],
                    user=row["user"],
                    outcome=bool(row["outcome"]),
                    amount=row["amount"],
                    status=row["status"],
                    block_height=row["block_height"],
                )
                async for row in cur
            ]

    async def set_bet_status(
        self, market_id: int, user: str, status: str, from_status: str
    ) -> None:
        await self.db.execute(
            "UPDATE bets SET status=? WHERE market_id=? AND user=? AND status=?",
            (status, market_id, user, from_status),
        )
        await self._commit()

    # ── User stats ─────────────────────────────────────────

    async def adjust_user_stats(
        self,
        user: str,
        wagered: int = 0,
        won: int = 0,
        refunded: int = 0,
        bets: int = 0,
    ) -> None:
        await self.db.execute(
            "INSERT INTO user_stats (user, total_wagered, total_won, total_refunded, bets)"
            " VALUES (?, ?, ?, ?, ?)"
            " ON CONFLICT(user) DO UPDATE SET"
            " total_wagered=total_wagered + excluded.total_wagered,"
            " total_won=total_won + excluded.total_won,"
            " total_refunded=total_refunded + excluded.total_refunded,"
            " bets=bets + excluded.bets",
            (user, wagered, won, refunded, bets),
        )
        await self._commit()

    async def get_user_stats(self, user: str) -> UserStats:
        async with self.db.execute("SELECT * FROM user_stats WHERE user=?", (user,)) as cur:
            row = await cur.fetchone()
            if row is None:
                return UserStats(user=user)
            return _row_to_stats(row)

    async def get_leaderboard(self, limit: int = 20) -> list[UserStats]:
        async with self.db.execute(
            "SELECT * FROM user_stats ORDER BY total_won DESC, user LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_stats(row) async for row in cur]

    # ── Token balances ─────────────────────────────────────

    async def adjust_balance(self, asset: str, holder: str, delta: int) -> None:
        await self.db.execute(
            "INSERT INTO token_balances (asset, holder, balance) VALUES (?, ?, ?)"
            " ON CONFLICT(asset, holder) DO UPDATE SET balance=balance + excluded.balance",
            (asset, holder, delta),
        )
        await self._commit()

    async def get_balance(self, asset: str, holder: str) -> int:
        async with self.db.execute(
            "SELECT balance FROM token_balances WHERE asset=? AND holder=?", (asset, holder)
        ) as cur:
            row = await cur.fetchone()
            return row["balance"] if row else 0

    # ── Deployments ────────────────────────────────────────

    async def save_deployment(self, contract_id: str, tx_hash: str, block_height: int) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO deployments (contract_id, tx_hash, block_height, deployed_at)"
            " VALUES (?, ?, ?, ?)",
            (contract_id, tx_hash, block_height, _now()),
        )
        await self._commit()

    async def delete_deployment(self, contract_id: str) -> None:
        await self.db.execute("DELETE FROM deployments WHERE contract_id=?", (contract_id,))
        await self._commit()

    async def get_deployments(self) -> list[str]:
        async with self.db.execute(
            "SELECT contract_id FROM deployments ORDER BY block_height"
        ) as cur:
            return [row["contract_id"] async for row in cur]

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
        await self.db.execute(
            "INSERT INTO activity_log"
            " (event_type, tx_hash, market_id, amount, source, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (event_type, tx_hash, market_id, amount, source, message, _now()),
        )
        await self._commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    message=row["message"],
                    tx_hash=row["tx_hash"],
                    market_id=row["market_id"],
                    amount=row["amount"],
                    source=row["source"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


def _row_to_market(row: aiosqlite.Row) -> MarketRecord:
    outcome = row["winning_outcome"]
    return MarketRecord(
        market_id=row["market_id"],
        question=row["question"],
        creator=row["creator"],
        status=row["status"],
        yes_pool=row["yes_pool"],
        no_pool=row["no_pool"],
        winning_outcome=None if outcome is None else bool(outcome),
        resolve_date=row["resolve_date"],
        ipfs_hash=row["ipfs_hash"],
        created_block=row["created_block"],
        updated_at=row["updated_at"],
    )


def _row_to_stats(row: aiosqlite.Row) -> UserStats:
    return UserStats(
        user=row["user"],
        total_wagered=row["total_wagered"],
        total_won=row["total_won"],
        total_refunded=row["total_refunded"],
        bets=row["bets"],
    )
