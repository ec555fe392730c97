"""Internal record types for state persistence and operation results."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, order=True)
class PollCursor:
    """Position of the poller: last fully routed (block height, tx index)."""

    block_height: int
    tx_index: int = 0

    def is_before(self, block_height: int, tx_index: int) -> bool:
        """True if (block_height, tx_index) lies strictly after this cursor."""
        return (block_height, tx_index) > (self.block_height, self.tx_index)


@dataclass
class PollReport:
    """Outcome of one poll cycle."""

    started_at: PollCursor
    finished_at: PollCursor
    fetched: int = 0  # transactions returned by the explorer
    routed: int = 0  # transactions whose full event set was routed
    events: int = 0  # events dispatched to handlers
    skipped_events: int = 0  # other contracts, other categories, unknown discriminators
    failed_tx: str | None = None  # tx that stopped the cycle
    poisoned: list[str] = field(default_factory=list)
    backlog: int = 0  # newer transactions left for the next cycle


@dataclass
class MarketRecord:
    """A market as projected from contract events."""

    market_id: int
    question: str
    creator: str
    status: str = "open"  # open | resolved | cancelled
    yes_pool: int = 0  # micro-USDCx
    no_pool: int = 0
    winning_outcome: bool | None = None
    resolve_date: int = 0
    ipfs_hash: str | None = None
    created_block: int = 0
    updated_at: str = ""


@dataclass
class BetRecord:
    event_key: str
    market_id: int
    user: str
    outcome: bool
    amount: int
    status: str = "open"  # open | claimed | refunded
    block_height: int = 0


@dataclass
class UserStats:
    user: str
    total_wagered: int = 0
    total_won: int = 0  # net winnings
    total_refunded: int = 0
    bets: int = 0


@dataclass
class ActivityRecord:
    """An entry in the observer activity log."""

    id: int
    event_type: str
    message: str
    tx_hash: str | None = None
    market_id: int | None = None
    amount: int | None = None
    source: str | None = None
    created_at: str = ""
