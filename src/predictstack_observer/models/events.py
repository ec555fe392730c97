"""Domain event models shared by the push and poll ingestion paths.

Every decoded contract event becomes one of the frozen dataclasses below.
Each carries an explicit ``kind`` tag so handlers dispatch on the tag rather
than on which fields happen to be present.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Union


class EventKind(str, Enum):
    MARKET_CREATED = "market-created"
    MARKET_RESOLVED = "market-resolved"
    MARKET_CANCELLED = "market-cancelled"
    BET_PLACED = "bet-placed"
    WINNINGS_CLAIMED = "winnings-claimed"
    REFUND_CLAIMED = "refund-claimed"
    ADMIN = "admin"
    TOKEN_MINT = "ft-mint"
    TOKEN_TRANSFER = "ft-transfer"
    TOKEN_BURN = "ft-burn"
    STX_TRANSFER = "stx-transfer"
    CONTRACT_DEPLOYED = "contract-deployment"


class Phase(str, Enum):
    APPLY = "apply"
    ROLLBACK = "rollback"


class Source(str, Enum):
    PUSH = "push"
    POLL = "poll"


# Print-event discriminators that share the administrative handler.
ADMIN_EVENTS = frozenset({
    "platform-initialized",
    "fee-updated",
    "oracle-updated",
    "admin-updated",
    "treasury-updated",
    "platform-paused",
    "platform-unpaused",
    "min-bet-updated",
})


@dataclass(frozen=True)
class MarketCreated:
    kind: ClassVar[EventKind] = EventKind.MARKET_CREATED

    market_id: int | None
    question: str
    creator: str
    resolve_date: int
    ipfs_hash: str | None
    block_height: int


@dataclass(frozen=True)
class MarketResolved:
    kind: ClassVar[EventKind] = EventKind.MARKET_RESOLVED

    market_id: int | None
    winning_outcome: bool
    yes_pool: int  # micro-USDCx
    no_pool: int  # micro-USDCx
    resolved_by: str
    block_height: int


@dataclass(frozen=True)
class MarketCancelled:
    kind: ClassVar[EventKind] = EventKind.MARKET_CANCELLED

    market_id: int | None
    yes_pool: int
    no_pool: int
    cancelled_by: str
    block_height: int


@dataclass(frozen=True)
class BetPlaced:
    kind: ClassVar[EventKind] = EventKind.BET_PLACED

    market_id: int | None
    user: str
    outcome: bool  # True = YES
    amount: int  # micro-USDCx
    new_yes_pool: int
    new_no_pool: int
    block_height: int


@dataclass(frozen=True)
class WinningsClaimed:
    kind: ClassVar[EventKind] = EventKind.WINNINGS_CLAIMED

    market_id: int | None
    user: str
    winning_stake: int
    profit_share: int
    platform_fee: int
    net_winnings: int
    total_payout: int
    block_height: int


@dataclass(frozen=True)
class RefundClaimed:
    kind: ClassVar[EventKind] = EventKind.REFUND_CLAIMED

    market_id: int | None
    user: str
    refund_amount: int
    block_height: int


@dataclass(frozen=True)
class AdminEvent:
    """Any administrative/config-change print event."""

    kind: ClassVar[EventKind] = EventKind.ADMIN

    name: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenMint:
    kind: ClassVar[EventKind] = EventKind.TOKEN_MINT

    asset: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class TokenTransfer:
    kind: ClassVar[EventKind] = EventKind.TOKEN_TRANSFER

    asset: str
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class TokenBurn:
    kind: ClassVar[EventKind] = EventKind.TOKEN_BURN

    asset: str
    sender: str
    amount: int


@dataclass(frozen=True)
class StxTransfer:
    kind: ClassVar[EventKind] = EventKind.STX_TRANSFER

    sender: str
    recipient: str
    amount: int  # micro-STX


@dataclass(frozen=True)
class ContractDeployed:
    kind: ClassVar[EventKind] = EventKind.CONTRACT_DEPLOYED

    contract_id: str


DecodedEvent = Union[
    MarketCreated,
    MarketResolved,
    MarketCancelled,
    BetPlaced,
    WinningsClaimed,
    RefundClaimed,
    AdminEvent,
    TokenMint,
    TokenTransfer,
    TokenBurn,
    StxTransfer,
    ContractDeployed,
]


@dataclass(frozen=True)
class EventContext:
    """Where an event came from and which reconciliation phase it belongs to."""

    phase: Phase
    source: Source
    tx_hash: str
    block_height: int
    event_index: int
    subscription_id: str | None = None
    label: str | None = None  # subscription name or scope, for logging

    @property
    def key(self) -> str:
        """Stable identity of the event within the chain."""
        return f"{self.tx_hash}:{self.event_index}"


# ── Field coercion ─────────────────────────────────────────


def as_optional_int(value: object) -> int | None:
    """Coerce a decoded scalar to int, or None when it is not numeric.

    Accepts ints and digit strings with an optional ``u`` prefix, which is how
    unsigned values show up when the push transport hands over raw text.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("u"):
            text = text[1:]
        try:
            return int(text)
        except ValueError:
            return None
    return None


def as_int(value: object, default: int = 0) -> int:
    result = as_optional_int(value)
    return default if result is None else result


def as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def as_str(value: object, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def build_event(fields: Mapping[str, Any]) -> DecodedEvent | None:
    """Turn a decoded print tuple into a typed event.

    Dispatches on the ``event`` discriminator. Returns None for a missing or
    unknown discriminator so callers can log and skip it.
    """
    name = fields.get("event")
    if not isinstance(name, str) or not name:
        return None

    market_id = as_optional_int(fields.get("market-id"))
    block_height = as_int(fields.get("block-height"))

    if name == EventKind.MARKET_CREATED.value:
        ipfs = fields.get("ipfs-hash")
        return MarketCreated(
            market_id=market_id,
            question=as_str(fields.get("question")),
            creator=as_str(fields.get("creator")),
            resolve_date=as_int(fields.get("resolve-date")),
            ipfs_hash=None if ipfs is None else str(ipfs),
            block_height=block_height,
        )
    if name == EventKind.MARKET_RESOLVED.value:
        return MarketResolved(
            market_id=market_id,
            winning_outcome=as_bool(fields.get("winning-outcome")),
            yes_pool=as_int(fields.get("yes-pool")),
            no_pool=as_int(fields.get("no-pool")),
            resolved_by=as_str(fields.get("resolved-by")),
            block_height=block_height,
        )
    if name == EventKind.MARKET_CANCELLED.value:
        return MarketCancelled(
            market_id=market_id,
            yes_pool=as_int(fields.get("yes-pool")),
            no_pool=as_int(fields.get("no-pool")),
            cancelled_by=as_str(fields.get("cancelled-by")),
            block_height=block_height,
        )
    if name == EventKind.BET_PLACED.value:
        return BetPlaced(
            market_id=market_id,
            user=as_str(fields.get("user")),
            outcome=as_bool(fields.get("outcome")),
            amount=as_int(fields.get("amount")),
            new_yes_pool=as_int(fields.get("new-yes-pool")),
            new_no_pool=as_int(fields.get("new-no-pool")),
            block_height=block_height,
        )
    if name == EventKind.WINNINGS_CLAIMED.value:
        return WinningsClaimed(
            market_id=market_id,
            user=as_str(fields.get("user")),
            winning_stake=as_int(fields.get("winning-stake")),
            profit_share=as_int(fields.get("profit-share")),
            platform_fee=as_int(fields.get("platform-fee")),
            net_winnings=as_int(fields.get("net-winnings")),
            total_payout=as_int(fields.get("total-payout")),
            block_height=block_height,
        )
    if name == EventKind.REFUND_CLAIMED.value:
        return RefundClaimed(
            market_id=market_id,
            user=as_str(fields.get("user")),
            refund_amount=as_int(fields.get("refund-amount")),
            block_height=block_height,
        )
    if name in ADMIN_EVENTS:
        return AdminEvent(
            name=name,
            fields={k: v for k, v in fields.items() if k != "event"},
        )
    return None
