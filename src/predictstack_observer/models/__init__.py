"""Data models for the predictstack observer."""

from predictstack_observer.models.config import (
    CursorResume,
    Network,
    NetworkContracts,
    ObserverConfig,
    ObserverMode,
    contracts_for,
)
from predictstack_observer.models.events import (
    AdminEvent,
    BetPlaced,
    ContractDeployed,
    DecodedEvent,
    EventContext,
    EventKind,
    MarketCancelled,
    MarketCreated,
    MarketResolved,
    Phase,
    RefundClaimed,
    Source,
    StxTransfer,
    TokenBurn,
    TokenMint,
    TokenTransfer,
    WinningsClaimed,
    build_event,
)
from predictstack_observer.models.payload import (
    BlockRecord,
    EventBatch,
    RawEvent,
    TransactionRecord,
)
from predictstack_observer.models.records import (
    ActivityRecord,
    BetRecord,
    MarketRecord,
    PollCursor,
    PollReport,
    UserStats,
)
from predictstack_observer.models.subscriptions import (
    Scope,
    Subscription,
    SubscriptionCondition,
)

__all__ = [
    "CursorResume", "Network", "NetworkContracts", "ObserverConfig", "ObserverMode",
    "contracts_for",
    "AdminEvent", "BetPlaced", "ContractDeployed", "DecodedEvent", "EventContext",
    "EventKind", "MarketCancelled", "MarketCreated", "MarketResolved", "Phase",
    "RefundClaimed", "Source", "StxTransfer", "TokenBurn", "TokenMint",
    "TokenTransfer", "WinningsClaimed", "build_event",
    "BlockRecord", "EventBatch", "RawEvent", "TransactionRecord",
    "ActivityRecord", "BetRecord", "MarketRecord", "PollCursor", "PollReport",
    "UserStats",
    "Scope", "Subscription", "SubscriptionCondition",
]
