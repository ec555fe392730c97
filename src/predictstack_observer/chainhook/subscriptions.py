"""Static, versioned subscription table.

The uuids below are registered with the chainhook node, which deduplicates
by uuid. They must stay stable across restarts and deploys: changing one
orphans the predicate on the remote side. Add new subscriptions with new
uuids and bump SUBSCRIPTIONS_VERSION.
"""

from __future__ import annotations

from predictstack_observer.models.config import NetworkContracts
from predictstack_observer.models.events import EventKind
from predictstack_observer.models.subscriptions import Scope, Subscription, SubscriptionCondition

SUBSCRIPTIONS_VERSION = 1

UUIDS = {
    "platform-initialized": "11111111-0000-0000-0000-000000000001",
    "market-created": "11111111-0000-0000-0000-000000000002",
    "market-resolved": "11111111-0000-0000-0000-000000000003",
    "market-cancelled": "11111111-0000-0000-0000-000000000004",
    "bet-placed": "11111111-0000-0000-0000-000000000005",
    "winnings-claimed": "11111111-0000-0000-0000-000000000006",
    "refund-claimed": "11111111-0000-0000-0000-000000000007",
    "fee-updated": "11111111-0000-0000-0000-000000000008",
    "oracle-updated": "11111111-0000-0000-0000-000000000009",
    "admin-updated": "11111111-0000-0000-0000-000000000010",
    "treasury-updated": "11111111-0000-0000-0000-000000000011",
    "platform-paused": "11111111-0000-0000-0000-000000000012",
    "platform-unpaused": "11111111-0000-0000-0000-000000000013",
    "min-bet-updated": "11111111-0000-0000-0000-000000000014",
    "usdcx-mint": "11111111-0000-0000-0000-000000000015",
    "usdcx-transfer": "11111111-0000-0000-0000-000000000016",
    "usdcx-burn": "11111111-0000-0000-0000-000000000017",
    "stx-from-contract": "11111111-0000-0000-0000-000000000018",
    "deployer-contracts": "11111111-0000-0000-0000-000000000019",
}

# Print events in registration order, with the handler each one feeds.
PRINT_EVENTS = (
    ("platform-initialized", EventKind.ADMIN),
    ("market-created", EventKind.MARKET_CREATED),
    ("market-resolved", EventKind.MARKET_RESOLVED),
    ("market-cancelled", EventKind.MARKET_CANCELLED),
    ("bet-placed", EventKind.BET_PLACED),
    ("winnings-claimed", EventKind.WINNINGS_CLAIMED),
    ("refund-claimed", EventKind.REFUND_CLAIMED),
    ("fee-updated", EventKind.ADMIN),
    ("oracle-updated", EventKind.ADMIN),
    ("admin-updated", EventKind.ADMIN),
    ("treasury-updated", EventKind.ADMIN),
    ("platform-paused", EventKind.ADMIN),
    ("platform-unpaused", EventKind.ADMIN),
    ("min-bet-updated", EventKind.ADMIN),
)


def _print_event(event: str, handler: EventKind, contracts: NetworkContracts) -> Subscription:
    return Subscription(
        uuid=UUIDS[event],
        name=f"predictstack-{event}",
        condition=SubscriptionCondition(
            scope=Scope.PRINT_EVENT,
            contract_identifier=contracts.market_contract,
            contains=event,
        ),
        handler=handler,
        decode_values=True,
    )


def _token_event(
    key: str, action: str, asset: str, handler: EventKind
) -> Subscription:
    return Subscription(
        uuid=UUIDS[key],
        name=f"predictstack-{key}",
        condition=SubscriptionCondition(
            scope=Scope.FT_EVENT, asset_identifier=asset, actions=(action,),
        ),
        handler=handler,
    )


def build_subscriptions(contracts: NetworkContracts) -> tuple[Subscription, ...]:
    """All subscriptions for one network, in registration order."""
    subs = [_print_event(event, handler, contracts) for event, handler in PRINT_EVENTS]
    subs += [
        _token_event("usdcx-mint", "mint", contracts.token_asset, EventKind.TOKEN_MINT),
        _token_event("usdcx-transfer", "transfer", contracts.token_asset, EventKind.TOKEN_TRANSFER),
        _token_event("usdcx-burn", "burn", contracts.bridge_burn_asset, EventKind.TOKEN_BURN),
        Subscription(
            uuid=UUIDS["stx-from-contract"],
            name="predictstack-stx-from-contract",
            # No sender filter exists for stx_event; the handler checks it.
            condition=SubscriptionCondition(scope=Scope.STX_EVENT, actions=("transfer",)),
            handler=EventKind.STX_TRANSFER,
        ),
        Subscription(
            uuid=UUIDS["deployer-contracts"],
            name="predictstack-pm-deployment",
            # Only deployer filtering exists; the handler checks contract names.
            condition=SubscriptionCondition(
                scope=Scope.CONTRACT_DEPLOYMENT, deployer=contracts.deployer,
            ),
            handler=EventKind.CONTRACT_DEPLOYED,
        ),
    ]
    _check_unique(subs)
    return tuple(subs)


def _check_unique(subs: list[Subscription]) -> None:
    seen: set[str] = set()
    for sub in subs:
        if sub.uuid in seen:
            raise ValueError(f"duplicate subscription uuid {sub.uuid}")
        seen.add(sub.uuid)
