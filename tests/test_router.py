"""Tests 36-45: Push-path routing and batch adapters."""

from __future__ import annotations

import pytest

from predictstack_observer.chainhook.adapters import DEPLOYMENT_EVENT_INDEX, extract_events
from predictstack_observer.chainhook.router import EventRouter, RouteResult
from predictstack_observer.chainhook.subscriptions import UUIDS
from predictstack_observer.models.events import BetPlaced, EventKind, Phase, Source
from predictstack_observer.models.payload import EventBatch

from tests.conftest import CONTRACTS, MARKET_CONTRACT, USER_A, USER_B
from tests.factories import (
    bet_placed_fields,
    deployment_tx,
    ft_event,
    make_block,
    make_payload,
    make_tx,
    market_created_fields,
    print_event,
    stx_event,
)
from tests.mocks import MockBatchHandler


def _sub(subscriptions, key: str):
    return next(s for s in subscriptions if s.uuid == UUIDS[key])


@pytest.fixture
def router(subscriptions, handlers, store):
    return EventRouter.from_subscriptions(subscriptions, handlers, store)


async def _seed_market(router):
    payload = make_payload("market-created", apply=[
        make_block(990, [make_tx("0xcreate", [print_event(market_created_fields(1))])]),
    ])
    assert await router.route(UUIDS["market-created"], EventBatch.from_payload(payload)) == RouteResult.HANDLED


# ── Test 36: Registry ─────────────────────────────────────────────


def test_router_registers_every_subscription(router, subscriptions):
    assert sorted(router.subscription_ids) == sorted(s.uuid for s in subscriptions)
    with pytest.raises(ValueError):
        router.register(UUIDS["bet-placed"], MockBatchHandler())


# ── Test 37: Unknown identifiers are ignored ──────────────────────


async def test_route_unknown_subscription(router, store):
    batch = EventBatch.from_payload({"chainhook": {"uuid": "nope"}, "apply": [], "rollback": []})
    assert await router.route("00000000-dead-beef-0000-000000000000", batch) == RouteResult.UNKNOWN
    assert await store.get_recent_activity(10) == []


# ── Test 38: Handler failures are contained and recorded ──────────


async def test_route_handler_failure_is_recorded(store):
    router = EventRouter(store)
    router.register("sub-1", MockBatchHandler(error=RuntimeError("boom")), "bet-placed")
    batch = EventBatch.from_payload({"apply": [], "rollback": []})

    assert await router.route("sub-1", batch) == RouteResult.FAILED

    activity = await store.get_recent_activity(10)
    assert activity[0].event_type == "handler_error"
    assert "sub-1" in activity[0].message
    assert "boom" in activity[0].message
    assert activity[0].source == "push"


# ── Test 39: Apply batch end to end ───────────────────────────────


async def test_bet_batch_applies(router, store):
    await _seed_market(router)
    payload = make_payload("bet-placed", apply=[
        make_block(1001, [make_tx("0xbet", [print_event(bet_placed_fields(), index=2)])]),
    ])

    assert await router.route(UUIDS["bet-placed"], EventBatch.from_payload(payload)) == RouteResult.HANDLED

    bets = await store.get_bets(1)
    assert [b.event_key for b in bets] == ["0xbet:2"]
    assert (await store.get_user_stats(USER_A)).total_wagered == 5_000_000


# ── Test 40: Rollback undoes a previously applied batch ───────────


async def test_rollback_batch_compensates(router, store):
    await _seed_market(router)
    block = make_block(1001, [make_tx("0xbet", [print_event(bet_placed_fields(), index=2)])])
    uuid = UUIDS["bet-placed"]

    await router.route(uuid, EventBatch.from_payload(make_payload("bet-placed", apply=[block])))
    # Replayed delivery changes nothing
    await router.route(uuid, EventBatch.from_payload(make_payload("bet-placed", apply=[block])))
    assert (await store.get_user_stats(USER_A)).bets == 1

    await router.route(uuid, EventBatch.from_payload(make_payload("bet-placed", rollback=[block])))
    assert await store.get_bets(1) == []
    assert (await store.get_user_stats(USER_A)).total_wagered == 0
    market = await store.get_market(1)
    assert market.yes_pool == 0


# ── Test 41: Rollback phase runs before apply phase ───────────────


def test_extract_orders_rollback_before_apply(subscriptions):
    sub = _sub(subscriptions, "bet-placed")
    old = make_block(1001, [make_tx("0xold", [print_event(bet_placed_fields())])])
    new = make_block(1001, [make_tx("0xnew", [print_event(bet_placed_fields(user=USER_B))])])
    batch = EventBatch.from_payload(make_payload("bet-placed", apply=[new], rollback=[old]))

    pairs = extract_events(batch, sub)

    assert [(ctx.phase, ctx.tx_hash) for _, ctx in pairs] == [
        (Phase.ROLLBACK, "0xold"),
        (Phase.APPLY, "0xnew"),
    ]
    event, ctx = pairs[1]
    assert isinstance(event, BetPlaced)
    assert event.user == USER_B
    assert ctx.source == Source.PUSH
    assert ctx.subscription_id == sub.uuid
    assert ctx.label == "bet-placed"


# ── Test 42: Print adapter filters ────────────────────────────────


def test_extract_print_events_filters(subscriptions):
    sub = _sub(subscriptions, "bet-placed")
    tx = make_tx("0xmixed", [
        print_event(bet_placed_fields(), index=0),
        print_event(market_created_fields(), index=1),  # other discriminator
        print_event(bet_placed_fields(), index=2, contract=f"{CONTRACTS.deployer}.other"),
        print_event(bet_placed_fields(amount=7), index=3, as_repr=True),
        print_event({"event": "mystery"}, index=4),
    ])
    failed = make_tx("0xfailed", [print_event(bet_placed_fields())], success=False)
    batch = EventBatch.from_payload(make_payload("bet-placed", apply=[make_block(5, [tx, failed])]))

    pairs = extract_events(batch, sub)

    assert [ctx.event_index for _, ctx in pairs] == [0, 3]
    assert pairs[1][0].amount == 7


# ── Test 43: Fungible token adapter ───────────────────────────────


def test_extract_ft_events(subscriptions):
    mint_sub = _sub(subscriptions, "usdcx-mint")
    tx = make_tx("0xft", [
        ft_event("FTMintEvent", amount=10_000_000, recipient=USER_A, index=0),
        ft_event("FTTransferEvent", sender=USER_A, recipient=USER_B, index=1),
        ft_event("FTMintEvent", asset="SP000.other::tok", index=2),
    ])
    batch = EventBatch.from_payload(make_payload("usdcx-mint", apply=[make_block(5, [tx])], scope="ft_event"))

    pairs = extract_events(batch, mint_sub)

    assert len(pairs) == 1
    event, ctx = pairs[0]
    assert event.kind == EventKind.TOKEN_MINT
    assert event.amount == 10_000_000
    assert event.recipient == USER_A
    assert ctx.label == "ft_event"


# ── Test 44: STX adapter and contract sender check ────────────────


async def test_stx_batch_only_reacts_to_contract_sender(router, store):
    tx = make_tx("0xstx", [
        stx_event(sender=USER_B, index=0),
        stx_event(sender=MARKET_CONTRACT, amount=2_000_000, index=1),
    ])
    payload = make_payload("stx-from-contract", apply=[make_block(5, [tx])], scope="stx_event")

    assert await router.route(UUIDS["stx-from-contract"], EventBatch.from_payload(payload)) == RouteResult.HANDLED

    anomalies = [a for a in await store.get_recent_activity(10) if a.event_type == "stx_anomaly"]
    assert len(anomalies) == 1
    assert anomalies[0].amount == 2_000_000


# ── Test 45: Deployment adapter ───────────────────────────────────


async def test_deployment_batch(router, store, subscriptions):
    sub = _sub(subscriptions, "deployer-contracts")
    tracked = f"{CONTRACTS.deployer}.usdcx-v2"
    batch = EventBatch.from_payload(make_payload(
        "deployer-contracts",
        apply=[make_block(7, [deployment_tx("0xd1", tracked), deployment_tx("0xd2", f"{CONTRACTS.deployer}.misc")])],
        scope="contract_deployment",
    ))

    pairs = extract_events(batch, sub)
    assert [ctx.event_index for _, ctx in pairs] == [DEPLOYMENT_EVENT_INDEX, DEPLOYMENT_EVENT_INDEX]

    assert await router.route(sub.uuid, batch) == RouteResult.HANDLED
    assert await store.get_deployments() == [tracked]
