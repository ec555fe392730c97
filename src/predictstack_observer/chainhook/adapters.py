"""Push-path adapters: turn an apply/rollback batch into typed events.

Each subscription scope has its own extractor. All of them walk the rollback
blocks first and then the apply blocks, each in delivery order, and emit
``(event, context)`` pairs for the shared HandlerSet.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from predictstack_observer.clarity.decoder import decode_value
from predictstack_observer.models.events import (
    ContractDeployed,
    DecodedEvent,
    EventContext,
    EventKind,
    Phase,
    Source,
    StxTransfer,
    TokenBurn,
    TokenMint,
    TokenTransfer,
    as_int,
    as_str,
    build_event,
)
from predictstack_observer.models.payload import BlockRecord, EventBatch, RawEvent, TransactionRecord
from predictstack_observer.models.subscriptions import Scope, Subscription

log = logging.getLogger(__name__)

PRINT_EVENT_TYPES = frozenset({"SmartContractEvent", "smart_contract_log"})
FT_EVENT_TYPES = {
    "FTMintEvent": EventKind.TOKEN_MINT,
    "FTTransferEvent": EventKind.TOKEN_TRANSFER,
    "FTBurnEvent": EventKind.TOKEN_BURN,
}
STX_TRANSFER_TYPE = "STXTransferEvent"

# Deployments are not receipt events; give them an index no receipt event uses.
DEPLOYMENT_EVENT_INDEX = -1

Pair = tuple[DecodedEvent, EventContext]


def _walk(batch: EventBatch) -> Iterator[tuple[Phase, BlockRecord, TransactionRecord]]:
    for phase, blocks in ((Phase.ROLLBACK, batch.rollback), (Phase.APPLY, batch.apply)):
        for block in blocks:
            for tx in block.transactions:
                if tx.success:
                    yield phase, block, tx


def _context(
    phase: Phase,
    block: BlockRecord,
    tx: TransactionRecord,
    index: int,
    sub: Subscription,
) -> EventContext:
    return EventContext(
        phase=phase,
        source=Source.PUSH,
        tx_hash=tx.tx_hash,
        block_height=block.height,
        event_index=index,
        subscription_id=sub.uuid,
        label=sub.label,
    )


def _print_events(batch: EventBatch, sub: Subscription) -> Iterator[Pair]:
    for phase, block, tx in _walk(batch):
        for raw in tx.events:
            if raw.type not in PRINT_EVENT_TYPES:
                continue
            contract = raw.data.get("contract_identifier")
            if contract and contract != sub.condition.contract_identifier:
                continue
            value = raw.data.get("value", raw.data.get("raw_value"))
            fields = decode_value(value)
            event = build_event(fields)
            if event is None:
                log.debug(
                    "Undecodable print event in tx %s (discriminator %r)",
                    tx.tx_hash, fields.get("event"),
                )
                continue
            if event.kind != sub.handler:
                continue
            yield event, _context(phase, block, tx, raw.index, sub)


def _token_event(raw: RawEvent, kind: EventKind) -> DecodedEvent:
    asset = as_str(raw.data.get("asset_identifier"))
    amount = as_int(raw.data.get("amount"))
    if kind == EventKind.TOKEN_MINT:
        return TokenMint(asset=asset, recipient=as_str(raw.data.get("recipient")), amount=amount)
    if kind == EventKind.TOKEN_BURN:
        return TokenBurn(asset=asset, sender=as_str(raw.data.get("sender")), amount=amount)
    return TokenTransfer(
        asset=asset,
        sender=as_str(raw.data.get("sender")),
        recipient=as_str(raw.data.get("recipient")),
        amount=amount,
    )


def _ft_events(batch: EventBatch, sub: Subscription) -> Iterator[Pair]:
    for phase, block, tx in _walk(batch):
        for raw in tx.events:
            kind = FT_EVENT_TYPES.get(raw.type)
            if kind is None or kind != sub.handler:
                continue
            asset = raw.data.get("asset_identifier")
            if asset and asset != sub.condition.asset_identifier:
                continue
            yield _token_event(raw, kind), _context(phase, block, tx, raw.index, sub)


def _stx_events(batch: EventBatch, sub: Subscription) -> Iterator[Pair]:
    for phase, block, tx in _walk(batch):
        for raw in tx.events:
            if raw.type != STX_TRANSFER_TYPE:
                continue
            event = StxTransfer(
                sender=as_str(raw.data.get("sender")),
                recipient=as_str(raw.data.get("recipient")),
                amount=as_int(raw.data.get("amount")),
            )
            yield event, _context(phase, block, tx, raw.index, sub)


def _deployment_events(batch: EventBatch, sub: Subscription) -> Iterator[Pair]:
    for phase, block, tx in _walk(batch):
        if tx.kind_type != "ContractDeployment":
            continue
        contract_id = as_str(tx.kind_data.get("contract_identifier"), "unknown")
        yield (
            ContractDeployed(contract_id=contract_id),
            _context(phase, block, tx, DEPLOYMENT_EVENT_INDEX, sub),
        )


_EXTRACTORS: dict[Scope, Callable[[EventBatch, Subscription], Iterator[Pair]]] = {
    Scope.PRINT_EVENT: _print_events,
    Scope.FT_EVENT: _ft_events,
    Scope.STX_EVENT: _stx_events,
    Scope.CONTRACT_DEPLOYMENT: _deployment_events,
}


def extract_events(batch: EventBatch, sub: Subscription) -> list[Pair]:
    """All typed events in a batch that belong to a subscription, in processing order."""
    return list(_EXTRACTORS[sub.condition.scope](batch, sub))
