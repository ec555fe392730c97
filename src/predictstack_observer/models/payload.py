"""Inbound chainhook payload models (apply/rollback block batches)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class RawEvent:
    """One receipt event, tagged by category.

    ``type`` is the transport's discriminator (SmartContractEvent,
    FTMintEvent, FTTransferEvent, FTBurnEvent, STXTransferEvent, ...).
    """

    type: str
    data: Mapping[str, Any]
    index: int


@dataclass(frozen=True)
class TransactionRecord:
    tx_hash: str
    events: tuple[RawEvent, ...] = ()
    kind_type: str = ""  # metadata.kind.type, e.g. ContractCall / ContractDeployment
    kind_data: Mapping[str, Any] = field(default_factory=dict)
    success: bool = True


@dataclass(frozen=True)
class BlockRecord:
    height: int
    block_hash: str
    transactions: tuple[TransactionRecord, ...] = ()


@dataclass(frozen=True)
class EventBatch:
    """Unit of push delivery: blocks to undo and blocks newly confirmed."""

    subscription_id: str
    predicate: Mapping[str, Any] = field(default_factory=dict)
    is_streaming_blocks: bool = False
    apply: tuple[BlockRecord, ...] = ()
    rollback: tuple[BlockRecord, ...] = ()

    @property
    def scope(self) -> str:
        return str(self.predicate.get("scope", ""))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> EventBatch:
        """Build a batch from the chainhook webhook body.

        Raises ValueError if the body is not a JSON object. Missing or
        malformed block/transaction lists are treated as empty.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("chainhook payload must be a JSON object")

        hook = _mapping(payload.get("chainhook"))
        return cls(
            subscription_id=str(hook.get("uuid") or ""),
            predicate=_mapping(hook.get("predicate")),
            is_streaming_blocks=bool(hook.get("is_streaming_blocks", False)),
            apply=tuple(_block(b) for b in _sequence(payload.get("apply"))),
            rollback=tuple(_block(b) for b in _sequence(payload.get("rollback"))),
        )


def _mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _sequence(value: object) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _block(raw: object) -> BlockRecord:
    raw = _mapping(raw)
    ident = _mapping(raw.get("block_identifier"))
    index = ident.get("index")
    return BlockRecord(
        height=index if isinstance(index, int) else 0,
        block_hash=str(ident.get("hash") or ""),
        transactions=tuple(_transaction(t) for t in _sequence(raw.get("transactions"))),
    )


def _transaction(raw: object) -> TransactionRecord:
    raw = _mapping(raw)
    ident = _mapping(raw.get("transaction_identifier"))
    metadata = _mapping(raw.get("metadata"))
    receipt = _mapping(metadata.get("receipt"))
    kind = _mapping(metadata.get("kind"))

    events = []
    for position, ev in enumerate(_sequence(receipt.get("events"))):
        ev = _mapping(ev)
        index = _mapping(ev.get("position")).get("index")
        events.append(RawEvent(
            type=str(ev.get("type") or ""),
            data=_mapping(ev.get("data")),
            index=index if isinstance(index, int) else position,
        ))

    return TransactionRecord(
        tx_hash=str(ident.get("hash") or ""),
        events=tuple(events),
        kind_type=str(kind.get("type") or ""),
        kind_data=_mapping(kind.get("data")),
        success=bool(metadata.get("success", True)),
    )
