"""Synthetic payload and transaction factories for testing."""

from __future__ import annotations

from typing import Any

from predictstack_observer.chainhook.subscriptions import UUIDS

from tests.conftest import CONTRACTS, MARKET_CONTRACT, USER_A


def clarity(value: Any) -> str:
    """Render a Python value in Clarity repr notation (ints as uints)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "none"
    if isinstance(value, int):
        return f"u{value}"
    if isinstance(value, dict):
        return make_repr(value)
    if isinstance(value, str) and value.startswith("'"):
        return value
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def make_repr(fields: dict[str, Any]) -> str:
    pairs = " ".join(f"({k} {clarity(v)})" for k, v in fields.items())
    return f"(tuple {pairs})"


# ── Print-event field sets ─────────────────────────────────────────


def market_created_fields(market_id: int = 1, question: str = "Will BTC close above 100k?") -> dict:
    return {
        "event": "market-created",
        "market-id": market_id,
        "question": question,
        "creator": f"'{USER_A}",
        "resolve-date": 1_800_000_000,
        "block-height": 990,
    }


def bet_placed_fields(
    market_id: int = 1,
    user: str = USER_A,
    outcome: bool = True,
    amount: int = 5_000_000,
    new_yes_pool: int = 5_000_000,
    new_no_pool: int = 0,
) -> dict:
    return {
        "event": "bet-placed",
        "market-id": market_id,
        "user": f"'{user}",
        "outcome": outcome,
        "amount": amount,
        "new-yes-pool": new_yes_pool,
        "new-no-pool": new_no_pool,
    }


def market_resolved_fields(market_id: int = 1, winning_outcome: bool = True) -> dict:
    return {
        "event": "market-resolved",
        "market-id": market_id,
        "winning-outcome": winning_outcome,
        "yes-pool": 5_000_000,
        "no-pool": 3_000_000,
        "resolved-by": f"'{USER_A}",
    }


def winnings_claimed_fields(market_id: int = 1, user: str = USER_A, net: int = 7_760_000) -> dict:
    return {
        "event": "winnings-claimed",
        "market-id": market_id,
        "user": f"'{user}",
        "winning-stake": 5_000_000,
        "profit-share": 3_000_000,
        "platform-fee": 240_000,
        "net-winnings": net,
        "total-payout": net,
    }


# ── Chainhook (push) payloads ──────────────────────────────────────


def print_event(fields: dict, index: int = 0, contract: str = MARKET_CONTRACT, as_repr: bool = False) -> dict:
    """A receipt print event; decoded JSON by default, textual repr if ``as_repr``."""
    if as_repr:
        value: Any = make_repr(fields)
    else:
        value = {k: (v[1:] if isinstance(v, str) and v.startswith("'") else v) for k, v in fields.items()}
    return {
        "type": "SmartContractEvent",
        "position": {"index": index},
        "data": {"contract_identifier": contract, "topic": "print", "value": value},
    }


def ft_event(
    kind: str = "FTMintEvent",
    amount: int = 10_000_000,
    sender: str | None = None,
    recipient: str | None = USER_A,
    asset: str = CONTRACTS.token_asset,
    index: int = 0,
) -> dict:
    data: dict[str, Any] = {"asset_identifier": asset, "amount": str(amount)}
    if sender is not None:
        data["sender"] = sender
    if recipient is not None:
        data["recipient"] = recipient
    return {"type": kind, "position": {"index": index}, "data": data}


def stx_event(sender: str, recipient: str = USER_A, amount: int = 1_000_000, index: int = 0) -> dict:
    return {
        "type": "STXTransferEvent",
        "position": {"index": index},
        "data": {"sender": sender, "recipient": recipient, "amount": str(amount)},
    }


def make_tx(
    tx_hash: str,
    events: list[dict] | None = None,
    success: bool = True,
    kind: dict | None = None,
) -> dict:
    return {
        "transaction_identifier": {"hash": tx_hash},
        "metadata": {
            "success": success,
            "receipt": {"events": events or []},
            "kind": kind or {"type": "ContractCall", "data": {}},
        },
    }


def deployment_tx(tx_hash: str, contract_id: str) -> dict:
    return make_tx(
        tx_hash,
        kind={"type": "ContractDeployment", "data": {"contract_identifier": contract_id}},
    )


def make_block(height: int, transactions: list[dict]) -> dict:
    return {
        "block_identifier": {"index": height, "hash": f"0x{height:064x}"},
        "transactions": transactions,
    }


def make_payload(
    key: str,
    apply: list[dict] | None = None,
    rollback: list[dict] | None = None,
    scope: str = "print_event",
) -> dict:
    """A chainhook delivery for the subscription named ``key`` in UUIDS."""
    return {
        "chainhook": {
            "uuid": UUIDS[key],
            "predicate": {"scope": scope},
            "is_streaming_blocks": True,
        },
        "apply": apply or [],
        "rollback": rollback or [],
    }


# ── Explorer (poll) records ────────────────────────────────────────


def explorer_tx(
    tx_id: str,
    block_height: int,
    tx_index: int = 0,
    tx_status: str = "success",
) -> dict:
    return {
        "tx_id": tx_id,
        "tx_status": tx_status,
        "block_height": block_height,
        "tx_index": tx_index,
        "tx_type": "contract_call",
    }


def contract_log(fields: dict, event_index: int = 0, contract: str = MARKET_CONTRACT) -> dict:
    return {
        "event_index": event_index,
        "event_type": "smart_contract_log",
        "tx_id": "",
        "contract_log": {
            "contract_id": contract,
            "topic": "print",
            "value": {"hex": "0x0c", "repr": make_repr(fields)},
        },
    }
