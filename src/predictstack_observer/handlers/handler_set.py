"""Domain handlers shared by the push and poll ingestion paths.

Each decoded event is either applied (forward progress) or compensated
(rollback of a reorganised block). The processed-event ledger makes both
directions idempotent: an apply whose key is already recorded is skipped, and
a rollback only compensates keys that were actually applied.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from predictstack_observer.clarity.amounts import format_amount
from predictstack_observer.interfaces.store import EventStore
from predictstack_observer.models.config import NetworkContracts
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
    StxTransfer,
    TokenBurn,
    TokenMint,
    TokenTransfer,
    WinningsClaimed,
)
from predictstack_observer.models.records import BetRecord, MarketRecord

log = logging.getLogger(__name__)

# Deployments by our deployer that we keep in the contract registry.
TRACKED_CONTRACT_MARKERS = ("prediction-market", "usdcx")

_Action = Callable[[DecodedEvent, EventContext], Awaitable[None]]


def _side(outcome: bool) -> str:
    return "YES" if outcome else "NO"


class HandlerSet:
    """Translates decoded events into state changes in the event store."""

    def __init__(self, store: EventStore, contracts: NetworkContracts) -> None:
        self._store = store
        self._contracts = contracts
        self._actions: dict[EventKind, tuple[_Action, _Action]] = {
            EventKind.MARKET_CREATED: (self._apply_market_created, self._rollback_market_created),
            EventKind.MARKET_RESOLVED: (self._apply_market_resolved, self._rollback_market_resolved),
            EventKind.MARKET_CANCELLED: (self._apply_market_cancelled, self._rollback_market_cancelled),
            EventKind.BET_PLACED: (self._apply_bet_placed, self._rollback_bet_placed),
            EventKind.WINNINGS_CLAIMED: (self._apply_winnings_claimed, self._rollback_winnings_claimed),
            EventKind.REFUND_CLAIMED: (self._apply_refund_claimed, self._rollback_refund_claimed),
            EventKind.ADMIN: (self._apply_admin, self._rollback_admin),
            EventKind.TOKEN_MINT: (self._apply_token_mint, self._rollback_token_mint),
            EventKind.TOKEN_TRANSFER: (self._apply_token_transfer, self._rollback_token_transfer),
            EventKind.TOKEN_BURN: (self._apply_token_burn, self._rollback_token_burn),
            EventKind.STX_TRANSFER: (self._apply_stx_transfer, self._rollback_stx_transfer),
            EventKind.CONTRACT_DEPLOYED: (self._apply_deployment, self._rollback_deployment),
        }

    async def handle(self, event: DecodedEvent, ctx: EventContext) -> bool:
        """Apply or compensate one event.

        Returns True if state changed, False for duplicates and ignored events.
        """
        if not self._is_relevant(event):
            return False

        apply_fn, rollback_fn = self._actions[event.kind]
        async with self._store.transaction():
            if ctx.phase == Phase.APPLY:
                if not await self._store.mark_applied(
                    ctx.key, event.kind.value, ctx.source.value, ctx.block_height,
                ):
                    log.debug("Skipping already applied %s event %s", event.kind.value, ctx.key)
                    return False
                await apply_fn(event, ctx)
            else:
                if not await self._store.unmark_applied(ctx.key):
                    log.debug("Nothing to roll back for %s event %s", event.kind.value, ctx.key)
                    return False
                await rollback_fn(event, ctx)
        return True

    def _is_relevant(self, event: DecodedEvent) -> bool:
        if isinstance(event, StxTransfer):
            # stx_event predicates cannot filter by sender; everything not sent
            # by our contracts is background noise.
            return event.sender in self._contracts.contract_ids
        if isinstance(event, ContractDeployed):
            return any(m in event.contract_id for m in TRACKED_CONTRACT_MARKERS)
        market_id = getattr(event, "market_id", 0)
        if market_id is None:
            log.warning("Dropping %s event without market-id", event.kind.value)
            return False
        return True

    async def _activity(self, event_type: str, message: str, ctx: EventContext, **kw) -> None:
        await self._store.log_activity(
            event_type, message, tx_hash=ctx.tx_hash, source=ctx.source.value, **kw,
        )

    # ── Markets ────────────────────────────────────────────

    async def _apply_market_created(self, event: MarketCreated, ctx: EventContext) -> None:
        log.info("[market-created] ID: %d | %r", event.market_id, event.question)
        await self._store.upsert_market(MarketRecord(
            market_id=event.market_id,
            question=event.question,
            creator=event.creator,
            resolve_date=event.resolve_date,
            ipfs_hash=event.ipfs_hash,
            created_block=event.block_height or ctx.block_height,
        ))
        await self._activity(
            "market_created", f"Market #{event.market_id} created: {event.question}",
            ctx, market_id=event.market_id,
        )

    async def _rollback_market_created(self, event: MarketCreated, ctx: EventContext) -> None:
        log.info("[market-created ROLLBACK] ID: %d", event.market_id)
        await self._store.delete_market(event.market_id)
        await self._activity(
            "market_created_rollback", f"Market #{event.market_id} creation rolled back",
            ctx, market_id=event.market_id,
        )

    async def _apply_market_resolved(self, event: MarketResolved, ctx: EventContext) -> None:
        winner = _side(event.winning_outcome)
        log.info("[market-resolved] ID: %d | Winner: %s", event.market_id, winner)
        await self._store.update_market(
            event.market_id,
            status="resolved",
            yes_pool=event.yes_pool,
            no_pool=event.no_pool,
            winning_outcome=event.winning_outcome,
        )
        await self._activity(
            "market_resolved", f"Market #{event.market_id} resolved: {winner}",
            ctx, market_id=event.market_id,
        )

    async def _rollback_market_resolved(self, event: MarketResolved, ctx: EventContext) -> None:
        log.info("[market-resolved ROLLBACK] ID: %d", event.market_id)
        await self._store.update_market(event.market_id, status="open", clear_outcome=True)
        await self._activity(
            "market_resolved_rollback", f"Market #{event.market_id} back to open",
            ctx, market_id=event.market_id,
        )

    async def _apply_market_cancelled(self, event: MarketCancelled, ctx: EventContext) -> None:
        log.info("[market-cancelled] ID: %d", event.market_id)
        await self._store.update_market(event.market_id, status="cancelled")
        await self._activity(
            "market_cancelled", f"Market #{event.market_id} cancelled, refunds open",
            ctx, market_id=event.market_id,
        )

    async def _rollback_market_cancelled(self, event: MarketCancelled, ctx: EventContext) -> None:
        log.info("[market-cancelled ROLLBACK] ID: %d", event.market_id)
        await self._store.update_market(event.market_id, status="open")
        await self._activity(
            "market_cancelled_rollback", f"Market #{event.market_id} back to open",
            ctx, market_id=event.market_id,
        )

    # ── Wagers and claims ──────────────────────────────────

    async def _apply_bet_placed(self, event: BetPlaced, ctx: EventContext) -> None:
        side = _side(event.outcome)
        log.info(
            "[bet-placed] Market: %d | %s bet %s on %s",
            event.market_id, event.user, format_amount(event.amount), side,
        )
        await self._store.save_bet(BetRecord(
            event_key=ctx.key,
            market_id=event.market_id,
            user=event.user,
            outcome=event.outcome,
            amount=event.amount,
            block_height=event.block_height or ctx.block_height,
        ))
        await self._store.update_market(
            event.market_id, yes_pool=event.new_yes_pool, no_pool=event.new_no_pool,
        )
        await self._store.adjust_user_stats(event.user, wagered=event.amount, bets=1)
        await self._activity(
            "bet_placed", f"{event.user} bet {format_amount(event.amount)} on {side}",
            ctx, market_id=event.market_id, amount=event.amount,
        )

    async def _rollback_bet_placed(self, event: BetPlaced, ctx: EventContext) -> None:
        log.info("[bet-placed ROLLBACK] Market: %d | User: %s", event.market_id, event.user)
        await self._store.delete_bet(ctx.key)
        if event.outcome:
            await self._store.adjust_market_pools(event.market_id, -event.amount, 0)
        else:
            await self._store.adjust_market_pools(event.market_id, 0, -event.amount)
        await self._store.adjust_user_stats(event.user, wagered=-event.amount, bets=-1)
        await self._activity(
            "bet_placed_rollback", f"Bet by {event.user} rolled back",
            ctx, market_id=event.market_id, amount=event.amount,
        )

    async def _apply_winnings_claimed(self, event: WinningsClaimed, ctx: EventContext) -> None:
        log.info(
            "[winnings-claimed] Market: %d | %s won %s",
            event.market_id, event.user, format_amount(event.net_winnings),
        )
        await self._store.set_bet_status(event.market_id, event.user, "claimed", "open")
        await self._store.adjust_user_stats(event.user, won=event.net_winnings)
        await self._activity(
            "winnings_claimed", f"{event.user} won {format_amount(event.net_winnings)}",
            ctx, market_id=event.market_id, amount=event.net_winnings,
        )

    async def _rollback_winnings_claimed(self, event: WinningsClaimed, ctx: EventContext) -> None:
        log.info("[winnings-claimed ROLLBACK] Market: %d", event.market_id)
        await self._store.set_bet_status(event.market_id, event.user, "open", "claimed")
        await self._store.adjust_user_stats(event.user, won=-event.net_winnings)
        await self._activity(
            "winnings_claimed_rollback", f"Claim by {event.user} rolled back",
            ctx, market_id=event.market_id, amount=event.net_winnings,
        )

    async def _apply_refund_claimed(self, event: RefundClaimed, ctx: EventContext) -> None:
        log.info(
            "[refund-claimed] Market: %d | %s refunded %s",
            event.market_id, event.user, format_amount(event.refund_amount),
        )
        await self._store.set_bet_status(event.market_id, event.user, "refunded", "open")
        await self._store.adjust_user_stats(event.user, refunded=event.refund_amount)
        await self._activity(
            "refund_claimed", f"{event.user} refunded {format_amount(event.refund_amount)}",
            ctx, market_id=event.market_id, amount=event.refund_amount,
        )

    async def _rollback_refund_claimed(self, event: RefundClaimed, ctx: EventContext) -> None:
        log.info("[refund-claimed ROLLBACK] Market: %d", event.market_id)
        await self._store.set_bet_status(event.market_id, event.user, "open", "refunded")
        await self._store.adjust_user_stats(event.user, refunded=-event.refund_amount)
        await self._activity(
            "refund_claimed_rollback", f"Refund to {event.user} rolled back",
            ctx, market_id=event.market_id, amount=event.refund_amount,
        )

    # ── Administration ─────────────────────────────────────

    async def _apply_admin(self, event: AdminEvent, ctx: EventContext) -> None:
        label = ctx.label or event.name
        log.info("[admin:%s] %s | tx: %s", label, event.name, ctx.tx_hash)
        await self._activity("admin", f"{event.name} ({label})", ctx)

    async def _rollback_admin(self, event: AdminEvent, ctx: EventContext) -> None:
        label = ctx.label or event.name
        log.info("[admin:%s ROLLBACK] %s | tx: %s", label, event.name, ctx.tx_hash)
        await self._activity("admin_rollback", f"{event.name} rolled back ({label})", ctx)

    # ── Fungible token movements ───────────────────────────

    async def _apply_token_mint(self, event: TokenMint, ctx: EventContext) -> None:
        log.info("[usdcx-mint] %s minted to %s", format_amount(event.amount), event.recipient)
        await self._store.adjust_balance(event.asset, event.recipient, event.amount)
        await self._activity("token_mint", f"Minted to {event.recipient}", ctx, amount=event.amount)

    async def _rollback_token_mint(self, event: TokenMint, ctx: EventContext) -> None:
        log.info("[usdcx-mint ROLLBACK] %s to %s", format_amount(event.amount), event.recipient)
        await self._store.adjust_balance(event.asset, event.recipient, -event.amount)
        await self._activity(
            "token_mint_rollback", f"Mint to {event.recipient} rolled back", ctx, amount=event.amount,
        )

    async def _apply_token_transfer(self, event: TokenTransfer, ctx: EventContext) -> None:
        log.info(
            "[usdcx-transfer] %s | %s -> %s",
            format_amount(event.amount), event.sender, event.recipient,
        )
        await self._store.adjust_balance(event.asset, event.sender, -event.amount)
        await self._store.adjust_balance(event.asset, event.recipient, event.amount)

    async def _rollback_token_transfer(self, event: TokenTransfer, ctx: EventContext) -> None:
        log.info(
            "[usdcx-transfer ROLLBACK] %s | %s -> %s",
            format_amount(event.amount), event.sender, event.recipient,
        )
        await self._store.adjust_balance(event.asset, event.recipient, -event.amount)
        await self._store.adjust_balance(event.asset, event.sender, event.amount)

    async def _apply_token_burn(self, event: TokenBurn, ctx: EventContext) -> None:
        log.info("[usdcx-burn] %s burned from %s", format_amount(event.amount), event.sender)
        await self._store.adjust_balance(event.asset, event.sender, -event.amount)
        await self._activity(
            "bridge_withdrawal", f"Burned from {event.sender}", ctx, amount=event.amount,
        )

    async def _rollback_token_burn(self, event: TokenBurn, ctx: EventContext) -> None:
        log.info("[usdcx-burn ROLLBACK] %s from %s", format_amount(event.amount), event.sender)
        await self._store.adjust_balance(event.asset, event.sender, event.amount)
        await self._activity(
            "bridge_withdrawal_rollback", f"Burn from {event.sender} rolled back",
            ctx, amount=event.amount,
        )

    # ── Anomalies and deployments ──────────────────────────

    async def _apply_stx_transfer(self, event: StxTransfer, ctx: EventContext) -> None:
        log.warning(
            "[stx-from-contract] Unexpected STX: %s -> %s (tx %s)",
            format_amount(event.amount, "STX"), event.recipient, ctx.tx_hash,
        )
        await self._activity(
            "stx_anomaly", f"Unexpected STX from {event.sender} to {event.recipient}",
            ctx, amount=event.amount,
        )

    async def _rollback_stx_transfer(self, event: StxTransfer, ctx: EventContext) -> None:
        log.info("[stx-from-contract ROLLBACK] tx %s", ctx.tx_hash)
        await self._activity(
            "stx_anomaly_rollback", f"STX transfer to {event.recipient} rolled back",
            ctx, amount=event.amount,
        )

    async def _apply_deployment(self, event: ContractDeployed, ctx: EventContext) -> None:
        log.info(
            "[deployment] %s at block %d | tx: %s",
            event.contract_id, ctx.block_height, ctx.tx_hash,
        )
        await self._store.save_deployment(event.contract_id, ctx.tx_hash, ctx.block_height)
        await self._activity("deployment", f"Deployed {event.contract_id}", ctx)

    async def _rollback_deployment(self, event: ContractDeployed, ctx: EventContext) -> None:
        log.info("[deployment ROLLBACK] %s", event.contract_id)
        await self._store.delete_deployment(event.contract_id)
        await self._activity("deployment_rollback", f"Deployment of {event.contract_id} rolled back", ctx)
