"""ExplorerApi protocol - the pull path's view of the block-explorer API."""

from __future__ import annotations

from typing import Any, Protocol


class ExplorerApi(Protocol):
    """Read-only explorer queries used by the poller."""

    async def get_tip_height(self) -> int:
        """Height of the current chain tip."""
        ...

    async def get_contract_transactions(
        self, contract_id: str, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        """Transactions touching a contract, newest first."""
        ...

    async def get_transaction_events(self, tx_id: str) -> list[dict[str, Any]]:
        """Full event log of one transaction."""
        ...
