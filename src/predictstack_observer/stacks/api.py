"""Stacks explorer (Hiro API) client used by the poller."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from predictstack_observer.stacks.retry import RetryPolicy

log = logging.getLogger(__name__)

API_KEY_HEADER = "x-hiro-api-key"
EVENT_PAGE_SIZE = 50


class StacksApiClient:
    """Read-only explorer queries, every request wrapped by a RetryPolicy.

    Endpoints:
    - /extended/v2/blocks?limit=1: current tip
    - /extended/v1/address/{contract}/transactions: contract transactions, newest first
    - /extended/v1/tx/{tx_id}: full transaction with its event log
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10),
            transport=transport,
        )
        self._retry = retry or RetryPolicy()

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        async def _request() -> Any:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            try:
                return resp.json()
            except ValueError as exc:
                raise ValueError(f"malformed JSON from {path}: {exc}") from exc

        return await self._retry.call(_request)

    async def get_tip_height(self) -> int:
        data = await self._get_json("/extended/v2/blocks", {"limit": 1})
        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            raise ValueError("explorer returned no blocks")
        height = results[0].get("height")
        if not isinstance(height, int):
            raise ValueError(f"explorer returned invalid block height {height!r}")
        return height

    async def get_contract_transactions(
        self, contract_id: str, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        data = await self._get_json(
            f"/extended/v1/address/{contract_id}/transactions",
            {"limit": limit, "offset": offset},
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ValueError(f"unexpected transaction list for {contract_id}")
        return results

    async def get_transaction_events(self, tx_id: str) -> list[dict[str, Any]]:
        events: list[dict[str, Any]] = []
        offset = 0
        while True:
            data = await self._get_json(
                f"/extended/v1/tx/{tx_id}",
                {"event_limit": EVENT_PAGE_SIZE, "event_offset": offset},
            )
            page = data.get("events") if isinstance(data, dict) else None
            if not isinstance(page, list):
                raise ValueError(f"unexpected event log for {tx_id}")
            events.extend(page)
            if len(page) < EVENT_PAGE_SIZE:
                return events
            offset += len(page)
