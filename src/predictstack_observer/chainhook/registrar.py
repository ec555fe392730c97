"""Registers subscriptions with the chainhook node and tracks them on disk."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

import httpx

from predictstack_observer.chainhook.subscriptions import SUBSCRIPTIONS_VERSION
from predictstack_observer.models.config import ObserverConfig
from predictstack_observer.models.subscriptions import Subscription
from predictstack_observer.stacks.api import API_KEY_HEADER

log = logging.getLogger(__name__)


class ChainhookRegistrar:
    """Creates and removes predicates on a chainhook node.

    The ids registered by this process are written to a JSON state file so
    that a later run can remove predicates that are no longer in the table.
    """

    def __init__(
        self,
        cfg: ObserverConfig,
        subscriptions: Sequence[Subscription],
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if cfg.api_key:
            headers[API_KEY_HEADER] = cfg.api_key
        self._client = httpx.AsyncClient(
            base_url=cfg.chainhook_node_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(cfg.request_timeout, connect=10),
            transport=transport,
        )
        self._cfg = cfg
        self._subscriptions = tuple(subscriptions)
        self._state_path = Path(cfg.state_file).expanduser()
        self._sleep = sleep
        self._registered: list[str] = []

    @property
    def registered(self) -> list[str]:
        return list(self._registered)

    def callback_url(self, sub: Subscription) -> str:
        return f"{self._cfg.chainhook_public_url.rstrip('/')}/chainhook/{sub.uuid}"

    async def close(self) -> None:
        await self._client.aclose()

    async def wait_for_node(self, attempts: int = 10, delay: float = 2.0) -> None:
        """Block until the node answers GET /ping."""
        for attempt in range(1, attempts + 1):
            try:
                resp = await self._client.get("/ping")
                resp.raise_for_status()
                log.info("Chainhook node is up at %s", self._cfg.chainhook_node_url)
                return
            except httpx.HTTPError as exc:
                if attempt == attempts:
                    raise
                log.info(
                    "Chainhook node not ready (%s), retry %d/%d in %.0fs",
                    exc, attempt, attempts - 1, delay,
                )
                await self._sleep(delay)

    async def register_all(self) -> list[str]:
        """Register every subscription. Already-registered ids are accepted."""
        await self._remove_stale()

        network = self._cfg.network.value
        for sub in self._subscriptions:
            body = sub.to_registration(
                network, self.callback_url(sub), self._cfg.chainhook_auth_token,
            )
            resp = await self._client.post("/v1/chainhooks", json=body)
            if resp.status_code == 409:
                log.info("Subscription %s (%s) already registered", sub.uuid, sub.name)
            else:
                resp.raise_for_status()
                log.info("Registered %s (%s)", sub.uuid, sub.name)
            self._registered.append(sub.uuid)
            self._save_state(self._registered)

        log.info("Registered %d subscriptions on %s", len(self._registered), network)
        return self.registered

    async def deregister_all(self) -> list[str]:
        """Remove every predicate this process registered. Errors are logged."""
        removed: list[str] = []
        for uuid in list(self._registered):
            if await self._delete(uuid):
                removed.append(uuid)
                self._registered.remove(uuid)
        self._save_state(self._registered)
        log.info("Deregistered %d subscriptions", len(removed))
        return removed

    async def _remove_stale(self) -> None:
        current = {sub.uuid for sub in self._subscriptions}
        stale = [uuid for uuid in self.load_state() if uuid not in current]
        for uuid in stale:
            log.info("Removing stale subscription %s", uuid)
            await self._delete(uuid)

    async def _delete(self, uuid: str) -> bool:
        try:
            resp = await self._client.delete(f"/v1/chainhooks/stacks/{uuid}")
            if resp.status_code != 404:
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("Could not deregister %s: %s", uuid, exc)
            return False
        return True

    # ── State file ─────────────────────────────────────────

    def load_state(self) -> list[str]:
        """Ids recorded by the last run, or [] if there is no usable state file."""
        if not self._state_path.exists():
            return []
        try:
            with open(self._state_path) as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable state file %s: %s", self._state_path, exc)
            return []
        ids = data.get("subscriptions") if isinstance(data, dict) else None
        return [str(i) for i in ids] if isinstance(ids, list) else []

    def _save_state(self, ids: list[str]) -> None:
        state: dict[str, Any] = {
            "version": SUBSCRIPTIONS_VERSION,
            "network": self._cfg.network.value,
            "node_url": self._cfg.chainhook_node_url,
            "subscriptions": ids,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._state_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._state_path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(state, f, indent=2)
        tmp.replace(self._state_path)
