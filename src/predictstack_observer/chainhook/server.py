"""Webhook server receiving chainhook deliveries (push path)."""

from __future__ import annotations

import asyncio
import hmac
import json
import logging

from aiohttp import web

from predictstack_observer.chainhook.router import EventRouter
from predictstack_observer.models.payload import EventBatch

log = logging.getLogger(__name__)

# Block payloads with many transactions easily exceed aiohttp's 1 MiB default.
MAX_BODY_SIZE = 64 * 1024 * 1024


class ChainhookServer:
    """HTTP endpoint for chainhook batches.

    Routes:
        POST /chainhook/{uuid}  - one apply/rollback batch for a subscription
        GET  /ping              - liveness

    Accepted batches go onto a queue that a single worker drains into the
    router, so batches are processed one at a time in arrival order.
    """

    def __init__(
        self,
        router: EventRouter,
        auth_token: str,
        host: str = "0.0.0.0",
        port: int = 3001,
    ) -> None:
        self._router = router
        self._expected_auth = f"Bearer {auth_token}"
        self._host = host
        self._port = port
        self._queue: asyncio.Queue[tuple[str, EventBatch]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._runner: web.AppRunner | None = None
        self._accepting = False

        self.app = web.Application(client_max_size=MAX_BODY_SIZE)
        self.app.router.add_post("/chainhook/{uuid}", self._handle_delivery)
        self.app.router.add_get("/ping", self._handle_ping)
        self.app.on_startup.append(self._on_startup)
        self.app.on_shutdown.append(self._on_shutdown)
        self.app.on_cleanup.append(self._on_cleanup)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        log.info("Chainhook server listening on %s:%d", self._host, self._port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    # ── App lifecycle ──────────────────────────────────────

    async def _on_startup(self, app: web.Application) -> None:
        self._accepting = True
        self._worker = asyncio.create_task(self._drain_queue())

    async def _on_shutdown(self, app: web.Application) -> None:
        self._accepting = False
        if self._queue.qsize():
            log.info("Draining %d queued batches", self._queue.qsize())
        await self._queue.join()

    async def _on_cleanup(self, app: web.Application) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def _drain_queue(self) -> None:
        while True:
            subscription_id, batch = await self._queue.get()
            try:
                await self._router.route(subscription_id, batch)
            finally:
                self._queue.task_done()

    # ── Handlers ───────────────────────────────────────────

    async def _handle_ping(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", "queued": self._queue.qsize()})

    async def _handle_delivery(self, request: web.Request) -> web.Response:
        auth = request.headers.get("Authorization", "")
        if not hmac.compare_digest(auth.encode(), self._expected_auth.encode()):
            log.warning("Rejected delivery from %s: bad authorization", request.remote)
            return web.json_response({"error": "unauthorized"}, status=401)

        if not self._accepting:
            return web.json_response({"error": "shutting down"}, status=503)

        try:
            payload = await request.json()
            batch = EventBatch.from_payload(payload)
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
            log.warning("Rejected malformed delivery: %s", exc)
            return web.json_response({"error": "malformed payload"}, status=400)

        subscription_id = request.match_info["uuid"]
        if batch.subscription_id and batch.subscription_id != subscription_id:
            log.warning(
                "Delivery path id %s does not match payload id %s",
                subscription_id, batch.subscription_id,
            )

        await self._queue.put((subscription_id, batch))
        log.debug(
            "Queued batch for %s: %d apply / %d rollback blocks",
            subscription_id, len(batch.apply), len(batch.rollback),
        )
        return web.json_response({"ok": True})
