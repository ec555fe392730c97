"""Main daemon - wires the store, handlers and one ingestion path together."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from predictstack_observer.chainhook.registrar import ChainhookRegistrar
from predictstack_observer.chainhook.router import EventRouter
from predictstack_observer.chainhook.server import ChainhookServer
from predictstack_observer.chainhook.subscriptions import build_subscriptions
from predictstack_observer.handlers.handler_set import HandlerSet
from predictstack_observer.models.config import ObserverConfig, ObserverMode
from predictstack_observer.stacks.api import StacksApiClient
from predictstack_observer.stacks.poller import ContractPoller
from predictstack_observer.stacks.retry import RetryPolicy
from predictstack_observer.storage.sqlite import SQLiteEventStore

log = logging.getLogger(__name__)


class ObserverDaemon:
    """Runs either the push path (chainhook webhooks) or the pull path (explorer polling).

    Both paths feed the same HandlerSet and event store. ``stop()`` ends the
    active path; ``start()`` then shuts everything down and returns.
    """

    def __init__(self, cfg: ObserverConfig) -> None:
        self._cfg = cfg
        self._stop_event = asyncio.Event()
        self._fault: BaseException | None = None

        # Core components
        self.store = SQLiteEventStore(cfg.db_path)
        self.handlers = HandlerSet(self.store, cfg.contracts)
        self.subscriptions = build_subscriptions(cfg.contracts)

        # Push path
        self.router: EventRouter | None = None
        self.server: ChainhookServer | None = None
        self.registrar: ChainhookRegistrar | None = None

        # Pull path
        self.api: StacksApiClient | None = None
        self.poller: ContractPoller | None = None

        if cfg.mode == ObserverMode.PUSH:
            self.router = EventRouter.from_subscriptions(
                self.subscriptions, self.handlers, self.store,
            )
            self.server = ChainhookServer(
                self.router, cfg.chainhook_auth_token, cfg.host, cfg.port,
            )
            self.registrar = ChainhookRegistrar(cfg, self.subscriptions)
        else:
            self.api = StacksApiClient(
                cfg.api_base_url,
                cfg.api_key,
                cfg.request_timeout,
                RetryPolicy(cfg.retries, cfg.retry_base_delay),
            )
            self.poller = ContractPoller(self.api, self.handlers, self.store, cfg)

    @property
    def faulted(self) -> bool:
        return self._fault is not None

    async def start(self) -> None:
        """Initialize the store and run the configured path until stopped."""
        cfg = self._cfg
        log.info("Starting predictstack observer")
        log.info("  Mode:     %s", cfg.mode.value)
        log.info("  Network:  %s", cfg.network.value)
        log.info("  Contract: %s", cfg.contracts.market_contract)
        if cfg.mode == ObserverMode.PUSH:
            log.info("  Node URL:   %s", cfg.chainhook_node_url)
            log.info("  Public URL: %s", cfg.chainhook_public_url)
            log.info("  Port:       %d", cfg.port)
            log.info("  State file: %s", cfg.state_file)
        else:
            log.info("  API:      %s", cfg.api_base_url)
            log.info("  Interval: %.1fs", cfg.poll_interval)

        try:
            await self.store.initialize()
        except Exception:
            await self._close_clients()
            raise
        await self.store.log_activity(
            "observer_started", f"Observer started ({cfg.mode.value}, {cfg.network.value})",
        )

        try:
            if cfg.mode == ObserverMode.PUSH:
                await self._run_push()
            else:
                await self._run_poll()
        finally:
            await self._shutdown()

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._stop_event.set()

    def fail(self, exc: BaseException) -> None:
        """Record an unrecoverable fault and stop."""
        if self._fault is None:
            self._fault = exc
        self._stop_event.set()

    async def _run_push(self) -> None:
        assert self.server is not None and self.registrar is not None
        await self.server.start()
        await self.registrar.wait_for_node()
        await self.registrar.register_all()
        log.info("Observer running, waiting for deliveries")
        await self._stop_event.wait()

    async def _run_poll(self) -> None:
        assert self.poller is not None
        await self.poller.run(self._stop_event)

    async def _shutdown(self) -> None:
        try:
            if self.registrar is not None:
                await self.registrar.deregister_all()
            if self.server is not None:
                await self.server.stop()
        finally:
            await self._close_clients()

        status = "after fault" if self.faulted else "cleanly"
        await self.store.log_activity("observer_stopped", f"Observer stopped {status}")
        await self.store.close()
        log.info("Observer shut down %s", status)

    async def _close_clients(self) -> None:
        if self.registrar is not None:
            await self.registrar.close()
        if self.api is not None:
            await self.api.close()


async def run_daemon(cfg: ObserverConfig) -> int:
    """Entry point for running the daemon. Returns the process exit code."""
    daemon = ObserverDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    def _exception_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        log.error("Unhandled error: %s", context.get("message"), exc_info=exc)
        daemon.fail(exc or RuntimeError(context.get("message", "unknown error")))

    loop.set_exception_handler(_exception_handler)

    try:
        await daemon.start()
    except Exception as exc:
        log.error("Observer failed: %s", exc, exc_info=True)
        return 1
    return 1 if daemon.faulted else 0
