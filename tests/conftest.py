"""Shared fixtures for predictstack_observer tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from predictstack_observer.chainhook.subscriptions import build_subscriptions
from predictstack_observer.handlers.handler_set import HandlerSet
from predictstack_observer.models.config import (
    CursorResume,
    Network,
    ObserverConfig,
    ObserverMode,
    contracts_for,
)
from predictstack_observer.storage.sqlite import SQLiteEventStore

from tests.mocks import MockExplorerApi

CONTRACTS = contracts_for(Network.TESTNET)
MARKET_CONTRACT = CONTRACTS.market_contract
TOKEN_CONTRACT = CONTRACTS.token_contract

USER_A = "ST1SJ3DTE5DN7X54YDH5D64R3BCB6A2AG2ZQ8YPD5"
USER_B = "ST2CY5V39NHDPWSXMW9QDT3HC3GD6Q6XX4CFRK9AG"

EXPLORER_BASE = "https://explorer.hiro.so"


def explorer_link(kind: str, id: str, label: str | None = None) -> str:
    """Build an HTML anchor to the Stacks explorer for the report."""
    url = f"{EXPLORER_BASE}/{kind}/{id}?chain=testnet"
    text = label or f"{id[:8]}...{id[-4:]}"
    return f'<a href="{url}" target="_blank">{text}</a>'


# ── Report metadata & explorer links ─────────────────────────────


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stacks Testnet"
    meta["Market Contract"] = MARKET_CONTRACT
    meta["Token Contract"] = TOKEN_CONTRACT


def pytest_html_results_summary(prefix, summary, postfix):
    """Inject clickable explorer links into the report summary."""
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Stacks Testnet Explorer Links</strong><br/>"
        f'Market: {explorer_link("address", MARKET_CONTRACT, MARKET_CONTRACT)}<br/>'
        f'Token: {explorer_link("address", TOKEN_CONTRACT, TOKEN_CONTRACT)}'
        "</div>"
    )


def make_test_config(**overrides) -> ObserverConfig:
    """Build an ObserverConfig suitable for testing."""
    defaults = dict(
        mode=ObserverMode.POLL,
        network=Network.TESTNET,
        contracts=CONTRACTS,
        api_base_url="https://api.testnet.hiro.so",
        retries=3,
        retry_base_delay=0.0,
        poll_interval_ms=10,
        error_backoff=0,
        page_size=50,
        max_pages=4,
        max_tx_attempts=3,
        cursor_resume=CursorResume.TIP,
        chainhook_node_url="http://chainhook.test:20456",
        chainhook_auth_token="test-token",
        chainhook_public_url="https://observer.test",
        db_path=":memory:",
    )
    defaults.update(overrides)
    return ObserverConfig(**defaults)


@pytest.fixture
def test_config():
    """Default ObserverConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteEventStore."""
    s = SQLiteEventStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def handlers(store):
    return HandlerSet(store, CONTRACTS)


@pytest.fixture
def subscriptions():
    return build_subscriptions(CONTRACTS)


@pytest.fixture
def mock_api():
    return MockExplorerApi(tip_height=1000)
