"""Tests 79-84b: Command line interface."""

from __future__ import annotations

import asyncio
import json

import pytest
from click.testing import CliRunner

from predictstack_observer.cli import cli
from predictstack_observer.models.records import MarketRecord, PollCursor
from predictstack_observer.storage.sqlite import SQLiteEventStore

from tests.conftest import USER_A, USER_B

ENV_KEYS = [
    "NETWORK", "DEPLOYER", "MODE", "POLL_INTERVAL_MS", "API_BASE_URL", "API_KEY",
    "CHAINHOOK_NODE_URL", "CHAINHOOK_AUTH_TOKEN", "CHAINHOOK_PUBLIC_URL", "STATE_FILE",
    "DB_PATH", "CURSOR_RESUME", "START_HEIGHT", "LOG_LEVEL", "PORT",
]


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "observer.db")


@pytest.fixture
def runner(db_path, tmp_path):
    env = {f"PREDICTSTACK_{key}": None for key in ENV_KEYS}
    env["PREDICTSTACK_DB_PATH"] = db_path
    env["PREDICTSTACK_STATE_FILE"] = str(tmp_path / "predicates.json")
    return CliRunner(env=env)


def _seed(db_path: str) -> None:
    async def _run():
        store = SQLiteEventStore(db_path)
        await store.initialize()
        try:
            await store.set_cursor(PollCursor(1234, 5))
            await store.upsert_market(MarketRecord(market_id=1, question="?", creator=USER_A))
            await store.log_activity("market_created", "Market #1 created", tx_hash="0x" + "ab" * 32)
            await store.adjust_user_stats(USER_A, wagered=5_000_000, won=7_760_000, bets=1)
            await store.adjust_user_stats(USER_B, wagered=3_000_000, bets=1)
        finally:
            await store.close()

    asyncio.run(_run())


# ── Test 79: decode ───────────────────────────────────────────────


def test_decode_command(runner):
    result = runner.invoke(cli, ["decode", '(tuple (event "bet-placed") (amount u5))'])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"event": "bet-placed", "amount": 5}

    result = runner.invoke(cli, ["decode", "u5"])
    assert result.exit_code == 1


# ── Test 80: subscriptions ────────────────────────────────────────


def test_subscriptions_command(runner):
    result = runner.invoke(cli, ["subscriptions"])
    assert result.exit_code == 0
    lines = [line for line in result.output.splitlines() if line.strip()]
    assert len(lines) == 19
    assert "11111111-0000-0000-0000-000000000005" in result.output
    assert "bet-placed" in result.output


# ── Test 81: status, cursor and activity on an empty store ────────


def test_info_commands_on_empty_store(runner):
    result = runner.invoke(cli, ["cursor"])
    assert result.exit_code == 0
    assert "No cursor stored." in result.output

    result = runner.invoke(cli, ["activity"])
    assert result.exit_code == 0
    assert "No activity recorded." in result.output

    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "Network:    testnet" in result.output
    assert "Cursor:     (none)" in result.output


# ── Test 82: status, cursor and activity with stored state ────────


def test_info_commands_with_state(runner, db_path):
    _seed(db_path)

    result = runner.invoke(cli, ["cursor"])
    assert "Block 1234, tx 5" in result.output

    result = runner.invoke(cli, ["status"])
    assert "Cursor:     block 1234, tx 5" in result.output
    assert "Markets:    1 (1 open)" in result.output

    result = runner.invoke(cli, ["activity", "-n", "5"])
    assert "[market_created] Market #1 created" in result.output


# ── Test 83: run refuses incomplete configuration ─────────────────


def test_run_push_without_chainhook_settings(runner):
    result = runner.invoke(cli, ["run", "--mode", "push"])
    assert result.exit_code == 1
    assert "chainhook.node_url" in result.output


# ── Test 84: invalid configuration exits with status 1 ────────────


def test_invalid_config_file(runner, tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text('[stacks]\nnetwork = "regtest"\n')
    result = runner.invoke(cli, ["-c", str(path), "status"])
    assert result.exit_code == 1
    assert "invalid network" in result.output


# ── Test 84b: status shows the leaderboard ────────────────────────


def test_status_leaderboard(runner, db_path):
    _seed(db_path)

    result = runner.invoke(cli, ["status", "--top", "1"])
    assert result.exit_code == 0
    assert "Top winners:" in result.output
    assert f"1. {USER_A}  won 7.76 USDCx  wagered 5 USDCx  bets 1" in result.output
    assert USER_B not in result.output

    result = runner.invoke(cli, ["status"])
    assert USER_B in result.output
