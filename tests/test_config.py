"""Tests 62-67: Configuration loading and validation."""

from __future__ import annotations

import pytest

from predictstack_observer.config import ConfigError, load_config, validate_config
from predictstack_observer.models.config import CursorResume, Network, ObserverMode

from tests.conftest import make_test_config

ENV_KEYS = [
    "NETWORK", "DEPLOYER", "MODE", "POLL_INTERVAL_MS", "API_BASE_URL", "API_KEY",
    "CHAINHOOK_NODE_URL", "CHAINHOOK_AUTH_TOKEN", "CHAINHOOK_PUBLIC_URL", "STATE_FILE",
    "DB_PATH", "CURSOR_RESUME", "START_HEIGHT", "LOG_LEVEL", "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(f"PREDICTSTACK_{key}", raising=False)


# ── Test 62: Defaults ─────────────────────────────────────────────


def test_defaults():
    cfg = load_config()
    assert cfg.mode == ObserverMode.POLL
    assert cfg.network == Network.TESTNET
    assert cfg.api_base_url == "https://api.testnet.hiro.so"
    assert cfg.poll_interval_ms == 15_000
    assert cfg.poll_interval == 15.0
    assert cfg.port == 3001
    assert cfg.cursor_resume == CursorResume.TIP
    assert cfg.contracts.market_contract.endswith(".prediction-market-v6")
    assert not cfg.db_path.startswith("~")


# ── Test 63: TOML file ────────────────────────────────────────────


def test_toml_file(tmp_path):
    path = tmp_path / "observer.toml"
    path.write_text(
        "[observer]\n"
        'mode = "push"\n'
        "[stacks]\n"
        'network = "mainnet"\n'
        'deployer = "SP3DEPLOYER"\n'
        "[poller]\n"
        "poll_interval_ms = 5000\n"
        'cursor_resume = "persisted"\n'
        "start_height = 0\n"
        "[chainhook]\n"
        'node_url = "http://localhost:20456"\n'
        "port = 4000\n"
        "[storage]\n"
        f'db_path = "{tmp_path / "state.db"}"\n'
    )
    cfg = load_config(path)
    assert cfg.mode == ObserverMode.PUSH
    assert cfg.network == Network.MAINNET
    assert cfg.api_base_url == "https://api.hiro.so"
    assert cfg.contracts.market_contract == "SP3DEPLOYER.prediction-market-v3"
    assert cfg.poll_interval_ms == 5000
    assert cfg.cursor_resume == CursorResume.PERSISTED
    assert cfg.start_height == 0
    assert cfg.chainhook_node_url == "http://localhost:20456"
    assert cfg.port == 4000
    assert cfg.db_path == str(tmp_path / "state.db")


# ── Test 64: Environment overrides win ────────────────────────────


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "observer.toml"
    path.write_text('[observer]\nmode = "poll"\n[chainhook]\nport = 4000\n')
    monkeypatch.setenv("PREDICTSTACK_MODE", "push")
    monkeypatch.setenv("PREDICTSTACK_PORT", "5005")
    monkeypatch.setenv("PREDICTSTACK_POLL_INTERVAL_MS", "2500")
    monkeypatch.setenv("PREDICTSTACK_API_KEY", "k")
    monkeypatch.setenv("PREDICTSTACK_CHAINHOOK_AUTH_TOKEN", "secret")

    cfg = load_config(path)
    assert cfg.mode == ObserverMode.PUSH
    assert cfg.port == 5005
    assert cfg.poll_interval_ms == 2500
    assert cfg.api_key == "k"
    assert cfg.chainhook_auth_token == "secret"


# ── Test 65: Invalid values are config errors ─────────────────────


def test_invalid_values(monkeypatch):
    monkeypatch.setenv("PREDICTSTACK_NETWORK", "devnet")
    with pytest.raises(ConfigError, match="network"):
        load_config()

    monkeypatch.delenv("PREDICTSTACK_NETWORK")
    monkeypatch.setenv("PREDICTSTACK_PORT", "eighty")
    with pytest.raises(ConfigError, match="port"):
        load_config()


# ── Test 66: Push mode requires chainhook settings ────────────────


def test_validate_push_mode_lists_missing():
    cfg = make_test_config(
        mode=ObserverMode.PUSH, chainhook_node_url="", chainhook_auth_token="",
    )
    with pytest.raises(ConfigError) as exc_info:
        validate_config(cfg)
    message = str(exc_info.value)
    assert "chainhook.node_url" in message
    assert "chainhook.auth_token" in message
    assert "chainhook.public_url" not in message

    validate_config(make_test_config(mode=ObserverMode.PUSH))
    validate_config(make_test_config(mode=ObserverMode.POLL))


# ── Test 67: Mainnet needs an explicit deployer ───────────────────


def test_validate_mainnet_without_deployer(monkeypatch):
    monkeypatch.setenv("PREDICTSTACK_NETWORK", "mainnet")
    cfg = load_config()
    with pytest.raises(ConfigError, match="deployer"):
        validate_config(cfg)

    monkeypatch.setenv("PREDICTSTACK_DEPLOYER", "SP3DEPLOYER")
    validate_config(load_config())
