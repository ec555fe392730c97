"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from predictstack_observer.models.config import (
    API_BASE_URLS,
    CursorResume,
    Network,
    ObserverConfig,
    ObserverMode,
    contracts_for,
)


class ConfigError(Exception):
    """Invalid or incomplete configuration. Fatal at startup."""


def _enum(enum_cls: type, value: Any, what: str) -> Any:
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ConfigError(f"invalid {what} {value!r} (expected one of: {allowed})") from None


def _int(value: Any, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid {what} {value!r} (expected an integer)") from None


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "PREDICTSTACK_",
) -> ObserverConfig:
    """Load observer configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (PREDICTSTACK_NETWORK, etc.)
        2. TOML config file
        3. Defaults from ObserverConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                try:
                    raw = tomllib.load(f)
                except tomllib.TOMLDecodeError as exc:
                    raise ConfigError(f"cannot parse {p}: {exc}") from exc

    kw: dict[str, Any] = {}
    deployer: str | None = None

    # ── Observer section ───────────────────────────────────
    observer = raw.get("observer", {})
    if v := observer.get("mode"):
        kw["mode"] = _enum(ObserverMode, v, "mode")
    if v := observer.get("log_level"):
        kw["log_level"] = str(v)

    # ── Stacks section ─────────────────────────────────────
    stacks = raw.get("stacks", {})
    if v := stacks.get("network"):
        kw["network"] = _enum(Network, v, "network")
    if v := stacks.get("deployer"):
        deployer = str(v)
    if v := stacks.get("api_base_url"):
        kw["api_base_url"] = str(v)
    if v := stacks.get("api_key"):
        kw["api_key"] = str(v)
    if v := stacks.get("request_timeout"):
        kw["request_timeout"] = float(v)
    if v := stacks.get("retries"):
        kw["retries"] = _int(v, "retries")
    if v := stacks.get("retry_base_delay"):
        kw["retry_base_delay"] = float(v)

    # ── Poller section ─────────────────────────────────────
    poller = raw.get("poller", {})
    if v := poller.get("poll_interval_ms"):
        kw["poll_interval_ms"] = _int(v, "poll_interval_ms")
    if v := poller.get("error_backoff"):
        kw["error_backoff"] = _int(v, "error_backoff")
    if v := poller.get("page_size"):
        kw["page_size"] = _int(v, "page_size")
    if v := poller.get("max_pages"):
        kw["max_pages"] = _int(v, "max_pages")
    if v := poller.get("max_tx_attempts"):
        kw["max_tx_attempts"] = _int(v, "max_tx_attempts")
    if v := poller.get("cursor_resume"):
        kw["cursor_resume"] = _enum(CursorResume, v, "cursor_resume")
    if (v := poller.get("start_height")) is not None:
        kw["start_height"] = _int(v, "start_height")

    # ── Chainhook section ──────────────────────────────────
    chainhook = raw.get("chainhook", {})
    if v := chainhook.get("node_url"):
        kw["chainhook_node_url"] = str(v)
    if v := chainhook.get("auth_token"):
        kw["chainhook_auth_token"] = str(v)
    if v := chainhook.get("public_url"):
        kw["chainhook_public_url"] = str(v)
    if v := chainhook.get("host"):
        kw["host"] = str(v)
    if v := chainhook.get("port"):
        kw["port"] = _int(v, "port")
    if v := chainhook.get("state_file"):
        kw["state_file"] = str(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        kw["db_path"] = str(v)

    # ── Environment variable overrides (highest priority) ──
    env = os.environ
    if v := env.get(f"{env_prefix}NETWORK"):
        kw["network"] = _enum(Network, v, "network")
    if v := env.get(f"{env_prefix}DEPLOYER"):
        deployer = v
    if v := env.get(f"{env_prefix}MODE"):
        kw["mode"] = _enum(ObserverMode, v, "mode")
    if v := env.get(f"{env_prefix}POLL_INTERVAL_MS"):
        kw["poll_interval_ms"] = _int(v, "poll interval")
    if v := env.get(f"{env_prefix}API_BASE_URL"):
        kw["api_base_url"] = v
    if v := env.get(f"{env_prefix}API_KEY"):
        kw["api_key"] = v
    if v := env.get(f"{env_prefix}CHAINHOOK_NODE_URL"):
        kw["chainhook_node_url"] = v
    if v := env.get(f"{env_prefix}CHAINHOOK_AUTH_TOKEN"):
        kw["chainhook_auth_token"] = v
    if v := env.get(f"{env_prefix}CHAINHOOK_PUBLIC_URL"):
        kw["chainhook_public_url"] = v
    if v := env.get(f"{env_prefix}STATE_FILE"):
        kw["state_file"] = v
    if v := env.get(f"{env_prefix}DB_PATH"):
        kw["db_path"] = v
    if v := env.get(f"{env_prefix}CURSOR_RESUME"):
        kw["cursor_resume"] = _enum(CursorResume, v, "cursor_resume")
    if v := env.get(f"{env_prefix}START_HEIGHT"):
        kw["start_height"] = _int(v, "start height")
    if v := env.get(f"{env_prefix}LOG_LEVEL"):
        kw["log_level"] = v
    if v := env.get(f"{env_prefix}PORT"):
        kw["port"] = _int(v, "port")

    network = kw.get("network", Network.TESTNET)
    kw["contracts"] = contracts_for(network, deployer)
    kw.setdefault("api_base_url", API_BASE_URLS[network])

    # Expand ~ in paths
    for key in ("db_path", "state_file"):
        if key in kw:
            kw[key] = str(Path(kw[key]).expanduser())
        else:
            kw[key] = str(Path(getattr(ObserverConfig, key)).expanduser())

    return ObserverConfig(**kw)


def validate_config(cfg: ObserverConfig) -> None:
    """Raise ConfigError naming every value the selected mode is missing."""
    missing: list[str] = []
    if not cfg.contracts.market_contract:
        missing.append("stacks.deployer (no default on mainnet)")
    if cfg.mode == ObserverMode.PUSH:
        if not cfg.chainhook_node_url:
            missing.append("chainhook.node_url")
        if not cfg.chainhook_auth_token:
            missing.append("chainhook.auth_token")
        if not cfg.chainhook_public_url:
            missing.append("chainhook.public_url")
    elif not cfg.api_base_url:
        missing.append("stacks.api_base_url")
    if missing:
        raise ConfigError("missing configuration: " + ", ".join(missing))
