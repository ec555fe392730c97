"""Configuration models for the observer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ObserverMode(str, Enum):
    """Which ingestion path the daemon runs."""

    PUSH = "push"  # chainhook node delivers apply/rollback batches
    POLL = "poll"  # explorer API is polled for confirmed transactions


class Network(str, Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class CursorResume(str, Enum):
    """Where the poller starts after a restart."""

    TIP = "tip"  # ignore history, start from the current chain tip
    PERSISTED = "persisted"  # continue from the cursor saved in the state store


@dataclass(frozen=True)
class NetworkContracts:
    """Contract identity for one network.

    Built once from the network selector and shared by every component that
    needs to agree on which contracts are being watched.
    """

    deployer: str
    market_contract: str
    token_contract: str
    token_asset: str  # <contract>::<token name> as used by ft_event filters
    bridge_burn_asset: str

    @property
    def contract_ids(self) -> frozenset[str]:
        return frozenset({self.market_contract, self.token_contract})


TESTNET_DEPLOYER = "ST30VGN68PSGVWGNMD0HH2WQMM5T486EK3WBNTHCY"
MAINNET_TOKEN_ISSUER = "SP120SBRBQJ00MCWS7TM5R8WJNTTKD5K0HFRC2CNE"

MARKET_CONTRACT_NAMES = {
    Network.TESTNET: "prediction-market-v6",
    Network.MAINNET: "prediction-market-v3",
}

API_BASE_URLS = {
    Network.TESTNET: "https://api.testnet.hiro.so",
    Network.MAINNET: "https://api.hiro.so",
}


def contracts_for(network: Network, deployer: str | None = None) -> NetworkContracts:
    """Resolve contract identifiers for a network.

    Mainnet has no default deployer; one must be configured explicitly.
    """
    if network == Network.TESTNET:
        deployer = deployer or TESTNET_DEPLOYER
        token_contract = f"{deployer}.usdcx-v1"
        return NetworkContracts(
            deployer=deployer,
            market_contract=f"{deployer}.{MARKET_CONTRACT_NAMES[network]}",
            token_contract=token_contract,
            token_asset=f"{token_contract}::usdcx",
            bridge_burn_asset="ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM.usdcx-v1::usdcx-token",
        )

    deployer = deployer or ""
    token_contract = f"{MAINNET_TOKEN_ISSUER}.usdcx"
    return NetworkContracts(
        deployer=deployer,
        market_contract=f"{deployer}.{MARKET_CONTRACT_NAMES[network]}" if deployer else "",
        token_contract=token_contract,
        token_asset=f"{token_contract}::usdcx",
        bridge_burn_asset=f"{MAINNET_TOKEN_ISSUER}.usdcx-v1::usdcx-token",
    )


@dataclass(frozen=True)
class ObserverConfig:
    """Complete, immutable observer configuration."""

    # Observer
    mode: ObserverMode = ObserverMode.POLL
    log_level: str = "info"

    # Stacks
    network: Network = Network.TESTNET
    contracts: NetworkContracts = field(
        default_factory=lambda: contracts_for(Network.TESTNET)
    )

    # Explorer API (poll mode)
    api_base_url: str = API_BASE_URLS[Network.TESTNET]
    api_key: str = ""  # sent as x-hiro-api-key when set
    request_timeout: float = 30.0  # seconds
    retries: int = 3  # total attempts per request
    retry_base_delay: float = 2.0  # seconds, doubled per attempt

    # Poller
    poll_interval_ms: int = 15_000
    error_backoff: int = 30  # seconds
    page_size: int = 50
    max_pages: int = 4  # transactions routed per cycle: page_size * max_pages
    max_tx_attempts: int = 5
    cursor_resume: CursorResume = CursorResume.TIP
    start_height: int | None = None

    # Chainhook (push mode)
    chainhook_node_url: str = ""
    chainhook_auth_token: str = ""
    chainhook_public_url: str = ""
    host: str = "0.0.0.0"
    port: int = 3001
    state_file: str = "~/.predictstack_observer/predicates-state.json"

    # Storage
    db_path: str = "~/.predictstack_observer/state.db"

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000
