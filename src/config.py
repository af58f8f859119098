import importlib
import os
from dataclasses import dataclass, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

from core.base_types import NATIVE_ADDRESS, Address, Token
from pricing.amm_math import DEFAULT_POOL_FEE_BPS

_ENV_LOADED = False


def _load_env() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    try:
        dotenv = importlib.import_module("dotenv")
    except Exception as exc:  # pragma: no cover
        raise SystemExit("python-dotenv is required (pip install -e .)") from exc
    env_path = Path(__file__).resolve().parents[1] / ".env"
    dotenv.load_dotenv(dotenv_path=env_path)
    _ENV_LOADED = True


def get_env(
    name: str, default: str | None = None, required: bool = False
) -> str | None:
    _load_env()
    value = os.environ.get(name, default)
    if required and (value is None or value == ""):
        raise SystemExit(f"{name} env var is required")
    return value


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    chain_id: int
    rpc_url: str
    router_address: Address
    factory_address: Address
    wrapped_token: Token
    native_token: Token
    graph_endpoint: str
    proxy_address: Optional[Address] = None
    block_explorer_url: Optional[str] = None
    pool_fee_bps: int = DEFAULT_POOL_FEE_BPS
    default_slippage: Decimal = Decimal("0.5")
    default_deadline: int = 20


@dataclass
class SwapOptions:
    partner_key: Optional[str] = None
    max_hops: int = 3
    refresh_pairs_interval: Optional[float] = None
    update_quote_after_refresh: bool = False
    refresh_backoff: float = 1.0
    on_change: Optional[Callable[[Any, dict], None]] = None


_KASPLEX_TESTNET_CHAIN_ID = 167012

NETWORKS: dict[str, NetworkConfig] = {
    "kasplex-testnet": NetworkConfig(
        name="Kasplex Test",
        chain_id=_KASPLEX_TESTNET_CHAIN_ID,
        rpc_url="https://rpc.kasplextest.xyz",
        router_address=Address("0x5A410f79f58a11344E3523d99820Cf231bc888bd"),
        factory_address=Address("0x772B3321B37C1a9aeF0Da1B5A6453E1C2A264beF"),
        proxy_address=Address("0xbE448f863d2bB7bCcD9185A854DF2D8d63498dB0"),
        wrapped_token=Token(
            address=Address("0x654A3287c317D4Fc6e8482FeF523Dc4572b563AA"),
            symbol="WKAS",
            name="Wrapped KAS",
            decimals=18,
            chain_id=_KASPLEX_TESTNET_CHAIN_ID,
        ),
        native_token=Token(
            address=NATIVE_ADDRESS,
            symbol="KAS",
            name="Kaspa",
            decimals=18,
            chain_id=_KASPLEX_TESTNET_CHAIN_ID,
        ),
        graph_endpoint="https://dev-graph-kasplex.kaspa.com/subgraphs/name/uniswap-v2",
        block_explorer_url="https://explorer.testnet.kasplextest.xyz",
    ),
}


def load_network_config(name: str) -> NetworkConfig:
    """Preset by name, with SWAP_RPC_URL / SWAP_GRAPH_ENDPOINT / SWAP_PROXY_ADDRESS overrides."""
    try:
        network = NETWORKS[name]
    except KeyError:
        raise ValueError(f"Unknown network: {name}") from None

    rpc_url = get_env("SWAP_RPC_URL")
    if rpc_url:
        network = replace(network, rpc_url=rpc_url)
    graph_endpoint = get_env("SWAP_GRAPH_ENDPOINT")
    if graph_endpoint:
        network = replace(network, graph_endpoint=graph_endpoint)
    proxy = get_env("SWAP_PROXY_ADDRESS")
    if proxy is not None:
        # empty string disables the proxy
        network = replace(
            network, proxy_address=Address.from_string(proxy) if proxy else None
        )
    return network
