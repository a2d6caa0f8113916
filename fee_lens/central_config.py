"""
Project Configuration — RPC endpoints, limits, version
=======================================================

Single place for everything tunable: JSON-RPC endpoints, HTTP timeouts and
the Position Directory's bulk-read ceiling.

Environment:
  FEE_LENS_RPC_URL — overrides the endpoint for every network (e.g. a
                     private archive node for historical --block reads).
"""

import os
import re
from dataclasses import dataclass
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
from types import MappingProxyType

# Version — single source of truth is pyproject.toml
try:
    PROJECT_VERSION = version("v3-fee-lens")
except PackageNotFoundError:
    # Dev / CI: package not installed — read pyproject.toml directly
    _toml = Path(__file__).resolve().parent.parent / "pyproject.toml"
    _m = (
        re.search(r'version\s*=\s*"([^"]+)"', _toml.read_text())
        if _toml.exists()
        else None
    )
    PROJECT_VERSION = _m.group(1) if _m else "0.0.0-dev"
PROJECT_NAME = "V3 Fee Lens"

RPC_URL_ENV = "FEE_LENS_RPC_URL"

# ── Privacy-Preserving RPC Endpoints via 1RPC.io ────────────────────────
# Free tier, no API key.  Public relays usually serve recent state only;
# historical --block reads need an archive node (see FEE_LENS_RPC_URL).
# Networks: https://docs.1rpc.io/using-the-web3-api/networks

RPC_URLS = MappingProxyType(
    {
        "arbitrum": "https://1rpc.io/arb",
        "ethereum": "https://1rpc.io/eth",
        "polygon": "https://1rpc.io/matic",
        "base": "https://1rpc.io/base",
        "optimism": "https://1rpc.io/op",
        "bsc": "https://1rpc.io/bnb",
    }
)

NETWORK_ALIASES = MappingProxyType(
    {
        "eth": "ethereum",
        "arb": "arbitrum",
        "matic": "polygon",
        "op": "optimism",
        "bnb": "bsc",
    }
)


@dataclass(frozen=True)
class RpcSettings:
    """JSON-RPC client limits."""

    # HTTP timeouts (seconds)
    CALL_TIMEOUT: int = 20
    BLOCK_NUMBER_TIMEOUT: int = 10

    # Max eth_call entries per JSON-RPC batch request
    MAX_BATCH_SIZE: int = 100

    # Bulk owner scans: each position read costs ~200k gas and providers cap
    # eth_call at ~300M gas, so ~1500 positions per scan.
    MAX_POSITIONS_PER_CALL: int = 1500


settings = RpcSettings()


def resolve_network(network: str) -> str:
    """Canonical network slug, accepting short aliases (arb, eth, …)."""
    key = (network or "").strip().lower()
    key = NETWORK_ALIASES.get(key, key)
    if key not in RPC_URLS:
        raise ValueError(
            f"Unsupported network: {network}. Available: {list(RPC_URLS.keys())}"
        )
    return key


def get_rpc_url(network: str) -> str:
    """RPC endpoint for a network, honouring the FEE_LENS_RPC_URL override."""
    override = os.environ.get(RPC_URL_ENV, "").strip()
    if override:
        return override
    return RPC_URLS[resolve_network(network)]
