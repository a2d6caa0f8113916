#!/usr/bin/env python3
"""
Deployments — NonfungiblePositionManager Addresses per DEX and Network
=======================================================================

Only the position manager is listed: the Factory is read on-chain via
NonfungiblePositionManager.factory() at the same block as everything else.

All three DEXes share the Uniswap V3 positions() / ticks() ABI.

Address Sources:
  Uniswap V3  : https://docs.uniswap.org/contracts/v3/reference/deployments/
  PancakeSwap : https://developer.pancakeswap.finance/contracts/v3/addresses
  SushiSwap   : https://github.com/sushi-labs/sushi (src/evm/config/features/sushiswap-v3.ts)
"""

from types import MappingProxyType
from typing import List

DEFAULT_DEX = "uniswap_v3"

DEX_NAMES = MappingProxyType(
    {
        "uniswap_v3": "Uniswap V3",
        "pancakeswap_v3": "PancakeSwap V3",
        "sushiswap_v3": "SushiSwap V3",
    }
)

POSITION_MANAGERS = MappingProxyType(
    {
        # Same CREATE2 address on most chains; Base differs.
        "uniswap_v3": MappingProxyType(
            {
                "ethereum": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "arbitrum": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "polygon": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "optimism": "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
                "base": "0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
            }
        ),
        # Not deployed on Polygon or Optimism.
        "pancakeswap_v3": MappingProxyType(
            {
                "ethereum": "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
                "bsc": "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
                "arbitrum": "0x427bF5b37357632377eCbEC9de3626C71A5396c1",
                "base": "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
            }
        ),
        # Different address on every chain.
        "sushiswap_v3": MappingProxyType(
            {
                "ethereum": "0x2214A42d8e2A1d20635C2cb0664422c528b6A432",
                "arbitrum": "0xF0cBce1942a68BEB3d1b73F0dd86c8DCc363eF49",
                "polygon": "0xb7402ee99F0A008e461098AC3a27F4957Df89a40",
                "base": "0x80C7DD17B01855a6D2347444a0FCC36136a314de",
                "optimism": "0x1af415a1EbA07a4986a52B6f2e7dE7003D82231e",
            }
        ),
    }
)


def get_position_manager(dex_slug: str, network: str) -> str:
    """NonfungiblePositionManager address for a DEX on a network.

    Raises:
        ValueError: unknown DEX, or DEX not deployed on that network.
    """
    managers = POSITION_MANAGERS.get(dex_slug)
    if managers is None:
        raise ValueError(
            f"Unsupported DEX: {dex_slug}. Available: {list(POSITION_MANAGERS.keys())}"
        )
    if network not in managers:
        raise ValueError(
            f"{DEX_NAMES[dex_slug]} is not deployed on {network}. "
            f"DEXes on {network}: {dexes_for_network(network)}"
        )
    return managers[network]


def dexes_for_network(network: str) -> List[str]:
    """DEX slugs with a position manager on ``network``."""
    return [slug for slug, managers in POSITION_MANAGERS.items() if network in managers]
