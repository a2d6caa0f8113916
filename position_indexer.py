#!/usr/bin/env python3
"""
V3 Position Indexer — Wallet Scanner
====================================

Lists every position NFT an owner holds on one DEX, with the fee-accounting
checkpoint of each, all read at a single block.

Flow:
  1. balanceOf(owner)               → How many position NFTs the owner holds
  2. tokenOfOwnerByIndex(owner, i)  → Token IDs            [one batched request]
  3. positions(tokenId)             → Position checkpoints [one batched request]

A scan is capped at MAX_POSITIONS_PER_CALL (~1500): each position read costs
about 200k gas in a bulk read, and providers cap eth_call gas near 300M.

Contract References:
  NonfungiblePositionManager: https://github.com/Uniswap/v3-periphery/blob/main/contracts/NonfungiblePositionManager.sol
  ERC-721 Enumerable:         https://eips.ethereum.org/EIPS/eip-721
"""

import asyncio
import re
from typing import List, Optional

from fee_lens.central_config import get_rpc_url, resolve_network, settings
from fee_lens.deployments import DEFAULT_DEX, DEX_NAMES, get_position_manager
from fee_lens.rpc_helpers import (
    SELECTORS,
    encode_uint256 as _encode_uint256,
    encode_address as _encode_address,
    decode_uint as _decode_uint,
    eth_call as _eth_call,
    eth_call_batch as _eth_call_batch,
    eth_block_number as _eth_block_number,
)
from position_reader import PositionInfo, parse_positions_return

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


class PositionIndexer:
    """
    Position directory: owner address → positions and their checkpoints.

    Usage:
        indexer = PositionIndexer("arbitrum")
        positions = await indexer.list_positions("0x...wallet...")
    """

    def __init__(self, network: str = "arbitrum", verbose: bool = True):
        self.network = resolve_network(network)
        self.rpc_url = get_rpc_url(self.network)
        self.verbose = verbose

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    async def get_position_count(
        self, owner: str, position_manager: str, block: Optional[int] = None
    ) -> int:
        """balanceOf(owner) on the NonfungiblePositionManager."""
        calldata = SELECTORS["balanceOf"] + _encode_address(owner)
        result = await _eth_call(self.rpc_url, position_manager, calldata, block=block)
        return _decode_uint(result, 0)

    async def get_token_ids(
        self,
        owner: str,
        count: int,
        position_manager: str,
        block: Optional[int] = None,
    ) -> List[int]:
        """All token IDs for an owner via tokenOfOwnerByIndex, batched."""
        if count == 0:
            return []
        calls = [
            (
                position_manager,
                SELECTORS["tokenOfOwnerByIndex"]
                + _encode_address(owner)
                + _encode_uint256(i),
            )
            for i in range(count)
        ]
        results = await _eth_call_batch(self.rpc_url, calls, block=block)
        return [_decode_uint(r, 0) for r in results]

    async def read_positions(
        self,
        token_ids: List[int],
        position_manager: str,
        block: Optional[int] = None,
    ) -> List[PositionInfo]:
        """positions(tokenId) for every id, batched."""
        if not token_ids:
            return []
        calls = [
            (position_manager, SELECTORS["positions"] + _encode_uint256(tid))
            for tid in token_ids
        ]
        results = await _eth_call_batch(self.rpc_url, calls, block=block)
        return [parse_positions_return(tid, r) for tid, r in zip(token_ids, results)]

    async def list_positions(
        self,
        owner: str,
        dex_slug: str = DEFAULT_DEX,
        block: Optional[int] = None,
    ) -> List[PositionInfo]:
        """
        Every position ``owner`` holds on ``dex_slug``, read at one block.

        Args:
            owner: Wallet address (0x...)
            dex_slug: DEX to scan (default: uniswap_v3)
            block: Block to read at; defaults to the current head, fetched once.

        Returns:
            Positions sorted active first (liquidity > 0), then by token id
            descending.

        Raises:
            ValueError: invalid owner, unsupported DEX/network, or more than
                MAX_POSITIONS_PER_CALL positions.
            RuntimeError: any RPC failure (no partial results).
        """
        if not owner or not _ADDRESS_RE.fullmatch(owner):
            raise ValueError(f"Invalid wallet address: {owner}")
        position_manager = get_position_manager(dex_slug, self.network)

        if block is None:
            block = await _eth_block_number(self.rpc_url)

        self._log(f"\n  🔎 Scanning {DEX_NAMES[dex_slug]} — {self.network.title()} @ block {block}...")
        count = await self.get_position_count(owner, position_manager, block)
        self._log(f"     📊 Found {count} position NFT(s)")

        limit = settings.MAX_POSITIONS_PER_CALL
        if count > limit:
            raise ValueError(
                f"Wallet holds {count} positions; at most {limit} can be read in one scan"
            )

        token_ids = await self.get_token_ids(owner, count, position_manager, block)
        positions = await self.read_positions(token_ids, position_manager, block)

        positions.sort(key=lambda p: (-int(p.is_active), -p.token_id))
        return positions


# ── Standalone CLI ──────────────────────────────────────────────────────


async def _main(owner: str, network: str = "arbitrum", dex_slug: str = DEFAULT_DEX) -> List[PositionInfo]:
    """Quick check: list positions for a wallet."""
    indexer = PositionIndexer(network)
    positions = await indexer.list_positions(owner, dex_slug=dex_slug)
    for p in positions:
        status = "🟢 Active" if p.is_active else "⚪ Closed"
        print(
            f"     #{p.token_id} — fee {p.fee} "
            f"[{p.snapshot.tick_lower}, {p.snapshot.tick_upper}) — {status}"
        )
    return positions


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python position_indexer.py <wallet_address> [network] [dex_slug]")
        sys.exit(1)
    _wallet = sys.argv[1]
    _net = sys.argv[2] if len(sys.argv) > 2 else "arbitrum"
    _dex = sys.argv[3] if len(sys.argv) > 3 else DEFAULT_DEX
    asyncio.run(_main(_wallet, _net, _dex))
