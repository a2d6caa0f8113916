#!/usr/bin/env python3
"""
On-Chain Position Reader for Uniswap V3
========================================

Reads a position's fee-accounting snapshot directly from the blockchain via
public JSON-RPC and hands it to fee_math.py.  No web3.py — httpx + raw
eth_call.

Every read is pinned to ONE block.  If the caller does not pass a block,
eth_blockNumber is fetched once and reused for all calls, so the pool tick,
the fee-growth globals and the boundary ticks always describe the same
state.  (Reading "latest" three times could straddle a swap.)

Round trips per position:
─────────────────────────
1. [batch] NonfungiblePositionManager.positions(tokenId), .factory()
   Returns: token0, token1, fee, tickLower, tickUpper, liquidity,
            feeGrowthInside0LastX128, feeGrowthInside1LastX128,
            tokensOwed0, tokensOwed1
   Ref: https://github.com/Uniswap/v3-periphery/blob/main/contracts/NonfungiblePositionManager.sol

2. Factory.getPool(token0, token1, fee)

3. [batch] Pool.slot0(), .liquidity(), .feeGrowthGlobal0X128(),
           .feeGrowthGlobal1X128(), .ticks(tickLower), .ticks(tickUpper)
   Ref: https://github.com/Uniswap/v3-core/blob/main/contracts/UniswapV3Pool.sol

Any failed or empty read raises — nothing is defaulted to zero.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

from fee_lens.central_config import get_rpc_url, resolve_network
from fee_lens.deployments import DEFAULT_DEX, DEX_NAMES, get_position_manager
from fee_lens.rpc_helpers import (
    SELECTORS,
    ZERO_ADDRESS,
    # Encoding
    encode_uint256 as _encode_uint256,
    encode_address as _encode_address,
    encode_uint24 as _encode_uint24,
    encode_int24 as _encode_int24,
    # Decoding
    decode_uint as _decode_uint,
    decode_int as _decode_int,
    decode_address as _decode_address,
    decode_string as _decode_string,
    decode_symbol as _decode_symbol,
    # RPC
    eth_call as _eth_call,
    eth_call_batch as _eth_call_batch,
    eth_block_number as _eth_block_number,
)
from fee_lens.token_metadata import extract_image
from fee_math import (
    BoundaryTickState,
    FeeSnapshot,
    OwedAmounts,
    PoolSnapshot,
    PositionSnapshot,
    collectable_amounts,
)


# ── Decoded Contract State ──────────────────────────────────────────────


@dataclass(frozen=True)
class PositionInfo:
    """NonfungiblePositionManager.positions(tokenId), decoded."""

    token_id: int
    token0: str
    token1: str
    fee: int
    snapshot: PositionSnapshot

    @property
    def is_active(self) -> bool:
        return self.snapshot.liquidity > 0


@dataclass(frozen=True)
class Position:
    """A position together with its pool's price state at one block."""

    token_id: int
    pool_address: str
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    sqrt_price_x96: int
    pool_tick: int
    pool_liquidity: int
    block_number: int

    @property
    def in_range(self) -> bool:
        return self.tick_lower <= self.pool_tick < self.tick_upper


@dataclass(frozen=True)
class ChainState:
    """Everything read for one position at one block."""

    info: PositionInfo
    pool_address: str
    factory: str
    sqrt_price_x96: int
    pool_liquidity: int
    snapshot: FeeSnapshot

    @property
    def block_number(self) -> int:
        return self.snapshot.block_number


def parse_positions_return(token_id: int, result: str) -> PositionInfo:
    """
    Decode the 12-word positions(uint256) return:
      (nonce, operator, token0, token1, fee, tickLower, tickUpper,
       liquidity, feeGrowthInside0LastX128, feeGrowthInside1LastX128,
       tokensOwed0, tokensOwed1)
    """
    snapshot = PositionSnapshot(
        tick_lower=_decode_int(result, 5),
        tick_upper=_decode_int(result, 6),
        liquidity=_decode_uint(result, 7),
        fee_growth_inside0_last=_decode_uint(result, 8),
        fee_growth_inside1_last=_decode_uint(result, 9),
        tokens_owed0=_decode_uint(result, 10),
        tokens_owed1=_decode_uint(result, 11),
    )
    return PositionInfo(
        token_id=token_id,
        token0=_decode_address(result, 2),
        token1=_decode_address(result, 3),
        fee=_decode_uint(result, 4),
        snapshot=snapshot,
    )


def parse_tick_return(result: str) -> BoundaryTickState:
    """ticks(int24) → (liquidityGross, liquidityNet, feeGrowthOutside0X128,
    feeGrowthOutside1X128, …); only the two outside accumulators are kept."""
    return BoundaryTickState(
        fee_growth_outside0=_decode_uint(result, 2),
        fee_growth_outside1=_decode_uint(result, 3),
    )


# ── Position Reader ─────────────────────────────────────────────────────


class PositionReader:
    """
    Chain state provider for V3-compatible positions.
    Supports Uniswap V3, PancakeSwap V3 and SushiSwap V3.

    Usage:
        reader = PositionReader("arbitrum")
        owed = await reader.get_collectable_token_amounts(1234567)
        owed = await reader.get_collectable_token_amounts(1234567, block=17188000)
    """

    def __init__(
        self,
        network: str = "arbitrum",
        dex_slug: str = DEFAULT_DEX,
        verbose: bool = True,
    ):
        self.network = resolve_network(network)
        self.position_manager = get_position_manager(dex_slug, self.network)
        self.rpc_url = get_rpc_url(self.network)
        self.dex_slug = dex_slug
        self.dex_name = DEX_NAMES[dex_slug]
        self.verbose = verbose

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    async def resolve_block(self, block: Optional[int] = None) -> int:
        """The block every read is pinned to: ``block`` or the current head."""
        if block is None:
            return await _eth_block_number(self.rpc_url)
        if block < 0:
            raise ValueError(f"block must be non-negative, got {block}")
        return block

    # ── Snapshot ─────────────────────────────────────────────────────

    async def read_state(self, token_id: int, block: Optional[int] = None) -> ChainState:
        """
        Read position, pool and boundary-tick state for ``token_id`` at one block.

        Raises:
            ValueError: invalid token_id or malformed ABI data.
            RuntimeError: RPC failure, or the pool does not exist.
        """
        if token_id < 0:
            raise ValueError(f"token_id must be non-negative, got {token_id}")

        block = await self.resolve_block(block)
        self._log(f"  📖 Reading position #{token_id} from {self.network} @ block {block}...")

        # ── Round trip 1: position NFT + factory ────────────────────────
        position_result, factory_result = await _eth_call_batch(
            self.rpc_url,
            [
                (self.position_manager, SELECTORS["positions"] + _encode_uint256(token_id)),
                (self.position_manager, SELECTORS["factory"]),
            ],
            block=block,
        )
        info = parse_positions_return(token_id, position_result)
        factory = _decode_address(factory_result, 0)

        # ── Round trip 2: pool address ──────────────────────────────────
        pool_address = await self._resolve_pool_address(
            factory, info.token0, info.token1, info.fee, block
        )

        # ── Round trip 3: pool state + boundary ticks ──────────────────
        self._log("  📊 Reading pool & tick state...")
        tick_lower = info.snapshot.tick_lower
        tick_upper = info.snapshot.tick_upper
        (
            slot0_data,
            pool_liq_data,
            fg0_global_data,
            fg1_global_data,
            lower_data,
            upper_data,
        ) = await _eth_call_batch(
            self.rpc_url,
            [
                (pool_address, SELECTORS["slot0"]),
                (pool_address, SELECTORS["liquidity"]),
                (pool_address, SELECTORS["feeGrowthGlobal0X128"]),
                (pool_address, SELECTORS["feeGrowthGlobal1X128"]),
                (pool_address, SELECTORS["ticks"] + _encode_int24(tick_lower)),
                (pool_address, SELECTORS["ticks"] + _encode_int24(tick_upper)),
            ],
            block=block,
        )

        pool = PoolSnapshot(
            current_tick=_decode_int(slot0_data, 1),
            fee_growth_global0=_decode_uint(fg0_global_data, 0),
            fee_growth_global1=_decode_uint(fg1_global_data, 0),
        )
        snapshot = FeeSnapshot(
            position=info.snapshot,
            pool=pool,
            lower=parse_tick_return(lower_data),
            upper=parse_tick_return(upper_data),
            block_number=block,
        )
        return ChainState(
            info=info,
            pool_address=pool_address,
            factory=factory,
            sqrt_price_x96=_decode_uint(slot0_data, 0),
            pool_liquidity=_decode_uint(pool_liq_data, 0),
            snapshot=snapshot,
        )

    async def read_snapshot(self, token_id: int, block: Optional[int] = None) -> FeeSnapshot:
        """The fee-accounting snapshot only (see read_state)."""
        state = await self.read_state(token_id, block)
        return state.snapshot

    async def get_collectable_token_amounts(
        self, token_id: int, block: Optional[int] = None
    ) -> OwedAmounts:
        """Real-time collectable (tokensOwed + accrued) raw amounts."""
        snapshot = await self.read_snapshot(token_id, block)
        owed = collectable_amounts(snapshot)
        self._log(f"  ✅ Collectable: {owed.amount0} (token0) | {owed.amount1} (token1)")
        return owed

    async def get_position(self, token_id: int, block: Optional[int] = None) -> Position:
        """Position value object: range, liquidity and pool price state."""
        state = await self.read_state(token_id, block)
        info = state.info
        return Position(
            token_id=token_id,
            pool_address=state.pool_address,
            token0=info.token0,
            token1=info.token1,
            fee=info.fee,
            tick_lower=info.snapshot.tick_lower,
            tick_upper=info.snapshot.tick_upper,
            liquidity=info.snapshot.liquidity,
            sqrt_price_x96=state.sqrt_price_x96,
            pool_tick=state.snapshot.pool.current_tick,
            pool_liquidity=state.pool_liquidity,
            block_number=state.block_number,
        )

    # ── Token metadata ───────────────────────────────────────────────

    async def read_token_info(
        self, token0: str, token1: str, block: Optional[int] = None
    ) -> Dict:
        """ERC-20 symbol() and decimals() for both tokens, in one batch."""
        sym0, sym1, dec0, dec1 = await _eth_call_batch(
            self.rpc_url,
            [
                (token0, SELECTORS["symbol"]),
                (token1, SELECTORS["symbol"]),
                (token0, SELECTORS["decimals"]),
                (token1, SELECTORS["decimals"]),
            ],
            block=block,
        )
        return {
            "symbol0": _decode_symbol(sym0),
            "symbol1": _decode_symbol(sym1),
            "decimals0": _decode_uint(dec0, 0),
            "decimals1": _decode_uint(dec1, 0),
        }

    async def read_token_svg(self, token_id: int, block: Optional[int] = None) -> str:
        """The position card image (SVG data URI) from tokenURI(tokenId)."""
        if token_id < 0:
            raise ValueError(f"token_id must be non-negative, got {token_id}")
        result = await _eth_call(
            self.rpc_url,
            self.position_manager,
            SELECTORS["tokenURI"] + _encode_uint256(token_id),
            block=block,
        )
        return extract_image(_decode_string(result))

    # ── Internal: Resolve pool address from Factory ──────────────────

    async def _resolve_pool_address(
        self, factory: str, token0: str, token1: str, fee: int, block: int
    ) -> str:
        """
        Factory.getPool(token0, token1, fee) at the pinned block.

        Ref: https://github.com/Uniswap/v3-core/blob/main/contracts/UniswapV3Factory.sol
        """
        calldata = (
            SELECTORS["getPool"]
            + _encode_address(token0)
            + _encode_address(token1)
            + _encode_uint24(fee)
        )
        result = await _eth_call(self.rpc_url, factory, calldata, block=block)
        pool = _decode_address(result, 0)
        if pool == ZERO_ADDRESS:
            raise RuntimeError(
                f"Pool not found for {token0[:10]}.../{token1[:10]}... fee={fee}. "
                f"The position may be on a different network."
            )
        return pool


# ── Standalone Test ──────────────────────────────────────────────────────


async def _test_position(
    token_id: int,
    network: str = "arbitrum",
    dex_slug: str = DEFAULT_DEX,
    block: Optional[int] = None,
) -> OwedAmounts:
    """Quick check: read a real position's collectable fees.

    Usage:
        python position_reader.py <token_id> [network] [dex_slug] [block]
    """
    reader = PositionReader(network, dex_slug=dex_slug)
    owed = await reader.get_collectable_token_amounts(token_id, block)
    print(f"  Position #{token_id} — {reader.dex_name} on {reader.network}")
    print(f"  token0 owed: {owed.amount0}")
    print(f"  token1 owed: {owed.amount1}")
    return owed


if __name__ == "__main__":
    import sys
    if len(sys.argv) < 2:
        print("Usage: python position_reader.py <token_id> [network] [dex_slug] [block]")
        sys.exit(1)
    _id = int(sys.argv[1])
    _net = sys.argv[2] if len(sys.argv) > 2 else "arbitrum"
    _dex = sys.argv[3] if len(sys.argv) > 3 else DEFAULT_DEX
    _block = int(sys.argv[4]) if len(sys.argv) > 4 else None
    asyncio.run(_test_position(_id, _net, _dex, _block))
