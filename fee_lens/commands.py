"""
V3 Fee Lens — Command Implementations
======================================

All CLI command handlers live here, keeping run.py as a thin argparse
dispatcher.  Each public function corresponds to a subcommand
(info, fees, list, svg) and returns a process exit code.

Errors from the RPC layer are not retried: they are printed once and the
command exits with status 1.
"""

from __future__ import annotations

import json
from pathlib import Path

import httpx

from fee_lens.central_config import PROJECT_NAME, PROJECT_VERSION, RPC_URLS, RPC_URL_ENV
from fee_lens.deployments import DEX_NAMES, POSITION_MANAGERS, dexes_for_network


def format_units(raw: int, decimals: int) -> str:
    """Raw integer token amount → exact decimal string (no float rounding).

    >>> format_units(1_500_000, 6)
    '1.5'
    """
    if decimals <= 0:
        return str(raw)
    whole, frac = divmod(raw, 10 ** decimals)
    frac_text = str(frac).zfill(decimals).rstrip("0")
    return f"{whole}.{frac_text}" if frac_text else str(whole)


def _fail(e: Exception) -> int:
    print(f"❌ {e}")
    return 1


# ── Commands ─────────────────────────────────────────────────────────────


def cmd_info() -> int:
    """Display supported networks, DEXes and data sources."""
    print(f"\n📊 {PROJECT_NAME} v{PROJECT_VERSION}")
    print("=" * 55)
    print("🔗 Protocol   : Uniswap V3 & compatible forks (concentrated liquidity)")
    print(f"🌐 Networks   : {', '.join(RPC_URLS.keys())}")
    print(f"📡 RPC        : 1RPC.io relays (override with {RPC_URL_ENV})")
    print()
    print("🔄 Supported DEXes:")
    for slug, managers in POSITION_MANAGERS.items():
        print(f"   {DEX_NAMES[slug]:<16} ({slug}) — {', '.join(managers.keys())}")
    print()
    print("🌐 DEXes per Network:")
    for network in RPC_URLS:
        slugs = dexes_for_network(network)
        print(f"   {network:<10} {', '.join(DEX_NAMES[s] for s in slugs) or '—'}")
    print()
    print("📐 Fee formula (Uniswap V3 Core):")
    print("   inside = global − outside(lower) − outside(upper)   (mod 2^256)")
    print("   owed   = tokensOwed + L × (inside − insideLast) / 2^128")
    print()
    print("🔗 Quick Start:")
    print("   python run.py fees --position 5260106 --network arbitrum")
    print("   python run.py list 0xWALLET --network arbitrum")
    print("   python run.py svg  --position 5260106 --out position.svg")
    return 0


async def cmd_fees(
    position_id: int,
    network: str = "arbitrum",
    dex: str = "uniswap_v3",
    block: int | None = None,
    as_json: bool = False,
) -> int:
    """Print the real-time collectable fees of one position."""
    from fee_math import collectable_amounts
    from position_reader import PositionReader

    try:
        reader = PositionReader(network, dex_slug=dex, verbose=not as_json)
        state = await reader.read_state(position_id, block)
        owed = collectable_amounts(state.snapshot)
        tokens = await reader.read_token_info(
            state.info.token0, state.info.token1, state.block_number
        )
    except (ValueError, RuntimeError, httpx.HTTPError) as e:
        return _fail(e)

    pool = state.snapshot.pool
    position = state.snapshot.position
    fees0 = format_units(owed.amount0, tokens["decimals0"])
    fees1 = format_units(owed.amount1, tokens["decimals1"])

    if as_json:
        print(json.dumps({
            "position_id": position_id,
            "network": reader.network,
            "dex": dex,
            "block_number": state.block_number,
            "pool_address": state.pool_address,
            "in_range": position.in_range(pool.current_tick),
            "token0": {"address": state.info.token0, "symbol": tokens["symbol0"],
                       "decimals": tokens["decimals0"]},
            "token1": {"address": state.info.token1, "symbol": tokens["symbol1"],
                       "decimals": tokens["decimals1"]},
            "amount0_raw": owed.amount0,
            "amount1_raw": owed.amount1,
            "amount0": fees0,
            "amount1": fees1,
        }, indent=2))
        return 0

    status = "🟢 In Range" if position.in_range(pool.current_tick) else "🔴 Out of Range"
    print("\n" + "=" * 60)
    print(f"  Position #{position_id} — {tokens['symbol0']}/{tokens['symbol1']}")
    print(f"  DEX: {reader.dex_name} | Network: {reader.network.title()}")
    print(f"  Pool: {state.pool_address} | Block: {state.block_number}")
    print("=" * 60)
    print(f"  Status   : {status} (tick {pool.current_tick}, "
          f"range [{position.tick_lower}, {position.tick_upper}))")
    print(f"  Liquidity: {position.liquidity:,}")
    print()
    print("  Uncollected Fees:")
    print(f"    {tokens['symbol0']}: {fees0}  (raw {owed.amount0})")
    print(f"    {tokens['symbol1']}: {fees1}  (raw {owed.amount1})")
    print("=" * 60)
    return 0


async def cmd_list(
    wallet: str,
    network: str = "arbitrum",
    dex: str = "uniswap_v3",
    block: int | None = None,
) -> int:
    """List every position a wallet holds on one DEX."""
    from position_indexer import PositionIndexer

    try:
        indexer = PositionIndexer(network)
        positions = await indexer.list_positions(wallet, dex_slug=dex, block=block)
    except (ValueError, RuntimeError, httpx.HTTPError) as e:
        return _fail(e)

    print(f"\n{'=' * 65}")
    print(f"  {DEX_NAMES[dex]} Positions — {indexer.network.title()}")
    print(f"  👛 Wallet: {wallet[:6]}…{wallet[-4:]}")
    print(f"{'=' * 65}")

    if not positions:
        print("  No positions found.")
        return 0

    for i, p in enumerate(positions, 1):
        status = "🟢 Active" if p.is_active else "⚪ Closed"
        snap = p.snapshot
        print(f"\n    {i}. Position #{p.token_id}")
        print(f"       Tokens   : {p.token0[:10]}… / {p.token1[:10]}… ({p.fee / 10_000:.2f}%)")
        print(f"       Range    : [{snap.tick_lower}, {snap.tick_upper})")
        print(f"       Status   : {status}")
        print(f"       Liquidity: {snap.liquidity:,}")
        print(f"       Owed     : {snap.tokens_owed0} / {snap.tokens_owed1} (checkpointed)")

    active = sum(1 for p in positions if p.is_active)
    print(f"\n{'=' * 65}")
    print(f"  Total: {len(positions)} positions ({active} active)")
    print(f"{'=' * 65}")
    return 0


async def cmd_svg(
    position_id: int,
    network: str = "arbitrum",
    dex: str = "uniswap_v3",
    block: int | None = None,
    out: str | None = None,
) -> int:
    """Print (or save) the position's SVG card data URI."""
    from position_reader import PositionReader

    try:
        reader = PositionReader(network, dex_slug=dex, verbose=False)
        image = await reader.read_token_svg(position_id, block)
    except (ValueError, RuntimeError, httpx.HTTPError) as e:
        return _fail(e)

    if out:
        try:
            Path(out).write_text(image)
        except OSError as e:
            return _fail(e)
        print(f"✅ Saved image data URI to {out}")
    else:
        print(image)
    return 0
