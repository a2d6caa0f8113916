#!/usr/bin/env python3
"""
V3 Fee Lens -- Uncollected Fees for Concentrated-Liquidity Positions
====================================================================

Reads a V3 position's fee accounting on-chain and computes what it can
collect right now.  Supports: Uniswap V3, PancakeSwap V3, SushiSwap V3.

Usage:
  python run.py fees --position <tokenId>                      Collectable fees (latest block)
  python run.py fees --position <tokenId> --block <N>          ... at a historical block
  python run.py fees --position <tokenId> --json               Machine-readable output
  python run.py list <wallet> --network <net>                  Positions held by a wallet
  python run.py svg  --position <tokenId> --out card.svg       Position card image
  python run.py info                                           Networks + DEX support

Sources:
  Uniswap V3 Core      : https://github.com/Uniswap/v3-core
  Uniswap V3 Periphery : https://github.com/Uniswap/v3-periphery
"""

import sys
import asyncio
import argparse
from pathlib import Path

# ── Imports ───────────────────────────────────────────────────────────────

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from fee_lens.central_config import PROJECT_NAME, PROJECT_VERSION
from fee_lens.commands import cmd_fees, cmd_info, cmd_list, cmd_svg
from fee_lens.deployments import DEFAULT_DEX, POSITION_MANAGERS


# ── CLI Parser ────────────────────────────────────────────────────────────


def _add_chain_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--network",
        type=str,
        default="arbitrum",
        help="Network: arbitrum, ethereum, polygon, base, optimism, bsc (default: arbitrum)",
    )
    p.add_argument(
        "--dex",
        type=str,
        default=DEFAULT_DEX,
        choices=list(POSITION_MANAGERS.keys()),
        help=f"DEX (default: {DEFAULT_DEX})",
    )
    p.add_argument(
        "--block",
        type=int,
        default=None,
        help="Block number to read at (default: latest, pinned once for all reads)",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fee-lens",
        description=f"{PROJECT_NAME} v{PROJECT_VERSION} — uncollected V3 position fees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py fees --position 5260106                       Arbitrum, Uniswap V3
  python run.py fees --position 5260106 --network ethereum --block 17188000
  python run.py fees --position 123 --dex pancakeswap_v3 --network bsc
  python run.py list 0xWALLET --network arbitrum
  python run.py svg  --position 5260106 --out card.txt
  python run.py info

How to find your Position ID:
  app.uniswap.org → Pool → click your position
  URL: app.uniswap.org/positions/v3/<network>/<tokenId>
""",
    )
    parser.add_argument(
        "--version", action="version", version=f"{PROJECT_NAME} v{PROJECT_VERSION}"
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")

    fees_p = sub.add_parser("fees", help="Collectable fees for one position")
    fees_p.add_argument(
        "--position", type=int, required=True, help="V3 position NFT tokenId (uint256)"
    )
    _add_chain_args(fees_p)
    fees_p.add_argument(
        "--json", action="store_true", help="Print JSON instead of a summary"
    )

    list_p = sub.add_parser("list", help="List positions held by a wallet")
    list_p.add_argument("wallet", help="Wallet address (0x…)")
    _add_chain_args(list_p)

    svg_p = sub.add_parser("svg", help="Position card image (SVG data URI)")
    svg_p.add_argument(
        "--position", type=int, required=True, help="V3 position NFT tokenId (uint256)"
    )
    _add_chain_args(svg_p)
    svg_p.add_argument(
        "--out", type=str, default=None, help="Write the data URI to this file"
    )

    sub.add_parser("info", help="Supported networks & DEXes")

    return parser


# ── Main ──────────────────────────────────────────────────────────────────


def main(argv=None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return _dispatch(args)
    except KeyboardInterrupt:
        print("\n❌ Cancelled.")
        return 130


def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "info":
        return cmd_info()
    if args.command == "fees":
        return asyncio.run(
            cmd_fees(
                position_id=args.position,
                network=args.network,
                dex=args.dex,
                block=args.block,
                as_json=args.json,
            )
        )
    if args.command == "list":
        return asyncio.run(
            cmd_list(
                wallet=args.wallet,
                network=args.network,
                dex=args.dex,
                block=args.block,
            )
        )
    if args.command == "svg":
        return asyncio.run(
            cmd_svg(
                position_id=args.position,
                network=args.network,
                dex=args.dex,
                block=args.block,
                out=args.out,
            )
        )

    raise ValueError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    sys.exit(main())
