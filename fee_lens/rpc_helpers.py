#!/usr/bin/env python3
"""
RPC Helpers — ABI Encoding/Decoding and JSON-RPC Client
========================================================

Low-level EVM interaction primitives shared by position_reader.py and
position_indexer.py:

  • ABI encoding/decoding (uint256, int24, address, uint24, string)
  • JSON-RPC client (eth_call, eth_call_batch, eth_blockNumber)
  • Block tags — every read can be pinned to one block number

Reads are strict: an RPC error, a missing batch entry, or an empty return
raises instead of being read as zero.  A fee computation fed a silent zero
would report a wrong amount with no warning.

All constants reference the Ethereum ABI specification:
  https://docs.soliditylang.org/en/latest/abi-spec.html

Terminology:
  • Word:  32 bytes = 256 bits = 64 hex characters
  • Slot:  Position of a 32-byte word in an ABI response
"""

import httpx
from typing import List, Optional, Tuple

from fee_lens.central_config import settings
from fee_lens.uint_math import Q256

# ── ABI Word Constants ──────────────────────────────────────────────────

ABI_WORD_BYTES = 32          # 1 ABI word = 32 bytes
ABI_WORD_HEX = 64            # 32 bytes × 2 hex chars = 64 hex characters
ADDRESS_HEX = 40              # 20 bytes × 2 = 40 hex characters
ADDRESS_PAD_HEX = 24          # Left padding in a 32-byte slot = 64 - 40 = 24 hex chars
SIGN_BIT = 1 << 255           # Two's complement sign bit for int256
ZERO_ADDRESS = "0x" + "0" * ADDRESS_HEX

# ── Common Token Symbol Normalization ───────────────────────────────────

SYMBOL_MAP = {
    "USD₮0": "USDT",
    "USD₮": "USDT",
    "USDT0": "USDT",
}


def normalize_symbol(raw_symbol: str) -> str:
    """Normalize on-chain token symbol to common name."""
    cleaned = raw_symbol.strip().strip("\x00")
    return SYMBOL_MAP.get(cleaned, cleaned)


# ── ABI Function Selectors ──────────────────────────────────────────────
# First 4 bytes of keccak256(function_signature).

SELECTORS: dict[str, str] = {
    # NonfungiblePositionManager (ERC-721 Enumerable + metadata)
    "balanceOf":              "0x70a08231",  # balanceOf(address)
    "tokenOfOwnerByIndex":    "0x2f745c59",  # tokenOfOwnerByIndex(address,uint256)
    "positions":              "0x99fbab88",  # positions(uint256)
    "factory":                "0xc45a0155",  # factory()
    "tokenURI":               "0xc87b56dd",  # tokenURI(uint256)

    # UniswapV3Pool (read-only state)
    "slot0":                  "0x3850c7bd",  # slot0()
    "liquidity":              "0x1a686502",  # liquidity()
    "feeGrowthGlobal0X128":   "0xf3058399",  # feeGrowthGlobal0X128()
    "feeGrowthGlobal1X128":   "0x46141319",  # feeGrowthGlobal1X128()
    "ticks":                  "0xf30dba93",  # ticks(int24)

    # UniswapV3Factory
    "getPool":                "0x1698ee82",  # getPool(address,address,uint24)

    # ERC-20 metadata
    "symbol":                 "0x95d89b41",  # symbol()
    "decimals":               "0x313ce567",  # decimals()
}


# ── ABI Encoding ────────────────────────────────────────────────────────

def encode_uint256(value: int) -> str:
    """ABI-encode a uint256 as 32-byte hex (no 0x prefix).

    >>> encode_uint256(1)
    '0000000000000000000000000000000000000000000000000000000000000001'
    """
    if value < 0 or value >= Q256:
        raise ValueError(f"uint256 out of range: {value}")
    return format(value, f'0{ABI_WORD_HEX}x')


def encode_address(addr: str) -> str:
    """ABI-encode an address as 32 bytes (left-padded, no 0x prefix).

    >>> encode_address('0xC36442b4a4522E871399CD717aBDD847Ab11FE88')
    '000000000000000000000000c36442b4a4522e871399cd717abdd847ab11fe88'
    """
    return addr.lower().replace("0x", "").zfill(ABI_WORD_HEX)


def encode_uint24(val: int) -> str:
    """ABI-encode a uint24 as 32 bytes (for fee tier parameter).

    >>> encode_uint24(3000)
    '0000000000000000000000000000000000000000000000000000000000000bb8'
    """
    return format(val, f'0{ABI_WORD_HEX}x')


def encode_int24(value: int) -> str:
    """ABI-encode an int24 sign-extended to int256 (for ticks).

    >>> encode_int24(-887220)
    'fffffffffffffffffffffffffffffffffffffffffffffffffffffffffff2764c'
    """
    if value < 0:
        value = Q256 + value
    return format(value, f'0{ABI_WORD_HEX}x')


def block_tag(block: Optional[int] = None) -> str:
    """JSON-RPC block parameter: hex quantity, or "latest" when unpinned.

    >>> block_tag(17188000)
    '0x10644a0'
    """
    if block is None:
        return "latest"
    if block < 0:
        raise ValueError(f"block must be non-negative, got {block}")
    return hex(block)


# ── ABI Decoding ────────────────────────────────────────────────────────

def _word(hex_data: str, slot: int) -> str:
    start = slot * ABI_WORD_HEX
    word = hex_data[start:start + ABI_WORD_HEX]
    if len(word) != ABI_WORD_HEX:
        raise ValueError(
            f"ABI response too short: slot {slot} needs {start + ABI_WORD_HEX} "
            f"hex chars, got {len(hex_data)}"
        )
    return word


def decode_uint(hex_data: str, slot: int = 0) -> int:
    """Decode uint256 from ABI response at 32-byte slot offset.

    Args:
        hex_data: Hex string (without 0x prefix).
        slot: Which 32-byte word to read (0-indexed).
    """
    return int(_word(hex_data, slot), 16)


def decode_int(hex_data: str, slot: int = 0) -> int:
    """Decode int256 (two's complement) from ABI response."""
    val = decode_uint(hex_data, slot)
    if val >= SIGN_BIT:
        return val - Q256
    return val


def decode_address(hex_data: str, slot: int = 0) -> str:
    """Decode address (last 20 bytes of 32-byte slot)."""
    return "0x" + _word(hex_data, slot)[ADDRESS_PAD_HEX:]


def decode_string(hex_data: str) -> str:
    """Decode an ABI-encoded dynamic string return value (offset + length + data).

    Raises:
        ValueError: if the payload is not a well-formed dynamic string.
    """
    offset = decode_uint(hex_data, 0)
    if offset % ABI_WORD_BYTES:
        raise ValueError(f"Misaligned string offset: {offset}")
    word_offset = offset // ABI_WORD_BYTES
    length = decode_uint(hex_data, word_offset)
    start = (word_offset + 1) * ABI_WORD_HEX
    hex_str = hex_data[start:start + length * 2]
    if len(hex_str) != length * 2:
        raise ValueError(f"String payload truncated: expected {length} bytes")
    try:
        return bytes.fromhex(hex_str).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"String is not valid UTF-8: {e}") from e


def decode_symbol(hex_data: str) -> str:
    """Decode an ERC-20 symbol() return.

    Some older tokens (MKR, SAI) return bytes32 instead of string; those are
    read as a NUL-padded UTF-8 word.  Anything undecodable becomes "UNK" —
    symbols are display-only.
    """
    try:
        return normalize_symbol(decode_string(hex_data))
    except ValueError:
        pass
    try:
        raw = bytes.fromhex(hex_data[:ABI_WORD_HEX])
        return normalize_symbol(raw.decode("utf-8").strip("\x00").strip()) or "UNK"
    except (ValueError, UnicodeDecodeError):
        return "UNK"


# ── JSON-RPC Client ─────────────────────────────────────────────────────

def _call_payload(request_id: int, to: str, data: str, block: Optional[int]) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "eth_call",
        "params": [{"to": to, "data": data}, block_tag(block)],
    }


def _rpc_error_message(error) -> str:
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error)


def _hex_result(reply, what: str) -> str:
    """The `0x…` result string of one JSON-RPC reply object.

    Raises:
        RuntimeError: error reply, or no usable hex `result`.
    """
    if not isinstance(reply, dict):
        raise RuntimeError(f"RPC error: malformed reply for {what}: {type(reply).__name__}")
    if "error" in reply:
        raise RuntimeError(f"RPC error: {_rpc_error_message(reply['error'])}")
    raw = reply.get("result")
    if not isinstance(raw, str) or not raw.startswith("0x"):
        raise RuntimeError(f"RPC error: malformed result for {what}: {raw!r}")
    return raw


async def eth_call(
    rpc_url: str,
    to: str,
    data: str,
    block: Optional[int] = None,
    timeout: int = settings.CALL_TIMEOUT,
) -> str:
    """
    Execute eth_call on an EVM node.

    Args:
        rpc_url: JSON-RPC endpoint URL (e.g. https://1rpc.io/arb)
        to: Contract address (0x...)
        data: ABI-encoded calldata (0x + selector + params)
        block: Block number to read at (None → "latest")
        timeout: HTTP timeout in seconds

    Returns:
        Hex response string (without 0x prefix).

    Raises:
        RuntimeError: If RPC returns an error or empty response.
    """
    payload = _call_payload(1, to, data, block)
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(rpc_url, json=payload)
        resp.raise_for_status()
        reply = resp.json()
    raw = _hex_result(reply, "eth_call")
    if len(raw) < 4:
        raise RuntimeError("Empty response — contract may not exist at this address")
    return raw[2:]  # strip 0x prefix


async def eth_call_batch(
    rpc_url: str,
    calls: List[Tuple[str, str]],
    block: Optional[int] = None,
    timeout: int = settings.CALL_TIMEOUT,
) -> List[str]:
    """
    Batch multiple eth_call requests into JSON-RPC batch requests.

    Calls are split into chunks of ``settings.MAX_BATCH_SIZE``; every entry
    is pinned to the same ``block``.

    Args:
        rpc_url: JSON-RPC endpoint URL
        calls: List of (contract_address, calldata) tuples
        block: Block number to read at (None → "latest")
        timeout: HTTP timeout in seconds

    Returns:
        List of hex result strings (without 0x prefix), in same order as calls.

    Raises:
        RuntimeError: If any entry errors, is missing, or is empty.
    """
    if not calls:
        return []

    results: List[str] = []
    size = settings.MAX_BATCH_SIZE
    async with httpx.AsyncClient(timeout=timeout) as client:
        for start in range(0, len(calls), size):
            chunk = calls[start:start + size]
            payloads = [
                _call_payload(i + 1, to, data, block)
                for i, (to, data) in enumerate(chunk)
            ]
            resp = await client.post(rpc_url, json=payloads)
            resp.raise_for_status()
            results.extend(_parse_batch(resp.json(), len(chunk), start))
    return results


def _parse_batch(reply, expected: int, offset: int = 0) -> List[str]:
    """Order a batch reply by id and unwrap each result."""
    if isinstance(reply, dict):
        if "error" in reply:
            raise RuntimeError(f"RPC error: {_rpc_error_message(reply['error'])}")
        # Some RPCs answer a one-element batch with a bare object
        if expected != 1:
            raise RuntimeError("RPC endpoint does not support batch requests")
        reply = [reply]
    if not isinstance(reply, list):
        raise RuntimeError(f"RPC error: malformed batch reply: {type(reply).__name__}")

    by_id = {r.get("id"): r for r in reply if isinstance(r, dict)}
    out = []
    for request_id in range(1, expected + 1):
        entry = by_id.get(request_id)
        if entry is None:
            raise RuntimeError(f"RPC batch reply missing call #{offset + request_id}")
        if "error" in entry:
            raise RuntimeError(
                f"RPC error in call #{offset + request_id}: "
                f"{_rpc_error_message(entry['error'])}"
            )
        raw = _hex_result(entry, f"call #{offset + request_id}")
        if len(raw) < 4:
            raise RuntimeError(
                f"Empty response for call #{offset + request_id} — "
                f"contract may not exist at this address"
            )
        out.append(raw[2:])
    return out


async def eth_block_number(rpc_url: str, timeout: int = settings.BLOCK_NUMBER_TIMEOUT) -> int:
    """
    Get the latest block number from an EVM node.

    Returns:
        Latest block number as integer.
    """
    payload = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "eth_blockNumber",
        "params": [],
    }
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(rpc_url, json=payload)
        resp.raise_for_status()
        reply = resp.json()
    raw = _hex_result(reply, "eth_blockNumber")
    try:
        return int(raw, 16)
    except ValueError as e:
        raise RuntimeError(f"RPC error: malformed result for eth_blockNumber: {raw!r}") from e
