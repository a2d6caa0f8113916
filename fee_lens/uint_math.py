"""
Fixed-Width Unsigned Integer Helpers
====================================

Python ints never overflow, so EVM ``uint256`` semantics have to be applied
explicitly.  Two kinds of helper live here and are kept apart:

  • wrapping_*    — modulo 2^bits, never raise (fee-growth accumulators)
  • require_uint  — rejects inputs that do not fit their slot (ValueError)

Fee-growth counters in Uniswap V3 are stored in uint256 slots and are
*meant* to wrap; only differences between two readings are meaningful.
Ref: https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/Tick.sol
     (getFeeGrowthInside is compiled with unchecked arithmetic)

Terminology:
  • Q128:  2^128 — fixed-point denominator for feeGrowth*X128
  • Q256:  2^256 — uint256 wrap boundary
"""

Q128 = 2 ** 128              # FixedPoint128.Q128
Q256 = 2 ** 256              # uint256 modulus

MAX_UINT128 = Q128 - 1
MAX_UINT256 = Q256 - 1


def require_uint(value: int, bits: int, name: str = "value") -> int:
    """Return ``value`` unchanged if it fits an unsigned ``bits``-wide slot.

    >>> require_uint(5, 128)
    5
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value >= (1 << bits):
        raise ValueError(f"{name} out of uint{bits} range: {value}")
    return value


def wrapping_add(a: int, b: int, bits: int = 256) -> int:
    """(a + b) mod 2^bits."""
    return (a + b) % (1 << bits)


def wrapping_sub(a: int, b: int, bits: int = 256) -> int:
    """(a − b) mod 2^bits — an "underflow" yields the wrapped value.

    >>> wrapping_sub(5, 10) == Q256 - 5
    True
    """
    return (a - b) % (1 << bits)


def mul_shift_q128(a: int, b: int) -> int:
    """floor(a × b / 2^128), truncated to 256 bits.

    Same result as ``FullMath.mulDiv(a, b, Q128)`` whenever the quotient
    fits in uint256; the 512-bit intermediate product is exact because
    Python ints are arbitrary precision.  With a uint128 liquidity and a
    uint256 growth delta the quotient always fits, so the truncation only
    matters for out-of-range callers.

    >>> mul_shift_q128(1_000_000, Q128)
    1000000
    """
    return ((a * b) >> 128) % Q256
