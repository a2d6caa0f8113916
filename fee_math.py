#!/usr/bin/env python3
"""
Uncollected Fee Math
====================

Computes the fees a V3 position can collect right now, from a snapshot of
on-chain accounting state.  Pure functions only — no RPC, no printing.

FORMULA SOURCES:
────────────────
1. Uniswap V3 Core — Tick.getFeeGrowthInside()
   https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/Tick.sol

     below  = outside(lower)          if tick >= lower else global − outside(lower)
     above  = outside(upper)          if tick <  upper else global − outside(upper)
     inside = global − below − above

   Collapsed into the three mutually exclusive cases used here:
     tick <  lower         →  inside = outside(lower) − outside(upper)
     tick >= upper         →  inside = outside(upper) − outside(lower)
     lower <= tick < upper →  inside = global − outside(lower) − outside(upper)

2. Uniswap V3 Core — Position.update()
   https://github.com/Uniswap/v3-core/blob/main/contracts/libraries/Position.sol

     tokensOwed += mulDiv(inside − insideLast, liquidity, Q128)

All accumulator subtraction is modulo 2^256.  The counters are free-running
and wrap; reading a "negative" difference as an error is the classic bug.

Preconditions:
  • tick_lower < tick_upper (rejected with ValueError otherwise)
  • every value was read at the same block — NOT checked here; a mixed
    snapshot silently produces a wrong answer
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from fee_lens.uint_math import (
    mul_shift_q128,
    require_uint,
    wrapping_add,
    wrapping_sub,
)


# ── Snapshot Types ───────────────────────────────────────────────────────


def _require_tick(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    return value


def _require_range(tick_lower: int, tick_upper: int) -> None:
    if tick_lower >= tick_upper:
        raise ValueError(
            f"tick_lower must be below tick_upper, got [{tick_lower}, {tick_upper}]"
        )


@dataclass(frozen=True)
class PoolSnapshot:
    """Pool-wide state: slot0().tick and the two feeGrowthGlobal*X128 values."""

    current_tick: int
    fee_growth_global0: int
    fee_growth_global1: int

    def __post_init__(self):
        _require_tick(self.current_tick, "current_tick")
        require_uint(self.fee_growth_global0, 256, "fee_growth_global0")
        require_uint(self.fee_growth_global1, 256, "fee_growth_global1")


@dataclass(frozen=True)
class BoundaryTickState:
    """ticks(i).feeGrowthOutside{0,1}X128 for one boundary tick."""

    fee_growth_outside0: int
    fee_growth_outside1: int

    def __post_init__(self):
        require_uint(self.fee_growth_outside0, 256, "fee_growth_outside0")
        require_uint(self.fee_growth_outside1, 256, "fee_growth_outside1")


@dataclass(frozen=True)
class PositionSnapshot:
    """
    The position's last checkpoint, as returned by
    NonfungiblePositionManager.positions(tokenId).

      - tick_lower / tick_upper       → range, tick_lower < tick_upper
      - liquidity                     → uint128
      - fee_growth_inside{0,1}_last   → Q128.128 at the last checkpoint
      - tokens_owed{0,1}              → uint128, fees already checkpointed
    """

    tick_lower: int
    tick_upper: int
    liquidity: int
    fee_growth_inside0_last: int = 0
    fee_growth_inside1_last: int = 0
    tokens_owed0: int = 0
    tokens_owed1: int = 0

    def __post_init__(self):
        _require_tick(self.tick_lower, "tick_lower")
        _require_tick(self.tick_upper, "tick_upper")
        _require_range(self.tick_lower, self.tick_upper)
        require_uint(self.liquidity, 128, "liquidity")
        require_uint(self.fee_growth_inside0_last, 256, "fee_growth_inside0_last")
        require_uint(self.fee_growth_inside1_last, 256, "fee_growth_inside1_last")
        require_uint(self.tokens_owed0, 128, "tokens_owed0")
        require_uint(self.tokens_owed1, 128, "tokens_owed1")

    def in_range(self, current_tick: int) -> bool:
        return self.tick_lower <= current_tick < self.tick_upper


@dataclass(frozen=True)
class FeeGrowthInside:
    """Per-unit-of-liquidity fee growth inside a range (Q128.128, per token)."""

    fee_growth_inside0: int
    fee_growth_inside1: int


@dataclass(frozen=True)
class OwedAmounts:
    """Collectable raw token amounts (uint256, not decimal-adjusted)."""

    amount0: int
    amount1: int


@dataclass(frozen=True)
class FeeSnapshot:
    """Everything needed to compute collectable fees, read at one block."""

    position: PositionSnapshot
    pool: PoolSnapshot
    lower: BoundaryTickState
    upper: BoundaryTickState
    block_number: Optional[int] = None


# ── Fee Growth Inside (Tick.getFeeGrowthInside) ──────────────────────────


def get_fee_growth_inside(
    current_tick: int,
    tick_lower: int,
    tick_upper: int,
    fee_growth_global0: int,
    fee_growth_global1: int,
    lower: BoundaryTickState,
    upper: BoundaryTickState,
) -> FeeGrowthInside:
    """
    Fee growth per unit of liquidity accrued inside [tick_lower, tick_upper).

    Exactly one of the three branches applies; each subtraction wraps
    modulo 2^256.

    Raises:
        ValueError: if tick_lower >= tick_upper.
    """
    _require_range(tick_lower, tick_upper)

    if current_tick < tick_lower:
        # Price below range
        inside0 = wrapping_sub(lower.fee_growth_outside0, upper.fee_growth_outside0)
        inside1 = wrapping_sub(lower.fee_growth_outside1, upper.fee_growth_outside1)
    elif current_tick >= tick_upper:
        # Price above range
        inside0 = wrapping_sub(upper.fee_growth_outside0, lower.fee_growth_outside0)
        inside1 = wrapping_sub(upper.fee_growth_outside1, lower.fee_growth_outside1)
    else:
        inside0 = wrapping_sub(
            wrapping_sub(fee_growth_global0, lower.fee_growth_outside0),
            upper.fee_growth_outside0,
        )
        inside1 = wrapping_sub(
            wrapping_sub(fee_growth_global1, lower.fee_growth_outside1),
            upper.fee_growth_outside1,
        )

    return FeeGrowthInside(inside0, inside1)


# ── Owed Amounts (Position.update) ───────────────────────────────────────


def get_tokens_owed(
    fee_growth_inside0_last: int,
    fee_growth_inside1_last: int,
    liquidity: int,
    fee_growth_inside0: int,
    fee_growth_inside1: int,
) -> Tuple[int, int]:
    """
    Fees accrued since the last checkpoint, in raw token units.

        delta = floor(liquidity × (inside − inside_last mod 2^256) / 2^128)
    """
    delta0 = mul_shift_q128(
        liquidity, wrapping_sub(fee_growth_inside0, fee_growth_inside0_last)
    )
    delta1 = mul_shift_q128(
        liquidity, wrapping_sub(fee_growth_inside1, fee_growth_inside1_last)
    )
    return delta0, delta1


def accrue_owed(position: PositionSnapshot, growth: FeeGrowthInside) -> OwedAmounts:
    """Recorded tokensOwed plus everything accrued since the checkpoint."""
    delta0, delta1 = get_tokens_owed(
        position.fee_growth_inside0_last,
        position.fee_growth_inside1_last,
        position.liquidity,
        growth.fee_growth_inside0,
        growth.fee_growth_inside1,
    )
    return OwedAmounts(
        amount0=wrapping_add(position.tokens_owed0, delta0),
        amount1=wrapping_add(position.tokens_owed1, delta1),
    )


def collectable_amounts(snapshot: FeeSnapshot) -> OwedAmounts:
    """Snapshot → fee growth inside → owed totals for token0 and token1."""
    position = snapshot.position
    pool = snapshot.pool
    growth = get_fee_growth_inside(
        pool.current_tick,
        position.tick_lower,
        position.tick_upper,
        pool.fee_growth_global0,
        pool.fee_growth_global1,
        snapshot.lower,
        snapshot.upper,
    )
    return accrue_owed(position, growth)
