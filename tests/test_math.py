"""
Test Suite — Uncollected Fee Math
=================================

Tests fee_math.py and fee_lens/uint_math.py against hand-computed values
and the invariants of Uniswap V3 fee accounting:

  - Tick.getFeeGrowthInside()  — three-way case split, mod 2^256
  - Position.update()          — tokensOwed += L × Δinside / 2^128

Run:  python -m pytest tests/test_math.py -v
"""

import pytest

from fee_lens.uint_math import (
    MAX_UINT128,
    MAX_UINT256,
    Q128,
    Q256,
    mul_shift_q128,
    require_uint,
    wrapping_add,
    wrapping_sub,
)
from fee_math import (
    BoundaryTickState,
    FeeGrowthInside,
    FeeSnapshot,
    OwedAmounts,
    PoolSnapshot,
    PositionSnapshot,
    accrue_owed,
    collectable_amounts,
    get_fee_growth_inside,
    get_tokens_owed,
)


# ── Helpers ──────────────────────────────────────────────────────────────

LOWER = BoundaryTickState(fee_growth_outside0=3 * Q128, fee_growth_outside1=7 * Q128)
UPPER = BoundaryTickState(fee_growth_outside0=2 * Q128, fee_growth_outside1=5 * Q128)
GLOBAL0 = 20 * Q128
GLOBAL1 = 40 * Q128


def inside(tick: int, lower=LOWER, upper=UPPER, g0=GLOBAL0, g1=GLOBAL1,
           tick_lower: int = -100, tick_upper: int = 100) -> FeeGrowthInside:
    return get_fee_growth_inside(tick, tick_lower, tick_upper, g0, g1, lower, upper)


def shifted(state: BoundaryTickState, offset: int) -> BoundaryTickState:
    return BoundaryTickState(
        wrapping_add(state.fee_growth_outside0, offset),
        wrapping_add(state.fee_growth_outside1, offset),
    )


# ── Wrapping Arithmetic ─────────────────────────────────────────────────────

class TestWrappingArithmetic:
    """wrapping_* never raise; an underflow yields the wrapped value."""

    def test_wrapping_sub_underflow_wraps(self):
        assert wrapping_sub(5, 10) == Q256 - 5

    def test_wrapping_sub_no_underflow(self):
        assert wrapping_sub(10, 5) == 5

    def test_wrapping_add_overflow_wraps(self):
        assert wrapping_add(MAX_UINT256, 2) == 1

    def test_wrapping_128_bit(self):
        assert wrapping_sub(0, 1, bits=128) == MAX_UINT128
        assert wrapping_add(MAX_UINT128, 1, bits=128) == 0

    def test_sub_then_add_restores(self):
        a, b = 123, MAX_UINT256 - 7
        assert wrapping_add(wrapping_sub(a, b), b) == a


class TestMulShiftQ128:
    """floor(a × b / 2^128) with an exact wide intermediate."""

    def test_one_unit(self):
        assert mul_shift_q128(1_000_000, Q128) == 1_000_000

    def test_floors_fraction(self):
        # 3 × 0.5 = 1.5 → 1
        assert mul_shift_q128(3, Q128 // 2) == 1

    def test_below_one_unit_is_zero(self):
        assert mul_shift_q128(1, Q128 - 1) == 0

    def test_no_intermediate_truncation(self):
        # max liquidity × max growth delta needs 384 bits before the shift
        expected = (MAX_UINT128 * MAX_UINT256) >> 128
        assert mul_shift_q128(MAX_UINT128, MAX_UINT256) == expected
        assert expected < Q256

    def test_zero(self):
        assert mul_shift_q128(0, MAX_UINT256) == 0


class TestRequireUint:

    @pytest.mark.parametrize("value,bits", [(0, 128), (MAX_UINT128, 128), (MAX_UINT256, 256)])
    def test_in_range(self, value, bits):
        assert require_uint(value, bits) == value

    @pytest.mark.parametrize("value,bits", [(-1, 128), (Q128, 128), (Q256, 256)])
    def test_out_of_range(self, value, bits):
        with pytest.raises(ValueError, match="out of uint"):
            require_uint(value, bits)

    @pytest.mark.parametrize("value", [1.0, "1", True, None])
    def test_non_int_rejected(self, value):
        with pytest.raises(ValueError, match="must be an int"):
            require_uint(value, 256)


# ── Snapshot Types ───────────────────────────────────────────────────────

class TestSnapshotValidation:

    def test_position_inverted_range_rejected(self):
        with pytest.raises(ValueError, match="tick_lower must be below tick_upper"):
            PositionSnapshot(tick_lower=100, tick_upper=-100, liquidity=1)

    def test_position_empty_range_rejected(self):
        with pytest.raises(ValueError):
            PositionSnapshot(tick_lower=60, tick_upper=60, liquidity=1)

    def test_liquidity_must_fit_uint128(self):
        with pytest.raises(ValueError, match="liquidity"):
            PositionSnapshot(tick_lower=-1, tick_upper=1, liquidity=Q128)

    def test_tokens_owed_must_be_non_negative(self):
        with pytest.raises(ValueError, match="tokens_owed0"):
            PositionSnapshot(tick_lower=-1, tick_upper=1, liquidity=1, tokens_owed0=-1)

    def test_fee_growth_must_fit_uint256(self):
        with pytest.raises(ValueError, match="fee_growth_global1"):
            PoolSnapshot(current_tick=0, fee_growth_global0=0, fee_growth_global1=Q256)

    def test_outside_must_fit_uint256(self):
        with pytest.raises(ValueError):
            BoundaryTickState(fee_growth_outside0=-1, fee_growth_outside1=0)

    def test_tick_must_be_int(self):
        with pytest.raises(ValueError, match="current_tick"):
            PoolSnapshot(current_tick=1.5, fee_growth_global0=0, fee_growth_global1=0)

    def test_snapshots_are_frozen(self):
        pos = PositionSnapshot(tick_lower=-1, tick_upper=1, liquidity=1)
        with pytest.raises(AttributeError):
            pos.liquidity = 2

    @pytest.mark.parametrize("tick,expected", [(-101, False), (-100, True), (99, True), (100, False)])
    def test_in_range_is_half_open(self, tick, expected):
        pos = PositionSnapshot(tick_lower=-100, tick_upper=100, liquidity=1)
        assert pos.in_range(tick) is expected


# ── Fee Growth Inside (Tick.getFeeGrowthInside) ──────────────────────────

class TestFeeGrowthInside:
    """Three mutually exclusive branches on the current tick."""

    def test_inside_range(self):
        # global − lower − upper = 20 − 3 − 2 and 40 − 7 − 5
        assert inside(0) == FeeGrowthInside(15 * Q128, 28 * Q128)

    def test_below_range(self):
        # outside(lower) − outside(upper)
        assert inside(-500) == FeeGrowthInside(1 * Q128, 2 * Q128)

    def test_above_range(self):
        # outside(upper) − outside(lower), wraps because upper < lower
        assert inside(500) == FeeGrowthInside(Q256 - Q128, Q256 - 2 * Q128)

    @pytest.mark.parametrize("tick,branch", [
        (-101, "below"),
        (-100, "inside"),   # lower tick is inclusive
        (0, "inside"),
        (99, "inside"),
        (100, "above"),     # upper tick is exclusive
        (101, "above"),
    ])
    def test_branch_boundaries(self, tick, branch):
        expected = {
            "below": inside(-10_000),
            "inside": inside(0),
            "above": inside(10_000),
        }[branch]
        assert inside(tick) == expected

    def test_every_tick_matches_exactly_one_branch(self):
        below = FeeGrowthInside(
            (LOWER.fee_growth_outside0 - UPPER.fee_growth_outside0) % Q256,
            (LOWER.fee_growth_outside1 - UPPER.fee_growth_outside1) % Q256,
        )
        above = FeeGrowthInside(
            (UPPER.fee_growth_outside0 - LOWER.fee_growth_outside0) % Q256,
            (UPPER.fee_growth_outside1 - LOWER.fee_growth_outside1) % Q256,
        )
        in_range = FeeGrowthInside(
            (GLOBAL0 - LOWER.fee_growth_outside0 - UPPER.fee_growth_outside0) % Q256,
            (GLOBAL1 - LOWER.fee_growth_outside1 - UPPER.fee_growth_outside1) % Q256,
        )
        for tick in range(-300, 300):
            result = inside(tick)
            matches = [result == below, result == above, result == in_range]
            assert sum(matches) == 1, tick
            if tick < -100:
                assert result == below
            elif tick >= 100:
                assert result == above
            else:
                assert result == in_range

    def test_literal_underflow_scenario(self):
        """global = 5, outside(lower) = 10 → wrapped result, no error."""
        lower = BoundaryTickState(fee_growth_outside0=10, fee_growth_outside1=10)
        upper = BoundaryTickState(fee_growth_outside0=0, fee_growth_outside1=1)
        result = inside(0, lower=lower, upper=upper, g0=5, g1=5)
        assert result.fee_growth_inside0 == Q256 - 5
        assert result.fee_growth_inside1 == Q256 - 6

    def test_literal_large_values(self):
        g0 = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF00
        lower = BoundaryTickState(
            fee_growth_outside0=0x0000000000000000000000000000000000000000000000000000000000001000,
            fee_growth_outside1=0,
        )
        upper = BoundaryTickState(
            fee_growth_outside0=0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF0,
            fee_growth_outside1=0,
        )
        result = inside(0, lower=lower, upper=upper, g0=g0, g1=0)
        # 0x…ff00 − 0x1000 − 0x…fff0 ≡ −0xf0 − 0x1000 (mod 2^256)
        assert result.fee_growth_inside0 == Q256 - 0x10F0
        assert result.fee_growth_inside1 == 0

    @pytest.mark.parametrize("offset", [1, Q128, Q256 - 1, 0xDEADBEEF << 200])
    @pytest.mark.parametrize("tick", [-500, 0, 500])
    def test_invariant_under_common_shift(self, offset, tick):
        """Shifting global and both outsides by one constant leaves inside unchanged.

        For the in-range case the global is shifted by 2×offset: outsides are
        relative to the global, so a uniform accrual moves global by the sum.
        """
        base = inside(tick)
        g_shift = 2 * offset if -100 <= tick < 100 else offset
        moved = inside(
            tick,
            lower=shifted(LOWER, offset),
            upper=shifted(UPPER, offset),
            g0=wrapping_add(GLOBAL0, g_shift),
            g1=wrapping_add(GLOBAL1, g_shift),
        )
        assert moved == base

    @pytest.mark.parametrize("offset", [Q128, Q256 - 3 * Q128])
    def test_in_range_invariant_under_global_and_lower_shift(self, offset):
        """Accrual below the range moves global and outside(lower) together."""
        base = inside(0)
        moved = inside(
            0,
            lower=shifted(LOWER, offset),
            g0=wrapping_add(GLOBAL0, offset),
            g1=wrapping_add(GLOBAL1, offset),
        )
        assert moved == base

    @pytest.mark.parametrize("tick_lower,tick_upper", [(100, -100), (60, 60)])
    def test_invalid_range_rejected(self, tick_lower, tick_upper):
        with pytest.raises(ValueError, match="tick_lower must be below tick_upper"):
            inside(0, tick_lower=tick_lower, tick_upper=tick_upper)

    def test_results_always_in_uint256(self):
        for tick in (-500, 0, 500):
            r = inside(tick)
            assert 0 <= r.fee_growth_inside0 <= MAX_UINT256
            assert 0 <= r.fee_growth_inside1 <= MAX_UINT256


# ── Owed Amounts (Position.update) ───────────────────────────────────────

class TestTokensOwed:
    """delta = floor(L × (inside − insideLast mod 2^256) / 2^128)"""

    def test_literal_one_unit_of_growth(self):
        assert get_tokens_owed(0, 0, 1_000_000, Q128, Q128) == (1_000_000, 1_000_000)

    def test_zero_delta_is_zero(self):
        assert get_tokens_owed(5 * Q128, 9 * Q128, 10**18, 5 * Q128, 9 * Q128) == (0, 0)

    def test_zero_liquidity_is_zero(self):
        assert get_tokens_owed(0, 0, 0, 10 * Q128, 10 * Q128) == (0, 0)

    def test_delta_across_counter_wrap(self):
        """inside wrapped past 2^256 since the checkpoint: delta is still small."""
        last = Q256 - Q128          # 1 unit before the wrap
        now = Q128                  # 1 unit after the wrap
        assert get_tokens_owed(last, last, 500, now, now) == (1000, 1000)

    def test_rounds_down(self):
        # 3 × 0.5 = 1.5 → 1
        assert get_tokens_owed(0, 0, 3, Q128 // 2, Q128 // 2) == (1, 1)

    def test_tokens_independent(self):
        assert get_tokens_owed(0, Q128, 10, 2 * Q128, 4 * Q128) == (20, 30)

    @pytest.mark.parametrize("growth", [1, Q128 // 3, Q128, 7 * Q128 + 12345])
    def test_monotonic_in_liquidity(self, growth):
        previous = -1
        for liquidity in (0, 1, 2, 1_000, 10**6, 10**18, MAX_UINT128):
            delta0, _ = get_tokens_owed(0, 0, liquidity, growth, growth)
            assert delta0 >= previous
            previous = delta0


class TestAccrueOwed:

    def test_zero_delta_returns_recorded_owed(self):
        pos = PositionSnapshot(
            tick_lower=-100, tick_upper=100, liquidity=10**12,
            fee_growth_inside0_last=42 * Q128, fee_growth_inside1_last=Q256 - 1,
            tokens_owed0=777, tokens_owed1=MAX_UINT128,
        )
        owed = accrue_owed(pos, FeeGrowthInside(42 * Q128, Q256 - 1))
        assert owed == OwedAmounts(777, MAX_UINT128)

    def test_adds_recorded_owed(self):
        pos = PositionSnapshot(
            tick_lower=-100, tick_upper=100, liquidity=1_000_000,
            tokens_owed0=5, tokens_owed1=6,
        )
        owed = accrue_owed(pos, FeeGrowthInside(Q128, 2 * Q128))
        assert owed == OwedAmounts(1_000_005, 2_000_006)

    def test_sum_can_exceed_uint128(self):
        pos = PositionSnapshot(
            tick_lower=-1, tick_upper=1, liquidity=MAX_UINT128,
            tokens_owed0=MAX_UINT128,
        )
        owed = accrue_owed(pos, FeeGrowthInside(Q128, 0))
        assert owed.amount0 == 2 * MAX_UINT128
        assert owed.amount1 == 0


class TestCollectableAmounts:
    """Full pipeline: snapshot → inside → owed."""

    def _snapshot(self, tick: int, **position) -> FeeSnapshot:
        fields = dict(tick_lower=-100, tick_upper=100, liquidity=1_000_000)
        fields.update(position)
        return FeeSnapshot(
            position=PositionSnapshot(**fields),
            pool=PoolSnapshot(current_tick=tick, fee_growth_global0=GLOBAL0,
                              fee_growth_global1=GLOBAL1),
            lower=LOWER,
            upper=UPPER,
            block_number=17188000,
        )

    def test_in_range(self):
        owed = collectable_amounts(self._snapshot(0))
        assert owed == OwedAmounts(15 * 1_000_000, 28 * 1_000_000)

    def test_in_range_with_checkpoint_and_owed(self):
        owed = collectable_amounts(self._snapshot(
            0,
            fee_growth_inside0_last=10 * Q128,
            fee_growth_inside1_last=28 * Q128,
            tokens_owed0=1,
            tokens_owed1=2,
        ))
        assert owed == OwedAmounts(5 * 1_000_000 + 1, 2)

    def test_below_range(self):
        owed = collectable_amounts(self._snapshot(-200))
        assert owed == OwedAmounts(1_000_000, 2_000_000)

    def test_checkpoint_taken_out_of_range(self):
        """Last checkpoint above the range; growth since is zero → only tokensOwed."""
        last = inside(500)
        owed = collectable_amounts(self._snapshot(
            500,
            fee_growth_inside0_last=last.fee_growth_inside0,
            fee_growth_inside1_last=last.fee_growth_inside1,
            tokens_owed0=11,
            tokens_owed1=22,
        ))
        assert owed == OwedAmounts(11, 22)

    def test_does_not_mutate_snapshot(self):
        snap = self._snapshot(0)
        before = repr(snap)
        collectable_amounts(snap)
        assert repr(snap) == before
