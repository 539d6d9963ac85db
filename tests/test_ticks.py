"""
Tests for vault_zap/math/ticks.py

- get_sqrt_ratio_at_tick (exact TickMath port)
- token0_price (1e18 fixed-point, overflow guard)
"""

import pytest

from vault_zap.errors import ArithmeticOverflow
from vault_zap.math.ticks import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    PRICE_PRECISION,
    Q96,
    get_sqrt_ratio_at_tick,
    token0_price,
)


# ============================================================
# get_sqrt_ratio_at_tick
# ============================================================

class TestGetSqrtRatioAtTick:

    def test_tick_zero_is_q96(self):
        assert get_sqrt_ratio_at_tick(0) == Q96

    def test_min_tick(self):
        assert get_sqrt_ratio_at_tick(MIN_TICK) == MIN_SQRT_RATIO

    def test_max_tick(self):
        assert get_sqrt_ratio_at_tick(MAX_TICK) == MAX_SQRT_RATIO

    def test_out_of_range_raises(self):
        with pytest.raises(ValueError):
            get_sqrt_ratio_at_tick(MIN_TICK - 1)
        with pytest.raises(ValueError):
            get_sqrt_ratio_at_tick(MAX_TICK + 1)

    def test_monotonic(self):
        ticks = [-887272, -100000, -100, -1, 0, 1, 100, 100000, 887272]
        ratios = [get_sqrt_ratio_at_tick(t) for t in ticks]
        assert ratios == sorted(ratios)
        assert len(set(ratios)) == len(ratios)

    def test_matches_float_formula(self):
        """sqrt(1.0001^tick) * 2^96 с точностью float."""
        for tick in (-50000, -100, 1, 100, 50000):
            expected = (1.0001 ** (tick / 2)) * Q96
            assert get_sqrt_ratio_at_tick(tick) == pytest.approx(expected, rel=1e-12)

    def test_symmetry(self):
        """sqrt(p(t)) * sqrt(p(-t)) ≈ 1."""
        for tick in (1, 60, 1000, 200000):
            product = get_sqrt_ratio_at_tick(tick) * get_sqrt_ratio_at_tick(-tick)
            assert product == pytest.approx(Q96 * Q96, rel=1e-15)


# ============================================================
# token0_price
# ============================================================

class TestToken0Price:

    def test_price_one(self):
        assert token0_price(Q96) == PRICE_PRECISION

    def test_price_four(self):
        assert token0_price(2 * Q96) == 4 * PRICE_PRECISION

    def test_price_quarter(self):
        assert token0_price(Q96 // 2) == PRICE_PRECISION // 4

    def test_floor_rounding(self):
        # Чуть выше 1.0: результат не меньше 1e18 и не больше 1e18 + 1
        price = token0_price(Q96 + 1)
        assert PRICE_PRECISION <= price <= PRICE_PRECISION + 1

    def test_overflow_raises(self):
        with pytest.raises(ArithmeticOverflow):
            token0_price(MAX_SQRT_RATIO)

    def test_negative_raises(self):
        with pytest.raises(ValueError):
            token0_price(-1)
