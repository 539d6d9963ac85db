"""
Concentrated Liquidity Mathematics (integer, Q64.96)

Формулы из whitepaper:
- L = amount0 * (sqrt(upper) * sqrt(lower)) / (sqrt(upper) - sqrt(lower))
- L = amount1 / (sqrt(upper) - sqrt(lower))

Когда текущая цена в диапазоне:
- L = amount0 * (sqrt(upper) * sqrt(current)) / (sqrt(upper) - sqrt(current))
- L = amount1 / (sqrt(current) - sqrt(lower))

Все sqrt-цены здесь в формате sqrtPriceX96, все суммы в wei.
Округления совпадают с LiquidityAmounts.sol / SqrtPriceMath.sol.
"""

from dataclasses import dataclass
from typing import Tuple

from .ticks import Q96


@dataclass
class LiquidityAmounts:
    """Результат расчёта количества токенов."""
    amount0: int  # В wei/smallest unit
    amount1: int  # В wei/smallest unit
    liquidity: int


def _sorted(sqrt_a: int, sqrt_b: int) -> Tuple[int, int]:
    return (sqrt_a, sqrt_b) if sqrt_a <= sqrt_b else (sqrt_b, sqrt_a)


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """(a * b) / denominator с округлением вверх."""
    result, remainder = divmod(a * b, denominator)
    return result + 1 if remainder else result


def div_rounding_up(numerator: int, denominator: int) -> int:
    """numerator / denominator с округлением вверх."""
    result, remainder = divmod(numerator, denominator)
    return result + 1 if remainder else result


def calculate_liquidity_for_amount0(sqrt_lower_x96: int, sqrt_upper_x96: int, amount0: int) -> int:
    """
    Расчёт liquidity по количеству token0.

    L = amount0 * (sqrt_upper * sqrt_lower) / (sqrt_upper - sqrt_lower)
    """
    sqrt_lower_x96, sqrt_upper_x96 = _sorted(sqrt_lower_x96, sqrt_upper_x96)
    if sqrt_upper_x96 == sqrt_lower_x96:
        return 0
    intermediate = sqrt_lower_x96 * sqrt_upper_x96 // Q96
    return amount0 * intermediate // (sqrt_upper_x96 - sqrt_lower_x96)


def calculate_liquidity_for_amount1(sqrt_lower_x96: int, sqrt_upper_x96: int, amount1: int) -> int:
    """
    Расчёт liquidity по количеству token1.

    L = amount1 / (sqrt_upper - sqrt_lower)
    """
    sqrt_lower_x96, sqrt_upper_x96 = _sorted(sqrt_lower_x96, sqrt_upper_x96)
    if sqrt_upper_x96 == sqrt_lower_x96:
        return 0
    return amount1 * Q96 // (sqrt_upper_x96 - sqrt_lower_x96)


def calculate_liquidity(
    sqrt_price_x96: int,
    sqrt_lower_x96: int,
    sqrt_upper_x96: int,
    amount0: int,
    amount1: int
) -> int:
    """
    Максимальная liquidity для пары сумм (лимитирующий фактор).

    Три случая:
    1. current <= lower: позиция полностью в token0
    2. current >= upper: позиция полностью в token1
    3. lower < current < upper: минимум из двух liquidity
    """
    sqrt_lower_x96, sqrt_upper_x96 = _sorted(sqrt_lower_x96, sqrt_upper_x96)

    if sqrt_price_x96 <= sqrt_lower_x96:
        return calculate_liquidity_for_amount0(sqrt_lower_x96, sqrt_upper_x96, amount0)

    if sqrt_price_x96 >= sqrt_upper_x96:
        return calculate_liquidity_for_amount1(sqrt_lower_x96, sqrt_upper_x96, amount1)

    liquidity0 = calculate_liquidity_for_amount0(sqrt_price_x96, sqrt_upper_x96, amount0)
    liquidity1 = calculate_liquidity_for_amount1(sqrt_lower_x96, sqrt_price_x96, amount1)
    return min(liquidity0, liquidity1)


def calculate_amount0_delta(sqrt_a_x96: int, sqrt_b_x96: int, liquidity: int, round_up: bool = False) -> int:
    """
    Количество token0 между двумя ценами.

    amount0 = L * (sqrt_b - sqrt_a) / (sqrt_a * sqrt_b)
    """
    sqrt_a_x96, sqrt_b_x96 = _sorted(sqrt_a_x96, sqrt_b_x96)
    if sqrt_a_x96 == 0:
        raise ValueError("sqrt price must be > 0")

    numerator1 = liquidity << 96
    numerator2 = sqrt_b_x96 - sqrt_a_x96

    if round_up:
        return div_rounding_up(mul_div_rounding_up(numerator1, numerator2, sqrt_b_x96), sqrt_a_x96)
    return numerator1 * numerator2 // sqrt_b_x96 // sqrt_a_x96


def calculate_amount1_delta(sqrt_a_x96: int, sqrt_b_x96: int, liquidity: int, round_up: bool = False) -> int:
    """
    Количество token1 между двумя ценами.

    amount1 = L * (sqrt_b - sqrt_a)
    """
    sqrt_a_x96, sqrt_b_x96 = _sorted(sqrt_a_x96, sqrt_b_x96)

    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_b_x96 - sqrt_a_x96, Q96)
    return liquidity * (sqrt_b_x96 - sqrt_a_x96) // Q96


def calculate_amounts(
    sqrt_price_x96: int,
    sqrt_lower_x96: int,
    sqrt_upper_x96: int,
    liquidity: int
) -> LiquidityAmounts:
    """
    Расчёт количества обоих токенов для заданной liquidity (округление вниз).

    Returns:
        LiquidityAmounts с amount0 и amount1
    """
    sqrt_lower_x96, sqrt_upper_x96 = _sorted(sqrt_lower_x96, sqrt_upper_x96)
    amount0 = 0
    amount1 = 0

    if sqrt_price_x96 <= sqrt_lower_x96:
        amount0 = calculate_amount0_delta(sqrt_lower_x96, sqrt_upper_x96, liquidity)
    elif sqrt_price_x96 < sqrt_upper_x96:
        amount0 = calculate_amount0_delta(sqrt_price_x96, sqrt_upper_x96, liquidity)
        amount1 = calculate_amount1_delta(sqrt_lower_x96, sqrt_price_x96, liquidity)
    else:
        amount1 = calculate_amount1_delta(sqrt_lower_x96, sqrt_upper_x96, liquidity)

    return LiquidityAmounts(amount0=amount0, amount1=amount1, liquidity=liquidity)


def next_sqrt_price_from_amount0_in(sqrt_price_x96: int, liquidity: int, amount: int) -> int:
    """
    Новая sqrt-цена после добавления amount0 в пул (цена падает, округление вверх).

    sqrtP' = L * sqrtP / (L + amount * sqrtP)
    """
    if amount == 0:
        return sqrt_price_x96
    numerator1 = liquidity << 96
    return mul_div_rounding_up(numerator1, sqrt_price_x96, numerator1 + amount * sqrt_price_x96)


def next_sqrt_price_from_amount1_in(sqrt_price_x96: int, liquidity: int, amount: int) -> int:
    """
    Новая sqrt-цена после добавления amount1 в пул (цена растёт, округление вниз).

    sqrtP' = sqrtP + amount / L
    """
    return sqrt_price_x96 + (amount << 96) // liquidity
