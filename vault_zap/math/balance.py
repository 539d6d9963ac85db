"""
Balanced Amount Calculator

Делит одну входную сумму на (amount0, amount1) в текущем оптимальном
соотношении хранилища.

Обозначения (всё fixed-point 1e18):
    P = token0_price = sqrtPriceX96^2 * 1e18 / 2^192   (token1 за 1 token0)
    R = optimal_ratio = amount1 * 1e18 / amount0      (token1 на 1 token0 в позиции)

Из token0 (держим x0, меняем amount - x0 на token1):
    (amount - x0) * P = R * x0   =>  x0 = amount * P / (P + R),  x1 = x0 * R / 1e18

Из token1 (держим x1, меняем amount - x1 на token0):
    x1 = (amount - x1) * R / P   =>  x1 = amount * R / (P + R),  x0 = x1 * 1e18 / R
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from ..errors import ArithmeticOverflow
from .ticks import PRICE_PRECISION, UINT256_MAX

logger = logging.getLogger(__name__)


@dataclass
class BalancedSplit:
    """Результат расчёта: сколько token0/token1 должно оказаться в депозите."""
    amount0: int
    amount1: int


def midpoint(amount_range: Tuple[int, int]) -> int:
    """Середина диапазона [start, end] от VaultAmountOracle."""
    start, end = amount_range
    if end < start:
        start, end = end, start
    return start + (end - start) // 2


def _checked(value: int, what: str) -> int:
    if value > UINT256_MAX:
        raise ArithmeticOverflow(f"{what} overflows uint256: {value}")
    return value


def optimal_ratio(amount0: int, amount1: int, amount: int, price: int) -> int:
    """
    Соотношение token1/token0 (1e18) для пары сумм от оракула.

    amount0 == 0 означает одностороннюю позицию: берём amount * P.
    """
    if amount0 != 0:
        return _checked(amount1 * PRICE_PRECISION, "amount1 * 1e18") // amount0
    return _checked(amount * price, "amount * token0_price")


def split_amount(amount: int, is_from_token0: bool, price: int, ratio: int) -> BalancedSplit:
    """Решение уравнения баланса для исходной суммы (см. docstring модуля)."""
    denominator = price + ratio
    if denominator == 0:
        raise ArithmeticOverflow("token0_price + optimal_ratio == 0")

    if is_from_token0:
        amount0 = _checked(amount * price, "amount * token0_price") // denominator
        amount1 = amount0 * ratio // PRICE_PRECISION
        return BalancedSplit(amount0=amount0, amount1=amount1)

    if ratio == 0:
        amount0 = amount * PRICE_PRECISION // price
        return BalancedSplit(amount0=amount0, amount1=0)

    amount1 = _checked(amount * ratio, "amount * optimal_ratio") // denominator
    amount0 = amount1 * PRICE_PRECISION // ratio
    return BalancedSplit(amount0=amount0, amount1=amount1)


def balanced_amounts(state, amount: int, is_from_token0: bool, oracle, vault: str) -> BalancedSplit:
    """
    Идеальное разбиение amount для депозита в хранилище.

    Args:
        state: PoolPriceState (снимок, не меняется)
        amount: Входная сумма в wei входного токена
        is_from_token0: Вход в token0 (True) или token1 (False)
        oracle: VaultAmountOracle
        vault: Адрес хранилища

    Returns:
        BalancedSplit(amount0, amount1)
    """
    if amount < 0:
        raise ValueError("amount must be non-negative")

    from_token = state.token0 if is_from_token0 else state.token1
    pair_amount = midpoint(oracle.get_deposit_amount(vault, from_token, amount))

    if is_from_token0:
        amount0, amount1 = amount, pair_amount
    else:
        amount0, amount1 = pair_amount, amount

    price = state.token0_price
    ratio = optimal_ratio(amount0, amount1, amount, price)
    split = split_amount(amount, is_from_token0, price, ratio)

    logger.debug(
        f"balanced_amounts: amount={amount} from_token0={is_from_token0} "
        f"pair={pair_amount} P={price} R={ratio} -> {split.amount0}/{split.amount1}"
    )
    return split
