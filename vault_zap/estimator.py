"""
Read-only estimators for pre-flight slippage bounds.

Both estimators use tick-bound math (TickMath + LiquidityAmounts) instead of
the oracle round-trip of the real deposit flow; the result approximates what
an ideal, fee-free execution would produce. Callers shave a slippage margin
off the estimate (config.apply_slippage) before passing it as a minimum.
"""

import logging

from .contracts.interfaces import PoolPriceState
from .errors import PoolStateUnavailable
from .math.liquidity import calculate_amounts
from .math.ticks import PRICE_PRECISION, get_sqrt_ratio_at_tick

logger = logging.getLogger(__name__)

# Liquidity used to value "one unit" of position; large enough that floor
# rounding on the reference amounts is negligible.
REFERENCE_LIQUIDITY = 10 ** 36


def _tick_bounds(state: PoolPriceState):
    if not state.has_tick_bounds:
        raise PoolStateUnavailable("Vault position tick bounds are not available")
    return get_sqrt_ratio_at_tick(state.tick_lower), get_sqrt_ratio_at_tick(state.tick_upper)


def _value_in(amount0: int, amount1: int, in_token0: bool, price: int) -> int:
    """Оценка пары сумм в единицах одного токена через token0_price."""
    if in_token0:
        if price == 0:
            return amount0
        return amount0 + amount1 * PRICE_PRECISION // price
    return amount1 + amount0 * price // PRICE_PRECISION


def estimate_zap_in(state: PoolPriceState, from_token: str, amount: int) -> int:
    """
    Liquidity, которую даст идеальный сбалансированный депозит amount.

    Raises:
        InvalidToken: from_token не из пары
        PoolStateUnavailable: нет границ тиков позиции
    """
    from_token0 = state.is_token0(from_token)
    sqrt_lower, sqrt_upper = _tick_bounds(state)

    unit = calculate_amounts(state.sqrt_price_x96, sqrt_lower, sqrt_upper, REFERENCE_LIQUIDITY)
    unit_value = _value_in(unit.amount0, unit.amount1, from_token0, state.token0_price)
    if unit_value == 0:
        return 0

    liquidity = amount * REFERENCE_LIQUIDITY // unit_value
    logger.debug(f"estimate_zap_in: amount={amount} from_token0={from_token0} -> liquidity={liquidity}")
    return liquidity


def estimate_zap_out(state: PoolPriceState, to_token: str, liquidity: int) -> int:
    """
    Сколько to_token даст вывод liquidity (обе ноги, оценённые в to_token).

    Raises:
        InvalidToken: to_token не из пары
        PoolStateUnavailable: нет границ тиков позиции
    """
    to_token0 = state.is_token0(to_token)
    sqrt_lower, sqrt_upper = _tick_bounds(state)

    amounts = calculate_amounts(state.sqrt_price_x96, sqrt_lower, sqrt_upper, liquidity)
    out = _value_in(amounts.amount0, amounts.amount1, to_token0, state.token0_price)
    logger.debug(
        f"estimate_zap_out: liquidity={liquidity} -> {amounts.amount0}/{amounts.amount1}, "
        f"to_token0={to_token0} -> {out}"
    )
    return out
