from .ticks import get_sqrt_ratio_at_tick, token0_price
from .liquidity import calculate_liquidity, calculate_amounts, LiquidityAmounts
from .balance import balanced_amounts, split_amount, optimal_ratio, midpoint, BalancedSplit
