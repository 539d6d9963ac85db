"""
Balanced deposit flow: balance -> swap -> re-measure -> correct -> deposit.

Двухпроходный расчёт сохраняется намеренно: первый проход (BalancedAmountCalculator)
даёт теоретическое разбиение, второй пересчитывает входную сторону от
ФАКТИЧЕСКОГО баланса контр-токена после свопа. Депонируемая пара всегда
согласована с тем, что реально получено, а не с оценкой до свопа.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .contracts.interfaces import PoolPriceState, same_address
from .holdings import Holdings
from .math.balance import balanced_amounts, midpoint
from .swap_executor import SwapExecutor

logger = logging.getLogger(__name__)


@dataclass
class DepositOrder:
    """
    Параметры депозита одной zap_in операции.

    Создаётся один раз на вызов и переиспользуется всеми проходами
    dust-ликвидации (amount_*_desired перезаписываются на каждом проходе).
    """
    token_a: str
    token_b: str
    swap_router: str
    vault: str
    recipient: str
    min_amounts: Tuple[int, int, int, int] = (0, 0, 0, 0)
    amount_a_desired: int = 0
    amount_b_desired: int = 0
    passes: List[int] = field(default_factory=list)  # liquidity minted per pass

    def __post_init__(self):
        if same_address(self.token_a, self.token_b):
            raise ValueError(f"token_a and token_b must differ: {self.token_a}")
        if len(self.min_amounts) != 4:
            raise ValueError(f"min_amounts must have 4 entries, got {len(self.min_amounts)}")
        if any(m < 0 for m in self.min_amounts):
            raise ValueError("min_amounts must be non-negative")

    def set_desired(self, token: str, amount: int, other_amount: int):
        """Записать суммы по токену (token: одна из token_a/token_b)."""
        if same_address(token, self.token_a):
            self.amount_a_desired, self.amount_b_desired = amount, other_amount
        else:
            self.amount_a_desired, self.amount_b_desired = other_amount, amount


class BalancedDepositor:
    """Выполняет один проход депозита от имени holdings.holder (адрес зап-контракта)."""

    def __init__(self, oracle, vault, holdings: Holdings, swapper: SwapExecutor):
        self.oracle = oracle
        self.vault = vault
        self.holdings = holdings
        self.swapper = swapper

    def _second_pass(
        self, vault: str, input_token: str, counter_token: str
    ) -> Tuple[int, int]:
        """
        Пересчитать пару от фактических балансов.

        Returns:
            (input_amount, counter_amount)
        """
        counter_balance = self.holdings.available(counter_token)
        input_balance = self.holdings.available(input_token)

        input_amount = midpoint(self.oracle.get_deposit_amount(vault, counter_token, counter_balance))
        counter_amount = counter_balance

        if input_amount > input_balance:
            # Входного токена меньше, чем требует полученный контр-токен:
            # ведущей стороной становится входной баланс.
            logger.debug(
                f"Second pass clamp: need {input_amount} of input, hold {input_balance}"
            )
            input_amount = input_balance
            start, end = self.oracle.get_deposit_amount(vault, input_token, input_balance)
            if not start <= counter_balance <= end:
                counter_amount = min(counter_balance, midpoint((start, end)))

        return input_amount, counter_amount

    def _submit(self, state: PoolPriceState, order: DepositOrder, amount0: int, amount1: int) -> int:
        """Одобрить оба токена хранилищу и внести пару."""
        self.holdings.tokens.approve(state.token0, self.holdings.holder, order.vault, amount0)
        self.holdings.tokens.approve(state.token1, self.holdings.holder, order.vault, amount1)

        liquidity = self.vault.deposit(amount0, amount1, order.recipient, order.vault, order.min_amounts)
        order.passes.append(liquidity)
        return liquidity

    def _deposit_single_sided(
        self, state: PoolPriceState, order: DepositOrder, amount: int, input_token: str, sole_token: str
    ) -> int:
        """
        Позиция вне диапазона принимает только sole_token: входной токен
        либо вносится целиком, либо целиком меняется на sole_token.
        """
        swapped = 0
        if not same_address(input_token, sole_token):
            swapped = amount
            self.swapper.swap(order.swap_router, amount, input_token, sole_token)

        deposit_amount = self.holdings.available(sole_token)
        order.set_desired(sole_token, deposit_amount, 0)
        if deposit_amount == 0:
            logger.debug("Nothing to deposit into single-sided position")
            order.passes.append(0)
            return 0

        if state.is_token0(sole_token):
            amount0, amount1 = deposit_amount, 0
        else:
            amount0, amount1 = 0, deposit_amount

        liquidity = self._submit(state, order, amount0, amount1)
        logger.info(
            f"Single-sided deposit pass: in={amount} swapped={swapped} -> amount0={amount0} "
            f"amount1={amount1}, liquidity={liquidity}"
        )
        return liquidity

    def deposit(self, state: PoolPriceState, order: DepositOrder, amount: int, from_token0: bool) -> int:
        """
        Депозит amount входного токена в сбалансированном виде.

        Args:
            state: Снимок пула
            order: DepositOrder текущей операции
            amount: Сумма входного токена (wei)
            from_token0: Входной токен = token0 пула

        Returns:
            Минтнутая ликвидность
        """
        input_token = state.token0 if from_token0 else state.token1
        counter_token = state.token1 if from_token0 else state.token0

        sole_token = state.sole_token
        if sole_token is not None:
            return self._deposit_single_sided(state, order, amount, input_token, sole_token)

        split = balanced_amounts(state, amount, from_token0, self.oracle, order.vault)
        keep = split.amount0 if from_token0 else split.amount1
        excess = max(amount - keep, 0)

        self.swapper.swap(order.swap_router, excess, input_token, counter_token)

        input_amount, counter_amount = self._second_pass(order.vault, input_token, counter_token)
        order.set_desired(input_token, input_amount, counter_amount)

        if from_token0:
            amount0, amount1 = input_amount, counter_amount
        else:
            amount0, amount1 = counter_amount, input_amount

        if amount0 == 0 or amount1 == 0:
            # Позиция в диапазоне не выпускает долей под одну сторону пары
            logger.debug(f"Incomplete pair after second pass: {amount0}/{amount1}, skipping deposit")
            order.passes.append(0)
            return 0

        liquidity = self._submit(state, order, amount0, amount1)
        logger.info(
            f"Deposit pass: in={amount} swapped={excess} -> amount0={amount0} amount1={amount1}, "
            f"liquidity={liquidity}"
        )
        return liquidity
