"""
Dust Liquidator

После основного депозита на зап-контракте остаются остатки token_a/token_b
(округления, дрейф цены между оценкой и исполнением, гранулярность оракула).
Каждый остаток выше dust_threshold прогоняется через полный депозит заново.

Сходимость алгебраически не гарантирована, поэтому цикл ограничен
max_dust_iterations на токен; превышение -> DustNotConverged.
"""

import logging

from config import ZapConfig, DEFAULT_ZAP_CONFIG
from .contracts.interfaces import PoolPriceState
from .deposit import BalancedDepositor, DepositOrder
from .errors import DustNotConverged
from .holdings import Holdings

logger = logging.getLogger(__name__)


class DustLiquidator:

    def __init__(self, depositor: BalancedDepositor, holdings: Holdings, config: ZapConfig = DEFAULT_ZAP_CONFIG):
        self.depositor = depositor
        self.holdings = holdings
        self.config = config

    def _liquidate_token(self, state: PoolPriceState, order: DepositOrder, token: str) -> int:
        threshold = self.config.dust_threshold
        limit = self.config.max_dust_iterations
        minted = 0
        iterations = 0

        balance = self.holdings.available(token)
        while balance > threshold:
            if iterations >= limit:
                raise DustNotConverged(token, balance, iterations, threshold)

            liquidity = self.depositor.deposit(state, order, balance, state.is_token0(token))
            minted += liquidity
            iterations += 1

            new_balance = self.holdings.available(token)
            if liquidity == 0 and new_balance >= balance:
                # Проход ничего не изменил: следующий будет таким же.
                raise DustNotConverged(token, new_balance, iterations, threshold)

            logger.debug(f"Dust pass {iterations} for {token[:10]}...: {balance} -> {new_balance}")
            balance = new_balance

        if iterations:
            logger.info(f"Dust {token[:10]}...: {iterations} passes, +{minted} liquidity, residue {balance}")
        return minted

    def liquidate_dust(self, state: PoolPriceState, order: DepositOrder) -> int:
        """
        Довнести остатки обоих токенов.

        Проход по token_b может оставить token_a выше порога (clamp во втором
        проходе депозита), поэтому обход повторяется раундами.

        Returns:
            Дополнительно минтнутая ликвидность
        """
        threshold = self.config.dust_threshold
        extra = 0
        for _ in range(self.config.max_dust_iterations):
            extra += self._liquidate_token(state, order, order.token_a)
            extra += self._liquidate_token(state, order, order.token_b)
            if self.holdings.available(order.token_a) <= threshold:
                return extra

        remaining = self.holdings.available(order.token_a)
        raise DustNotConverged(order.token_a, remaining, self.config.max_dust_iterations, threshold)
