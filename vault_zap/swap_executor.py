"""
Swap Executor

Один single-hop exactInputSingle своп через роутер.
Защита от проскальзывания живёт на уровне всей zap-операции, поэтому здесь
amountOutMinimum = 0 и sqrtPriceLimitX96 = 0.

ВАЖНО: возвращаемое роутером значение только логируется. Для расчётов
вызывающий код всегда перечитывает balance_of(token_out): fee-on-transfer
токены, price impact и округления делают отчёт роутера ненадёжным.
"""

import logging
import time

from config import ZapConfig, DEFAULT_ZAP_CONFIG
from .contracts.interfaces import same_address
from .errors import InvalidToken

logger = logging.getLogger(__name__)


class SwapExecutor:
    """Обёртка над SwapRouter, действующая от имени holder."""

    def __init__(self, router, tokens, holder: str, config: ZapConfig = DEFAULT_ZAP_CONFIG):
        self.router = router
        self.tokens = tokens
        self.holder = holder
        self.config = config

    def swap(self, router_address: str, amount_in: int, token_in: str, token_out: str) -> int:
        """
        Выполнить exact-input своп.

        Returns:
            amountOut, заявленный роутером (НЕ использовать для учёта)
        """
        if same_address(token_in, token_out):
            raise InvalidToken(token_in)
        if amount_in < 0:
            raise ValueError("amount_in must be non-negative")
        if amount_in == 0:
            logger.debug(f"Skip swap: zero amount {token_in[:10]}... -> {token_out[:10]}...")
            return 0

        self.tokens.approve(token_in, self.holder, router_address, amount_in)

        deadline = int(time.time()) + self.config.deadline_seconds
        reported = self.router.exact_input_single(
            router_address,
            token_in,
            token_out,
            self.holder,
            deadline,
            amount_in,
            0,   # amountOutMinimum
            0,   # sqrtPriceLimitX96
        )
        logger.info(f"Swap {amount_in} {token_in[:10]}... -> {token_out[:10]}..., router reported {reported}")
        return reported
