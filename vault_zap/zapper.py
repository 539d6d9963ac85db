"""
Zapper: top-level zap entry points.

    zapper = Zapper(backend, address=ZAP_ADDRESS, account=USER)

    # Предварительная оценка и минимум с запасом 0.5%
    estimate = zapper.calc_min_to_amount_for_zap_in(vault, FRAX, 5 * 10**18)
    extra = encode_extra(router, [0, 0, 0, 0])

    liquidity = zapper.zap_in(vault, FRAX, USER, 5 * 10**18, apply_slippage(estimate), extra)
    out = zapper.zap_out(vault, liquidity, DOLA, 0, extra)

Каждая операция выполняется в UnitOfWork: либо все шаги применены,
либо состояние всех участников восстановлено и исключение проброшено дальше.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List

from config import ZapConfig, DEFAULT_ZAP_CONFIG
from .contracts.extra import decode_extra
from .contracts.interfaces import ZapBackend, same_address
from .deposit import BalancedDepositor, DepositOrder
from .dust import DustLiquidator
from .errors import SlippageExceeded, TransferFailure, ZapError
from .estimator import estimate_zap_in, estimate_zap_out
from .holdings import Holdings
from .swap_executor import SwapExecutor
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class ZapInResult:
    """Разбивка результата zap_in (основной проход + dust-проходы)."""
    liquidity: int
    main_liquidity: int
    dust_liquidity: int
    passes: List[int] = field(default_factory=list)


@dataclass
class ZapOutResult:
    """Результат zap_out."""
    amount_out: int
    amount0: int
    amount1: int
    swapped: int


class Zapper:
    """
    Zap-оркестратор.

    Args:
        backend: ZapBackend (web3 или simulation)
        address: Адрес, держащий промежуточные балансы (зап-контракт)
        account: Адрес пользователя; zap_in списывает с него вход,
                 zap_out отправляет ему выход. Для EOA-режима совпадает с address.
        config: ZapConfig (dust_threshold, max_dust_iterations, deadline)
    """

    def __init__(self, backend: ZapBackend, address: str, account: str = None, config: ZapConfig = DEFAULT_ZAP_CONFIG):
        self.backend = backend
        self.address = address
        self.account = account or address
        self.config = config
        self._lock = threading.Lock()

        self.swapper = SwapExecutor(backend.router, backend.tokens, address, config)
        self.holdings = Holdings(backend.tokens, address)
        self.depositor = BalancedDepositor(backend.oracle, backend.vault, self.holdings, self.swapper)
        self.dust = DustLiquidator(self.depositor, self.holdings, config)

    @property
    def eoa_mode(self) -> bool:
        """Промежуточные балансы лежат на кошельке пользователя."""
        return same_address(self.account, self.address)

    def _unit(self, name: str) -> UnitOfWork:
        return UnitOfWork(self.backend.participants, self._lock, name=name)

    def _pull(self, token: str, amount: int):
        """Забрать amount токена у account на адрес зап-контракта."""
        if not self.eoa_mode:
            self.backend.tokens.transfer_from(token, self.address, self.account, self.address, amount)
            return
        # EOA: токен уже на кошельке, выделяем его из baseline
        balance = self.backend.tokens.balance_of(token, self.address)
        if balance < amount:
            raise TransferFailure(f"Insufficient balance of {token[:10]}...: {balance} < {amount}")
        self.holdings.claim(token, amount)

    def _push(self, token: str, recipient: str, amount: int):
        if amount == 0 or same_address(recipient, self.address):
            return
        self.backend.tokens.transfer(token, self.address, recipient, amount)

    # ------------------------------------------------------------------
    # zap in
    # ------------------------------------------------------------------

    def zap_in_detailed(
        self, pool: str, from_token: str, recipient: str, amount: int, min_liquidity: int, extra: bytes
    ) -> ZapInResult:
        """zap_in с полной разбивкой по проходам."""
        if amount <= 0:
            raise ValueError("amount must be > 0")
        params = decode_extra(extra)

        try:
            with self._unit("zap_in"):
                state = self.backend.pools.get_state(pool)
                from_token0 = state.is_token0(from_token)

                order = DepositOrder(
                    token_a=from_token,
                    token_b=state.other(from_token),
                    swap_router=params.swap_router,
                    vault=pool,
                    recipient=recipient,
                    min_amounts=params.min_amounts,
                )

                self.holdings.begin((state.token0, state.token1), exclude_existing=self.eoa_mode)
                self._pull(from_token, amount)

                main = self.depositor.deposit(state, order, amount, from_token0)
                dust = self.dust.liquidate_dust(state, order)
                total = main + dust

                if total < min_liquidity:
                    raise SlippageExceeded(total, min_liquidity, what="liquidity")
        except ZapError as e:
            logger.error(f"zap_in failed ({type(e).__name__}): {e}")
            raise

        logger.info(
            f"zap_in: {amount} {from_token[:10]}... -> liquidity {total} "
            f"(main {main}, dust {dust}, {len(order.passes)} passes) to {recipient[:10]}..."
        )
        return ZapInResult(liquidity=total, main_liquidity=main, dust_liquidity=dust, passes=list(order.passes))

    def zap_in(self, pool: str, from_token: str, recipient: str, amount: int, min_liquidity: int, extra: bytes) -> int:
        """
        Один токен -> сбалансированная позиция в хранилище.

        Returns:
            Суммарная минтнутая ликвидность (основной депозит + dust)

        Raises:
            InvalidToken, SlippageExceeded, TransferFailure, DustNotConverged, ...
        """
        return self.zap_in_detailed(pool, from_token, recipient, amount, min_liquidity, extra).liquidity

    # ------------------------------------------------------------------
    # zap out
    # ------------------------------------------------------------------

    def zap_out_detailed(self, pool: str, lp_amount: int, to_token: str, min_out: int, extra: bytes) -> ZapOutResult:
        """zap_out с разбивкой по ногам."""
        if lp_amount <= 0:
            raise ValueError("lp_amount must be > 0")
        params = decode_extra(extra)

        try:
            with self._unit("zap_out"):
                state = self.backend.pools.get_state(pool)
                to_token0 = state.is_token0(to_token)
                other_token = state.other(to_token)

                self.holdings.begin((state.token0, state.token1), exclude_existing=self.eoa_mode)
                self._pull(pool, lp_amount)
                amount0, amount1 = self.backend.vault.withdraw(
                    lp_amount, self.address, self.address, pool, params.min_amounts
                )

                # Меняем всю ногу, фактически лежащую на контракте (не заявленную vault'ом)
                swapped = self.holdings.available(other_token)
                self.swapper.swap(params.swap_router, swapped, other_token, to_token)

                amount_out = self.holdings.available(to_token)
                if amount_out < min_out:
                    raise SlippageExceeded(amount_out, min_out, what="output")

                self._push(to_token, self.account, amount_out)
        except ZapError as e:
            logger.error(f"zap_out failed ({type(e).__name__}): {e}")
            raise

        logger.info(
            f"zap_out: {lp_amount} shares -> {amount0}/{amount1}, swapped {swapped} "
            f"-> {amount_out} {to_token[:10]}... (token0={to_token0})"
        )
        return ZapOutResult(amount_out=amount_out, amount0=amount0, amount1=amount1, swapped=swapped)

    def zap_out(self, pool: str, lp_amount: int, to_token: str, min_out: int, extra: bytes) -> int:
        """
        Позиция -> один токен.

        Returns:
            Количество to_token, отправленное account
        """
        return self.zap_out_detailed(pool, lp_amount, to_token, min_out, extra).amount_out

    # ------------------------------------------------------------------
    # estimators
    # ------------------------------------------------------------------

    def calc_min_to_amount_for_zap_in(self, pool: str, from_token: str, amount: int) -> int:
        """Оценка ликвидности для zap_in (без побочных эффектов)."""
        state = self.backend.pools.get_state(pool)
        return estimate_zap_in(state, from_token, amount)

    def calc_min_to_amount_for_zap_out(self, pool: str, to_token: str, lp_amount: int) -> int:
        """Оценка выхода to_token для zap_out (без побочных эффектов)."""
        state = self.backend.pools.get_state(pool)
        return estimate_zap_out(state, to_token, lp_amount)
