"""
In-memory chain for dry runs and tests.

    chain = SimulatedChain()
    pool = chain.add_pool(POOL, FRAX, DOLA, sqrt_price_x96=Q96, liquidity=10**24, fee=100)
    chain.add_vault(VAULT, pool, tick_lower=-100, tick_upper=100)
    chain.ledger.mint(FRAX, USER, 10**21)

    zapper = Zapper(chain.backend(ZAP), address=ZAP, account=USER)

Модель упрощена намеренно, но детерминирована:
- пул: один диапазон концентрированной ликвидности, exact-input свопы без
  пересечения тиков, комиссия в pips (1e-6);
- хранилище: держит депозиты как резервы, выпускает доли в единицах
  liquidity позиции (LiquidityAmounts), вывод пропорционален резервам;
- оракул: идеальное парное количество по TickMath +/- band_bps.

Все участники поддерживают snapshot()/restore() для UnitOfWork.
"""

import copy
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .contracts.interfaces import PoolPriceState, ZapBackend, same_address
from .errors import (
    PoolStateUnavailable,
    SlippageExceeded,
    TransferFailure,
    VaultDepositRejected,
)
from .math.liquidity import (
    calculate_amount0_delta,
    calculate_amount1_delta,
    calculate_amounts,
    calculate_liquidity,
    next_sqrt_price_from_amount0_in,
    next_sqrt_price_from_amount1_in,
)
from .math.ticks import MAX_SQRT_RATIO, MIN_SQRT_RATIO, UINT256_MAX, get_sqrt_ratio_at_tick

logger = logging.getLogger(__name__)

FEE_DENOMINATOR = 1_000_000
# Liquidity used by the oracle to derive the position's token ratio.
ORACLE_REFERENCE_LIQUIDITY = 10 ** 36


def _key(address: str) -> str:
    return address.lower()


# ============================================================
# LEDGER
# ============================================================

class SimulatedLedger:
    """ERC20 balances and allowances for every token on the chain (vault shares included)."""

    def __init__(self):
        self.balances: Dict[Tuple[str, str], int] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}

    def mint(self, token: str, holder: str, amount: int):
        if amount < 0:
            raise ValueError("amount must be non-negative")
        key = (_key(token), _key(holder))
        self.balances[key] = self.balances.get(key, 0) + amount

    def burn(self, token: str, holder: str, amount: int):
        key = (_key(token), _key(holder))
        balance = self.balances.get(key, 0)
        if balance < amount:
            raise TransferFailure(f"Burn exceeds balance: {amount} > {balance}")
        self.balances[key] = balance - amount

    def balance_of(self, token: str, holder: str) -> int:
        return self.balances.get((_key(token), _key(holder)), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self.allowances.get((_key(token), _key(owner), _key(spender)), 0)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailure("approve amount must be non-negative")
        self.allowances[(_key(token), _key(owner), _key(spender))] = amount

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailure("transfer amount must be non-negative")
        balance = self.balance_of(token, sender)
        if balance < amount:
            raise TransferFailure(
                f"Insufficient balance of {token[:10]}... at {sender[:10]}...: {balance} < {amount}"
            )
        self.balances[(_key(token), _key(sender))] = balance - amount
        self.mint(token, recipient, amount)

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        allowed = self.allowance(token, owner, spender)
        if allowed < amount:
            raise TransferFailure(
                f"Insufficient allowance of {token[:10]}... for {spender[:10]}...: {allowed} < {amount}"
            )
        self.transfer(token, owner, recipient, amount)
        if allowed != UINT256_MAX:
            self.allowances[(_key(token), _key(owner), _key(spender))] = allowed - amount

    def snapshot(self):
        return copy.deepcopy((self.balances, self.allowances))

    def restore(self, snapshot) -> None:
        self.balances, self.allowances = copy.deepcopy(snapshot)


# ============================================================
# POOL
# ============================================================

@dataclass
class SimulatedPool:
    """Single-range concentrated-liquidity pool (Algebra/Uniswap V3 swap math)."""
    address: str
    token0: str
    token1: str
    sqrt_price_x96: int
    liquidity: int
    fee: int = 100  # pips, 100 = 0.01%

    def __post_init__(self):
        if same_address(self.token0, self.token1):
            raise ValueError("Pool tokens must differ")
        if not MIN_SQRT_RATIO <= self.sqrt_price_x96 < MAX_SQRT_RATIO:
            raise ValueError(f"sqrt_price_x96 out of range: {self.sqrt_price_x96}")
        if self.liquidity <= 0:
            raise ValueError("liquidity must be > 0")
        if not 0 <= self.fee < FEE_DENOMINATOR:
            raise ValueError(f"fee must be in [0, {FEE_DENOMINATOR}) pips")

    def quote(self, zero_for_one: bool, amount_in: int) -> Tuple[int, int]:
        """
        Exact-input своп без изменения состояния.

        Returns:
            (amount_out, new_sqrt_price_x96)
        """
        amount_less_fee = amount_in * (FEE_DENOMINATOR - self.fee) // FEE_DENOMINATOR
        if zero_for_one:
            new_price = next_sqrt_price_from_amount0_in(self.sqrt_price_x96, self.liquidity, amount_less_fee)
            amount_out = calculate_amount1_delta(new_price, self.sqrt_price_x96, self.liquidity)
        else:
            new_price = next_sqrt_price_from_amount1_in(self.sqrt_price_x96, self.liquidity, amount_less_fee)
            amount_out = calculate_amount0_delta(self.sqrt_price_x96, new_price, self.liquidity)

        if not MIN_SQRT_RATIO <= new_price < MAX_SQRT_RATIO:
            raise TransferFailure(f"Swap of {amount_in} exhausts pool {self.address[:10]}...")
        return amount_out, new_price

    def swap(self, zero_for_one: bool, amount_in: int) -> int:
        amount_out, new_price = self.quote(zero_for_one, amount_in)
        logger.debug(
            f"Pool {self.address[:10]}... swap zero_for_one={zero_for_one} in={amount_in} out={amount_out}, "
            f"sqrtP {self.sqrt_price_x96} -> {new_price}"
        )
        self.sqrt_price_x96 = new_price
        return amount_out

    def snapshot(self):
        return (self.sqrt_price_x96, self.liquidity)

    def restore(self, snapshot) -> None:
        self.sqrt_price_x96, self.liquidity = snapshot


# ============================================================
# VAULT
# ============================================================

@dataclass
class SimulatedVault:
    """Hypervisor-style vault: share token, idle reserves, one position range."""
    address: str
    pool: SimulatedPool
    tick_lower: int
    tick_upper: int
    band_bps: int = 100  # ширина допустимого диапазона оракула, 1% по умолчанию
    total_supply: int = 0

    def __post_init__(self):
        if self.tick_lower >= self.tick_upper:
            raise ValueError(f"tick_lower must be < tick_upper: {self.tick_lower} >= {self.tick_upper}")
        if not 0 <= self.band_bps < 10_000:
            raise ValueError("band_bps must be in [0, 10000)")

    @property
    def token0(self) -> str:
        return self.pool.token0

    @property
    def token1(self) -> str:
        return self.pool.token1

    def sqrt_bounds(self) -> Tuple[int, int]:
        return get_sqrt_ratio_at_tick(self.tick_lower), get_sqrt_ratio_at_tick(self.tick_upper)

    def ideal_counterpart(self, token: str, amount: int) -> int:
        """Сколько второго токена нужно к amount при текущей цене пула."""
        sqrt_lower, sqrt_upper = self.sqrt_bounds()
        unit = calculate_amounts(self.pool.sqrt_price_x96, sqrt_lower, sqrt_upper, ORACLE_REFERENCE_LIQUIDITY)
        if same_address(token, self.token0):
            return amount * unit.amount1 // unit.amount0 if unit.amount0 else 0
        if same_address(token, self.token1):
            return amount * unit.amount0 // unit.amount1 if unit.amount1 else 0
        raise VaultDepositRejected(f"Token {token} is not a vault asset")

    def deposit_range(self, token: str, amount: int) -> Tuple[int, int]:
        ideal = self.ideal_counterpart(token, amount)
        start = ideal * (10_000 - self.band_bps) // 10_000
        end = ideal * (10_000 + self.band_bps) // 10_000 + 1
        return start, end

    def accepts(self, amount0: int, amount1: int) -> bool:
        """Проверка соотношения пары, как в UniProxy, плюс ненулевой выпуск долей."""
        if amount0 == 0 and amount1 == 0:
            return False
        if amount0 > 0 and amount1 > 0:
            start, end = self.deposit_range(self.token0, amount0)
            ratio_ok = start <= amount1 <= end
            if not ratio_ok:
                start, end = self.deposit_range(self.token1, amount1)
                ratio_ok = start <= amount0 <= end
        elif amount0 > 0:
            # Односторонний депозит допустим, только если пара к нему нулевая
            ratio_ok = self.ideal_counterpart(self.token0, amount0) == 0
        else:
            ratio_ok = self.ideal_counterpart(self.token1, amount1) == 0
        return ratio_ok and self.shares_for(amount0, amount1) > 0

    def shares_for(self, amount0: int, amount1: int) -> int:
        sqrt_lower, sqrt_upper = self.sqrt_bounds()
        return calculate_liquidity(self.pool.sqrt_price_x96, sqrt_lower, sqrt_upper, amount0, amount1)

    def snapshot(self):
        return self.total_supply

    def restore(self, snapshot) -> None:
        self.total_supply = snapshot


# ============================================================
# CHAIN
# ============================================================

class SimulatedChain:
    """Registry of pools, vaults and the router, sharing one ledger."""

    def __init__(self, router_address: str = "0x000000000000000000000000000000000000a1ef"):
        self.ledger = SimulatedLedger()
        self.router_address = router_address
        self.pools: Dict[frozenset, SimulatedPool] = {}
        self.vaults: Dict[str, SimulatedVault] = {}

    def add_pool(
        self,
        address: str,
        token0: str,
        token1: str,
        sqrt_price_x96: int,
        liquidity: int,
        fee: int = 100,
        reserves: Optional[Tuple[int, int]] = None,
    ) -> SimulatedPool:
        """
        Зарегистрировать пул. reserves по умолчанию покрывают весь диапазон цен
        вокруг текущей (10x liquidity в каждом токене).
        """
        pool = SimulatedPool(address, token0, token1, sqrt_price_x96, liquidity, fee)
        self.pools[frozenset((_key(token0), _key(token1)))] = pool
        reserve0, reserve1 = reserves if reserves is not None else (liquidity * 10, liquidity * 10)
        self.ledger.mint(token0, address, reserve0)
        self.ledger.mint(token1, address, reserve1)
        logger.debug(f"Pool {address[:10]}... added: {token0[:10]}.../{token1[:10]}..., L={liquidity}, fee={fee}")
        return pool

    def add_vault(
        self, address: str, pool: SimulatedPool, tick_lower: int, tick_upper: int, band_bps: int = 100
    ) -> SimulatedVault:
        vault = SimulatedVault(address, pool, tick_lower, tick_upper, band_bps)
        self.vaults[_key(address)] = vault
        return vault

    def vault(self, address: str) -> SimulatedVault:
        try:
            return self.vaults[_key(address)]
        except KeyError:
            raise PoolStateUnavailable(f"Unknown vault: {address}") from None

    def pool_for(self, token_a: str, token_b: str) -> SimulatedPool:
        pool = self.pools.get(frozenset((_key(token_a), _key(token_b))))
        if pool is None:
            raise TransferFailure(f"No pool for {token_a[:10]}.../{token_b[:10]}...")
        return pool

    @property
    def participants(self):
        return [self.ledger, *self.pools.values(), *self.vaults.values()]

    def backend(self, caller: str) -> ZapBackend:
        """Адаптеры, действующие от имени caller (msg.sender)."""
        return ZapBackend(
            pools=SimulatedPoolReader(self),
            oracle=SimulatedOracle(self),
            vault=SimulatedVaultDepositor(self, caller),
            router=SimulatedRouter(self, caller),
            tokens=self.ledger,
            participants=self.participants,
        )


# ============================================================
# ADAPTERS
# ============================================================

class SimulatedPoolReader:

    def __init__(self, chain: SimulatedChain):
        self.chain = chain

    def get_state(self, pool: str) -> PoolPriceState:
        vault = self.chain.vault(pool)
        return PoolPriceState(
            sqrt_price_x96=vault.pool.sqrt_price_x96,
            token0=vault.token0,
            token1=vault.token1,
            tick_lower=vault.tick_lower,
            tick_upper=vault.tick_upper,
        )


class SimulatedOracle:

    def __init__(self, chain: SimulatedChain):
        self.chain = chain

    def get_deposit_amount(self, vault: str, token: str, amount: int) -> Tuple[int, int]:
        return self.chain.vault(vault).deposit_range(token, amount)


class SimulatedVaultDepositor:
    """UniProxy.deposit / Hypervisor.withdraw от имени caller."""

    def __init__(self, chain: SimulatedChain, caller: str):
        self.chain = chain
        self.caller = caller

    def deposit(
        self, amount0: int, amount1: int, recipient: str, vault: str, min_amounts: Sequence[int]
    ) -> int:
        target = self.chain.vault(vault)
        ledger = self.chain.ledger

        if not target.accepts(amount0, amount1):
            raise VaultDepositRejected(f"Improper ratio: {amount0}/{amount1}")
        if amount0 < min_amounts[0] or amount1 < min_amounts[1]:
            raise VaultDepositRejected(
                f"Deposit below minimum: {amount0}/{amount1} < {min_amounts[0]}/{min_amounts[1]}"
            )

        shares = target.shares_for(amount0, amount1)
        if amount0:
            ledger.transfer_from(target.token0, target.address, self.caller, target.address, amount0)
        if amount1:
            ledger.transfer_from(target.token1, target.address, self.caller, target.address, amount1)
        ledger.mint(target.address, recipient, shares)
        target.total_supply += shares

        logger.debug(f"Vault {vault[:10]}... deposit {amount0}/{amount1} -> {shares} shares")
        return shares

    def withdraw(
        self, shares: int, recipient: str, owner: str, vault: str, min_amounts: Sequence[int]
    ) -> Tuple[int, int]:
        target = self.chain.vault(vault)
        ledger = self.chain.ledger

        if not same_address(owner, self.caller):
            raise VaultDepositRejected("Only the share owner can withdraw")
        if shares <= 0 or target.total_supply == 0:
            raise VaultDepositRejected(f"Nothing to withdraw: shares={shares}")

        reserve0 = ledger.balance_of(target.token0, target.address)
        reserve1 = ledger.balance_of(target.token1, target.address)
        amount0 = reserve0 * shares // target.total_supply
        amount1 = reserve1 * shares // target.total_supply

        if amount0 < min_amounts[0] or amount1 < min_amounts[1]:
            raise VaultDepositRejected(
                f"Withdraw below minimum: {amount0}/{amount1} < {min_amounts[0]}/{min_amounts[1]}"
            )

        ledger.burn(target.address, owner, shares)
        target.total_supply -= shares
        ledger.transfer(target.token0, target.address, recipient, amount0)
        ledger.transfer(target.token1, target.address, recipient, amount1)

        logger.debug(f"Vault {vault[:10]}... withdraw {shares} shares -> {amount0}/{amount1}")
        return amount0, amount1


class SimulatedRouter:
    """exactInputSingle от имени caller."""

    def __init__(self, chain: SimulatedChain, caller: str):
        self.chain = chain
        self.caller = caller

    def exact_input_single(
        self,
        router: str,
        token_in: str,
        token_out: str,
        recipient: str,
        deadline: int,
        amount_in: int,
        amount_out_minimum: int = 0,
        sqrt_price_limit_x96: int = 0,
    ) -> int:
        if not same_address(router, self.chain.router_address):
            raise TransferFailure(f"Unknown swap router: {router}")
        if deadline < int(time.time()):
            raise TransferFailure("Transaction too old")

        pool = self.chain.pool_for(token_in, token_out)
        zero_for_one = same_address(token_in, pool.token0)
        amount_out, _ = pool.quote(zero_for_one, amount_in)
        if amount_out < amount_out_minimum:
            raise SlippageExceeded(amount_out, amount_out_minimum, what="swap output")

        ledger = self.chain.ledger
        ledger.transfer_from(token_in, router, self.caller, pool.address, amount_in)
        pool.swap(zero_for_one, amount_in)
        ledger.transfer(token_out, pool.address, recipient, amount_out)
        return amount_out
