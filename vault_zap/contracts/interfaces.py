"""
Capability interfaces for the external contracts a zap talks to.

Two implementations exist for every interface: the web3 adapters in
contracts/hypervisor.py (live chain) and the in-memory doubles in
vault_zap/simulation.py (deterministic, used by tests and the CLI dry-run).
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence, Tuple

from ..errors import InvalidToken
from ..math.ticks import get_sqrt_ratio_at_tick, token0_price


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address comparison (checksum vs lowercase)."""
    return a.lower() == b.lower()


@dataclass(frozen=True)
class PoolPriceState:
    """
    Snapshot of a vault's pool, read once per top-level zap operation.

    tick_lower / tick_upper are the vault's position bounds; None when the
    reader could not retrieve them (estimators refuse to run in that case).
    """
    sqrt_price_x96: int
    token0: str
    token1: str
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None

    def __post_init__(self):
        if same_address(self.token0, self.token1):
            raise ValueError(f"Pool tokens must differ: {self.token0}")
        if self.sqrt_price_x96 <= 0:
            raise ValueError("sqrt_price_x96 must be > 0")

    @property
    def token0_price(self) -> int:
        """Price of token0 in token1 units, scaled by 1e18."""
        return token0_price(self.sqrt_price_x96)

    @property
    def has_tick_bounds(self) -> bool:
        return self.tick_lower is not None and self.tick_upper is not None

    @property
    def sole_token(self) -> Optional[str]:
        """
        Токен, который позиция держит целиком, когда цена вне диапазона:
        token0 при цене не выше нижней границы, token1 при цене не ниже верхней.
        None, если цена внутри диапазона или границы неизвестны.
        """
        if not self.has_tick_bounds:
            return None
        if self.sqrt_price_x96 <= get_sqrt_ratio_at_tick(self.tick_lower):
            return self.token0
        if self.sqrt_price_x96 >= get_sqrt_ratio_at_tick(self.tick_upper):
            return self.token1
        return None

    def contains(self, token: str) -> bool:
        return same_address(token, self.token0) or same_address(token, self.token1)

    def is_token0(self, token: str) -> bool:
        """True для token0, False для token1, InvalidToken для чужого токена."""
        if same_address(token, self.token0):
            return True
        if same_address(token, self.token1):
            return False
        raise InvalidToken(token, self.token0, self.token1)

    def other(self, token: str) -> str:
        """Второй токен пары."""
        return self.token1 if self.is_token0(token) else self.token0


class PoolPriceReader(Protocol):
    def get_state(self, pool: str) -> PoolPriceState:
        ...


class VaultAmountOracle(Protocol):
    def get_deposit_amount(self, vault: str, token: str, amount: int) -> Tuple[int, int]:
        """Acceptable [start, end] deposit range of the paired token."""
        ...


class VaultDepositor(Protocol):
    def deposit(
        self, amount0: int, amount1: int, recipient: str, vault: str, min_amounts: Sequence[int]
    ) -> int:
        ...

    def withdraw(
        self, shares: int, recipient: str, owner: str, vault: str, min_amounts: Sequence[int]
    ) -> Tuple[int, int]:
        ...


class SwapRouter(Protocol):
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
        ...


class TokenLedger(Protocol):
    def balance_of(self, token: str, holder: str) -> int:
        ...

    def allowance(self, token: str, owner: str, spender: str) -> int:
        ...

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        ...

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        ...

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        ...


class Transactional(Protocol):
    """Collaborator whose staged effects can be captured and discarded."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


@dataclass
class ZapBackend:
    """Bundle of collaborators one Zapper runs against."""
    pools: PoolPriceReader
    oracle: VaultAmountOracle
    vault: VaultDepositor
    router: SwapRouter
    tokens: TokenLedger
    participants: List[Transactional]
