"""
Web3 adapters for a Gamma-style vault stack.

    w3 = Web3(Web3.HTTPProvider(config.rpc_url))
    account = Account.from_key(private_key)
    backend = build_web3_backend(w3, account, uni_proxy=config.uni_proxy, algebra=config.algebra)

    zapper = Zapper(backend, address=account.address)   # EOA mode

Каждая операция записи отправляется отдельной подтверждённой транзакцией. Откатить
уже смайненную транзакцию невозможно: Web3TokenLedger.restore() только
фиксирует в логе расхождение балансов относительно снимка.
"""

import logging
from typing import Dict, Optional, Sequence, Tuple

from web3 import Web3

from ..errors import PoolStateUnavailable, TransferFailure
from ..utils import TransactionSender
from .abis import ALGEBRA_SWAP_ROUTER_ABI, ERC20_ABI, HYPERVISOR_ABI, POOL_ABI, SWAP_ROUTER_V3_ABI, UNI_PROXY_ABI
from .interfaces import PoolPriceState, ZapBackend, same_address

logger = logging.getLogger(__name__)

TRANSFER_TOPIC = Web3.keccak(text="Transfer(address,address,uint256)")


def _cs(address: str) -> str:
    return Web3.to_checksum_address(address)


def _topic_hex(topic) -> str:
    return topic.hex() if isinstance(topic, (bytes, bytearray)) else str(topic)


def parse_transfer_amount(receipt, token: str, recipient: str) -> Optional[int]:
    """
    Сумма Transfer-событий token на recipient в receipt.

    Returns:
        Суммарное количество или None, если подходящих событий нет
    """
    token_lower = token.lower()
    recipient_lower = recipient.lower()
    transfer_topic = _topic_hex(TRANSFER_TOPIC).lower().removeprefix('0x')
    total = 0
    found = False

    for log_entry in receipt.get('logs', []):
        if log_entry.get('address', '').lower() != token_lower:
            continue

        topics = log_entry.get('topics', [])
        if len(topics) < 3:
            continue
        if _topic_hex(topics[0]).lower().removeprefix('0x') != transfer_topic:
            continue

        # Topic[2] = recipient (padded address)
        to = '0x' + _topic_hex(topics[2])[-40:]
        if to.lower() != recipient_lower:
            continue

        data = log_entry.get('data', b'')
        if isinstance(data, (bytes, bytearray)):
            amount = int.from_bytes(data, 'big')
        else:
            amount = int(data, 16) if data.startswith('0x') else int(data)

        total += amount
        found = True

    return total if found else None


class Web3PoolReader:
    """
    Цена пула и границы позиции хранилища.

    use_global_state: Algebra-пулы отдают цену через globalState() вместо slot0().
    """

    def __init__(self, w3: Web3, use_global_state: bool = False):
        self.w3 = w3
        self.use_global_state = use_global_state

    def _read_sqrt_price(self, pool_address: str) -> int:
        pool = self.w3.eth.contract(address=_cs(pool_address), abi=POOL_ABI)
        if self.use_global_state:
            return pool.functions.globalState().call()[0]
        return pool.functions.slot0().call()[0]

    def get_state(self, pool: str) -> PoolPriceState:
        hypervisor = self.w3.eth.contract(address=_cs(pool), abi=HYPERVISOR_ABI)
        try:
            token0 = hypervisor.functions.token0().call()
            token1 = hypervisor.functions.token1().call()
            sqrt_price_x96 = self._read_sqrt_price(hypervisor.functions.pool().call())
        except Exception as e:
            raise PoolStateUnavailable(f"Failed to read vault {pool}: {e}") from e

        try:
            tick_lower = hypervisor.functions.baseLower().call()
            tick_upper = hypervisor.functions.baseUpper().call()
        except Exception as e:
            # Депозит работает и без границ; без них откажут только оценщики
            logger.warning(f"Could not read position ticks of {pool}: {e}")
            tick_lower = tick_upper = None

        if sqrt_price_x96 == 0:
            raise PoolStateUnavailable(f"Pool behind {pool} is not initialized")

        return PoolPriceState(
            sqrt_price_x96=sqrt_price_x96,
            token0=token0,
            token1=token1,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
        )


class Web3VaultOracle:
    """UniProxy.getDepositAmount."""

    def __init__(self, w3: Web3, uni_proxy: str):
        self.w3 = w3
        self.proxy = w3.eth.contract(address=_cs(uni_proxy), abi=UNI_PROXY_ABI)

    def get_deposit_amount(self, vault: str, token: str, amount: int) -> Tuple[int, int]:
        try:
            start, end = self.proxy.functions.getDepositAmount(_cs(vault), _cs(token), amount).call()
        except Exception as e:
            raise PoolStateUnavailable(f"getDepositAmount failed for {vault}: {e}") from e
        return start, end


class Web3VaultDepositor:
    """UniProxy.deposit / Hypervisor.withdraw."""

    def __init__(self, w3: Web3, sender: TransactionSender, uni_proxy: str):
        self.w3 = w3
        self.sender = sender
        self.proxy = w3.eth.contract(address=_cs(uni_proxy), abi=UNI_PROXY_ABI)

    def deposit(
        self, amount0: int, amount1: int, recipient: str, vault: str, min_amounts: Sequence[int]
    ) -> int:
        shares_token = self.w3.eth.contract(address=_cs(vault), abi=HYPERVISOR_ABI)
        balance_before = shares_token.functions.balanceOf(_cs(recipient)).call()

        fn = self.proxy.functions.deposit(amount0, amount1, _cs(recipient), _cs(vault), list(min_amounts))
        receipt = self.sender.send(fn, 'deposit')

        shares = parse_transfer_amount(receipt, vault, recipient)
        if shares is None:
            shares = shares_token.functions.balanceOf(_cs(recipient)).call() - balance_before
            logger.warning(f"Could not parse minted shares, using balance delta: {shares}")
        return shares

    def withdraw(
        self, shares: int, recipient: str, owner: str, vault: str, min_amounts: Sequence[int]
    ) -> Tuple[int, int]:
        hypervisor = self.w3.eth.contract(address=_cs(vault), abi=HYPERVISOR_ABI)
        token0 = hypervisor.functions.token0().call()
        token1 = hypervisor.functions.token1().call()

        fn = hypervisor.functions.withdraw(shares, _cs(recipient), _cs(owner), list(min_amounts))
        receipt = self.sender.send(fn, 'withdraw')

        amount0 = parse_transfer_amount(receipt, token0, recipient) or 0
        amount1 = parse_transfer_amount(receipt, token1, recipient) or 0
        return amount0, amount1


class Web3SwapRouter:
    """
    SwapRouter.exactInputSingle.

    fee=None: Algebra-роутер (комиссия пула динамическая, поля fee нет);
    иначе Uniswap V3 роутер с указанным fee tier.
    """

    def __init__(self, w3: Web3, sender: TransactionSender, fee: Optional[int] = None):
        self.w3 = w3
        self.sender = sender
        self.fee = fee

    def _build_params(self, token_in, token_out, recipient, deadline, amount_in, amount_out_minimum, limit):
        if self.fee is None:
            return ALGEBRA_SWAP_ROUTER_ABI, (
                _cs(token_in),         # tokenIn
                _cs(token_out),        # tokenOut
                _cs(recipient),        # recipient
                deadline,              # deadline
                amount_in,             # amountIn
                amount_out_minimum,    # amountOutMinimum
                limit,                 # limitSqrtPrice
            )
        return SWAP_ROUTER_V3_ABI, (
            _cs(token_in),             # tokenIn
            _cs(token_out),            # tokenOut
            self.fee,                  # fee
            _cs(recipient),            # recipient
            deadline,                  # deadline
            amount_in,                 # amountIn
            amount_out_minimum,        # amountOutMinimum
            limit,                     # sqrtPriceLimitX96
        )

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
        abi, params = self._build_params(
            token_in, token_out, recipient, deadline, amount_in, amount_out_minimum, sqrt_price_limit_x96
        )
        contract = self.w3.eth.contract(address=_cs(router), abi=abi)
        receipt = self.sender.send(contract.functions.exactInputSingle(params), 'swap')

        amount_out = parse_transfer_amount(receipt, token_out, recipient)
        if amount_out is None:
            logger.warning("Could not parse swap output from Transfer events")
            return 0
        return amount_out


class Web3TokenLedger:
    """
    ERC20 операции от имени подписанта.

    snapshot() запоминает балансы хранилищ из watch_vault() и все балансы,
    прочитанные через этот ledger;
    restore() не может откатить смайненные транзакции и логирует расхождение.
    """

    def __init__(self, w3: Web3, sender: TransactionSender):
        self.w3 = w3
        self.sender = sender
        self._watched: set = set()

    def _token(self, token: str):
        return self.w3.eth.contract(address=_cs(token), abi=ERC20_ABI)

    def _require_signer(self, address: str, role: str):
        if not same_address(address, self.sender.address):
            raise TransferFailure(f"Cannot act as {role} {address}: signer is {self.sender.address}")

    def balance_of(self, token: str, holder: str) -> int:
        self._watched.add((token.lower(), holder.lower()))
        return self._token(token).functions.balanceOf(_cs(holder)).call()

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._token(token).functions.allowance(_cs(owner), _cs(spender)).call()

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        self._require_signer(owner, "owner")
        current = self.allowance(token, owner, spender)
        if current >= amount:
            logger.debug(f"Allowance sufficient for {token[:10]}...: {current} >= {amount}")
            return
        self.sender.send(self._token(token).functions.approve(_cs(spender), amount), 'approve')

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        self._require_signer(sender, "sender")
        self.sender.send(self._token(token).functions.transfer(_cs(recipient), amount), 'transfer')

    def transfer_from(self, token: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        self._require_signer(spender, "spender")
        fn = self._token(token).functions.transferFrom(_cs(owner), _cs(recipient), amount)
        self.sender.send(fn, 'transfer')

    def watch_vault(self, vault: str) -> None:
        """Включить в снимок оба токена хранилища и его доли на адресе подписанта."""
        hypervisor = self.w3.eth.contract(address=_cs(vault), abi=HYPERVISOR_ABI)
        try:
            tokens = (hypervisor.functions.token0().call(), hypervisor.functions.token1().call(), vault)
        except Exception as e:
            raise PoolStateUnavailable(f"Failed to read vault {vault}: {e}") from e
        holder = self.sender.address.lower()
        for token in tokens:
            self._watched.add((token.lower(), holder))

    def snapshot(self) -> Dict[Tuple[str, str], int]:
        return {
            (token, holder): self._token(token).functions.balanceOf(_cs(holder)).call()
            for token, holder in self._watched
        }

    def restore(self, snapshot: Dict[Tuple[str, str], int]) -> None:
        for (token, holder), before in snapshot.items():
            after = self._token(token).functions.balanceOf(_cs(holder)).call()
            if after != before:
                logger.error(
                    f"Cannot roll back mined transactions: {token[:10]}... at {holder[:10]}... "
                    f"changed {before} -> {after} ({after - before:+d})"
                )


def build_web3_backend(w3: Web3, account, uni_proxy: str, algebra: bool = True, swap_fee: int = 500,
                       sender: TransactionSender = None, vaults: Sequence[str] = ()) -> ZapBackend:
    """
    Собрать ZapBackend для живой сети от имени account.

    algebra=True: пул читается через globalState(), роутер без fee tier;
    иначе slot0() и Uniswap V3 роутер с swap_fee.
    vaults: хранилища, балансы которых попадают в снимок с первой операции.
    """
    sender = sender or TransactionSender(w3, account)
    tokens = Web3TokenLedger(w3, sender)
    for vault in vaults:
        tokens.watch_vault(vault)
    return ZapBackend(
        pools=Web3PoolReader(w3, use_global_state=algebra),
        oracle=Web3VaultOracle(w3, uni_proxy),
        vault=Web3VaultDepositor(w3, sender, uni_proxy),
        router=Web3SwapRouter(w3, sender, fee=None if algebra else swap_fee),
        tokens=tokens,
        participants=[tokens],
    )
