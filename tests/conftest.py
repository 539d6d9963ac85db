"""
Shared fixtures for all tests.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, Mock

import pytest
from web3 import Web3

from config import TOKENS_ETH, ZapConfig
from vault_zap.contracts.extra import encode_extra
from vault_zap.math.ticks import Q96
from vault_zap.simulation import SimulatedChain
from vault_zap.zapper import Zapper


# Тестовые адреса
FRAX = TOKENS_ETH["FRAX"].address   # token0 (меньший адрес)
DOLA = TOKENS_ETH["DOLA"].address   # token1
TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x9999999999999999999999999999999999999999"
POOL = "0x000000000000000000000000000000000000b001"
VAULT = "0x000000000000000000000000000000000000c001"
ZAP = "0x000000000000000000000000000000000000d001"
USER = "0x000000000000000000000000000000000000e001"
WALLET = Web3.to_checksum_address("0x1234567890AbcdEF1234567890aBcdef12345678")

POOL_LIQUIDITY = 10 ** 24
ONE = 10 ** 18

# Transfer(address,address,uint256) topic (real keccak)
TRANSFER_TOPIC = Web3.keccak(text="Transfer(address,address,uint256)")


class MockWeb3:
    """Переиспользуемый мок Web3 для тестов адаптеров."""

    def __init__(self, initial_nonce: int = 100):
        self.eth = MagicMock()
        self.eth.get_transaction_count = MagicMock(return_value=initial_nonce)
        self.eth.gas_price = 5_000_000_000  # 5 gwei
        self.eth.chain_id = 1
        self.eth.send_raw_transaction = MagicMock(return_value=b'\x12\x34' * 16)
        self.eth.wait_for_transaction_receipt = MagicMock(return_value=make_receipt())
        self.eth.contract = MagicMock()

    def set_nonce(self, nonce: int):
        self.eth.get_transaction_count.return_value = nonce


def make_receipt(status: int = 1, logs=None):
    """Receipt с атрибутом status и dict-доступом к logs (как AttributeDict)."""
    logs = logs or []
    return MagicMock(status=status, **{'get': lambda k, d=None: logs if k == 'logs' else d})


def make_transfer_log(token: str, sender: str, recipient: str, amount: int) -> dict:
    """Transfer event log entry."""
    return {
        'address': token,
        'topics': [
            TRANSFER_TOPIC,
            bytes(12) + bytes.fromhex(sender[2:]),
            bytes(12) + bytes.fromhex(recipient[2:]),
        ],
        'data': amount.to_bytes(32, 'big'),
    }


def build_world(
    fee: int = 100,
    liquidity: int = POOL_LIQUIDITY,
    tick_lower: int = -100,
    tick_upper: int = 100,
    user_frax: int = 1000 * ONE,
    dust_threshold: int = 2,
    account: str = USER,
):
    """
    Стабильная пара FRAX/DOLA около тика 0 + хранилище на [tick_lower, tick_upper].

    Returns:
        SimpleNamespace(chain, pool, vault, zapper, extra)
    """
    chain = SimulatedChain()
    pool = chain.add_pool(POOL, FRAX, DOLA, sqrt_price_x96=Q96, liquidity=liquidity, fee=fee)
    vault = chain.add_vault(VAULT, pool, tick_lower=tick_lower, tick_upper=tick_upper)

    chain.ledger.mint(FRAX, account, user_frax)
    if account != ZAP:
        chain.ledger.approve(FRAX, account, ZAP, user_frax)

    zapper = Zapper(
        chain.backend(ZAP),
        address=ZAP,
        account=account,
        config=ZapConfig(dust_threshold=dust_threshold),
    )
    return SimpleNamespace(
        chain=chain,
        ledger=chain.ledger,
        pool=pool,
        vault=vault,
        zapper=zapper,
        extra=encode_extra(chain.router_address),
    )


def world_balances(world) -> dict:
    """Все балансы и позиция цены, для проверки отката."""
    return {
        'ledger': dict(world.ledger.balances),
        'allowances': dict(world.ledger.allowances),
        'sqrt_price': world.pool.sqrt_price_x96,
        'total_supply': world.vault.total_supply,
    }


@pytest.fixture
def make_world():
    """Фабрика независимых симулированных миров с одинаковыми параметрами."""
    return build_world


@pytest.fixture
def world():
    return build_world()


@pytest.fixture
def mock_w3():
    """Мок Web3 instance."""
    return MockWeb3()


@pytest.fixture
def mock_account():
    """Мок LocalAccount."""
    account = Mock()
    account.address = WALLET
    account.sign_transaction = Mock(return_value=Mock(raw_transaction=b'signed_tx'))
    return account
