"""
Configuration for Vault Zap

Конфигурация для zap-операций в concentrated-liquidity хранилищах
(Gamma-style Hypervisor + UniProxy поверх Algebra/Uniswap V3 пулов).
"""

import os
from dataclasses import dataclass, field
from typing import Dict

from dotenv import load_dotenv

load_dotenv()


@dataclass
class ChainConfig:
    """Конфигурация сети."""
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_token: str
    uni_proxy: str       # Gamma UniProxy (getDepositAmount / deposit)
    swap_router: str     # SwapRouter для exactInputSingle
    algebra: bool = True  # Algebra: globalState() и роутер без fee tier
    swap_fee: int = 500   # fee tier для Uniswap V3 роутера (algebra=False)


@dataclass
class TokenConfig:
    """Конфигурация токена."""
    address: str
    symbol: str
    decimals: int


@dataclass
class ZapConfig:
    """
    Tuning knobs for the balanced-deposit algorithm.

    dust_threshold: balance (in token wei) at or below which a residue is left alone
    max_dust_iterations: deposit passes allowed per token before DustNotConverged
    deadline_seconds: swap deadline offset passed to the router
    """
    dust_threshold: int = 1000
    max_dust_iterations: int = 16
    deadline_seconds: int = 1200

    def __post_init__(self):
        if self.dust_threshold <= 0:
            raise ValueError("dust_threshold must be > 0")
        if self.max_dust_iterations < 1:
            raise ValueError("max_dust_iterations must be >= 1")
        if self.deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be > 0")

    @classmethod
    def from_env(cls) -> 'ZapConfig':
        """Собрать конфиг из переменных окружения (.env), с дефолтами."""
        defaults = cls()
        return cls(
            dust_threshold=int(os.getenv("ZAP_DUST_THRESHOLD", defaults.dust_threshold)),
            max_dust_iterations=int(os.getenv("ZAP_MAX_DUST_ITERATIONS", defaults.max_dust_iterations)),
            deadline_seconds=int(os.getenv("ZAP_DEADLINE_SECONDS", defaults.deadline_seconds)),
        )


# ============================================================
# CHAIN CONFIGURATIONS
# ============================================================

ETHEREUM = ChainConfig(
    chain_id=1,
    rpc_url="https://eth.llamarpc.com",
    explorer_url="https://etherscan.io",
    native_token="ETH",
    uni_proxy="0x83DE646A7125aC12F4e0Bbf4Ca99f9f2c2f3a7c7",
    # Uniswap V3 SwapRouter, пулы стейблов 0.01%
    swap_router="0xE592427A0AEce92De3Edee1F18E0157C05861564",
    algebra=False,
    swap_fee=100,
)

POLYGON = ChainConfig(
    chain_id=137,
    rpc_url="https://polygon-rpc.com",
    explorer_url="https://polygonscan.com",
    native_token="MATIC",
    uni_proxy="0xA42d55074869491D60Ac05490376B74cF19B00e6",
    # QuickSwap (Algebra) SwapRouter
    swap_router="0xf5b509bB0909a69B1c207E495f687a596C168E12",
)

ARBITRUM = ChainConfig(
    chain_id=42161,
    rpc_url="https://arb1.arbitrum.io/rpc",
    explorer_url="https://arbiscan.io",
    native_token="ETH",
    uni_proxy="0x1F1Ca4e8236CD13032653391dB7e9544a6ad123E",
    # Camelot V3 (Algebra) SwapRouter
    swap_router="0x1F721E2E82F6676FCE4eA07A5958cF098D339e18",
)

# ============================================================
# TOKEN CONFIGURATIONS (Ethereum)
# ============================================================

TOKENS_ETH: Dict[str, TokenConfig] = {
    "FRAX": TokenConfig(
        address="0x853d955aCEf822Db058eb8505911ED77F175b99e",
        symbol="FRAX",
        decimals=18
    ),
    "DOLA": TokenConfig(
        address="0x865377367054516e17014CcdED1e7d814EDC9ce4",
        symbol="DOLA",
        decimals=18
    ),
    "USDC": TokenConfig(
        address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        symbol="USDC",
        decimals=6
    ),
    "WETH": TokenConfig(
        address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        symbol="WETH",
        decimals=18
    ),
}

# ============================================================
# DEFAULT SETTINGS
# ============================================================

DEFAULT_ZAP_CONFIG = ZapConfig()
DEFAULT_SLIPPAGE = 0.5  # 0.5%, запас для calc_min_to_amount_*
DEFAULT_GAS_LIMITS: Dict[str, int] = {
    "approve": 60_000,
    "transfer": 80_000,
    "swap": 350_000,
    "deposit": 600_000,
    "withdraw": 500_000,
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_chain_config(chain_id: int) -> ChainConfig:
    """Получение конфигурации по chain_id."""
    configs = {
        1: ETHEREUM,
        137: POLYGON,
        42161: ARBITRUM,
    }
    if chain_id not in configs:
        raise ValueError(f"Unknown chain_id: {chain_id}")
    return configs[chain_id]


def get_token(symbol: str, chain_id: int = 1) -> TokenConfig:
    """Получение токена по символу."""
    if chain_id != 1:
        raise ValueError(f"Tokens not configured for chain_id: {chain_id}")
    if symbol not in TOKENS_ETH:
        raise ValueError(f"Unknown token: {symbol}")
    return TOKENS_ETH[symbol]


def apply_slippage(amount: int, slippage_percent: float = DEFAULT_SLIPPAGE) -> int:
    """Минимально допустимый результат: amount * (100 - slippage) / 100."""
    if not 0 <= slippage_percent < 100:
        raise ValueError(f"Slippage must be in [0, 100), got {slippage_percent}")
    basis = int(round(slippage_percent * 100))  # в сотых долях процента
    return amount * (10_000 - basis) // 10_000
