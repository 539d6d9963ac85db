"""
Vault Zap: single-token entry to and exit from concentrated-liquidity vaults.
"""

from .errors import (
    ZapError,
    InvalidToken,
    SlippageExceeded,
    TransferFailure,
    ArithmeticOverflow,
    DustNotConverged,
    PoolStateUnavailable,
    VaultDepositRejected
)
from .zapper import Zapper, ZapInResult, ZapOutResult
from .simulation import SimulatedChain

__all__ = [
    'Zapper',
    'ZapInResult',
    'ZapOutResult',
    'SimulatedChain',
    'ZapError',
    'InvalidToken',
    'SlippageExceeded',
    'TransferFailure',
    'ArithmeticOverflow',
    'DustNotConverged',
    'PoolStateUnavailable',
    'VaultDepositRejected'
]
