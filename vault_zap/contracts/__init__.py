"""
Contracts Module

Capability interfaces, the `extra` payload codec and web3 adapters
for Gamma-style vaults.
"""

from .interfaces import PoolPriceState, ZapBackend, same_address
from .extra import ZapExtra, encode_extra, decode_extra
from .hypervisor import build_web3_backend

__all__ = [
    'PoolPriceState',
    'ZapBackend',
    'same_address',
    'ZapExtra',
    'encode_extra',
    'decode_extra',
    'build_web3_backend'
]
