"""
Opaque `extra` payload carried by zap_in / zap_out.

Layout (ABI): (address swapRouter, uint256[4] minAmounts)
minAmounts are the vault's per-asset minimums (base0, base1, limit0, limit1).
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

from eth_abi import decode, encode
from web3 import Web3

EXTRA_TYPES = ["address", "uint256[4]"]


@dataclass(frozen=True)
class ZapExtra:
    swap_router: str
    min_amounts: Tuple[int, int, int, int] = (0, 0, 0, 0)


def _validate_min_amounts(min_amounts: Sequence[int]) -> Tuple[int, int, int, int]:
    if len(min_amounts) != 4:
        raise ValueError(f"min_amounts must have 4 entries, got {len(min_amounts)}")
    if any(m < 0 for m in min_amounts):
        raise ValueError("min_amounts must be non-negative")
    return tuple(int(m) for m in min_amounts)


def encode_extra(swap_router: str, min_amounts: Sequence[int] = (0, 0, 0, 0)) -> bytes:
    """Собрать extra для zap_in/zap_out."""
    mins = _validate_min_amounts(min_amounts)
    return encode(EXTRA_TYPES, [Web3.to_checksum_address(swap_router), list(mins)])


def decode_extra(extra: bytes) -> ZapExtra:
    """Разобрать extra; битые данные -> ValueError."""
    try:
        router, mins = decode(EXTRA_TYPES, extra)
    except Exception as e:
        raise ValueError(f"Malformed zap extra payload: {e}") from e
    return ZapExtra(
        swap_router=Web3.to_checksum_address(router),
        min_amounts=_validate_min_amounts(mins),
    )
