"""
Tests for vault_zap/contracts/extra.py (opaque zap payload).
"""

import pytest
from eth_abi import encode
from web3 import Web3

from vault_zap.contracts.extra import EXTRA_TYPES, ZapExtra, decode_extra, encode_extra

ROUTER = Web3.to_checksum_address("0xf5b509bB0909a69B1c207E495f687a596C168E12")


class TestEncodeExtra:

    def test_layout_is_abi_tuple(self):
        extra = encode_extra(ROUTER, [1, 2, 3, 4])
        assert extra == encode(EXTRA_TYPES, [ROUTER, [1, 2, 3, 4]])
        assert len(extra) == 32 * 5

    def test_lowercase_router_accepted(self):
        assert encode_extra(ROUTER.lower()) == encode_extra(ROUTER)

    def test_default_min_amounts_zero(self):
        assert decode_extra(encode_extra(ROUTER)).min_amounts == (0, 0, 0, 0)

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            encode_extra(ROUTER, [0, 0, 0])

    def test_negative_min(self):
        with pytest.raises(ValueError):
            encode_extra(ROUTER, [0, -1, 0, 0])


class TestDecodeExtra:

    def test_decode(self):
        extra = decode_extra(encode_extra(ROUTER, [10, 20, 0, 0]))
        assert extra == ZapExtra(swap_router=ROUTER, min_amounts=(10, 20, 0, 0))

    def test_router_is_checksummed(self):
        extra = decode_extra(encode_extra(ROUTER.lower()))
        assert extra.swap_router == ROUTER

    def test_malformed(self):
        with pytest.raises(ValueError, match="Malformed"):
            decode_extra(b"\x01\x02")
