"""
Tests for vault_zap/holdings.py
"""

from vault_zap.holdings import Holdings
from vault_zap.simulation import SimulatedLedger

from conftest import DOLA, FRAX, ZAP


class TestHoldings:

    def setup_method(self):
        self.ledger = SimulatedLedger()
        self.ledger.mint(FRAX, ZAP, 100)
        self.holdings = Holdings(self.ledger, ZAP)

    def test_contract_mode_counts_everything(self):
        self.holdings.begin((FRAX, DOLA), exclude_existing=False)
        assert self.holdings.available(FRAX) == 100

    def test_eoa_mode_fences_existing(self):
        self.holdings.begin((FRAX, DOLA), exclude_existing=True)
        assert self.holdings.available(FRAX) == 0

        self.ledger.mint(FRAX, ZAP, 30)
        assert self.holdings.available(FRAX) == 30

    def test_never_negative(self):
        self.holdings.begin((FRAX, DOLA), exclude_existing=True)
        self.ledger.burn(FRAX, ZAP, 60)
        assert self.holdings.available(FRAX) == 0

    def test_claim(self):
        self.holdings.begin((FRAX, DOLA), exclude_existing=True)
        self.holdings.claim(FRAX.lower(), 40)
        assert self.holdings.available(FRAX) == 40

    def test_begin_resets_baseline(self):
        self.holdings.begin((FRAX,), exclude_existing=True)
        self.holdings.begin((FRAX,), exclude_existing=False)
        assert self.holdings.available(FRAX) == 100
