"""
Balances of the zap holder as seen by one operation.

Contract mode (holder != account): every token the holder owns belongs to
the zap, prior dust included, so the baseline stays empty.

EOA mode (holder == account): the wallet also keeps the user's own funds;
balances present before the operation are recorded as a baseline and are
never swept into the vault.
"""

import logging
from typing import Dict, Iterable

logger = logging.getLogger(__name__)


class Holdings:

    def __init__(self, tokens, holder: str):
        self.tokens = tokens
        self.holder = holder
        self._baseline: Dict[str, int] = {}

    def begin(self, tokens: Iterable[str], exclude_existing: bool):
        """Start an operation; optionally fence off what the holder already owns."""
        self._baseline = {}
        if not exclude_existing:
            return
        for token in tokens:
            balance = self.tokens.balance_of(token, self.holder)
            self._baseline[token.lower()] = balance
            logger.debug(f"Baseline {token[:10]}...: {balance}")

    def claim(self, token: str, amount: int):
        """Move amount of an already-held balance into the current operation."""
        key = token.lower()
        self._baseline[key] = max(self._baseline.get(key, 0) - amount, 0)

    def available(self, token: str) -> int:
        balance = self.tokens.balance_of(token, self.holder)
        return max(balance - self._baseline.get(token.lower(), 0), 0)
