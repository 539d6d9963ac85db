"""
Transaction helpers for the web3 adapters.

Includes:
- NonceManager: Thread-safe nonce tracking for back-to-back zap transactions
- GasEstimator: Gas estimation with per-operation fallbacks
- TransactionSender: build -> sign -> send -> wait, with nonce bookkeeping
"""

import logging
import threading
import time
from typing import Dict, Optional

from web3 import Web3
from web3.exceptions import ContractLogicError

from config import DEFAULT_GAS_LIMITS
from .errors import TransferFailure

logger = logging.getLogger(__name__)


class NonceManager:
    """
    Thread-safe nonce manager.

    Один zap_in порождает до десятка транзакций подряд (approve, swap, deposit
    на каждый dust-проход); `get_transaction_count('pending')` между ними
    может вернуть один и тот же nonce.

    Usage:
        nonce_mgr = NonceManager(w3, account_address)
        nonce = nonce_mgr.get_next_nonce()
        ...
        nonce_mgr.confirm_transaction(nonce)   # mined
        nonce_mgr.release_nonce(nonce)         # never sent
    """

    def __init__(self, w3: Web3, account_address: str, sync_interval: float = 30.0):
        self.w3 = w3
        self.account_address = Web3.to_checksum_address(account_address)
        self._lock = threading.Lock()
        self._current_nonce: Optional[int] = None
        self._pending_nonces: set = set()
        self._last_sync_time: float = 0
        self._sync_interval = sync_interval

    def _sync_nonce(self) -> int:
        return self.w3.eth.get_transaction_count(self.account_address, 'pending')

    def get_next_nonce(self, force_sync: bool = False) -> int:
        with self._lock:
            now = time.time()
            if self._current_nonce is None or force_sync or now - self._last_sync_time > self._sync_interval:
                chain_nonce = self._sync_nonce()
                self._pending_nonces = {n for n in self._pending_nonces if n >= chain_nonce}
                if self._current_nonce is None:
                    self._current_nonce = chain_nonce
                else:
                    # Внешние транзакции с того же адреса
                    self._current_nonce = max(self._current_nonce, chain_nonce)
                self._last_sync_time = now
                logger.debug(f"Synced nonce with blockchain: {self._current_nonce}")

            nonce = self._current_nonce
            self._current_nonce += 1
            self._pending_nonces.add(nonce)
            logger.debug(f"Allocated nonce: {nonce}, pending: {len(self._pending_nonces)}")
            return nonce

    def confirm_transaction(self, nonce: int):
        with self._lock:
            self._pending_nonces.discard(nonce)

    def release_nonce(self, nonce: int):
        """Вернуть nonce, если транзакция так и не была отправлена."""
        with self._lock:
            self._pending_nonces.discard(nonce)
            if self._current_nonce is not None and nonce == self._current_nonce - 1:
                self._current_nonce = nonce
            logger.debug(f"Released nonce: {nonce}, current: {self._current_nonce}")


class GasEstimator:
    """
    Gas estimation with fallbacks.

    Usage:
        estimator = GasEstimator(w3, buffer_percent=20)
        gas = estimator.estimate(contract.functions.deposit(...), sender, default_type='deposit')
    """

    def __init__(self, w3: Web3, buffer_percent: int = 20, defaults: Dict[str, int] = None):
        self.w3 = w3
        self.buffer_percent = buffer_percent
        self.defaults = dict(defaults or DEFAULT_GAS_LIMITS)

    def estimate(self, contract_function, from_address: str, default_type: str = 'approve', max_gas: int = 3_000_000) -> int:
        try:
            estimated = contract_function.estimate_gas({'from': Web3.to_checksum_address(from_address)})
            result = min(int(estimated * (1 + self.buffer_percent / 100)), max_gas)
            logger.debug(f"Gas estimated: {estimated}, with buffer: {result}")
            return result
        except ContractLogicError as e:
            logger.warning(f"Gas estimation failed (contract error): {e}")
            return self.defaults.get(default_type, 200_000)
        except Exception as e:
            logger.warning(f"Gas estimation failed: {e}, using default for '{default_type}'")
            return self.defaults.get(default_type, 200_000)


class TransactionSender:
    """
    Подписывает и отправляет транзакции от имени account.

    Каждая транзакция ждёт receipt: следующий шаг zap'а читает балансы,
    которые должны уже отражать предыдущий.
    """

    def __init__(self, w3: Web3, account, nonce_manager: NonceManager = None, gas_estimator: GasEstimator = None,
                 receipt_timeout: int = 120):
        self.w3 = w3
        self.account = account
        self.address = account.address
        self.nonce_manager = nonce_manager or NonceManager(w3, account.address)
        self.gas_estimator = gas_estimator or GasEstimator(w3)
        self.receipt_timeout = receipt_timeout

    def send(self, contract_function, operation: str):
        """
        Отправить вызов контракта и дождаться receipt.

        Returns:
            receipt (status == 1)

        Raises:
            TransferFailure: транзакция отклонена или откатилась
        """
        gas = self.gas_estimator.estimate(contract_function, self.address, default_type=operation)
        nonce = self.nonce_manager.get_next_nonce()

        tx_sent = False
        try:
            tx = contract_function.build_transaction({
                'from': self.address,
                'nonce': nonce,
                'gas': gas,
                'gasPrice': self.w3.eth.gas_price,
                'value': 0
            })
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            tx_sent = True
            logger.info(f"{operation} TX sent: {tx_hash.hex()}")

            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
            self.nonce_manager.confirm_transaction(nonce)
        except Exception as e:
            if tx_sent:
                self.nonce_manager.confirm_transaction(nonce)
            else:
                self.nonce_manager.release_nonce(nonce)
            raise TransferFailure(f"{operation} transaction failed: {e}") from e

        if receipt.status != 1:
            raise TransferFailure(f"{operation} transaction reverted: {tx_hash.hex()}")
        return receipt
