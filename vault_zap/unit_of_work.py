"""
Unit of work around one top-level zap operation.

Usage:
    with UnitOfWork(backend.participants, lock, name="zap_in"):
        ...  # balance reads, swaps, deposits

On any exception every participant is restored from the snapshot taken on
entry (in reverse order) and the exception propagates unchanged. The lock
serializes operations so none observes another's intermediate state.
"""

import logging
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Staged-commit scope: all effects of the block or none of them."""

    def __init__(self, participants: List, lock: Optional[threading.Lock] = None, name: str = "operation"):
        self.participants = list(participants)
        self.lock = lock
        self.name = name
        self._snapshots: Optional[list] = None

    def __enter__(self) -> 'UnitOfWork':
        if self.lock is not None:
            self.lock.acquire()
        try:
            self._snapshots = [p.snapshot() for p in self.participants]
        except Exception:
            if self.lock is not None:
                self.lock.release()
            raise
        logger.debug(f"{self.name}: unit of work opened ({len(self.participants)} participants)")
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                logger.debug(f"{self.name}: committed")
            else:
                logger.warning(f"{self.name}: rolling back after {exc_type.__name__}: {exc}")
                for participant, snap in reversed(list(zip(self.participants, self._snapshots))):
                    participant.restore(snap)
        finally:
            self._snapshots = None
            if self.lock is not None:
                self.lock.release()
        return False
