"""
Tests for vault_zap/unit_of_work.py
"""

import threading
from unittest.mock import MagicMock

import pytest

from vault_zap.errors import SlippageExceeded
from vault_zap.unit_of_work import UnitOfWork


class Counter:
    """Минимальный транзакционный участник."""

    def __init__(self, value=0):
        self.value = value
        self.restored = []

    def snapshot(self):
        return self.value

    def restore(self, snapshot):
        self.restored.append(snapshot)
        self.value = snapshot


class TestUnitOfWork:

    def test_commit_keeps_changes(self):
        counter = Counter(1)
        with UnitOfWork([counter]):
            counter.value = 5
        assert counter.value == 5
        assert counter.restored == []

    def test_exception_restores_and_propagates(self):
        counter = Counter(1)
        with pytest.raises(SlippageExceeded):
            with UnitOfWork([counter], name="zap_in"):
                counter.value = 5
                raise SlippageExceeded(1, 2)
        assert counter.value == 1

    def test_restore_in_reverse_order(self):
        order = []
        first, second = MagicMock(), MagicMock()
        first.snapshot.return_value = "a"
        second.snapshot.return_value = "b"
        first.restore.side_effect = lambda s: order.append(("first", s))
        second.restore.side_effect = lambda s: order.append(("second", s))

        with pytest.raises(RuntimeError):
            with UnitOfWork([first, second]):
                raise RuntimeError("boom")

        assert order == [("second", "b"), ("first", "a")]

    def test_lock_released_on_success_and_failure(self):
        lock = threading.Lock()
        with UnitOfWork([Counter()], lock=lock):
            assert lock.locked()
        assert not lock.locked()

        with pytest.raises(ValueError):
            with UnitOfWork([Counter()], lock=lock):
                raise ValueError("bad")
        assert not lock.locked()

    def test_snapshot_failure_releases_lock(self):
        lock = threading.Lock()
        broken = MagicMock()
        broken.snapshot.side_effect = RuntimeError("rpc down")

        with pytest.raises(RuntimeError):
            with UnitOfWork([broken], lock=lock):
                pass
        assert not lock.locked()

    def test_no_participants(self):
        with UnitOfWork([]):
            pass
