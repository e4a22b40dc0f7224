"""Tests for the locked accumulator and its root window."""

import threading

import pytest

from shadow.core.accumulator import PoolAccumulator
from shadow.crypto.field import FIELD_MODULUS, random_field_element
from shadow.exceptions import CapacityExceededError, InvalidFieldElementError


@pytest.fixture
def accumulator():
    return PoolAccumulator(depth=4, root_history_size=3)


class TestRootWindow:
    """Tests for recent-root acceptance."""

    def test_empty_root_known(self, accumulator):
        assert accumulator.is_known_root(accumulator.root)
        assert accumulator.recent_roots() == [accumulator.root]

    def test_insert_returns_index_and_root(self, accumulator):
        index, root = accumulator.insert(random_field_element())
        assert index == 0
        assert root == accumulator.root
        assert accumulator.is_known_root(root)

    def test_eviction_fifo(self, accumulator):
        """Test the oldest root leaves the window first."""
        empty_root = accumulator.root
        roots = [accumulator.insert(random_field_element())[1] for _ in range(3)]
        assert not accumulator.is_known_root(empty_root)
        assert accumulator.recent_roots() == roots

    def test_unknown_root(self, accumulator):
        assert not accumulator.is_known_root(12345)

    def test_invalid_history_size(self):
        with pytest.raises(ValueError):
            PoolAccumulator(depth=4, root_history_size=0)


class TestAccumulatorOperations:
    """Tests for inserts and proofs through the handle."""

    def test_proof_verifies_while_in_window(self, accumulator):
        accumulator.insert(random_field_element())
        proof = accumulator.proof(0)
        assert accumulator.verify(proof)

        for _ in range(3):
            accumulator.insert(random_field_element())
        # Chain still valid but the root aged out
        assert not accumulator.verify(proof)

    def test_batch_records_each_root(self):
        acc = PoolAccumulator(depth=4, root_history_size=10)
        indices = acc.insert_batch([random_field_element() for _ in range(3)])
        assert indices == [0, 1, 2]
        assert len(acc.recent_roots()) == 4

    def test_batch_validation(self, accumulator):
        with pytest.raises(InvalidFieldElementError):
            accumulator.insert_batch([1, FIELD_MODULUS])
        with pytest.raises(CapacityExceededError):
            accumulator.insert_batch(list(range(1, 18)))
        assert len(accumulator) == 0

    def test_snapshot(self, accumulator):
        accumulator.insert(5)
        state = accumulator.snapshot()
        assert state["num_leaves"] == 1
        assert state["root_history_size"] == 3

    def test_properties(self, accumulator):
        assert accumulator.depth == 4
        assert accumulator.capacity == 16
        assert accumulator.next_index == 0
        assert "PoolAccumulator" in repr(accumulator)


class TestConcurrentInserts:
    """Tests for single-writer semantics under threads."""

    def test_unique_indices(self):
        acc = PoolAccumulator(depth=6, root_history_size=64)
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(4):
                index, _ = acc.insert(random_field_element())
                with lock:
                    results.append(index)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == list(range(32))
        for i in (0, 15, 31):
            assert acc.verify(acc.proof(i))
