"""Single-writer accumulator handle with a recent-roots window."""

import logging
import threading
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Tuple

from shadow.core.merkle_tree import MerkleProof, MerkleTree
from shadow.crypto.field import is_field_element
from shadow.exceptions import CapacityExceededError, InvalidFieldElementError

logger = logging.getLogger(__name__)


class PoolAccumulator:
    """
    Guarded handle around one pool's MerkleTree.

    Leaf indices depend on insertion order, so every read and write goes
    through one lock. The handle also remembers the last
    ``root_history_size`` roots: a withdrawal proven against a root that
    was current a few deposits ago is still accepted.
    """

    DEFAULT_ROOT_HISTORY = 30

    def __init__(self, depth: int = MerkleTree.DEFAULT_DEPTH, root_history_size: int = DEFAULT_ROOT_HISTORY):
        if root_history_size < 1:
            raise ValueError("root_history_size must be at least 1")

        self._tree = MerkleTree(depth=depth)
        self._lock = threading.Lock()
        self._roots: Deque[int] = deque([self._tree.root], maxlen=root_history_size)

    @property
    def depth(self) -> int:
        return self._tree.depth

    @property
    def capacity(self) -> int:
        return self._tree.capacity

    @property
    def root_history_size(self) -> int:
        return self._roots.maxlen

    def insert(
        self, commitment: int, before_commit: Optional[Callable[[int, int], None]] = None
    ) -> Tuple[int, int]:
        """
        Append a commitment.

        Args:
            commitment: Leaf value
            before_commit: Runs under the lock with (leaf_index, new_root)
                before the leaf is committed. Raising aborts the insert.

        Returns:
            Tuple[int, int]: (leaf_index, new_root), both read under the lock
        """
        with self._lock:
            leaf_index = self._tree.insert(commitment, before_commit)
            root = self._tree.root
            self._roots.append(root)
        logger.debug(f"Inserted leaf {leaf_index}, {len(self._tree)}/{self._tree.capacity} used")
        return leaf_index, root

    def insert_batch(self, commitments: Iterable[int]) -> List[int]:
        """
        Append several commitments, all or nothing.

        Every intermediate root enters the history window, as if the
        leaves had been inserted one by one.
        """
        batch = list(commitments)
        for i, commitment in enumerate(batch):
            if not is_field_element(commitment):
                raise InvalidFieldElementError(f"Commitment {i} in batch is not a field element")

        with self._lock:
            if len(self._tree) + len(batch) > self._tree.capacity:
                raise CapacityExceededError(
                    f"Batch of {len(batch)} does not fit ({self._tree.capacity - len(self._tree)} free)"
                )

            indices = []
            for commitment in batch:
                indices.append(self._tree.insert(commitment))
                self._roots.append(self._tree.root)
        return indices

    def proof(self, leaf_index: int) -> MerkleProof:
        """Inclusion proof against the current root."""
        with self._lock:
            return self._tree.proof(leaf_index)

    def is_known_root(self, root: int) -> bool:
        """True if root is one of the recent roots this pool produced."""
        with self._lock:
            return root in self._roots

    def recent_roots(self) -> List[int]:
        with self._lock:
            return list(self._roots)

    def verify(self, proof: MerkleProof) -> bool:
        """Check a proof's hash chain and that its root is in the window."""
        return self._tree.verify(proof) and self.is_known_root(proof.root)

    def index_of(self, commitment: int):
        with self._lock:
            return self._tree.index_of(commitment)

    def snapshot(self) -> dict:
        """Consistent copy of the tree state."""
        with self._lock:
            state = self._tree.get_state()
            state["root_history_size"] = self._roots.maxlen
            return state

    @property
    def root(self) -> int:
        with self._lock:
            return self._tree.root

    @property
    def next_index(self) -> int:
        with self._lock:
            return self._tree.next_index

    def __len__(self) -> int:
        with self._lock:
            return len(self._tree)

    def __repr__(self) -> str:
        return f"PoolAccumulator({self._tree!r}, roots={len(self._roots)}/{self._roots.maxlen})"
