"""Fixed-depth incremental Merkle tree over Poseidon commitments."""

from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from shadow.crypto.field import field_to_hex, hex_to_field, is_field_element
from shadow.crypto.poseidon import poseidon_hash
from shadow.exceptions import (
    CapacityExceededError,
    DeserializationError,
    IndexOutOfRangeError,
    InputValidationError,
    InvalidFieldElementError,
)


@lru_cache(maxsize=None)
def zero_values(depth: int) -> Tuple[int, ...]:
    """
    Empty-subtree constants Z_0 = 0, Z_{i+1} = H(Z_i, Z_i).

    Returns depth + 1 values; the last one is the root of an empty tree.
    """
    zeros = [0]
    for _ in range(depth):
        zeros.append(poseidon_hash(zeros[-1], zeros[-1]))
    return tuple(zeros)


@dataclass
class MerkleProof:
    """
    Inclusion proof for one leaf.

    directions[i] is 0 when the node on the path at level i is a left
    child and 1 when it is a right child, so the leaf index is the
    little-endian integer the bits spell out.
    """

    root: int
    leaf: int
    leaf_index: int
    siblings: List[int]
    directions: List[int]

    @property
    def depth(self) -> int:
        return len(self.siblings)

    def to_dict(self) -> dict:
        return {
            "root": field_to_hex(self.root),
            "leaf": field_to_hex(self.leaf),
            "leaf_index": self.leaf_index,
            "siblings": [field_to_hex(s) for s in self.siblings],
            "directions": list(self.directions),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MerkleProof":
        return cls(
            root=hex_to_field(data["root"]),
            leaf=hex_to_field(data["leaf"]),
            leaf_index=int(data["leaf_index"]),
            siblings=[hex_to_field(s) for s in data["siblings"]],
            directions=[int(d) for d in data["directions"]],
        )


class MerkleTree:
    """
    Append-only binary Merkle tree with canonical empty subtrees.

    Positions that were never written use the zero constant of their
    level, so the root is always defined and a proof costs O(depth)
    hashes whatever the fill level.
    """

    DEFAULT_DEPTH = 20
    MAX_DEPTH = 32

    def __init__(self, depth: int = DEFAULT_DEPTH):
        """
        Initialize an empty tree.

        Args:
            depth: Number of levels below the root (default 20)

        Raises:
            ValueError: If depth is outside [1, 32]
        """
        if depth < 1 or depth > self.MAX_DEPTH:
            raise ValueError(f"Tree depth must be between 1 and {self.MAX_DEPTH}")

        self.depth = depth
        self.capacity = 2**depth
        self.zeros = zero_values(depth)

        self.leaves: List[int] = []
        # (level, position) -> hash; level 0 holds the leaves
        self.nodes: Dict[Tuple[int, int], int] = {}
        self._index: Dict[int, int] = {}
        self._root = self.zeros[depth]

    def _node(self, level: int, position: int, staged: Optional[Dict] = None) -> int:
        key = (level, position)
        if staged is not None and key in staged:
            return staged[key]
        return self.nodes.get(key, self.zeros[level])

    def _stage_path(self, leaf_index: int, leaf: int, staged: Dict[Tuple[int, int], int]) -> int:
        staged[(0, leaf_index)] = leaf
        current = leaf
        position = leaf_index

        for level in range(self.depth):
            if position % 2 == 0:
                current = poseidon_hash(current, self._node(level, position + 1, staged))
            else:
                current = poseidon_hash(self._node(level, position - 1, staged), current)
            position >>= 1
            staged[(level + 1, position)] = current

        return current

    def _commit(self, leaves: List[int], staged: Dict[Tuple[int, int], int], root: int) -> None:
        for leaf in leaves:
            self._index.setdefault(leaf, len(self.leaves))
            self.leaves.append(leaf)
        self.nodes.update(staged)
        self._root = root

    @staticmethod
    def _validate_leaf(commitment) -> int:
        if not is_field_element(commitment):
            raise InvalidFieldElementError("Commitment must be a field element")
        return commitment

    def insert(self, commitment: int, before_commit: Optional[Callable[[int, int], None]] = None) -> int:
        """
        Append a commitment and return its leaf index.

        New node values are staged and only committed once the whole path
        is recomputed, so a failed insert leaves the tree untouched.

        Args:
            commitment: Leaf value
            before_commit: Called with (leaf_index, new_root) after staging.
                If it raises, nothing is committed and the error propagates.

        Raises:
            InvalidFieldElementError: If commitment is not a field element
            CapacityExceededError: If the tree already holds 2^depth leaves
        """
        self._validate_leaf(commitment)
        if len(self.leaves) >= self.capacity:
            raise CapacityExceededError(f"Tree is full (max {self.capacity} leaves)")

        leaf_index = len(self.leaves)
        staged: Dict[Tuple[int, int], int] = {}
        root = self._stage_path(leaf_index, commitment, staged)
        if before_commit is not None:
            before_commit(leaf_index, root)
        self._commit([commitment], staged, root)
        return leaf_index

    def insert_batch(self, commitments: Iterable[int]) -> List[int]:
        """
        Append several commitments, all or nothing.

        Raises:
            InvalidFieldElementError: If any commitment is invalid
            CapacityExceededError: If the batch does not fit
        """
        batch = [self._validate_leaf(c) for c in commitments]
        if len(self.leaves) + len(batch) > self.capacity:
            raise CapacityExceededError(
                f"Batch of {len(batch)} does not fit ({self.capacity - len(self.leaves)} free)"
            )

        start = len(self.leaves)
        staged: Dict[Tuple[int, int], int] = {}
        root = self._root
        for offset, leaf in enumerate(batch):
            root = self._stage_path(start + offset, leaf, staged)
        self._commit(batch, staged, root)
        return list(range(start, start + len(batch)))

    def proof(self, leaf_index: int) -> MerkleProof:
        """
        Build the inclusion proof for a leaf.

        Raises:
            IndexOutOfRangeError: If no leaf exists at leaf_index
        """
        if not isinstance(leaf_index, int) or leaf_index < 0 or leaf_index >= len(self.leaves):
            raise IndexOutOfRangeError(f"Invalid leaf index: {leaf_index}")

        siblings = []
        directions = []
        position = leaf_index

        for level in range(self.depth):
            siblings.append(self._node(level, position ^ 1))
            directions.append(position & 1)
            position >>= 1

        return MerkleProof(
            root=self._root,
            leaf=self.leaves[leaf_index],
            leaf_index=leaf_index,
            siblings=siblings,
            directions=directions,
        )

    @staticmethod
    def compute_root(leaf: int, siblings: List[int], directions: List[int]) -> int:
        """
        Recompute the root from a leaf and its path.

        Raises:
            InputValidationError: If the path is malformed
        """
        if len(siblings) != len(directions):
            raise InputValidationError("Siblings and directions must have equal length")

        current = leaf
        for sibling, direction in zip(siblings, directions):
            if direction == 0:
                current = poseidon_hash(current, sibling)
            elif direction == 1:
                current = poseidon_hash(sibling, current)
            else:
                raise InputValidationError(f"Direction bit must be 0 or 1, got {direction!r}")
        return current

    def verify(self, proof: MerkleProof) -> bool:
        """
        Check that a proof's path hashes up to its claimed root.

        Returns:
            bool: True if valid, False if the chain does not match or the
                proof is malformed
        """
        try:
            if proof.depth != self.depth:
                return False
            index_from_bits = sum(bit << i for i, bit in enumerate(proof.directions))
            if index_from_bits != proof.leaf_index:
                return False
            return self.compute_root(proof.leaf, proof.siblings, proof.directions) == proof.root
        except (InputValidationError, TypeError):
            return False

    def index_of(self, commitment: int) -> Optional[int]:
        """Return the first leaf index holding commitment, or None."""
        return self._index.get(commitment)

    def has_commitment(self, commitment: int) -> bool:
        return commitment in self._index

    @property
    def root(self) -> int:
        """Get the current Merkle root."""
        return self._root

    @property
    def next_index(self) -> int:
        return len(self.leaves)

    def get_state(self) -> dict:
        """
        Get the current state of the tree for serialization.

        Returns:
            dict: Depth, leaves and root as hex
        """
        return {
            "depth": self.depth,
            "capacity": self.capacity,
            "num_leaves": len(self.leaves),
            "leaves": [field_to_hex(leaf) for leaf in self.leaves],
            "root": field_to_hex(self.root),
        }

    @classmethod
    def from_state(cls, state: dict) -> "MerkleTree":
        """
        Rebuild a tree from get_state() output.

        Raises:
            DeserializationError: If the state is malformed or its root does
                not match the replayed leaves
        """
        try:
            tree = cls(depth=int(state["depth"]))
            tree.insert_batch(hex_to_field(leaf) for leaf in state["leaves"])
            expected_root = hex_to_field(state["root"])
        except (KeyError, TypeError, ValueError, InputValidationError, CapacityExceededError) as e:
            raise DeserializationError(f"Invalid tree state: {e}") from e

        if tree.root != expected_root:
            raise DeserializationError("Tree state root does not match its leaves")
        return tree

    def __len__(self) -> int:
        """Return the number of leaves in the tree."""
        return len(self.leaves)

    def __repr__(self) -> str:
        """String representation of the tree."""
        return (
            f"MerkleTree(depth={self.depth}, "
            f"leaves={len(self.leaves)}/{self.capacity}, "
            f"root={field_to_hex(self.root)[:18]}...)"
        )
