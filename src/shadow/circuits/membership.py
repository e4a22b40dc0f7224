"""Merkle membership encoding shared by the withdrawal and identity circuits."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from shadow.circuits.constraint_system import ConstraintSystem, LinearCombination, Term, Variable
from shadow.circuits.gadgets import bits_to_num, conditional_swap, poseidon
from shadow.crypto.field import ensure_field_element
from shadow.exceptions import InputValidationError, InvalidPathBitError


def merkle_membership(
    cs: ConstraintSystem,
    leaf: Term,
    siblings: Sequence[Variable],
    directions: Sequence[Variable],
    cancel_token=None,
) -> Tuple[LinearCombination, LinearCombination]:
    """
    Constrain the hash chain from a leaf to a root.

    Per level:
        direction is boolean
        (left, right) = (sibling, current) if direction else (current, sibling)
        current = H(left, right)

    Args:
        cs: Constraint system under construction
        leaf: Leaf term
        siblings: One sibling wire per level
        directions: One direction-bit wire per level
        cancel_token: Optional object with raise_if_cancelled(), checked
            between levels

    Returns:
        Tuple of (computed root, leaf index rebuilt from the direction bits)
    """
    if len(siblings) != len(directions):
        raise InputValidationError("Siblings and directions must have equal length")

    current = leaf
    for level, (sibling, bit) in enumerate(zip(siblings, directions)):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        cs.enforce_boolean(bit, f"membership.l{level}.bit")
        left, right = conditional_swap(cs, bit, current, sibling, f"membership.l{level}")
        current = poseidon(cs, [left, right], f"membership.l{level}.hash")

    return current, bits_to_num(directions)


def validate_path(path_elements: Sequence[int], path_indices: Sequence[int], depth: int) -> None:
    """
    Reject a malformed path before any hashing.

    Raises:
        InputValidationError: On a length mismatch
        InvalidPathBitError: If any direction bit is not 0 or 1
        InvalidFieldElementError: If any sibling is not a field element
    """
    if len(path_elements) != depth or len(path_indices) != depth:
        raise InputValidationError(f"Path must have exactly {depth} elements and indices")
    for i, bit in enumerate(path_indices):
        if bit not in (0, 1) or isinstance(bit, bool):
            raise InvalidPathBitError(f"pathIndices[{i}] must be 0 or 1, got {bit!r}")
    for i, element in enumerate(path_elements):
        ensure_field_element(element, f"pathElements[{i}]")


class MembershipCircuit(ABC):
    """
    Base for circuits that prove a commitment is in a Merkle tree.

    Subclasses allocate their public inputs in PUBLIC_INPUTS order, derive
    the leaf, and call ``_membership`` to constrain the path.
    """

    name: str = ""
    PUBLIC_INPUTS: Tuple[str, ...] = ()

    def __init__(self, depth: int):
        if depth < 1:
            raise ValueError("Circuit depth must be at least 1")
        self.depth = depth

    @abstractmethod
    def synthesize(self, cs: ConstraintSystem, cancel_token=None) -> None:
        """Allocate wires and declare every relation of the circuit."""

    @abstractmethod
    def circuit_inputs(self) -> dict:
        """Witness in the prover's input-signal naming, decimal strings."""

    @abstractmethod
    def public_signals(self) -> List[int]:
        """Public inputs in PUBLIC_INPUTS order."""

    def _alloc_path(
        self, cs: ConstraintSystem, path_elements: Optional[Sequence[int]], path_indices: Optional[Sequence[int]]
    ) -> Tuple[List[Variable], List[Variable]]:
        siblings = [
            cs.alloc_private(f"pathElements[{i}]", path_elements[i] if path_elements is not None else None)
            for i in range(self.depth)
        ]
        directions = [
            cs.alloc_private(f"pathIndices[{i}]", path_indices[i] if path_indices is not None else None)
            for i in range(self.depth)
        ]
        return siblings, directions

    def _membership(
        self,
        cs: ConstraintSystem,
        leaf: Term,
        root: Variable,
        siblings: Sequence[Variable],
        directions: Sequence[Variable],
        cancel_token=None,
    ) -> LinearCombination:
        """Constrain the path to end at ``root``; return the rebuilt leaf index."""
        computed_root, leaf_index = merkle_membership(cs, leaf, siblings, directions, cancel_token)
        cs.enforce_equal(computed_root, root, "root")
        return leaf_index

    def __repr__(self) -> str:
        return f"{type(self).__name__}(depth={self.depth})"
