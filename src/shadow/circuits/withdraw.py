"""Withdrawal circuit.

Proves, without revealing which leaf:
    - leaf = H(secret, nullifier) is in the tree under ``root``
    - nullifierHash = H(nullifier, leafIndex), where leafIndex is rebuilt
      from the path's direction bits
    - recipient, relayer and fee are the values the proof commits to

Public inputs (in order): root, nullifierHash, recipient, relayer, fee
Private inputs: secret, nullifier, pathElements[D], pathIndices[D]
"""

from dataclasses import dataclass, field
from typing import List, Optional

from shadow.circuits.constraint_system import ConstraintSystem
from shadow.circuits.gadgets import poseidon
from shadow.circuits.membership import MembershipCircuit, validate_path
from shadow.crypto.field import ensure_field_element


@dataclass
class WithdrawInputs:
    """Full witness for one withdrawal."""

    root: int
    nullifier_hash: int
    recipient: int
    relayer: int
    fee: int
    secret: int
    nullifier: int
    path_elements: List[int] = field(default_factory=list)
    path_indices: List[int] = field(default_factory=list)

    def __post_init__(self):
        for name in ("root", "nullifier_hash", "recipient", "relayer", "fee", "secret", "nullifier"):
            ensure_field_element(getattr(self, name), name)
        validate_path(self.path_elements, self.path_indices, len(self.path_elements))

    @property
    def depth(self) -> int:
        return len(self.path_elements)


class WithdrawCircuit(MembershipCircuit):
    """Single-spend withdrawal proof with recipient/relayer/fee binding."""

    name = "withdraw"
    PUBLIC_INPUTS = ("root", "nullifierHash", "recipient", "relayer", "fee")

    def __init__(self, depth: int, inputs: Optional[WithdrawInputs] = None):
        super().__init__(depth)
        if inputs is not None and inputs.depth != depth:
            raise ValueError(f"Witness path has {inputs.depth} levels, circuit expects {depth}")
        self.inputs = inputs

    def _value(self, name: str) -> Optional[int]:
        return getattr(self.inputs, name) if self.inputs is not None else None

    def synthesize(self, cs: ConstraintSystem, cancel_token=None) -> None:
        root = cs.alloc_public("root", self._value("root"))
        nullifier_hash = cs.alloc_public("nullifierHash", self._value("nullifier_hash"))
        recipient = cs.alloc_public("recipient", self._value("recipient"))
        relayer = cs.alloc_public("relayer", self._value("relayer"))
        fee = cs.alloc_public("fee", self._value("fee"))

        secret = cs.alloc_private("secret", self._value("secret"))
        nullifier = cs.alloc_private("nullifier", self._value("nullifier"))
        siblings, directions = self._alloc_path(
            cs, self._value("path_elements"), self._value("path_indices")
        )

        leaf = poseidon(cs, [secret, nullifier], "commitment")
        leaf_index = self._membership(cs, leaf, root, siblings, directions, cancel_token)

        computed_nullifier_hash = poseidon(cs, [nullifier, leaf_index], "nullifierHash")
        cs.enforce_equal(computed_nullifier_hash, nullifier_hash, "nullifierHash")

        # Not used by any relation above; binding keeps them from being swapped
        for var in (recipient, relayer, fee):
            cs.declare_public_used(var)

    def circuit_inputs(self) -> dict:
        if self.inputs is None:
            raise ValueError("Circuit has no witness")
        v = self.inputs
        return {
            "root": str(v.root),
            "nullifierHash": str(v.nullifier_hash),
            "recipient": str(v.recipient),
            "relayer": str(v.relayer),
            "fee": str(v.fee),
            "secret": str(v.secret),
            "nullifier": str(v.nullifier),
            "pathElements": [str(e) for e in v.path_elements],
            "pathIndices": [str(i) for i in v.path_indices],
        }

    def public_signals(self) -> List[int]:
        if self.inputs is None:
            raise ValueError("Circuit has no witness")
        v = self.inputs
        return [v.root, v.nullifier_hash, v.recipient, v.relayer, v.fee]
