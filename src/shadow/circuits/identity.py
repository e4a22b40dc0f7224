"""Identity (humanship) circuit.

Proves registered personhood without revealing which registrant:
    - leaf = H(secret, identityNullifier) is in the identity tree
    - nullifierHash = H(identityNullifier, externalNullifier)

The external nullifier is chosen by the application, so one registrant
gets exactly one valid nullifier hash per application and the hashes for
different applications cannot be linked.

Public inputs (in order): root, nullifierHash, externalNullifier, signalHash
"""

from dataclasses import dataclass, field
from typing import List, Optional

from shadow.circuits.constraint_system import ConstraintSystem
from shadow.circuits.gadgets import poseidon
from shadow.circuits.membership import MembershipCircuit, validate_path
from shadow.crypto.field import ensure_field_element


@dataclass
class IdentityInputs:
    root: int
    nullifier_hash: int
    external_nullifier: int
    signal_hash: int
    secret: int
    identity_nullifier: int
    path_elements: List[int] = field(default_factory=list)
    path_indices: List[int] = field(default_factory=list)

    def __post_init__(self):
        for name in (
            "root", "nullifier_hash", "external_nullifier", "signal_hash", "secret", "identity_nullifier"
        ):
            ensure_field_element(getattr(self, name), name)
        validate_path(self.path_elements, self.path_indices, len(self.path_elements))

    @property
    def depth(self) -> int:
        return len(self.path_elements)


class IdentityCircuit(MembershipCircuit):
    """Membership proof with an application-scoped nullifier."""

    name = "humanship"
    PUBLIC_INPUTS = ("root", "nullifierHash", "externalNullifier", "signalHash")

    def __init__(self, depth: int, inputs: Optional[IdentityInputs] = None):
        super().__init__(depth)
        if inputs is not None and inputs.depth != depth:
            raise ValueError(f"Witness path has {inputs.depth} levels, circuit expects {depth}")
        self.inputs = inputs

    def _value(self, name: str) -> Optional[int]:
        return getattr(self.inputs, name) if self.inputs is not None else None

    def synthesize(self, cs: ConstraintSystem, cancel_token=None) -> None:
        root = cs.alloc_public("root", self._value("root"))
        nullifier_hash = cs.alloc_public("nullifierHash", self._value("nullifier_hash"))
        external_nullifier = cs.alloc_public("externalNullifier", self._value("external_nullifier"))
        signal_hash = cs.alloc_public("signalHash", self._value("signal_hash"))

        secret = cs.alloc_private("secret", self._value("secret"))
        identity_nullifier = cs.alloc_private("identityNullifier", self._value("identity_nullifier"))
        siblings, directions = self._alloc_path(
            cs, self._value("path_elements"), self._value("path_indices")
        )

        leaf = poseidon(cs, [secret, identity_nullifier], "identityCommitment")
        self._membership(cs, leaf, root, siblings, directions, cancel_token)

        computed = poseidon(cs, [identity_nullifier, external_nullifier], "nullifierHash")
        cs.enforce_equal(computed, nullifier_hash, "nullifierHash")

        cs.declare_public_used(signal_hash)

    def circuit_inputs(self) -> dict:
        if self.inputs is None:
            raise ValueError("Circuit has no witness")
        v = self.inputs
        return {
            "root": str(v.root),
            "nullifierHash": str(v.nullifier_hash),
            "externalNullifier": str(v.external_nullifier),
            "signalHash": str(v.signal_hash),
            "secret": str(v.secret),
            "identityNullifier": str(v.identity_nullifier),
            "pathElements": [str(e) for e in v.path_elements],
            "pathIndices": [str(i) for i in v.path_indices],
        }

    def public_signals(self) -> List[int]:
        if self.inputs is None:
            raise ValueError("Circuit has no witness")
        v = self.inputs
        return [v.root, v.nullifier_hash, v.external_nullifier, v.signal_hash]
