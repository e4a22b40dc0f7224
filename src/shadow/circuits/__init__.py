"""Constraint systems for the withdrawal and identity proofs."""

from shadow.circuits.constraint_system import ConstraintSystem, LinearCombination, Variable, ONE
from shadow.circuits.identity import IdentityCircuit, IdentityInputs
from shadow.circuits.membership import MembershipCircuit, merkle_membership
from shadow.circuits.withdraw import WithdrawCircuit, WithdrawInputs

__all__ = [
    "ConstraintSystem",
    "LinearCombination",
    "Variable",
    "ONE",
    "MembershipCircuit",
    "merkle_membership",
    "WithdrawCircuit",
    "WithdrawInputs",
    "IdentityCircuit",
    "IdentityInputs",
]
