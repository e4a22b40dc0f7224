"""Witness solving and proof generation.

The prover synthesizes a circuit with its witness and checks every
constraint locally before the backend sees anything. A witness that fails
any relation never reaches the backend, so an invalid proof cannot be
produced.
"""

import logging
from typing import List, Tuple

from shadow.circuits.constraint_system import ConstraintSystem
from shadow.circuits.membership import MembershipCircuit
from shadow.exceptions import ConstraintUnsatisfiedError, ProofGenerationError
from shadow.proving.backend import ProverBackend
from shadow.proving.proof import Groth16Proof

logger = logging.getLogger(__name__)


def solve(circuit: MembershipCircuit, cancel_token=None) -> ConstraintSystem:
    """
    Synthesize a circuit with its witness and check it.

    Returns:
        ConstraintSystem: The satisfied system

    Raises:
        ConstraintUnsatisfiedError: If any constraint fails
        ProofCancelledError: If cancel_token is cancelled during synthesis
    """
    cs = ConstraintSystem()
    circuit.synthesize(cs, cancel_token)

    failed = cs.first_unsatisfied()
    if failed is not None:
        logger.warning(f"{circuit.name} witness rejected at constraint '{failed}'")
        raise ConstraintUnsatisfiedError(f"Constraint '{failed}' is not satisfied", annotation=failed)

    logger.debug(f"{circuit.name} witness satisfies {cs.num_constraints} constraints")
    return cs


class Prover:
    """Checks the witness, then delegates proof generation to a backend."""

    def __init__(self, backend: ProverBackend):
        self.backend = backend

    def prove(self, circuit: MembershipCircuit, cancel_token=None) -> Tuple[Groth16Proof, List[int]]:
        """
        Produce a proof for a circuit with a witness.

        Returns:
            Tuple of (proof, public signals)

        Raises:
            ConstraintUnsatisfiedError: If the witness is invalid
            ProofGenerationError: If the backend fails or returns public
                signals that differ from the witness
        """
        cs = solve(circuit, cancel_token)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        proof, public_signals = self.backend.prove(circuit.name, circuit.circuit_inputs())

        if list(public_signals) != cs.public_values():
            raise ProofGenerationError(f"{circuit.name} backend returned unexpected public signals")
        return proof, list(public_signals)
