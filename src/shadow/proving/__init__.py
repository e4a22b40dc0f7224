"""Proof generation, verification backends and proof encodings."""

from shadow.proving.backend import ProofVerifier, ProverBackend, SnarkjsBackend, SnarkjsVerifier
from shadow.proving.proof import Groth16Proof, SignalPackage, WithdrawalPackage
from shadow.proving.prover import Prover, solve
from shadow.proving.tasks import CancellationToken, ProgressEvent, ProofTask

__all__ = [
    "ProverBackend",
    "ProofVerifier",
    "SnarkjsBackend",
    "SnarkjsVerifier",
    "Groth16Proof",
    "WithdrawalPackage",
    "SignalPackage",
    "Prover",
    "solve",
    "CancellationToken",
    "ProgressEvent",
    "ProofTask",
]
