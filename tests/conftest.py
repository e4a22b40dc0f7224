"""Pytest configuration and fixtures."""

import os
import secrets
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from shadow.circuits import IdentityCircuit, WithdrawCircuit  # noqa: E402
from shadow.core.identity import IdentityGroup  # noqa: E402
from shadow.core.pool import ShadowPool  # noqa: E402
from shadow.crypto.field import BASE_FIELD_MODULUS  # noqa: E402
from shadow.proving.backend import ProofVerifier, ProverBackend  # noqa: E402
from shadow.proving.proof import Groth16Proof  # noqa: E402
from shadow.proving.prover import Prover  # noqa: E402
from shadow.storage import DatabaseManager  # noqa: E402
from shadow.utils.encoding import encode_address  # noqa: E402

TEST_DEPTH = 4
TEST_DENOMINATION = 100_000_000

PUBLIC_INPUTS = {
    WithdrawCircuit.name: WithdrawCircuit.PUBLIC_INPUTS,
    IdentityCircuit.name: IdentityCircuit.PUBLIC_INPUTS,
}


def random_proof() -> Groth16Proof:
    """Well-formed proof with random coordinates."""
    def coord():
        return secrets.randbelow(BASE_FIELD_MODULUS)
    return Groth16Proof(a=(coord(), coord()), b=((coord(), coord()), (coord(), coord())), c=(coord(), coord()))


class RecordingBackend(ProverBackend):
    """
    Stand-in for snarkjs.

    Issues a random proof and remembers which public signals it was issued
    for, so RecordingVerifier accepts exactly those proofs.
    """

    def __init__(self):
        self.issued = {}
        self.calls = []

    def prove(self, circuit_name, inputs):
        self.calls.append((circuit_name, inputs))
        signals = [int(inputs[name]) for name in PUBLIC_INPUTS[circuit_name]]
        proof = random_proof()
        self.issued[proof.to_bytes()] = (circuit_name, signals)
        return proof, signals


class RecordingVerifier(ProofVerifier):
    """Accepts a proof only for the circuit and signals it was issued for."""

    def __init__(self, backend: RecordingBackend):
        self.backend = backend
        self.calls = []

    def verify(self, circuit_name, public_signals, proof):
        self.calls.append((circuit_name, list(public_signals)))
        return self.backend.issued.get(proof.to_bytes()) == (circuit_name, list(public_signals))


class StaticVerifier(ProofVerifier):
    """Returns a fixed answer."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.calls = 0

    def verify(self, circuit_name, public_signals, proof):
        self.calls += 1
        return self.accept


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def verifier(backend):
    return RecordingVerifier(backend)


@pytest.fixture
def prover(backend):
    return Prover(backend)


@pytest.fixture
def pool(verifier):
    """Small pool backed by the recording verifier."""
    return ShadowPool(denomination=TEST_DENOMINATION, verifier=verifier, depth=TEST_DEPTH, root_history_size=5)


@pytest.fixture
def identity_group(verifier):
    return IdentityGroup(verifier=verifier, depth=TEST_DEPTH, root_history_size=5)


@pytest.fixture
def address():
    """Factory for random valid base58 addresses."""
    return lambda: encode_address(os.urandom(32))


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'test.db'}")
    manager.create_tables()
    yield manager
    manager.drop_tables()
    manager.engine.dispose()
