"""Proving and verification backends.

The pairing arithmetic lives outside this package. A backend turns a
solved witness into a Groth16 proof and a verifier checks one; both are
reached through the abstract classes below so the pool, the client and the
API never depend on a particular toolchain.

The snarkjs implementations expect the circuit build layout:

    <circuits_path>/<name>/<name>_js/<name>.wasm
    <circuits_path>/<name>/<name>_final.zkey
    <circuits_path>/<name>/verification_key.json
"""

import json
import logging
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from shadow.exceptions import InvalidProofError, ProofGenerationError, VerificationError
from shadow.proving.proof import Groth16Proof

logger = logging.getLogger(__name__)


class ProverBackend(ABC):
    """Produces a proof from named circuit inputs."""

    @abstractmethod
    def prove(self, circuit_name: str, inputs: dict) -> Tuple[Groth16Proof, List[int]]:
        """
        Returns:
            Tuple of (proof, public signals in circuit order)

        Raises:
            ProofGenerationError: If the backend fails
        """


class ProofVerifier(ABC):
    """External pairing-check capability."""

    @abstractmethod
    def verify(self, circuit_name: str, public_signals: Sequence[int], proof: Groth16Proof) -> bool:
        """Return True if the proof is valid for these public signals."""


class _SnarkjsCommand:
    def __init__(self, circuits_path: Union[str, Path], binary: str = "snarkjs", timeout: Optional[float] = None):
        self.circuits_path = Path(circuits_path)
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        command = [self.binary, *args]
        logger.debug(f"Running {' '.join(command)}")
        return subprocess.run(command, capture_output=True, text=True, timeout=self.timeout)

    def circuit_dir(self, circuit_name: str) -> Path:
        return self.circuits_path / circuit_name


class SnarkjsBackend(_SnarkjsCommand, ProverBackend):
    """Groth16 proving through ``snarkjs groth16 fullprove``."""

    def artifacts(self, circuit_name: str) -> Tuple[Path, Path]:
        base = self.circuit_dir(circuit_name)
        wasm = base / f"{circuit_name}_js" / f"{circuit_name}.wasm"
        zkey = base / f"{circuit_name}_final.zkey"
        return wasm, zkey

    def prove(self, circuit_name: str, inputs: dict) -> Tuple[Groth16Proof, List[int]]:
        wasm, zkey = self.artifacts(circuit_name)
        for artifact in (wasm, zkey):
            if not artifact.exists():
                raise ProofGenerationError(f"Missing circuit artifact: {artifact}")

        with tempfile.TemporaryDirectory(prefix="shadow-prove-") as tmp:
            tmp_path = Path(tmp)
            input_file = tmp_path / "input.json"
            proof_file = tmp_path / "proof.json"
            public_file = tmp_path / "public.json"
            input_file.write_text(json.dumps(inputs))

            try:
                result = self._run(
                    "groth16", "fullprove",
                    str(input_file), str(wasm), str(zkey), str(proof_file), str(public_file),
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                raise ProofGenerationError(f"snarkjs could not be run: {e}") from e

            if result.returncode != 0:
                raise ProofGenerationError(f"snarkjs fullprove failed: {result.stderr.strip()}")

            try:
                proof = Groth16Proof.from_dict(json.loads(proof_file.read_text()))
                public_signals = [int(s) for s in json.loads(public_file.read_text())]
            except (OSError, ValueError, InvalidProofError) as e:
                raise ProofGenerationError(f"Could not read snarkjs output: {e}") from e

        logger.info(f"Generated {circuit_name} proof")
        return proof, public_signals


class SnarkjsVerifier(_SnarkjsCommand, ProofVerifier):
    """Groth16 verification through ``snarkjs groth16 verify``."""

    def verification_key(self, circuit_name: str) -> Path:
        return self.circuit_dir(circuit_name) / "verification_key.json"

    def verify(self, circuit_name: str, public_signals: Sequence[int], proof: Groth16Proof) -> bool:
        vkey = self.verification_key(circuit_name)
        if not vkey.exists():
            raise VerificationError(f"Missing verification key: {vkey}")

        with tempfile.TemporaryDirectory(prefix="shadow-verify-") as tmp:
            tmp_path = Path(tmp)
            public_file = tmp_path / "public.json"
            proof_file = tmp_path / "proof.json"
            public_file.write_text(json.dumps([str(s) for s in public_signals]))
            proof_file.write_text(json.dumps(proof.to_dict()))

            try:
                result = self._run("groth16", "verify", str(vkey), str(public_file), str(proof_file))
            except (OSError, subprocess.TimeoutExpired) as e:
                raise VerificationError(f"snarkjs could not be run: {e}") from e

        valid = result.returncode == 0 and "OK" in result.stdout
        if not valid:
            logger.warning(f"{circuit_name} proof rejected by verifier")
        return valid
