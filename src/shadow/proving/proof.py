"""Groth16 proof objects and the ledger byte layout.

Ledger layout (256 bytes, big-endian 32-byte words):

    A  = x || y                      64 bytes, G1
    B  = x1 || x0 || y1 || y0        128 bytes, G2
    C  = x || y                      64 bytes, G1

The prover emits each G2 coordinate as (c0, c1); the ledger's bn254
syscalls expect (c1, c0), so B's sub-coordinates are swapped on the way
out and swapped back on the way in.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from shadow.crypto.field import BASE_FIELD_MODULUS, DEFAULT_ADDRESS, address_to_field, field_to_hex
from shadow.exceptions import InvalidProofError

G1 = Tuple[int, int]
G2 = Tuple[Tuple[int, int], Tuple[int, int]]

WORD = 32
G1_SIZE = 2 * WORD
G2_SIZE = 4 * WORD
PROOF_SIZE = 2 * G1_SIZE + G2_SIZE


def _word(value: int) -> bytes:
    return value.to_bytes(WORD, "big")


def _read_words(data: bytes, count: int) -> List[int]:
    return [int.from_bytes(data[i * WORD:(i + 1) * WORD], "big") for i in range(count)]


@dataclass(frozen=True)
class Groth16Proof:
    """Proof points as integers: a in G1, b in G2 as ((x0, x1), (y0, y1)), c in G1."""

    a: G1
    b: G2
    c: G1
    protocol: str = "groth16"
    curve: str = "bn128"

    def __post_init__(self):
        coordinates = [*self.a, *self.b[0], *self.b[1], *self.c]
        for value in coordinates:
            if not isinstance(value, int) or not 0 <= value < BASE_FIELD_MODULUS:
                raise InvalidProofError("Proof coordinate out of range")

    def to_dict(self) -> dict:
        """snarkjs JSON layout, projective with z = 1."""
        return {
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [
                [str(self.b[0][0]), str(self.b[0][1])],
                [str(self.b[1][0]), str(self.b[1][1])],
                ["1", "0"],
            ],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
            "protocol": self.protocol,
            "curve": self.curve,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Groth16Proof":
        """
        Parse the snarkjs JSON layout.

        Raises:
            InvalidProofError: If the structure or values are malformed
        """
        try:
            pi_a, pi_b, pi_c = data["pi_a"], data["pi_b"], data["pi_c"]
            return cls(
                a=(int(pi_a[0]), int(pi_a[1])),
                b=(
                    (int(pi_b[0][0]), int(pi_b[0][1])),
                    (int(pi_b[1][0]), int(pi_b[1][1])),
                ),
                c=(int(pi_c[0]), int(pi_c[1])),
                protocol=data.get("protocol", "groth16"),
                curve=data.get("curve", "bn128"),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise InvalidProofError(f"Malformed proof: {e}") from e

    def to_ledger_parts(self) -> Tuple[bytes, bytes, bytes]:
        """(A, B, C) with B's sub-coordinates swapped for the ledger verifier."""
        (x0, x1), (y0, y1) = self.b
        a = _word(self.a[0]) + _word(self.a[1])
        b = _word(x1) + _word(x0) + _word(y1) + _word(y0)
        c = _word(self.c[0]) + _word(self.c[1])
        return a, b, c

    def to_bytes(self) -> bytes:
        return b"".join(self.to_ledger_parts())

    @classmethod
    def from_bytes(cls, data: bytes) -> "Groth16Proof":
        """
        Parse the 256-byte ledger layout, undoing the G2 swap.

        Raises:
            InvalidProofError: If the length or a coordinate is invalid
        """
        if not isinstance(data, bytes) or len(data) != PROOF_SIZE:
            raise InvalidProofError(f"Proof must be {PROOF_SIZE} bytes")

        ax, ay = _read_words(data[:G1_SIZE], 2)
        bx1, bx0, by1, by0 = _read_words(data[G1_SIZE:G1_SIZE + G2_SIZE], 4)
        cx, cy = _read_words(data[G1_SIZE + G2_SIZE:], 2)
        return cls(a=(ax, ay), b=((bx0, bx1), (by0, by1)), c=(cx, cy))


@dataclass
class WithdrawalPackage:
    """Everything the ledger needs to process one withdrawal."""

    root: int
    nullifier_hash: int
    recipient: str
    fee: int
    proof: Groth16Proof
    relayer: str = DEFAULT_ADDRESS

    def public_signals(self) -> List[int]:
        return [
            self.root,
            self.nullifier_hash,
            address_to_field(self.recipient),
            address_to_field(self.relayer),
            self.fee,
        ]

    def to_ledger_bytes(self) -> bytes:
        """Proof bytes followed by root and nullifier hash."""
        return self.proof.to_bytes() + _word(self.root) + _word(self.nullifier_hash)

    def to_dict(self) -> dict:
        return {
            "root": field_to_hex(self.root),
            "nullifier_hash": field_to_hex(self.nullifier_hash),
            "recipient": self.recipient,
            "relayer": self.relayer,
            "fee": self.fee,
            "proof": self.proof.to_dict(),
        }


@dataclass
class SignalPackage:
    """Identity signal: a humanship proof scoped to one external nullifier."""

    root: int
    nullifier_hash: int
    external_nullifier: int
    signal_hash: int
    proof: Groth16Proof
    signal: str = field(default="")

    def public_signals(self) -> List[int]:
        return [self.root, self.nullifier_hash, self.external_nullifier, self.signal_hash]

    def to_dict(self) -> dict:
        return {
            "root": field_to_hex(self.root),
            "nullifier_hash": field_to_hex(self.nullifier_hash),
            "external_nullifier": field_to_hex(self.external_nullifier),
            "signal_hash": field_to_hex(self.signal_hash),
            "signal": self.signal,
            "proof": self.proof.to_dict(),
        }
