"""Commitment and nullifier hash generation."""

from dataclasses import dataclass
from typing import Optional

from shadow.crypto.field import ensure_field_element, random_field_element
from shadow.crypto.poseidon import poseidon_hash
from shadow.exceptions import InvalidFieldElementError


@dataclass
class Deposit:
    """A private (secret, nullifier) pair and its public commitment."""

    secret: int
    nullifier: int
    commitment: int
    leaf_index: Optional[int] = None

    def withdrawal_nullifier_hash(self) -> int:
        """Nullifier hash bound to this deposit's leaf index."""
        if self.leaf_index is None:
            raise ValueError("Deposit has no leaf index yet")
        return Commitment.nullifier_hash(self.nullifier, self.leaf_index)


class Commitment:
    """
    Commitment engine.

    commitment     = H(secret, nullifier)
    nullifier_hash = H(nullifier, binding_value)

    The binding value is the leaf index for withdrawals and the external
    nullifier for identity signals.
    """

    @staticmethod
    def generate() -> Deposit:
        """
        Sample a fresh (secret, nullifier) pair from the OS CSPRNG.

        Returns:
            Deposit: Secret, nullifier and commitment, without a leaf index
        """
        secret = random_field_element()
        nullifier = random_field_element()
        return Deposit(
            secret=secret,
            nullifier=nullifier,
            commitment=Commitment.compute_commitment(secret, nullifier),
        )

    @staticmethod
    def compute_commitment(secret: int, nullifier: int) -> int:
        """
        Compute commitment C = H(secret, nullifier).

        Raises:
            InvalidFieldElementError: If either input is not a field element
        """
        ensure_field_element(secret, "secret")
        ensure_field_element(nullifier, "nullifier")
        return poseidon_hash(secret, nullifier)

    @staticmethod
    def nullifier_hash(nullifier: int, binding_value: int) -> int:
        """
        Compute nullifier hash H(nullifier, binding_value).

        Args:
            nullifier: Private nullifier
            binding_value: Leaf index or external nullifier

        Returns:
            int: Public nullifier hash
        """
        ensure_field_element(nullifier, "nullifier")
        ensure_field_element(binding_value, "binding_value")
        return poseidon_hash(nullifier, binding_value)

    @staticmethod
    def withdrawal_nullifier_hash(nullifier: int, leaf_index: int) -> int:
        return Commitment.nullifier_hash(nullifier, leaf_index)

    @staticmethod
    def identity_nullifier_hash(identity_nullifier: int, external_nullifier: int) -> int:
        return Commitment.nullifier_hash(identity_nullifier, external_nullifier)

    @staticmethod
    def verify_commitment(secret: int, nullifier: int, expected_commitment: int) -> bool:
        """
        Verify that a commitment matches the given secret and nullifier.

        Returns:
            bool: True if commitment is valid, False otherwise
        """
        try:
            return Commitment.compute_commitment(secret, nullifier) == expected_commitment
        except InvalidFieldElementError:
            return False
