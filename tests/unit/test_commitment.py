"""Tests for the commitment engine and deposit notes."""

import base64
import json

import pytest

from shadow.core.commitment import Commitment, Deposit
from shadow.core.note import NOTE_PREFIX, deserialize_note, serialize_note
from shadow.crypto.field import FIELD_MODULUS
from shadow.crypto.poseidon import poseidon_hash
from shadow.exceptions import InvalidFieldElementError, InvalidNoteError


def _note_from_payload(payload) -> str:
    return NOTE_PREFIX + base64.b64encode(json.dumps(payload).encode()).decode()


class TestCommitmentGeneration:
    """Tests for deposit generation."""

    def test_generate(self):
        """Test a fresh deposit has consistent fields."""
        deposit = Commitment.generate()
        assert 0 < deposit.secret < FIELD_MODULUS
        assert 0 < deposit.nullifier < FIELD_MODULUS
        assert deposit.secret != deposit.nullifier
        assert deposit.commitment == poseidon_hash(deposit.secret, deposit.nullifier)
        assert deposit.leaf_index is None

    def test_generate_unique(self):
        """Test independent deposits never collide."""
        commitments = {Commitment.generate().commitment for _ in range(20)}
        assert len(commitments) == 20

    def test_compute_commitment_deterministic(self):
        assert Commitment.compute_commitment(11, 22) == Commitment.compute_commitment(11, 22)

    def test_compute_commitment_rejects_out_of_range(self):
        with pytest.raises(InvalidFieldElementError):
            Commitment.compute_commitment(FIELD_MODULUS, 1)


class TestNullifierHash:
    """Tests for nullifier hashes."""

    def test_withdrawal_binding(self):
        """Test the same nullifier at two leaf indices yields two hashes."""
        nullifier = 424242
        assert Commitment.withdrawal_nullifier_hash(nullifier, 0) != Commitment.withdrawal_nullifier_hash(nullifier, 1)

    def test_identity_binding(self):
        """Test identity hashes differ per external nullifier and are stable."""
        identity_nullifier = 99
        a = Commitment.identity_nullifier_hash(identity_nullifier, 1)
        b = Commitment.identity_nullifier_hash(identity_nullifier, 2)
        assert a != b
        assert a == Commitment.identity_nullifier_hash(identity_nullifier, 1)

    def test_deposit_nullifier_hash_requires_index(self):
        deposit = Commitment.generate()
        with pytest.raises(ValueError):
            deposit.withdrawal_nullifier_hash()
        deposit.leaf_index = 3
        assert deposit.withdrawal_nullifier_hash() == poseidon_hash(deposit.nullifier, 3)


class TestVerifyCommitment:
    """Tests for commitment verification."""

    def test_valid(self):
        deposit = Commitment.generate()
        assert Commitment.verify_commitment(deposit.secret, deposit.nullifier, deposit.commitment)

    def test_wrong_secret(self):
        deposit = Commitment.generate()
        assert not Commitment.verify_commitment(deposit.secret + 1, deposit.nullifier, deposit.commitment)

    def test_malformed_returns_false(self):
        """Test verification never raises on bad input."""
        assert not Commitment.verify_commitment(-1, 1, 0)
        assert not Commitment.verify_commitment("a", 1, 0)


class TestNotes:
    """Tests for note serialization."""

    def test_round_trip(self):
        deposit = Commitment.generate()
        deposit.leaf_index = 7
        note = serialize_note(deposit)
        assert note.startswith(NOTE_PREFIX)
        assert deserialize_note(note) == deposit

    def test_round_trip_without_index(self):
        deposit = Commitment.generate()
        assert deserialize_note(serialize_note(deposit)).leaf_index is None

    def test_bad_prefix(self):
        with pytest.raises(InvalidNoteError):
            deserialize_note("tornado-note-v1:abc")
        with pytest.raises(InvalidNoteError):
            deserialize_note(None)

    def test_bad_base64(self):
        with pytest.raises(InvalidNoteError):
            deserialize_note(NOTE_PREFIX + "!!!")

    def test_missing_field(self):
        deposit = Commitment.generate()
        with pytest.raises(InvalidNoteError):
            deserialize_note(_note_from_payload({"s": str(deposit.secret), "c": str(deposit.commitment)}))

    def test_tampered_commitment(self):
        """Test a note whose commitment does not match is rejected."""
        deposit = Commitment.generate()
        payload = {"s": str(deposit.secret), "n": str(deposit.nullifier), "c": str(deposit.commitment + 1), "i": 0}
        with pytest.raises(InvalidNoteError, match="does not match"):
            deserialize_note(_note_from_payload(payload))

    def test_invalid_leaf_index(self):
        deposit = Commitment.generate()
        for bad in (-1, True, "3"):
            payload = {"s": str(deposit.secret), "n": str(deposit.nullifier), "c": str(deposit.commitment), "i": bad}
            with pytest.raises(InvalidNoteError):
                deserialize_note(_note_from_payload(payload))

    def test_out_of_range_values(self):
        payload = {"s": str(FIELD_MODULUS), "n": "1", "c": "1", "i": None}
        with pytest.raises(InvalidNoteError):
            deserialize_note(_note_from_payload(payload))

    def test_note_is_deposit(self):
        deposit = Commitment.generate()
        assert isinstance(deserialize_note(serialize_note(deposit)), Deposit)
