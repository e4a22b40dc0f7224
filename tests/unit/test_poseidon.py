"""Tests for the Poseidon hash."""

import pytest

from shadow.core.commitment import Commitment
from shadow.crypto.field import FIELD_MODULUS
from shadow.crypto.poseidon import (
    FULL_ROUNDS,
    PARTIAL_ROUNDS,
    get_params,
    poseidon_hash,
    poseidon_permutation,
)
from shadow.exceptions import InvalidFieldElementError


class TestPoseidonParams:
    """Tests for parameter generation."""

    def test_width_three_shape(self):
        """Test round counts and constant count for two inputs."""
        params = get_params(3)
        assert params.full_rounds == FULL_ROUNDS
        assert params.partial_rounds == PARTIAL_ROUNDS[3]
        assert len(params.round_constants) == params.total_rounds * 3
        assert len(params.mds) == 3 and all(len(row) == 3 for row in params.mds)

    def test_constants_are_field_elements(self):
        params = get_params(3)
        assert all(0 <= c < FIELD_MODULUS for c in params.round_constants)
        assert len(set(params.round_constants)) == len(params.round_constants)

    def test_cached(self):
        """Test parameters are built once per width."""
        assert get_params(3) is get_params(3)

    def test_widths_differ(self):
        assert get_params(2).round_constants[:2] != get_params(3).round_constants[:2]

    def test_unsupported_width(self):
        with pytest.raises(ValueError):
            get_params(20)

    def test_round_layout(self):
        """Test full rounds sit at both ends of the schedule."""
        params = get_params(3)
        half = FULL_ROUNDS // 2
        assert all(params.is_full_round(r) for r in range(half))
        assert not params.is_full_round(half)
        assert params.is_full_round(params.total_rounds - 1)

    def test_mds_invertible_entries(self):
        """Test the MDS matrix has no zero entry."""
        params = get_params(3)
        assert all(entry != 0 for row in params.mds for entry in row)


class TestPoseidonHash:
    """Tests for hashing."""

    def test_deterministic(self):
        assert poseidon_hash(1, 2) == poseidon_hash(1, 2)

    def test_order_matters(self):
        assert poseidon_hash(1, 2) != poseidon_hash(2, 1)

    def test_output_in_field(self):
        assert 0 <= poseidon_hash(FIELD_MODULUS - 1, FIELD_MODULUS - 1) < FIELD_MODULUS

    def test_arity_matters(self):
        """Test one- and two-input hashes use different widths."""
        assert poseidon_hash(5) != poseidon_hash(5, 0)

    def test_matches_permutation(self):
        """Test hash is the first element of permute([0, *inputs])."""
        params = get_params(3)
        assert poseidon_hash(7, 9) == poseidon_permutation([0, 7, 9], params)[0]

    def test_zero_inputs_not_fixed_point(self):
        assert poseidon_hash(0, 0) != 0

    def test_rejects_out_of_range(self):
        with pytest.raises(InvalidFieldElementError):
            poseidon_hash(FIELD_MODULUS, 1)
        with pytest.raises(InvalidFieldElementError):
            poseidon_hash(-1, 1)

    def test_requires_input(self):
        with pytest.raises(ValueError):
            poseidon_hash()


class TestCircomlibVectors:
    """Fixed vectors from circomlibjs, which the circom circuits share."""

    def test_first_round_constant(self):
        assert get_params(3).round_constants[0] == 0x0EE9A592BA9A9518D05986D656F40C2114C4993C11BB29938D21D47304CD8E6E

    def test_one_input(self):
        assert poseidon_hash(1) == 18586133768512220936620570745912940619677854269274689475585506675881198879027

    def test_two_inputs(self):
        assert poseidon_hash(1, 2) == 7853200120776062878684798364095072458815029376092732009249414926327459813530

    def test_withdrawal_nullifier_hash(self):
        """Test the withdraw nullifier hash is Poseidon(nullifier, leaf_index)."""
        expected = 7853200120776062878684798364095072458815029376092732009249414926327459813530
        assert Commitment.withdrawal_nullifier_hash(1, 2) == expected
