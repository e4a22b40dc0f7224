"""Tests for the R1CS builder and gadgets."""

import pytest

from shadow.circuits.constraint_system import ONE, ConstraintSystem, LinearCombination, as_lc
from shadow.circuits.gadgets import bits_to_num, conditional_swap, poseidon, sbox
from shadow.crypto.field import FIELD_MODULUS
from shadow.crypto.poseidon import poseidon_hash
from shadow.exceptions import InvalidFieldElementError


class TestLinearCombination:
    """Tests for linear combination arithmetic."""

    def test_constant(self):
        cs = ConstraintSystem()
        assert cs.value(LinearCombination.constant(7)) == 7

    def test_arithmetic(self):
        cs = ConstraintSystem()
        x = cs.alloc_private("x", 3)
        y = cs.alloc_private("y", 5)
        assert cs.value(x + y) == 8
        assert cs.value(x - y) == FIELD_MODULUS - 2
        assert cs.value(x * 4 + 1) == 13
        assert cs.value(-x) == FIELD_MODULUS - 3

    def test_cancellation_drops_terms(self):
        cs = ConstraintSystem()
        x = cs.alloc_private("x", 3)
        assert len(as_lc(x) - x) == 0

    def test_as_lc_rejects_other_types(self):
        with pytest.raises(TypeError):
            as_lc("x")


class TestConstraintSystem:
    """Tests for allocation and satisfaction."""

    def test_public_before_private(self):
        cs = ConstraintSystem()
        cs.alloc_public("a", 1)
        cs.alloc_private("b", 2)
        with pytest.raises(RuntimeError):
            cs.alloc_public("c", 3)

    def test_alloc_rejects_non_field(self):
        cs = ConstraintSystem()
        with pytest.raises(InvalidFieldElementError):
            cs.alloc_private("x", FIELD_MODULUS)

    def test_multiplication(self):
        cs = ConstraintSystem()
        a = cs.alloc_private("a", 6)
        b = cs.alloc_private("b", 7)
        c = cs.alloc_private("c", 42)
        cs.enforce(a, b, c, "mul")
        assert cs.is_satisfied()

        bad = ConstraintSystem()
        a = bad.alloc_private("a", 6)
        b = bad.alloc_private("b", 7)
        c = bad.alloc_private("c", 41)
        bad.enforce(a, b, c, "mul")
        assert bad.first_unsatisfied() == "mul"

    def test_boolean(self):
        for value, ok in ((0, True), (1, True), (2, False)):
            cs = ConstraintSystem()
            bit = cs.alloc_private("bit", value)
            cs.enforce_boolean(bit, "bit")
            assert cs.is_satisfied() is ok

    def test_declare_public_used(self):
        cs = ConstraintSystem()
        fee = cs.alloc_public("fee", 10)
        cs.declare_public_used(fee)
        assert cs.public_inputs_used() == ["fee"]
        assert cs.constraints[-1].annotation == "public-binding:fee"
        assert cs.is_satisfied()

    def test_declare_private_rejected(self):
        cs = ConstraintSystem()
        x = cs.alloc_private("x", 1)
        with pytest.raises(ValueError):
            cs.declare_public_used(x)

    def test_check_without_witness(self):
        cs = ConstraintSystem()
        x = cs.alloc_private("x")
        cs.enforce_boolean(x, "bit")
        assert not cs.has_witness
        assert cs.value(x) is None
        with pytest.raises(ValueError):
            cs.first_unsatisfied()

    def test_public_introspection(self):
        cs = ConstraintSystem()
        cs.alloc_public("root", 9)
        cs.alloc_public("fee", 1)
        assert cs.public_inputs() == [("root", 9), ("fee", 1)]
        assert cs.public_values() == [9, 1]
        assert cs.name_of(ONE) == "one"


class TestGadgets:
    """Tests for reusable gadgets."""

    def test_sbox(self):
        cs = ConstraintSystem()
        x = cs.alloc_private("x", 3)
        y = sbox(cs, x, "s")
        assert cs.value(y) == 243
        assert cs.num_constraints == 3
        assert cs.is_satisfied()

    def test_poseidon_matches_native(self):
        """Test the in-circuit hash equals the native hash."""
        cs = ConstraintSystem()
        a = cs.alloc_private("a", 123)
        b = cs.alloc_private("b", 456)
        out = poseidon(cs, [a, b])
        assert cs.value(out) == poseidon_hash(123, 456)
        assert cs.is_satisfied()

    def test_poseidon_single_input(self):
        cs = ConstraintSystem()
        a = cs.alloc_private("a", 5)
        assert cs.value(poseidon(cs, [a])) == poseidon_hash(5)

    def test_poseidon_constraint_count(self):
        """Test only S-boxes cost constraints: 3 per S-box."""
        cs = ConstraintSystem()
        a = cs.alloc_private("a", 1)
        b = cs.alloc_private("b", 2)
        poseidon(cs, [a, b])
        assert cs.num_constraints == 3 * (8 * 3 + 57)

    def test_conditional_swap(self):
        for bit_value, expected in ((0, (10, 20)), (1, (20, 10))):
            cs = ConstraintSystem()
            bit = cs.alloc_private("bit", bit_value)
            a = cs.alloc_private("a", 10)
            b = cs.alloc_private("b", 20)
            left, right = conditional_swap(cs, bit, a, b, "swap")
            assert (cs.value(left), cs.value(right)) == expected
            assert cs.is_satisfied()

    def test_bits_to_num(self):
        cs = ConstraintSystem()
        bits = [cs.alloc_private(f"b{i}", v) for i, v in enumerate([1, 0, 1, 1])]
        assert cs.value(bits_to_num(bits)) == 13
