"""Declarative rank-1 constraint system builder.

Circuits allocate wires and declare relations ``a * b = c`` between linear
combinations of wires. Values are optional: synthesizing without a witness
yields the constraint shape only, and synthesizing with one lets the solver
check every relation before anything is handed to a proving backend.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from shadow.crypto.field import FIELD_MODULUS, ensure_field_element


@dataclass(frozen=True)
class Variable:
    """A wire in the constraint system. Index 0 is the constant one."""

    index: int

    def lc(self) -> "LinearCombination":
        return LinearCombination({self.index: 1})

    def __add__(self, other):
        return self.lc() + other

    __radd__ = __add__

    def __sub__(self, other):
        return self.lc() - other

    def __rsub__(self, other):
        return as_lc(other) - self.lc()

    def __mul__(self, scalar: int):
        return self.lc() * scalar

    __rmul__ = __mul__

    def __neg__(self):
        return -self.lc()


ONE = Variable(0)

Term = Union[Variable, "LinearCombination", int]


class LinearCombination:
    """Sparse map from wire index to coefficient, reduced mod p."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None):
        self.terms: Dict[int, int] = {}
        if terms:
            for index, coeff in terms.items():
                coeff %= FIELD_MODULUS
                if coeff:
                    self.terms[index] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({ONE.index: value})

    def _combine(self, other: Term, sign: int) -> "LinearCombination":
        result = dict(self.terms)
        for index, coeff in as_lc(other).terms.items():
            result[index] = (result.get(index, 0) + sign * coeff) % FIELD_MODULUS
        return LinearCombination(result)

    def __add__(self, other: Term) -> "LinearCombination":
        return self._combine(other, 1)

    __radd__ = __add__

    def __sub__(self, other: Term) -> "LinearCombination":
        return self._combine(other, -1)

    def __rsub__(self, other: Term) -> "LinearCombination":
        return as_lc(other) - self

    def __mul__(self, scalar: int) -> "LinearCombination":
        if not isinstance(scalar, int):
            raise TypeError("LinearCombination can only be scaled by an int")
        return LinearCombination({i: c * scalar for i, c in self.terms.items()})

    __rmul__ = __mul__

    def __neg__(self) -> "LinearCombination":
        return self * -1

    def __len__(self) -> int:
        return len(self.terms)

    def __repr__(self) -> str:
        return f"LinearCombination({len(self.terms)} terms)"


def as_lc(value: Term) -> LinearCombination:
    """Coerce a variable, constant or linear combination."""
    if isinstance(value, LinearCombination):
        return value
    if isinstance(value, Variable):
        return value.lc()
    if isinstance(value, int):
        return LinearCombination.constant(value)
    raise TypeError(f"Cannot use {type(value).__name__} in a constraint")


@dataclass
class Constraint:
    a: LinearCombination
    b: LinearCombination
    c: LinearCombination
    annotation: str


class ConstraintSystem:
    """
    R1CS under construction.

    Public inputs must be allocated before any private wire so their order
    in ``public_inputs()`` matches the order the verifier expects.
    """

    def __init__(self):
        self._values: List[Optional[int]] = [1]
        self._names: List[str] = ["one"]
        self._public: List[int] = []
        self._public_used: List[int] = []
        self.constraints: List[Constraint] = []

    # Allocation

    def _alloc(self, name: str, value: Optional[int]) -> Variable:
        if value is not None:
            ensure_field_element(value, name)
        self._values.append(value)
        self._names.append(name)
        return Variable(len(self._values) - 1)

    def alloc_public(self, name: str, value: Optional[int] = None) -> Variable:
        if len(self._values) - 1 != len(self._public):
            raise RuntimeError("Public inputs must be allocated before private wires")
        var = self._alloc(name, value)
        self._public.append(var.index)
        return var

    def alloc_private(self, name: str, value: Optional[int] = None) -> Variable:
        return self._alloc(name, value)

    # Relations

    def enforce(self, a: Term, b: Term, c: Term, annotation: str) -> None:
        """Declare a * b = c."""
        self.constraints.append(Constraint(as_lc(a), as_lc(b), as_lc(c), annotation))

    def enforce_equal(self, left: Term, right: Term, annotation: str) -> None:
        """Declare left = right, as (left - right) * 1 = 0."""
        self.enforce(as_lc(left) - right, ONE, 0, annotation)

    def enforce_boolean(self, var: Term, annotation: str) -> None:
        """Declare var * (1 - var) = 0."""
        self.enforce(var, ONE - as_lc(var), 0, annotation)

    def declare_public_used(self, var: Variable, annotation: Optional[str] = None) -> None:
        """
        Bind a public input that no other relation touches.

        Emitted as ``var * 1 = var`` so the wire appears in the constraint
        matrices and the proof commits to its value.
        """
        if var.index not in self._public:
            raise ValueError("Only public inputs can be declared as used")
        self._public_used.append(var.index)
        self.enforce(var, ONE, var, annotation or f"public-binding:{self._names[var.index]}")

    # Evaluation

    def value(self, term: Term) -> Optional[int]:
        """Evaluate a term under the current assignment, or None if unknown."""
        total = 0
        for index, coeff in as_lc(term).terms.items():
            v = self._values[index]
            if v is None:
                return None
            total += coeff * v
        return total % FIELD_MODULUS

    @property
    def has_witness(self) -> bool:
        return all(v is not None for v in self._values)

    def first_unsatisfied(self) -> Optional[str]:
        """
        Annotation of the first failing constraint, or None if all hold.

        Raises:
            ValueError: If the system was synthesized without a witness
        """
        if not self.has_witness:
            raise ValueError("Cannot check a constraint system without a witness")

        for constraint in self.constraints:
            a = self.value(constraint.a)
            b = self.value(constraint.b)
            c = self.value(constraint.c)
            if (a * b - c) % FIELD_MODULUS != 0:
                return constraint.annotation
        return None

    def is_satisfied(self) -> bool:
        return self.first_unsatisfied() is None

    # Introspection

    def public_inputs(self) -> List[Tuple[str, Optional[int]]]:
        return [(self._names[i], self._values[i]) for i in self._public]

    def public_values(self) -> List[Optional[int]]:
        return [self._values[i] for i in self._public]

    def public_inputs_used(self) -> List[str]:
        return [self._names[i] for i in self._public_used]

    def name_of(self, var: Variable) -> str:
        return self._names[var.index]

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    @property
    def num_variables(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return (
            f"ConstraintSystem(constraints={self.num_constraints}, "
            f"variables={self.num_variables}, public={len(self._public)})"
        )


def lc_sum(terms: Iterable[Term]) -> LinearCombination:
    total = LinearCombination()
    for term in terms:
        total = total + term
    return total
