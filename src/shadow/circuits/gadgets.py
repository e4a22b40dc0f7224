"""Reusable constraint gadgets: Poseidon, conditional swap, bit packing."""

from typing import List, Optional, Sequence, Tuple

from shadow.circuits.constraint_system import (
    ConstraintSystem,
    LinearCombination,
    Term,
    Variable,
    as_lc,
    lc_sum,
)
from shadow.crypto.field import FIELD_MODULUS
from shadow.crypto.poseidon import get_params


def _known(*values: Optional[int]) -> bool:
    return all(v is not None for v in values)


def sbox(cs: ConstraintSystem, x: Term, annotation: str) -> Variable:
    """
    Allocate y = x^5 with three multiplication constraints.

    x2 = x * x, x4 = x2 * x2, y = x4 * x
    """
    xv = cs.value(x)
    x2v = xv * xv % FIELD_MODULUS if _known(xv) else None
    x4v = x2v * x2v % FIELD_MODULUS if _known(x2v) else None
    x5v = x4v * xv % FIELD_MODULUS if _known(x4v) else None

    x2 = cs.alloc_private(f"{annotation}.x2", x2v)
    cs.enforce(x, x, x2, f"{annotation}.x2")
    x4 = cs.alloc_private(f"{annotation}.x4", x4v)
    cs.enforce(x2, x2, x4, f"{annotation}.x4")
    x5 = cs.alloc_private(f"{annotation}.x5", x5v)
    cs.enforce(x4, x, x5, f"{annotation}.x5")
    return x5


def poseidon(cs: ConstraintSystem, inputs: Sequence[Term], annotation: str = "poseidon") -> LinearCombination:
    """
    Constrain the Poseidon hash of ``inputs``.

    Uses the same parameter set as shadow.crypto.poseidon, so the output
    equals poseidon_hash on the same values. Only the S-boxes cost
    constraints; round constants and the MDS layer stay linear.
    """
    params = get_params(len(inputs) + 1)
    t = params.t
    state: List[LinearCombination] = [LinearCombination()] + [as_lc(x) for x in inputs]

    for r in range(params.total_rounds):
        constants = params.constants_for_round(r)
        state = [state[i] + constants[i] for i in range(t)]

        if params.is_full_round(r):
            state = [sbox(cs, state[i], f"{annotation}.r{r}.s{i}").lc() for i in range(t)]
        else:
            state[0] = sbox(cs, state[0], f"{annotation}.r{r}.s0").lc()

        state = [
            lc_sum(state[j] * params.mds[i][j] for j in range(t))
            for i in range(t)
        ]

    return state[0]


def conditional_swap(
    cs: ConstraintSystem, bit: Term, a: Term, b: Term, annotation: str
) -> Tuple[LinearCombination, LinearCombination]:
    """
    Return (a, b) when bit is 0 and (b, a) when bit is 1.

    One constraint: d = bit * (b - a); left = a + d, right = b - d.
    The caller is responsible for constraining bit to be boolean.
    """
    a_lc = as_lc(a)
    b_lc = as_lc(b)
    bit_v, a_v, b_v = cs.value(bit), cs.value(a_lc), cs.value(b_lc)
    d_v = bit_v * (b_v - a_v) % FIELD_MODULUS if _known(bit_v, a_v, b_v) else None

    d = cs.alloc_private(f"{annotation}.swap", d_v)
    cs.enforce(bit, b_lc - a_lc, d, f"{annotation}.swap")
    return a_lc + d, b_lc - d


def bits_to_num(bits: Sequence[Term]) -> LinearCombination:
    """Little-endian packing: sum(bits[i] * 2^i)."""
    return lc_sum(as_lc(bit) * (1 << i) for i, bit in enumerate(bits))
