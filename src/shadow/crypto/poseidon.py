"""Poseidon hash over the BN254 scalar field.

The tree, the commitment engine and the circuit gadgets all call this module.
Proofs only verify if every component hashes with the same parameters, so
they all share one parameter object from here.

Parameters:
    - S-box x^5, 8 full rounds, partial rounds per width as used for BN254
    - Round constants drawn from the Grain LFSR described in the Poseidon
      paper (Grassi et al., 2019, Appendix F)
    - MDS matrix is the Cauchy matrix M[i][j] = 1 / (x_i + y_j), with the
      x_i and y_j drawn from the same LFSR stream after the round constants

These are the parameters circomlib ships, so hashes computed here match the
circom withdraw and humanship circuits.

Example Usage:
    >>> from shadow.crypto.poseidon import poseidon_hash
    >>> parent = poseidon_hash(left, right)
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Tuple

from shadow.crypto.field import FIELD_MODULUS, ensure_field_element

FULL_ROUNDS = 8
ALPHA = 5

# Partial rounds for 128-bit security with alpha = 5 on BN254, keyed by width
PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56, 5: 60, 6: 60, 7: 63, 8: 64, 9: 63}


@dataclass(frozen=True)
class PoseidonParams:
    """Round constants and MDS matrix for one state width."""

    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, r: int) -> bool:
        half = self.full_rounds // 2
        return r < half or r >= half + self.partial_rounds

    def constants_for_round(self, r: int) -> Tuple[int, ...]:
        return self.round_constants[r * self.t:(r + 1) * self.t]


class _GrainLFSR:
    """80-bit Grain LFSR in self-shrinking mode."""

    def __init__(self, field_size: int, t: int, full_rounds: int, partial_rounds: int):
        self.state: List[int] = (
            _bits(1, 2)  # prime field
            + _bits(0, 4)  # x^alpha S-box
            + _bits(field_size, 12)
            + _bits(t, 12)
            + _bits(full_rounds, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        for _ in range(160):
            self._step()

    def _step(self) -> int:
        s = self.state
        new_bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(new_bit)
        return new_bit

    def next_bit(self) -> int:
        while True:
            if self._step() == 1:
                return self._step()
            self._step()

    def next_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self, num_bits: int) -> int:
        while True:
            value = self.next_int(num_bits)
            if value < FIELD_MODULUS:
                return value


def _bits(value: int, width: int) -> List[int]:
    return [int(b) for b in bin(value)[2:].zfill(width)]


def _grain_mds(lfsr: _GrainLFSR, field_size: int, t: int) -> Tuple[Tuple[int, ...], ...]:
    """Cauchy matrix over 2t field elements drawn from the LFSR stream."""
    p = FIELD_MODULUS
    while True:
        values = [lfsr.next_int(field_size) % p for _ in range(2 * t)]
        while len(set(values)) != len(values):
            values = [lfsr.next_int(field_size) % p for _ in range(2 * t)]
        xs, ys = values[:t], values[t:]
        if any((x + y) % p == 0 for x in xs for y in ys):
            continue
        return tuple(
            tuple(pow(x + y, -1, p) for y in ys)
            for x in xs
        )


@lru_cache(maxsize=None)
def get_params(t: int = 3) -> PoseidonParams:
    """
    Build (once) the parameters for state width t.

    Args:
        t: State width, number of inputs plus one capacity element

    Returns:
        PoseidonParams: Cached parameter set

    Raises:
        ValueError: If no partial round count is known for t
    """
    if t not in PARTIAL_ROUNDS:
        raise ValueError(f"Unsupported Poseidon width: {t}")

    partial_rounds = PARTIAL_ROUNDS[t]
    field_size = FIELD_MODULUS.bit_length()
    lfsr = _GrainLFSR(field_size, t, FULL_ROUNDS, partial_rounds)

    num_constants = (FULL_ROUNDS + partial_rounds) * t
    constants = tuple(lfsr.next_field_element(field_size) for _ in range(num_constants))

    return PoseidonParams(
        t=t,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=constants,
        mds=_grain_mds(lfsr, field_size, t),
    )


def poseidon_permutation(state: List[int], params: PoseidonParams) -> List[int]:
    """Apply the full Poseidon permutation to a state of width params.t."""
    p = FIELD_MODULUS
    t = params.t
    state = list(state)

    for r in range(params.total_rounds):
        constants = params.constants_for_round(r)
        state = [(state[i] + constants[i]) % p for i in range(t)]

        if params.is_full_round(r):
            state = [pow(x, ALPHA, p) for x in state]
        else:
            state[0] = pow(state[0], ALPHA, p)

        state = [
            sum(params.mds[i][j] * state[j] for j in range(t)) % p
            for i in range(t)
        ]

    return state


def poseidon_hash(*inputs: int) -> int:
    """
    Hash one or more field elements.

    Args:
        *inputs: Canonical field elements

    Returns:
        int: First state element after the permutation

    Raises:
        InvalidFieldElementError: If any input is not in [0, p)
    """
    if not inputs:
        raise ValueError("poseidon_hash requires at least one input")
    for i, value in enumerate(inputs):
        ensure_field_element(value, f"input[{i}]")

    params = get_params(len(inputs) + 1)
    return poseidon_permutation([0, *inputs], params)[0]
