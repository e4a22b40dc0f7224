"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "Shadow Protocol Team"
__description__ = "Shadow Protocol: anonymity pool, identity group and stealth addresses over BN254"

from .core.commitment import Commitment, Deposit
from .core.merkle_tree import MerkleTree, MerkleProof
from .core.accumulator import PoolAccumulator
from .core.pool import ShadowPool
from .core.identity import Identity, IdentityGroup
from .core.client import ShadowClient

__all__ = [
    "Commitment",
    "Deposit",
    "MerkleTree",
    "MerkleProof",
    "PoolAccumulator",
    "ShadowPool",
    "Identity",
    "IdentityGroup",
    "ShadowClient",
]
