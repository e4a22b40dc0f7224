"""Pydantic data models for the Shadow REST API.

Field elements travel as 0x-prefixed 32-byte hex strings; addresses as
base58 strings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shadow.crypto.field import DEFAULT_ADDRESS

HEX_FIELD = r"^(0x)?[0-9a-fA-F]{64}$"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    version: str = "1.0.0"


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str = Field(..., description="Error message")
    code: str = Field(..., description="Error class")


class PoolStateResponse(BaseModel):
    """Response model for pool state."""
    root: str = Field(..., description="Current Merkle root (hex)")
    next_index: int = Field(..., description="Next free leaf index")
    denomination: int = Field(..., description="Lamports per deposit")
    depth: int
    capacity: int
    num_deposits: int
    num_withdrawals: int
    root_history_size: int


class DepositRequest(BaseModel):
    """Request model for deposit operations."""
    commitment: str = Field(..., pattern=HEX_FIELD, description="H(secret, nullifier) (hex)")


class DepositResponse(BaseModel):
    """Response model for deposit operations."""
    model_config = ConfigDict(from_attributes=True)

    commitment: str = Field(..., description="Commitment (hex)")
    leaf_index: int = Field(..., description="Index in Merkle tree")
    root: str = Field(..., description="Merkle root after insertion (hex)")
    timestamp: datetime


class MerkleProofResponse(BaseModel):
    """Inclusion path for one leaf."""
    root: str
    leaf: str
    leaf_index: int
    siblings: List[str]
    directions: List[int]


class ProofModel(BaseModel):
    """Groth16 proof in snarkjs JSON layout."""
    pi_a: List[str] = Field(..., min_length=2, max_length=3)
    pi_b: List[List[str]] = Field(..., min_length=2, max_length=3)
    pi_c: List[str] = Field(..., min_length=2, max_length=3)
    protocol: str = "groth16"
    curve: str = "bn128"


class WithdrawalRequest(BaseModel):
    """Request model for withdrawal operations."""
    root: str = Field(..., pattern=HEX_FIELD, description="Root the proof was built against (hex)")
    nullifier_hash: str = Field(..., pattern=HEX_FIELD, description="H(nullifier, leafIndex) (hex)")
    recipient: str = Field(..., min_length=32, max_length=44, description="Recipient address (base58)")
    relayer: str = Field(default=DEFAULT_ADDRESS, min_length=32, max_length=44)
    fee: int = Field(default=0, ge=0, description="Relayer fee in lamports")
    proof: ProofModel


class WithdrawalResponse(BaseModel):
    """Response model for withdrawal operations."""
    model_config = ConfigDict(from_attributes=True)

    nullifier_hash: str
    recipient: str
    relayer: str
    amount: int = Field(..., description="Lamports paid to the recipient")
    fee: int
    timestamp: datetime


class IdentityRegisterRequest(BaseModel):
    """Request model for identity registration."""
    identity_commitment: str = Field(..., pattern=HEX_FIELD)


class IdentityRegisterResponse(BaseModel):
    commitment: str
    leaf_index: int
    root: str


class SignalRequest(BaseModel):
    """Humanship proof scoped to one external nullifier."""
    root: str = Field(..., pattern=HEX_FIELD)
    nullifier_hash: str = Field(..., pattern=HEX_FIELD)
    external_nullifier: str = Field(..., pattern=HEX_FIELD)
    signal_hash: str = Field(..., pattern=HEX_FIELD)
    signal: str = ""
    proof: ProofModel


class SignalResponse(BaseModel):
    external_nullifier: str
    nullifier_hash: str
    signal_hash: str
    timestamp: datetime


class AnnouncementRequest(BaseModel):
    """Stealth payment announcement."""
    stealth_address: str = Field(..., min_length=32, max_length=44)
    ephemeral_public_key: str = Field(..., pattern=r"^(0x)?[0-9a-fA-F]{64}$")
    view_tag: int = Field(..., ge=0, le=255)
    timestamp: Optional[int] = Field(default=None, ge=0)


class AnnouncementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    stealth_address: str
    ephemeral_public_key: str
    view_tag: int
    timestamp: int


class AnnouncementListResponse(BaseModel):
    announcements: List[AnnouncementResponse]
    count: int
