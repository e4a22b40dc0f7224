"""Storage layer for persistent data."""

from shadow.storage.database import (
    Base,
    CommitmentRecord,
    DatabaseManager,
    IdentityCommitmentRecord,
    IdentitySignalRecord,
    MerkleRootRecord,
    SpentNullifier,
    StealthAnnouncementRecord,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "Base",
    "CommitmentRecord",
    "DatabaseManager",
    "IdentityCommitmentRecord",
    "IdentitySignalRecord",
    "MerkleRootRecord",
    "SpentNullifier",
    "StealthAnnouncementRecord",
    "get_db_manager",
    "reset_db_manager",
]
