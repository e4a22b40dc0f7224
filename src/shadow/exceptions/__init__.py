"""Custom exceptions for the Shadow protocol."""


class ShadowError(Exception):
    """Base exception for all Shadow protocol errors."""
    pass


# Input Validation Errors
class InputValidationError(ShadowError):
    """Raised when an input is rejected before any hash work is done."""
    pass


class InvalidFieldElementError(InputValidationError):
    """Raised when a value is not a canonical BN254 scalar field element."""
    pass


class InvalidNoteError(InputValidationError):
    """Raised when a deposit note is malformed."""
    pass


class IndexOutOfRangeError(InputValidationError):
    """Raised when a leaf index does not exist in the tree."""
    pass


class InvalidPathBitError(InputValidationError):
    """Raised when a Merkle path direction bit is not 0 or 1."""
    pass


class InvalidAddressError(InputValidationError):
    """Raised when a ledger address cannot be decoded."""
    pass


# Accumulator Errors
class CapacityExceededError(ShadowError):
    """Raised when the Merkle tree is full. Not retryable."""
    pass


# Circuit Errors
class ConstraintUnsatisfiedError(ShadowError):
    """Raised when a witness does not satisfy the circuit."""

    def __init__(self, message: str, annotation: str = None):
        super().__init__(message)
        self.annotation = annotation


# Proof Errors
class ProofError(ShadowError):
    """Base exception for proof-related errors."""
    pass


class InvalidProofError(ProofError):
    """Raised when proof verification fails or a proof is malformed."""
    pass


class ProofGenerationError(ProofError):
    """Raised when the proving backend fails."""
    pass


class ProofCancelledError(ProofError):
    """Raised when a background proof task is cancelled."""
    pass


# Verification Errors
class VerificationError(ShadowError):
    """Base exception for ledger-side verification failures."""
    pass


class StaleRootError(VerificationError):
    """Raised when a proof targets a root outside the accepted window."""
    pass


class NullifierReuseError(VerificationError):
    """Raised when a nullifier hash has already been spent."""
    pass


# Stealth Errors
class StealthError(ShadowError):
    """Base exception for stealth address errors."""
    pass


class InvalidMetaAddressError(StealthError):
    """Raised when a meta-address or kit cannot be parsed."""
    pass


# Storage Errors
class StorageError(ShadowError):
    """Base exception for storage errors."""
    pass


class DeserializationError(StorageError):
    """Raised when deserialization fails."""
    pass
