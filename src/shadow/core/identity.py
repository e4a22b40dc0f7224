"""Identity group: registered personhood with application-scoped nullifiers.

Each registrant holds an Identity (secret, identity nullifier) and publishes
only its commitment. To act inside an application, the registrant proves
membership and reveals H(identityNullifier, externalNullifier), which is
unique per (registrant, application) and unlinkable across applications.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Optional, Set, Tuple

from shadow.core.accumulator import PoolAccumulator
from shadow.core.commitment import Commitment
from shadow.core.merkle_tree import MerkleProof
from shadow.crypto.field import (
    bytes_to_field,
    ensure_field_element,
    field_to_bytes,
    field_to_hex,
    random_field_element,
    signal_hash,
)
from shadow.exceptions import (
    InputValidationError,
    InvalidProofError,
    NullifierReuseError,
    StaleRootError,
)
from shadow.proving.backend import ProofVerifier
from shadow.proving.proof import SignalPackage
from shadow.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

IDENTITY_CIRCUIT = "humanship"


@dataclass
class Identity:
    """A registrant's private pair and public commitment."""

    secret: int = field(repr=False)
    identity_nullifier: int = field(repr=False)
    commitment: int
    leaf_index: Optional[int] = None

    @classmethod
    def generate(cls) -> "Identity":
        secret = random_field_element()
        identity_nullifier = random_field_element()
        return cls(
            secret=secret,
            identity_nullifier=identity_nullifier,
            commitment=Commitment.compute_commitment(secret, identity_nullifier),
        )

    def nullifier_hash(self, external_nullifier: int) -> int:
        """H(identityNullifier, externalNullifier)."""
        return Commitment.identity_nullifier_hash(self.identity_nullifier, external_nullifier)


@dataclass
class RegistrationReceipt:
    commitment: int
    leaf_index: int
    root: int

    def to_dict(self) -> dict:
        return {
            "commitment": field_to_hex(self.commitment),
            "leaf_index": self.leaf_index,
            "root": field_to_hex(self.root),
        }


@dataclass
class SignalReceipt:
    external_nullifier: int
    nullifier_hash: int
    signal_hash: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "external_nullifier": field_to_hex(self.external_nullifier),
            "nullifier_hash": field_to_hex(self.nullifier_hash),
            "signal_hash": field_to_hex(self.signal_hash),
            "timestamp": self.timestamp.isoformat(),
        }


class IdentityGroup:
    """
    Ledger-side model of one identity group.

    Signals are checked in the same order as pool withdrawals: root window,
    spent-set (scoped to the external nullifier), then the verifier.
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        depth: int = 20,
        root_history_size: int = PoolAccumulator.DEFAULT_ROOT_HISTORY,
        db: Optional[DatabaseManager] = None,
        group_id: str = "humanship",
    ):
        self.verifier = verifier
        self.group_id = group_id
        self.db = db
        self.accumulator = PoolAccumulator(depth=depth, root_history_size=root_history_size)
        self.used: Set[Tuple[int, int]] = set()
        self._register_lock = threading.Lock()
        self._signal_lock = threading.Lock()

        if db is not None:
            self._restore()

    def _restore(self) -> None:
        session = self.db.get_session()
        try:
            members = [bytes_to_field(c) for c in self.db.load_identity_commitments(session, self.group_id)]
            used = self.db.load_signals(session, self.group_id)
        finally:
            session.close()

        if members:
            self.accumulator.insert_batch(members)
        self.used = {(bytes_to_field(e), bytes_to_field(n)) for e, n in used}
        logger.info(f"Restored identity group '{self.group_id}': {len(members)} members")

    def register(self, identity_commitment: int) -> RegistrationReceipt:
        """
        Add an identity commitment to the group.

        Raises:
            InvalidFieldElementError: If the commitment is not a field element
            InputValidationError: If the commitment is already registered
            CapacityExceededError: If the group is full
            StorageError: If the member record cannot be written
        """
        ensure_field_element(identity_commitment, "identity_commitment")

        with self._register_lock:
            if self.accumulator.index_of(identity_commitment) is not None:
                raise InputValidationError("Identity already registered")

            persist = partial(self._persist_member, identity_commitment) if self.db is not None else None
            leaf_index, root = self.accumulator.insert(identity_commitment, before_commit=persist)

        logger.info(f"Registered identity {leaf_index} in '{self.group_id}'")
        return RegistrationReceipt(commitment=identity_commitment, leaf_index=leaf_index, root=root)

    def _persist_member(self, identity_commitment: int, leaf_index: int, root: int) -> None:
        session = self.db.get_session()
        try:
            self.db.add_identity_commitment(session, self.group_id, leaf_index, field_to_bytes(identity_commitment))
        finally:
            session.close()

    def signal(self, package: SignalPackage, external_nullifier: int) -> SignalReceipt:
        """
        Accept one signal for an application.

        Args:
            package: Humanship proof with its public inputs
            external_nullifier: The application's scope; must match the package

        Raises:
            InputValidationError: If the package targets another scope or its
                signal does not hash to signal_hash
            StaleRootError: If the root is not in the recent-roots window
            NullifierReuseError: If this registrant already signalled in scope
            InvalidProofError: If the verifier rejects the proof
        """
        ensure_field_element(external_nullifier, "external_nullifier")
        if package.external_nullifier != external_nullifier:
            raise InputValidationError("Signal was proven for a different external nullifier")
        if package.signal and signal_hash(package.signal) != package.signal_hash:
            raise InputValidationError("Signal does not match its hash")

        key = (external_nullifier, package.nullifier_hash)
        with self._signal_lock:
            if not self.accumulator.is_known_root(package.root):
                raise StaleRootError(f"Unknown or expired root {field_to_hex(package.root)}")
            if key in self.used:
                raise NullifierReuseError("Identity already signalled for this external nullifier")
            if not self.verifier.verify(IDENTITY_CIRCUIT, package.public_signals(), package.proof):
                raise InvalidProofError("Identity proof verification failed")

            if self.db is not None:
                session = self.db.get_session()
                try:
                    self.db.record_signal(
                        session,
                        self.group_id,
                        field_to_bytes(external_nullifier),
                        field_to_bytes(package.nullifier_hash),
                        field_to_bytes(package.signal_hash),
                    )
                finally:
                    session.close()
            self.used.add(key)

        logger.info(f"Accepted signal in '{self.group_id}' for scope {field_to_hex(external_nullifier)[:18]}...")
        return SignalReceipt(
            external_nullifier=external_nullifier,
            nullifier_hash=package.nullifier_hash,
            signal_hash=package.signal_hash,
        )

    def merkle_proof(self, leaf_index: int) -> MerkleProof:
        return self.accumulator.proof(leaf_index)

    def index_of(self, identity_commitment: int) -> Optional[int]:
        return self.accumulator.index_of(identity_commitment)

    def __len__(self) -> int:
        return len(self.accumulator)
