"""Pool: ledger-side model of one fixed-denomination anonymity pool.

Mirrors what the on-chain program does for each instruction, so clients,
the REST service and the tests all run against the same rules.

Transaction Flow:

    DEPOSIT:
        1. Client computes C = H(secret, nullifier) off-pool
        2. Pool appends C to its accumulator
        3. Receipt returned (commitment, leaf index, new root)

    WITHDRAWAL (checks run in this order):
        1. Proof root is one of the recent roots      -> StaleRootError
        2. Nullifier hash has not been spent          -> NullifierReuseError
        3. Fee does not exceed the denomination       -> InputValidationError
        4. External verifier accepts the proof        -> InvalidProofError
        5. Nullifier hash recorded as spent

Key Invariants:
    - A nullifier hash is accepted at most once per pool
    - A rejected withdrawal leaves no trace in the spent-set
    - The pool never sees a secret or a nullifier, only their hashes
"""

import logging
import threading
from datetime import datetime
from functools import partial
from typing import Optional, Set

from shadow.core.accumulator import PoolAccumulator
from shadow.core.merkle_tree import MerkleProof
from shadow.crypto.field import bytes_to_field, ensure_field_element, field_to_bytes, field_to_hex
from shadow.exceptions import (
    InputValidationError,
    InvalidProofError,
    NullifierReuseError,
    StaleRootError,
)
from shadow.proving.backend import ProofVerifier
from shadow.proving.proof import WithdrawalPackage
from shadow.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

WITHDRAW_CIRCUIT = "withdraw"


class DepositReceipt:
    """Receipt for a successful deposit."""

    def __init__(self, commitment: int, leaf_index: int, root: int, timestamp: Optional[datetime] = None):
        self.commitment = commitment
        self.leaf_index = leaf_index
        self.root = root
        self.timestamp = timestamp or datetime.now()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "commitment": field_to_hex(self.commitment),
            "leaf_index": self.leaf_index,
            "root": field_to_hex(self.root),
            "timestamp": self.timestamp.isoformat(),
        }


class WithdrawalReceipt:
    """Receipt for a successful withdrawal."""

    def __init__(
        self,
        nullifier_hash: int,
        recipient: str,
        relayer: str,
        amount: int,
        fee: int,
        timestamp: Optional[datetime] = None,
    ):
        self.nullifier_hash = nullifier_hash
        self.recipient = recipient
        self.relayer = relayer
        self.amount = amount
        self.fee = fee
        self.timestamp = timestamp or datetime.now()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "nullifier_hash": field_to_hex(self.nullifier_hash),
            "recipient": self.recipient,
            "relayer": self.relayer,
            "amount": self.amount,
            "fee": self.fee,
            "timestamp": self.timestamp.isoformat(),
        }


class PoolState:
    """Public state of a pool."""

    def __init__(
        self,
        root: int,
        next_index: int,
        denomination: int,
        depth: int,
        num_deposits: int,
        num_withdrawals: int,
        root_history_size: int,
    ):
        self.root = root
        self.next_index = next_index
        self.denomination = denomination
        self.depth = depth
        self.num_deposits = num_deposits
        self.num_withdrawals = num_withdrawals
        self.root_history_size = root_history_size

    @property
    def capacity(self) -> int:
        return 2**self.depth

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "root": field_to_hex(self.root),
            "next_index": self.next_index,
            "denomination": self.denomination,
            "depth": self.depth,
            "capacity": self.capacity,
            "num_deposits": self.num_deposits,
            "num_withdrawals": self.num_withdrawals,
            "root_history_size": self.root_history_size,
        }


class ShadowPool:
    """
    One fixed-denomination pool.

    Example Usage:
        >>> pool = ShadowPool(denomination=100_000_000, depth=20, verifier=SnarkjsVerifier("./build"))
        >>> receipt = pool.deposit(commitment)
        >>> pool.withdraw(package)
    """

    def __init__(
        self,
        denomination: int,
        verifier: ProofVerifier,
        depth: int = 20,
        root_history_size: int = PoolAccumulator.DEFAULT_ROOT_HISTORY,
        db: Optional[DatabaseManager] = None,
        pool_id: str = "default",
        max_fee: Optional[int] = None,
    ):
        """
        Initialize a pool, restoring it from the database when one is given.

        Args:
            denomination: Lamports per deposit
            verifier: External Groth16 verifier
            depth: Merkle tree depth
            root_history_size: Number of recent roots withdrawals may use
            db: Optional persistence layer
            pool_id: Key for this pool's rows in the database
            max_fee: Optional relayer fee cap, below the denomination
        """
        if denomination <= 0:
            raise ValueError("denomination must be positive")
        if max_fee is not None and not 0 <= max_fee <= denomination:
            raise ValueError("max_fee must be between 0 and the denomination")

        self.denomination = denomination
        self.verifier = verifier
        self.pool_id = pool_id
        self.max_fee = denomination if max_fee is None else max_fee
        self.db = db

        self.accumulator = PoolAccumulator(depth=depth, root_history_size=root_history_size)
        self.nullifier_set: Set[int] = set()
        # Held across check-verify-record so two withdrawals with the same
        # nullifier hash cannot both pass the spent check
        self._withdraw_lock = threading.Lock()
        # Duplicate check, insert and persist run as one step
        self._deposit_lock = threading.Lock()

        if db is not None:
            self._restore()

    def _restore(self) -> None:
        session = self.db.get_session()
        try:
            leaves = [bytes_to_field(c) for c in self.db.load_commitments(session, self.pool_id)]
            spent = self.db.load_spent_nullifiers(session, self.pool_id)
        finally:
            session.close()

        if leaves:
            self.accumulator.insert_batch(leaves)
        self.nullifier_set = {bytes_to_field(n) for n in spent}
        logger.info(
            f"Restored pool '{self.pool_id}': {len(leaves)} deposits, {len(self.nullifier_set)} withdrawals"
        )

    def deposit(self, commitment: int) -> DepositReceipt:
        """
        Append a commitment to the pool.

        Args:
            commitment: H(secret, nullifier), computed by the depositor

        Returns:
            DepositReceipt: Commitment, leaf index and the root after insertion

        Raises:
            InvalidFieldElementError: If commitment is not a field element
            InputValidationError: If the commitment is already in the pool
            CapacityExceededError: If the tree is full
            StorageError: If the deposit record cannot be written; the pool is
                left unchanged
        """
        ensure_field_element(commitment, "commitment")

        with self._deposit_lock:
            if self.accumulator.index_of(commitment) is not None:
                raise InputValidationError("Commitment already deposited")

            persist = partial(self._persist_deposit, commitment) if self.db is not None else None
            # The record is written before the leaf is committed in memory
            leaf_index, root = self.accumulator.insert(commitment, before_commit=persist)

        logger.info(f"Deposit into '{self.pool_id}' at leaf {leaf_index}")
        return DepositReceipt(commitment=commitment, leaf_index=leaf_index, root=root)

    def _persist_deposit(self, commitment: int, leaf_index: int, root: int) -> None:
        session = self.db.get_session()
        try:
            self.db.add_commitment(session, self.pool_id, leaf_index, field_to_bytes(commitment), field_to_bytes(root))
        finally:
            session.close()

    def withdraw(self, package: WithdrawalPackage) -> WithdrawalReceipt:
        """
        Process a withdrawal.

        Args:
            package: Proof with its public inputs

        Returns:
            WithdrawalReceipt: Nullifier hash, payout and fee

        Raises:
            StaleRootError: If the proof's root is not in the recent-roots window
            NullifierReuseError: If the nullifier hash was already spent
            InputValidationError: If the fee is invalid or an address is malformed
            InvalidProofError: If the verifier rejects the proof
            VerificationError: If the verifier itself cannot run
        """
        with self._withdraw_lock:
            if not self.accumulator.is_known_root(package.root):
                raise StaleRootError(f"Unknown or expired root {field_to_hex(package.root)}")

            if package.nullifier_hash in self.nullifier_set:
                raise NullifierReuseError("The note has already been spent")

            if isinstance(package.fee, bool) or not isinstance(package.fee, int) or package.fee < 0:
                raise InputValidationError("Fee must be a non-negative integer")
            if package.fee > self.denomination:
                raise InputValidationError("Fee exceeds the pool denomination")
            if package.fee > self.max_fee:
                raise InputValidationError(f"Fee exceeds the relayer limit of {self.max_fee}")

            # Malformed recipient or relayer addresses raise InvalidAddressError here
            public_signals = package.public_signals()
            if not self.verifier.verify(WITHDRAW_CIRCUIT, public_signals, package.proof):
                logger.warning(f"Rejected withdrawal proof for root {field_to_hex(package.root)[:18]}...")
                raise InvalidProofError("Withdrawal proof verification failed")

            if self.db is not None:
                session = self.db.get_session()
                try:
                    self.db.mark_nullifier_spent(
                        session,
                        self.pool_id,
                        field_to_bytes(package.nullifier_hash),
                        package.recipient,
                        package.relayer,
                        package.fee,
                    )
                finally:
                    session.close()
            self.nullifier_set.add(package.nullifier_hash)

        logger.info(f"Withdrawal from '{self.pool_id}' to {package.recipient} (fee {package.fee})")
        return WithdrawalReceipt(
            nullifier_hash=package.nullifier_hash,
            recipient=package.recipient,
            relayer=package.relayer,
            amount=self.denomination - package.fee,
            fee=package.fee,
        )

    def merkle_proof(self, leaf_index: int) -> MerkleProof:
        """Inclusion path for a leaf against the current root."""
        return self.accumulator.proof(leaf_index)

    def index_of(self, commitment: int) -> Optional[int]:
        return self.accumulator.index_of(commitment)

    def is_spent(self, nullifier_hash: int) -> bool:
        return nullifier_hash in self.nullifier_set

    def state(self) -> PoolState:
        """
        Return current pool state.

        Returns:
            PoolState: Root, next index, denomination and counts
        """
        with self._withdraw_lock:
            num_withdrawals = len(self.nullifier_set)
        next_index = self.accumulator.next_index
        return PoolState(
            root=self.accumulator.root,
            next_index=next_index,
            denomination=self.denomination,
            depth=self.accumulator.depth,
            num_deposits=next_index,
            num_withdrawals=num_withdrawals,
            root_history_size=self.accumulator.root_history_size,
        )
