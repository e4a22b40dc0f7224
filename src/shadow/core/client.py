"""Client flows: deposit, withdraw and identity signalling.

The client keeps the depositor's secrets. It talks to a pool (or an
identity group) only through public values and to the prover backend only
through circuit inputs.

Withdrawal stages reported through the progress callback:

    parsing   10%   note decoded and checked
    syncing   30%   inclusion path fetched for the note's leaf
    proving   50%   witness built and checked against the circuit
    zkproof   90%   backend produced the Groth16 proof
    complete 100%   package ready for submission

Deposit stages: generating, preparing, updating, complete.
"""

import logging
from typing import Optional, Tuple

from shadow.circuits.identity import IdentityCircuit, IdentityInputs
from shadow.circuits.withdraw import WithdrawCircuit, WithdrawInputs
from shadow.core.commitment import Commitment, Deposit
from shadow.core.identity import Identity, IdentityGroup, RegistrationReceipt
from shadow.core.note import deserialize_note, serialize_note
from shadow.core.pool import DepositReceipt, ShadowPool, WithdrawalReceipt
from shadow.crypto.field import DEFAULT_ADDRESS, address_to_field, ensure_field_element, signal_hash
from shadow.exceptions import InputValidationError, InvalidNoteError
from shadow.proving.proof import SignalPackage, WithdrawalPackage
from shadow.proving.prover import Prover
from shadow.proving.tasks import CancellationToken, ProgressCallback, ProgressReporter, ProofTask

logger = logging.getLogger(__name__)


def _noop_report(stage: str, percent: int, message: str) -> None:
    pass


class ShadowClient:
    """
    SDK entry point for one pool and, optionally, one identity group.

    Example Usage:
        >>> client = ShadowClient(pool, Prover(SnarkjsBackend("./circuits/build")))
        >>> receipt, note = client.deposit()
        >>> package = client.create_withdrawal(note, recipient="9xQeWvG8...")
        >>> pool.withdraw(package)
    """

    def __init__(self, pool: ShadowPool, prover: Prover, identity_group: Optional[IdentityGroup] = None):
        self.pool = pool
        self.prover = prover
        self.identity_group = identity_group

    # Deposits

    def deposit(self, report=None) -> Tuple[DepositReceipt, str]:
        """
        Generate a fresh deposit and insert it into the pool.

        Returns:
            Tuple of (receipt, note). The note is the only copy of the secret.
        """
        report = report or _noop_report
        report("generating", 10, "Generating secret and nullifier")
        deposit = Commitment.generate()

        report("preparing", 40, "Submitting commitment")
        receipt = self.pool.deposit(deposit.commitment)

        report("updating", 80, "Recording leaf index")
        deposit.leaf_index = receipt.leaf_index
        note = serialize_note(deposit)

        report("complete", 100, "Deposit complete")
        return receipt, note

    @staticmethod
    def parse_note(note: str) -> Deposit:
        return deserialize_note(note)

    # Withdrawals

    def _resolve_leaf_index(self, deposit: Deposit) -> int:
        leaf_index = self.pool.index_of(deposit.commitment)
        if leaf_index is None:
            raise InvalidNoteError("Note commitment is not in the pool")
        if deposit.leaf_index is not None and deposit.leaf_index != leaf_index:
            raise InvalidNoteError(
                f"Note records leaf {deposit.leaf_index} but the commitment is at leaf {leaf_index}"
            )
        return leaf_index

    def prepare_withdrawal(
        self,
        deposit: Deposit,
        recipient: str,
        relayer: str = DEFAULT_ADDRESS,
        fee: int = 0,
    ) -> WithdrawInputs:
        """
        Build the full withdrawal witness for a deposit.

        Raises:
            InvalidNoteError: If the commitment is not in the pool
            InvalidAddressError: If recipient or relayer is not a valid address
            InputValidationError: If the fee is negative or above the denomination
        """
        if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0 or fee > self.pool.denomination:
            raise InputValidationError(f"Fee must be between 0 and {self.pool.denomination}")

        leaf_index = self._resolve_leaf_index(deposit)
        path = self.pool.merkle_proof(leaf_index)

        return WithdrawInputs(
            root=path.root,
            nullifier_hash=Commitment.withdrawal_nullifier_hash(deposit.nullifier, leaf_index),
            recipient=address_to_field(recipient),
            relayer=address_to_field(relayer),
            fee=fee,
            secret=deposit.secret,
            nullifier=deposit.nullifier,
            path_elements=list(path.siblings),
            path_indices=list(path.directions),
        )

    def create_withdrawal(
        self,
        note: str,
        recipient: str,
        relayer: str = DEFAULT_ADDRESS,
        fee: int = 0,
        cancel_token: Optional[CancellationToken] = None,
        report=None,
    ) -> WithdrawalPackage:
        """
        Prove a withdrawal for a note.

        Args:
            note: Deposit note from deposit()
            recipient: Base58 address receiving denomination - fee
            relayer: Base58 address receiving the fee
            fee: Relayer fee in lamports
            cancel_token: Checked between Merkle levels during synthesis
            report: Callable (stage, percent, message)

        Returns:
            WithdrawalPackage: Ready for ShadowPool.withdraw

        Raises:
            InvalidNoteError: If the note is malformed or not in the pool
            ConstraintUnsatisfiedError: If the witness does not satisfy the circuit
            ProofGenerationError: If the backend fails
            ProofCancelledError: If cancel_token is cancelled
        """
        report = report or _noop_report

        report("parsing", 10, "Parsing note")
        deposit = deserialize_note(note)

        report("syncing", 30, "Fetching Merkle path")
        inputs = self.prepare_withdrawal(deposit, recipient, relayer, fee)

        report("proving", 50, "Building witness")
        circuit = WithdrawCircuit(self.pool.accumulator.depth, inputs)
        proof, _ = self.prover.prove(circuit, cancel_token)

        report("zkproof", 90, "Proof generated")
        package = WithdrawalPackage(
            root=inputs.root,
            nullifier_hash=inputs.nullifier_hash,
            recipient=recipient,
            relayer=relayer,
            fee=fee,
            proof=proof,
        )

        report("complete", 100, "Withdrawal ready")
        logger.info(f"Prepared withdrawal to {recipient}")
        return package

    def start_withdrawal(
        self,
        note: str,
        recipient: str,
        relayer: str = DEFAULT_ADDRESS,
        fee: int = 0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ProofTask:
        """Run create_withdrawal on a worker thread. Returns the started task."""

        def job(token: CancellationToken, progress: ProgressReporter) -> WithdrawalPackage:
            return self.create_withdrawal(note, recipient, relayer, fee, cancel_token=token, report=progress)

        return ProofTask(job, on_progress=on_progress).start()

    def withdraw(
        self,
        note: str,
        recipient: str,
        relayer: str = DEFAULT_ADDRESS,
        fee: int = 0,
        report=None,
    ) -> WithdrawalReceipt:
        """Prove and submit in one call."""
        return self.pool.withdraw(self.create_withdrawal(note, recipient, relayer, fee, report=report))

    # Identity

    def _require_group(self) -> IdentityGroup:
        if self.identity_group is None:
            raise RuntimeError("Client has no identity group")
        return self.identity_group

    @staticmethod
    def create_identity() -> Identity:
        return Identity.generate()

    def register_identity(self, identity: Identity) -> RegistrationReceipt:
        receipt = self._require_group().register(identity.commitment)
        identity.leaf_index = receipt.leaf_index
        return receipt

    def prove_signal(
        self,
        identity: Identity,
        external_nullifier: int,
        signal: str = "",
        cancel_token: Optional[CancellationToken] = None,
        report=None,
    ) -> SignalPackage:
        """
        Prove membership in the identity group for one application scope.

        Raises:
            InvalidNoteError: If the identity is not registered in the group
            ConstraintUnsatisfiedError: If the witness does not satisfy the circuit
            ProofCancelledError: If cancel_token is cancelled
        """
        report = report or _noop_report
        group = self._require_group()
        ensure_field_element(external_nullifier, "external_nullifier")

        report("syncing", 30, "Fetching Merkle path")
        leaf_index = group.index_of(identity.commitment)
        if leaf_index is None:
            raise InvalidNoteError("Identity is not registered in this group")
        path = group.merkle_proof(leaf_index)

        report("proving", 50, "Building witness")
        inputs = IdentityInputs(
            root=path.root,
            nullifier_hash=identity.nullifier_hash(external_nullifier),
            external_nullifier=external_nullifier,
            signal_hash=signal_hash(signal),
            secret=identity.secret,
            identity_nullifier=identity.identity_nullifier,
            path_elements=list(path.siblings),
            path_indices=list(path.directions),
        )
        proof, _ = self.prover.prove(IdentityCircuit(group.accumulator.depth, inputs), cancel_token)

        report("complete", 100, "Signal ready")
        return SignalPackage(
            root=inputs.root,
            nullifier_hash=inputs.nullifier_hash,
            external_nullifier=external_nullifier,
            signal_hash=inputs.signal_hash,
            proof=proof,
            signal=signal,
        )
