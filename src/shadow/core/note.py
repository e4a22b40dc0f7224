"""Deposit note encoding.

A note is the only place the depositor's secret and nullifier are kept. It
is never sent to the pool.

Format:
    shadow-note-v1:<base64(JSON {"s": secret, "n": nullifier,
                                 "c": commitment, "i": leaf_index})>

Integers are encoded as decimal strings; ``i`` is null for a deposit that
has not been inserted yet.
"""

import base64
import binascii
import json

from shadow.core.commitment import Commitment, Deposit
from shadow.crypto.field import is_field_element
from shadow.exceptions import InvalidNoteError

NOTE_PREFIX = "shadow-note-v1:"


def serialize_note(deposit: Deposit) -> str:
    """Encode a deposit as a note string."""
    payload = {
        "s": str(deposit.secret),
        "n": str(deposit.nullifier),
        "c": str(deposit.commitment),
        "i": deposit.leaf_index,
    }
    encoded = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return NOTE_PREFIX + encoded


def deserialize_note(note: str) -> Deposit:
    """
    Decode a note string back into a deposit.

    Raises:
        InvalidNoteError: On a bad prefix, bad encoding, missing fields,
            out-of-range values, or a commitment that does not match
            the secret and nullifier
    """
    if not isinstance(note, str) or not note.startswith(NOTE_PREFIX):
        raise InvalidNoteError("Invalid note format")

    try:
        raw = base64.b64decode(note[len(NOTE_PREFIX):], validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidNoteError(f"Invalid note encoding: {e}") from e

    if not isinstance(data, dict):
        raise InvalidNoteError("Note payload must be an object")

    try:
        secret = int(data["s"])
        nullifier = int(data["n"])
        commitment = int(data["c"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidNoteError(f"Note is missing or has invalid fields: {e}") from e

    leaf_index = data.get("i")
    if leaf_index is not None and (
        not isinstance(leaf_index, int) or isinstance(leaf_index, bool) or leaf_index < 0
    ):
        raise InvalidNoteError("Note leaf index must be a non-negative integer")

    for name, value in (("secret", secret), ("nullifier", nullifier), ("commitment", commitment)):
        if not is_field_element(value):
            raise InvalidNoteError(f"Note {name} is not a field element")

    if Commitment.compute_commitment(secret, nullifier) != commitment:
        raise InvalidNoteError("Note commitment does not match secret and nullifier")

    return Deposit(
        secret=secret,
        nullifier=nullifier,
        commitment=commitment,
        leaf_index=leaf_index,
    )
