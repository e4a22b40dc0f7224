"""BN254 scalar field helpers shared by the engine, the tree and the circuits."""

import secrets
from typing import Union

from Crypto.Hash import keccak

from shadow.exceptions import InvalidFieldElementError
from shadow.utils.encoding import bytes_to_hex, decode_address, hex_to_bytes

# BN254 (alt_bn128) scalar field
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# BN254 base field, used for proof point coordinates
BASE_FIELD_MODULUS = 21888242871839275222246405745257275088696311157297823662689037894645226208583

FIELD_BYTES = 32

# System program address, 32 zero bytes
DEFAULT_ADDRESS = "11111111111111111111111111111111"


def is_field_element(value) -> bool:
    """Return True if value is a canonical field element."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_MODULUS


def ensure_field_element(value, name: str = "value") -> int:
    """
    Validate that value is a canonical field element.

    Raises:
        InvalidFieldElementError: If value is not an int in [0, p)
    """
    if not is_field_element(value):
        raise InvalidFieldElementError(f"{name} must be an integer in [0, p)")
    return value


def random_field_element() -> int:
    """
    Sample a uniformly random non-zero field element.

    secrets.randbelow draws by rejection below the modulus, so there is no
    modular bias.
    """
    while True:
        value = secrets.randbelow(FIELD_MODULUS)
        if value != 0:
            return value


def field_to_bytes(value: int) -> bytes:
    """Encode a field element as 32 big-endian bytes."""
    ensure_field_element(value)
    return value.to_bytes(FIELD_BYTES, "big")


def bytes_to_field(data: bytes) -> int:
    """Decode 32 big-endian bytes into a canonical field element."""
    if not isinstance(data, bytes) or len(data) != FIELD_BYTES:
        raise InvalidFieldElementError("Field element must be 32 bytes")
    return ensure_field_element(int.from_bytes(data, "big"))


def field_to_hex(value: int) -> str:
    """Encode a field element as 0x-prefixed 32-byte hex."""
    return bytes_to_hex(field_to_bytes(value))


def hex_to_field(hex_str: str) -> int:
    """Decode a 0x-prefixed hex string into a canonical field element."""
    try:
        data = hex_to_bytes(hex_str)
    except (ValueError, AttributeError) as e:
        raise InvalidFieldElementError(f"Invalid hex field element: {e}") from e
    return bytes_to_field(data)


def address_to_field(address: str) -> int:
    """
    Map a base58 ledger address onto the scalar field.

    The 32 decoded bytes are read as a big-endian integer and reduced
    modulo p.
    """
    return int.from_bytes(decode_address(address), "big") % FIELD_MODULUS


def signal_hash(signal: Union[bytes, str]) -> int:
    """
    Hash an arbitrary identity signal into the field.

    keccak256 shifted right by 8 bits, so the result is always below p.
    """
    if isinstance(signal, str):
        signal = signal.encode("utf-8")
    digest = keccak.new(digest_bits=256, data=signal).digest()
    return int.from_bytes(digest, "big") >> 8
