"""Encoding and decoding utilities."""

import base58

from shadow.exceptions import InvalidAddressError

ADDRESS_SIZE = 32


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def encode_address(public_key: bytes) -> str:
    """Encode a 32-byte public key as a base58 ledger address."""
    if not isinstance(public_key, bytes) or len(public_key) != ADDRESS_SIZE:
        raise InvalidAddressError("Public key must be 32 bytes")
    return base58.b58encode(public_key).decode("ascii")


def decode_address(address: str) -> bytes:
    """
    Decode a base58 ledger address into its 32 raw bytes.

    Raises:
        InvalidAddressError: If the string is not base58 or not 32 bytes long
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressError("Address must be a non-empty string")
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid base58 address: {e}") from e
    if len(raw) != ADDRESS_SIZE:
        raise InvalidAddressError(f"Address must decode to 32 bytes, got {len(raw)}")
    return raw
