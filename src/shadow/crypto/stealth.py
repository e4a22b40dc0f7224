"""Stealth addresses over ed25519.

A receiver publishes one meta-address (spend public key B, view public key
V). For every payment the sender derives a fresh one-time address only the
receiver can find and spend from.

Protocol:
    1. Sender picks a random scalar r and publishes R = r*G
    2. Shared secret S = r*V (the receiver computes the same point as v*R)
    3. h = Hs(S), SHA-512 reduced modulo the group order
    4. One-time public key P = B + h*G
    5. View tag = first byte of SHA-256(S)
    6. Receiver scans: skip on view-tag mismatch, otherwise check
       B + Hs(v*R)*G == P
    7. One-time private scalar x = b + h (mod group order), so x*G = P

The view tag lets the receiver discard about 255 of every 256 foreign
announcements after one scalar multiplication, without the full
derivation.

All group operations go through libsodium (PyNaCl bindings).
"""

import hashlib
import hmac
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Union

import nacl.bindings
import nacl.exceptions

from shadow.exceptions import InvalidAddressError, InvalidMetaAddressError, StealthError
from shadow.utils.encoding import decode_address, encode_address, hex_to_bytes

logger = logging.getLogger(__name__)

KEY_SIZE = 32
META_ADDRESS_PREFIX = "st"


class Ed25519:
    """Thin wrappers around the libsodium ed25519 group primitives."""

    @staticmethod
    def is_valid_point(point: bytes) -> bool:
        if not isinstance(point, bytes) or len(point) != KEY_SIZE:
            return False
        return bool(nacl.bindings.crypto_core_ed25519_is_valid_point(point))

    @staticmethod
    def random_scalar() -> bytes:
        """Uniform nonzero scalar from 64 random bytes reduced mod the group order."""
        while True:
            scalar = nacl.bindings.crypto_core_ed25519_scalar_reduce(os.urandom(64))
            if scalar != bytes(KEY_SIZE):
                return scalar

    @staticmethod
    def hash_to_scalar(data: bytes) -> bytes:
        """SHA-512 of data reduced modulo the group order."""
        return nacl.bindings.crypto_core_ed25519_scalar_reduce(hashlib.sha512(data).digest())

    @staticmethod
    def scalar_add(a: bytes, b: bytes) -> bytes:
        return nacl.bindings.crypto_core_ed25519_scalar_add(a, b)

    @staticmethod
    def base_mul(scalar: bytes) -> bytes:
        try:
            return nacl.bindings.crypto_scalarmult_ed25519_base_noclamp(scalar)
        except nacl.exceptions.CryptoError as e:
            raise StealthError(f"Base point multiplication failed: {e}") from e

    @staticmethod
    def scalar_mul(scalar: bytes, point: bytes) -> bytes:
        try:
            return nacl.bindings.crypto_scalarmult_ed25519_noclamp(scalar, point)
        except nacl.exceptions.CryptoError as e:
            raise StealthError(f"Scalar multiplication failed: {e}") from e

    @staticmethod
    def point_add(p: bytes, q: bytes) -> bytes:
        try:
            return nacl.bindings.crypto_core_ed25519_add(p, q)
        except nacl.exceptions.CryptoError as e:
            raise StealthError(f"Point addition failed: {e}") from e


def _shared_secret(scalar: bytes, point: bytes) -> bytes:
    return Ed25519.scalar_mul(scalar, point)


def _view_tag(shared_secret: bytes) -> int:
    return hashlib.sha256(shared_secret).digest()[0]


def _stealth_public_key(spend_public_key: bytes, shared_secret: bytes) -> bytes:
    return Ed25519.point_add(spend_public_key, Ed25519.base_mul(Ed25519.hash_to_scalar(shared_secret)))


@dataclass(frozen=True)
class MetaAddress:
    """Published (spend, view) public key pair."""

    spend_public_key: bytes
    view_public_key: bytes

    def __post_init__(self):
        for name in ("spend_public_key", "view_public_key"):
            if not Ed25519.is_valid_point(getattr(self, name)):
                raise InvalidMetaAddressError(f"{name} is not a valid ed25519 point")

    def serialize(self) -> str:
        """Text form: st:<hex spend>:<hex view>."""
        return f"{META_ADDRESS_PREFIX}:{self.spend_public_key.hex()}:{self.view_public_key.hex()}"

    @classmethod
    def parse(cls, text: str) -> "MetaAddress":
        """
        Parse the st:<hex>:<hex> form.

        Raises:
            InvalidMetaAddressError: On a bad prefix, bad hex or invalid point
        """
        parts = text.split(":") if isinstance(text, str) else []
        if len(parts) != 3 or parts[0] != META_ADDRESS_PREFIX:
            raise InvalidMetaAddressError("Invalid stealth meta-address format")
        try:
            return cls(spend_public_key=hex_to_bytes(parts[1]), view_public_key=hex_to_bytes(parts[2]))
        except ValueError as e:
            raise InvalidMetaAddressError(f"Invalid meta-address hex: {e}") from e

    def __str__(self) -> str:
        return self.serialize()


@dataclass(frozen=True)
class StealthKit:
    """Receiver's private scalars together with the meta-address they produce."""

    meta_address: MetaAddress
    spend_private_key: bytes = field(repr=False)
    view_private_key: bytes = field(repr=False)

    def serialize(self) -> str:
        """JSON form. Contains private keys."""
        return json.dumps({
            "metaAddress": self.meta_address.serialize(),
            "spendPrivkey": self.spend_private_key.hex(),
            "viewPrivkey": self.view_private_key.hex(),
        })

    @classmethod
    def parse(cls, text: str) -> "StealthKit":
        """
        Parse the JSON form and check the keys belong together.

        Raises:
            InvalidMetaAddressError: If malformed or the private keys do not
                match the meta-address
        """
        try:
            data = json.loads(text)
            meta = MetaAddress.parse(data["metaAddress"])
            spend = hex_to_bytes(data["spendPrivkey"])
            view = hex_to_bytes(data["viewPrivkey"])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidMetaAddressError(f"Invalid stealth kit: {e}") from e

        if len(spend) != KEY_SIZE or len(view) != KEY_SIZE:
            raise InvalidMetaAddressError("Private keys must be 32 bytes")
        if public_key_from_private(spend) != meta.spend_public_key or public_key_from_private(view) != meta.view_public_key:
            raise InvalidMetaAddressError("Private keys do not match the meta-address")
        return cls(meta_address=meta, spend_private_key=spend, view_private_key=view)


@dataclass(frozen=True)
class StealthPayment:
    """What a sender publishes for one payment."""

    stealth_address: str
    ephemeral_public_key: bytes
    view_tag: int
    timestamp: int = 0

    def to_dict(self) -> dict:
        return {
            "stealth_address": self.stealth_address,
            "ephemeral_public_key": self.ephemeral_public_key.hex(),
            "view_tag": self.view_tag,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StealthPayment":
        """
        Parse an announcement record.

        Raises:
            StealthError: If any field is missing or malformed
        """
        try:
            address = data["stealth_address"]
            decode_address(address)
            ephemeral = hex_to_bytes(data["ephemeral_public_key"])
            view_tag = int(data["view_tag"])
            timestamp = int(data.get("timestamp", 0))
        except (KeyError, TypeError, ValueError, AttributeError, InvalidAddressError) as e:
            raise StealthError(f"Malformed announcement: {e}") from e

        if len(ephemeral) != KEY_SIZE:
            raise StealthError("Ephemeral public key must be 32 bytes")
        if not 0 <= view_tag <= 255:
            raise StealthError("View tag must be a single byte")
        return cls(stealth_address=address, ephemeral_public_key=ephemeral, view_tag=view_tag, timestamp=timestamp)


# Announcements are the same record as payments once stored on the ledger
StealthAnnouncement = StealthPayment


@dataclass(frozen=True)
class StealthMatch:
    """A scanned announcement that belongs to the kit."""

    announcement: StealthAnnouncement
    stealth_public_key: bytes
    stealth_private_key: bytes = field(repr=False)


def public_key_from_private(private_key: bytes) -> bytes:
    """Public point x*G for a private scalar x."""
    return Ed25519.base_mul(private_key)


def generate_meta_address() -> StealthKit:
    """
    Generate a receiver kit from two independent random scalars.

    Returns:
        StealthKit: Private keys plus the shareable meta-address
    """
    spend = Ed25519.random_scalar()
    view = Ed25519.random_scalar()
    meta = MetaAddress(spend_public_key=Ed25519.base_mul(spend), view_public_key=Ed25519.base_mul(view))
    return StealthKit(meta_address=meta, spend_private_key=spend, view_private_key=view)


def pay(meta_address: Union[MetaAddress, str]) -> StealthPayment:
    """
    Derive a fresh one-time address for a receiver.

    Args:
        meta_address: Receiver's MetaAddress or its st:... text form

    Returns:
        StealthPayment: One-time address, ephemeral public key and view tag
    """
    if isinstance(meta_address, str):
        meta_address = MetaAddress.parse(meta_address)

    ephemeral_private = Ed25519.random_scalar()
    ephemeral_public = Ed25519.base_mul(ephemeral_private)
    shared = _shared_secret(ephemeral_private, meta_address.view_public_key)

    stealth_public = _stealth_public_key(meta_address.spend_public_key, shared)
    return StealthPayment(
        stealth_address=encode_address(stealth_public),
        ephemeral_public_key=ephemeral_public,
        view_tag=_view_tag(shared),
        timestamp=int(time.time()),
    )


def derive_stealth_private_key(kit: StealthKit, ephemeral_public_key: bytes) -> bytes:
    """One-time private scalar b + Hs(v*R) mod the group order."""
    shared = _shared_secret(kit.view_private_key, ephemeral_public_key)
    return Ed25519.scalar_add(kit.spend_private_key, Ed25519.hash_to_scalar(shared))


def _check_announcement(kit: StealthKit, announcement: StealthAnnouncement):
    if not Ed25519.is_valid_point(announcement.ephemeral_public_key):
        raise StealthError("Ephemeral public key is not a valid point")

    shared = _shared_secret(kit.view_private_key, announcement.ephemeral_public_key)
    if _view_tag(shared) != announcement.view_tag:
        return None

    expected = _stealth_public_key(kit.meta_address.spend_public_key, shared)
    announced = decode_address(announcement.stealth_address)
    if not hmac.compare_digest(expected, announced):
        return None

    private = Ed25519.scalar_add(kit.spend_private_key, Ed25519.hash_to_scalar(shared))
    return StealthMatch(announcement=announcement, stealth_public_key=expected, stealth_private_key=private)


def scan(kit: StealthKit, announcements: Iterable[Union[StealthAnnouncement, dict]]) -> List[StealthMatch]:
    """
    Find the announcements addressed to this kit.

    Announcements that cannot be parsed or hold an invalid point are
    logged and skipped; the rest of the scan continues.

    Returns:
        List[StealthMatch]: Matches with their one-time private keys
    """
    matches = []
    skipped = 0
    for position, item in enumerate(announcements):
        try:
            announcement = item if isinstance(item, StealthPayment) else StealthPayment.from_dict(item)
            match = _check_announcement(kit, announcement)
        except (StealthError, InvalidAddressError) as e:
            skipped += 1
            logger.debug(f"Skipping announcement {position}: {e}")
            continue
        if match is not None:
            matches.append(match)

    logger.info(f"Stealth scan found {len(matches)} payment(s), skipped {skipped} malformed")
    return matches
