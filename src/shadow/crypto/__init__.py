"""Cryptographic primitives module"""

from shadow.crypto.field import (
    FIELD_MODULUS,
    address_to_field,
    field_to_hex,
    hex_to_field,
    random_field_element,
    signal_hash,
)
from shadow.crypto.poseidon import poseidon_hash
from shadow.crypto.stealth import (
    MetaAddress,
    StealthKit,
    StealthPayment,
    generate_meta_address,
    pay,
    scan,
)

__all__ = [
    'FIELD_MODULUS',
    'address_to_field',
    'field_to_hex',
    'hex_to_field',
    'random_field_element',
    'signal_hash',
    'poseidon_hash',
    'MetaAddress',
    'StealthKit',
    'StealthPayment',
    'generate_meta_address',
    'pay',
    'scan',
]
