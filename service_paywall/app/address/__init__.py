"""
Address derivation package.

Turns the public key a caller presents into the canonical ledger address
that its payments are recorded under. Two schemes exist (see
``deriver``); a deployment picks one at startup and keeps it, since
switching scheme changes every address.
"""

from .deriver import (
    AddressDeriver,
    ED448_PUBLIC_KEY_SIZE,
    decode_public_key,
    derive_checksum_address,
    derive_hashed_address,
    ican_checksum,
    network_prefix,
)

__all__ = [
    "AddressDeriver",
    "ED448_PUBLIC_KEY_SIZE",
    "decode_public_key",
    "derive_checksum_address",
    "derive_hashed_address",
    "ican_checksum",
    "network_prefix",
]
