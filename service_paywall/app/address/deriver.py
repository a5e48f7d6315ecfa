"""
Ledger address derivation for the Paywall Service.

Both schemes are pure functions of the key bytes. The only failure mode is
``InvalidKeyError``; a partial or best-effort address is never returned.
"""

import hashlib
import string
from typing import Callable, Dict, Union

from shared.errors import InvalidKeyError
from shared.logging import get_logger
from ..models import AddressScheme

ED448_PUBLIC_KEY_SIZE = 57

# Marker the ledger indexer puts in front of hash-truncated addresses.
HASHED_ADDRESS_MARKER = "cb…"
HASHED_ADDRESS_BYTES = 16

ACCOUNT_OFFSET = 12

# network id -> address prefix byte
NETWORK_PREFIXES: Dict[int, int] = {
    1: 0xcb,  # mainnet
    3: 0xab,  # devin testnet
}
DEFAULT_NETWORK_PREFIX = 0xce  # private networks


def decode_public_key(public_key: str) -> bytes:
    """Decode the hex text form of a public key."""
    if public_key is None:
        raise InvalidKeyError("Public key is empty")

    text = public_key.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if not text:
        raise InvalidKeyError("Public key is empty")

    if any(char not in string.hexdigits for char in text):
        raise InvalidKeyError("Public key is not valid hex")

    try:
        return bytes.fromhex(text)
    except ValueError:
        raise InvalidKeyError("Public key is not valid hex")


def _require_key_size(public_key: bytes, expected: int = ED448_PUBLIC_KEY_SIZE):
    if len(public_key) != expected:
        raise InvalidKeyError(
            "Public key has wrong length",
            {"expected_bytes": expected, "actual_bytes": len(public_key)}
        )


def derive_hashed_address(public_key: bytes) -> str:
    """Marker followed by the hex of the first 16 bytes of SHA-256(key)."""
    _require_key_size(public_key)
    digest = hashlib.sha256(public_key).digest()
    return HASHED_ADDRESS_MARKER + digest[:HASHED_ADDRESS_BYTES].hex()


def network_prefix(network_id: int) -> int:
    """Address prefix byte for a network."""
    return NETWORK_PREFIXES.get(network_id, DEFAULT_NETWORK_PREFIX)


def ican_checksum(account: bytes, prefix: int) -> int:
    """ISO 7064 mod 97-10 check digits over account and network prefix.

    The account hex is followed by the prefix hex and ``00``; every hex
    letter becomes its base-36 value (a=10 ... f=15) before the modulo.
    """
    rearranged = account.hex() + f"{prefix:02x}" + "00"
    numeric = "".join(str(int(char, 36)) for char in rearranged)
    return 98 - int(numeric) % 97


def derive_checksum_address(public_key: bytes, network_id: int = 1) -> str:
    """Hex of ``prefix || checksum || account``.

    The account is SHA3-256(key)[12:]; the checksum is rendered as two
    decimal digits so the address reads like ``cb72...``.
    """
    _require_key_size(public_key)
    account = hashlib.sha3_256(public_key).digest()[ACCOUNT_OFFSET:]
    prefix = network_prefix(network_id)
    checksum = ican_checksum(account, prefix)
    raw = bytes([prefix]) + bytes.fromhex(f"{checksum:02d}") + account
    return raw.hex()


class AddressDeriver:
    """Derives addresses with the scheme fixed at construction."""

    def __init__(self, scheme: Union[AddressScheme, str] = AddressScheme.HASH, network_id: int = 1):
        self.scheme = AddressScheme(scheme)
        self.network_id = network_id
        self.logger = get_logger("paywall.address")

        if self.scheme == AddressScheme.CHECKSUM:
            self._derive: Callable[[bytes], str] = (
                lambda key: derive_checksum_address(key, self.network_id)
            )
        else:
            self._derive = derive_hashed_address

    def derive(self, public_key: str) -> str:
        """Derive the ledger address for a hex-encoded public key."""
        key_bytes = decode_public_key(public_key)
        address = self._derive(key_bytes)
        self.logger.debug("Address derived", scheme=self.scheme.value, address=address)
        return address
