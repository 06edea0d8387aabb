"""
Principal identifiers.

A principal is an account address: "0x" followed by up to 64 hex digits.
Addresses are compared in their long form (lower case, zero-padded to
64 digits), so "0x1", "0x01" and "0X0...01" name the same principal.

The zero address is the attester sentinel of an unattested record and is
never a valid caller.
"""

import re
from typing import Any

from .errors import InvalidPrincipalError
from .util import sha3_256_hex

ADDRESS_HEX_LENGTH = 64
ADDRESS_PATTERN = re.compile(r'^0[xX]([a-fA-F0-9]{1,64})$')

NULL_PRINCIPAL = "0x" + "0" * ADDRESS_HEX_LENGTH

# Single-signer Ed25519 authentication scheme byte appended before hashing.
ED25519_SCHEME = b"\x00"


def normalize_principal(value: Any) -> str:
    """
    Normalize an address to its long form.

    Raises:
        InvalidPrincipalError: if the value is not a 0x-prefixed hex address
    """
    if not isinstance(value, str):
        raise InvalidPrincipalError(value, "must be a string")
    m = ADDRESS_PATTERN.match(value.strip())
    if not m:
        raise InvalidPrincipalError(value)
    return "0x" + m.group(1).lower().rjust(ADDRESS_HEX_LENGTH, "0")


def is_null_principal(value: str) -> bool:
    return normalize_principal(value) == NULL_PRINCIPAL


def normalize_caller(value: Any) -> str:
    """Normalize an address that is about to act as a caller identity."""
    principal = normalize_principal(value)
    if principal == NULL_PRINCIPAL:
        raise InvalidPrincipalError(value, "the zero address cannot act as a caller")
    return principal


def short_principal(value: str) -> str:
    """Short form for display: leading zeros stripped, "0x0" for the sentinel."""
    stripped = normalize_principal(value)[2:].lstrip("0")
    return "0x" + (stripped or "0")


def derive_principal(public_key: bytes) -> str:
    """
    Derive the account address controlled by an Ed25519 public key.

    address = sha3_256(public_key || 0x00)
    """
    if len(public_key) != 32:
        raise InvalidPrincipalError(public_key.hex(), "Ed25519 public keys are 32 bytes")
    return "0x" + sha3_256_hex(public_key + ED25519_SCHEME)
