"""
Caller binding for the registry service.

The registry core trusts the caller principal it is handed; this module is
where the service establishes it. Two modes:

- header: the X-Principal header names the caller. Only for deployments
  behind a gateway that has already authenticated the request.
- signature: the request carries an Ed25519 public key, a timestamp and a
  signature over the canonical request message. The caller is the address
  derived from the public key.
"""

import re
from typing import Any, Mapping, Optional

from idregistry.errors import RegistryError
from idregistry.principals import derive_principal, normalize_caller
from idregistry.signing import verify_request_signature
from idregistry.util import hex_decode


# ============================================================
# Boundary Errors
# ============================================================

class CallerRequiredError(RegistryError):
    """Raised when a mutating request does not identify its caller."""

    code = "CALLER_REQUIRED"
    http_status = 401


class BadSignatureError(RegistryError):
    """Raised when signed-caller headers are malformed or do not verify."""

    code = "BAD_SIGNATURE"
    http_status = 401


class StaleRequestError(RegistryError):
    """Raised when a signed request's timestamp is outside the skew window."""

    code = "STALE_REQUEST"
    http_status = 401


class RateLimitError(RegistryError):
    code = "RATE_LIMIT"
    http_status = 429

    def __init__(self, operation: str, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"rate limit exceeded for {operation}",
            retry_after=int(retry_after) + 1,
        )


# ============================================================
# Input Validation
# ============================================================

HEX_PATTERN = re.compile(r'^(0[xX])?[a-fA-F0-9]+$')

PUBLIC_KEY_HEX_LENGTH = 64
SIGNATURE_HEX_LENGTH = 128


def validate_hex(value: str, field_name: str, expected_length: Optional[int] = None) -> str:
    """
    Validate that a header value is hexadecimal.

    Returns:
        The lowercased hex string without 0x prefix

    Raises:
        BadSignatureError: If validation fails
    """
    value = (value or "").strip().lower()
    if not value:
        raise BadSignatureError(f"{field_name} cannot be empty", field=field_name)
    if not HEX_PATTERN.match(value):
        raise BadSignatureError(f"{field_name} must be valid hexadecimal", field=field_name)
    if value.startswith("0x"):
        value = value[2:]
    if expected_length and len(value) != expected_length:
        raise BadSignatureError(
            f"{field_name} must be {expected_length} hex characters",
            field=field_name,
        )
    return value


def validate_epoch_timestamp(value: Any, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadSignatureError(f"{field_name} must be an integer timestamp", field=field_name)


# ============================================================
# Caller Extraction
# ============================================================

def caller_from_header(headers: Mapping[str, str]) -> str:
    """
    Caller named by the X-Principal header.

    Raises:
        CallerRequiredError: if the header is missing
        InvalidPrincipalError: if it is malformed or the zero address
    """
    value = headers.get("x-principal", "")
    if not value:
        raise CallerRequiredError("X-Principal header is required")
    return normalize_caller(value)


def caller_from_signature(
    headers: Mapping[str, str],
    method: str,
    path: str,
    body: Optional[Any],
    now: int,
    max_skew_seconds: int
) -> str:
    """
    Caller proven by an Ed25519 request signature.

    Raises:
        CallerRequiredError: if the signing headers are missing
        BadSignatureError: if they are malformed or the signature does not verify
        StaleRequestError: if the timestamp is outside the skew window
    """
    public_key = headers.get("x-public-key", "")
    signature = headers.get("x-signature", "")
    timestamp = headers.get("x-timestamp", "")
    if not (public_key and signature and timestamp):
        raise CallerRequiredError("X-Public-Key, X-Timestamp and X-Signature headers are required")

    public_key = validate_hex(public_key, "X-Public-Key", PUBLIC_KEY_HEX_LENGTH)
    signature = validate_hex(signature, "X-Signature", SIGNATURE_HEX_LENGTH)
    ts = validate_epoch_timestamp(timestamp, "X-Timestamp")

    if abs(now - ts) > max_skew_seconds:
        raise StaleRequestError(
            "request timestamp outside allowed clock skew",
            max_skew_seconds=max_skew_seconds,
        )

    if not verify_request_signature(public_key, signature, method, path, body, ts):
        raise BadSignatureError("request signature does not verify")

    return normalize_caller(derive_principal(hex_decode(public_key)))


# ============================================================
# Rate Limiting Helpers
# ============================================================

def extract_client_id(operation: str, caller: str) -> str:
    """Rate-limit key for one caller on one mutating operation."""
    return f"{operation}:{caller}"
