"""
Ed25519 request signing.

A signed call proves control of the caller's account key. The signed message
is the canonical JSON of:

    {"method": "POST", "path": "/v1/identities", "body": {...} | null, "timestamp": 1700000000}

and the caller principal is the address derived from the public key.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from nacl.signing import SigningKey, VerifyKey
from nacl.exceptions import BadSignatureError

from .principals import derive_principal
from .util import canonicalize, hex_decode


@dataclass
class KeyPair:
    """Ed25519 account key pair."""
    signing_key: bytes
    verify_key: bytes

    @property
    def principal(self) -> str:
        return derive_principal(self.verify_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal": self.principal,
            "public_key": self.verify_key.hex(),
            "private_key": self.signing_key.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyPair":
        sk = SigningKey(hex_decode(data["private_key"]))
        return cls(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def generate_key_pair() -> KeyPair:
    sk = SigningKey.generate()
    return KeyPair(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def request_message(method: str, path: str, body: Optional[Any], timestamp: int) -> bytes:
    return canonicalize({
        "method": method.upper(),
        "path": path,
        "body": body,
        "timestamp": int(timestamp),
    })


def sign_request(
    signing_key: bytes,
    method: str,
    path: str,
    body: Optional[Any],
    timestamp: int
) -> str:
    """Return the hex signature over the canonical request message."""
    sk = SigningKey(signing_key)
    return sk.sign(request_message(method, path, body, timestamp)).signature.hex()


def verify_request_signature(
    public_key_hex: str,
    signature_hex: str,
    method: str,
    path: str,
    body: Optional[Any],
    timestamp: int
) -> bool:
    """
    Verify a request signature.

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        vk = VerifyKey(hex_decode(public_key_hex))
        vk.verify(request_message(method, path, body, timestamp), hex_decode(signature_hex))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False
