"""
Utility functions for the identity registry.

Provides canonical JSON serialization, hashing, hex encoding and time helpers.
"""

import json
import hashlib
import time
from typing import Any, Union


def canonicalize(obj: Any) -> bytes:
    """
    Convert object to canonical JSON bytes.
    
    Canonical JSON:
    - Lexicographically sorted keys
    - No whitespace
    - UTF-8 encoded
    """
    s = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return s.encode('utf-8')


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def sha3_256_hex(data: bytes) -> str:
    """Compute SHA3-256 hash and return as hex string."""
    return hashlib.sha3_256(data).hexdigest()


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def hex_decode(s: str) -> bytes:
    """Decode a hex string, tolerating an optional 0x prefix."""
    if s.startswith(('0x', '0X')):
        s = s[2:]
    return bytes.fromhex(s)
