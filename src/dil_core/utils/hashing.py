"""
dil-core hashing utilities

File: src/dil_core/utils/hashing.py

Purpose
- SHA-256 helpers used to content-address receipts and derive run identifiers.

Non-functional requirements
- Standard library only; output is lowercase hex.
"""

from __future__ import annotations

import hashlib
import string

_SHA256_HEX_LENGTH = 64
_HEX_DIGITS = frozenset(string.hexdigits.lower())

__all__ = [
    "is_sha256_hex",
    "sha256_bytes",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def is_sha256_hex(value: str) -> bool:
    return len(value) == _SHA256_HEX_LENGTH and set(value) <= _HEX_DIGITS
