"""Utility exports for filesystem, hashing, and concurrency helpers."""

from dil_core.utils.concurrency import BoundedSemaphore, gather_bounded
from dil_core.utils.fs import atomic_write, ensure_directory
from dil_core.utils.hashing import is_sha256_hex, sha256_bytes

__all__ = [
    "BoundedSemaphore",
    "atomic_write",
    "ensure_directory",
    "gather_bounded",
    "is_sha256_hex",
    "sha256_bytes",
]
