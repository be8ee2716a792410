"""
Deterministic hashing for content-addressed caching.

A backend's verdict depends on the bytes it was given, on the backend
itself, and on whatever item metadata the backend reads (the cran backend
only parses files named DESCRIPTION). The cache key hashes exactly those.
Where the bytes came from (source identifier, directory, mtime) is left
out: the same file found under two sources shares one cache entry.

Examples:
    >>> fingerprint(b"MIT License ...", "spdx", "1")
    '3f1c...'  # 64-char hex string
    >>> fingerprint(b"x", "spdx", "1") == fingerprint(b"x", "spdx", "2")
    False
    >>> fingerprint(b"x", "cran", "1", "DESCRIPTION") == fingerprint(b"x", "cran", "1")
    False

Tags:
    hashing, cache, fingerprint, scanspine
"""

import hashlib
from typing import Any


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute deterministic hash from values.

    Values are stringified and joined with '|', then SHA-256 hashed.
    Order-dependent: ``compute_hash("a", "b") != compute_hash("b", "a")``.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def fingerprint(data: bytes, backend_name: str, backend_version: str, context: str = "") -> str:
    """
    Cache key for one (content, backend) pair.

    ``context`` is the item metadata the backend's verdict depends on
    (see ``BaseBackend.fingerprint_info``). Identity and context are hashed
    first, each NUL-terminated, so neither can collide with a prefix of the
    content.
    """
    h = hashlib.sha256()
    h.update(f"{backend_name}@{backend_version}".encode())
    h.update(b"\0")
    h.update(context.encode())
    h.update(b"\0")
    h.update(data)
    return h.hexdigest()
