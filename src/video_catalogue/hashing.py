"""Content hashing for duplicate detection.

The digest algorithm is configurable; SHA-256 is the default. Only
fixed-length ``hashlib`` algorithms are accepted so every digest of a
given engine has the same length.
"""

from __future__ import annotations

import asyncio
import hashlib

from video_catalogue.errors import HashFailure

DEFAULT_ALGORITHM = "sha256"


class ContentHasher:
    """Deterministic content-addressing function from bytes to a hex digest.

    Usage:
        hasher = ContentHasher("sha256")
        digest = hasher.digest(b"...")
    """

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM) -> None:
        algorithm = algorithm.lower()
        try:
            probe = hashlib.new(algorithm)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}") from e
        if algorithm.startswith("shake_"):
            raise ValueError(f"Variable-length hash algorithm not allowed: {algorithm}")

        self.algorithm = algorithm
        self.digest_length = probe.digest_size * 2

    def digest(self, data: bytes) -> str:
        """Compute the hex digest of ``data``.

        Raises:
            HashFailure: If the digest cannot be computed.
        """
        try:
            hasher = hashlib.new(self.algorithm)
            hasher.update(data)
            return hasher.hexdigest()
        except Exception as e:
            raise HashFailure(f"{self.algorithm} digest failed: {e}") from e

    async def digest_async(self, data: bytes) -> str:
        """Compute the digest in a worker thread to keep the event loop free."""
        return await asyncio.to_thread(self.digest, data)
