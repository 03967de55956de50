"""
Content hashing for dedupe and alt-text cache keys.

Digests look like ``sha256:<hex>``; the same string keys both the manifest
dedupe set and the alt-text cache, so moving or renaming a source file never
changes either.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

HASH_ALGORITHM = "sha256"
CHUNK_SIZE = 1024 * 1024


def compute_file_digest(path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Return the algorithm-prefixed SHA-256 digest of a file's raw bytes."""
    h = hashlib.new(HASH_ALGORITHM)
    with path.open("rb") as fh:
        while True:
            block = fh.read(chunk_size)
            if not block:
                break
            h.update(block)
    return f"{HASH_ALGORITHM}:{h.hexdigest()}"


def compute_bytes_digest(data: bytes) -> str:
    return f"{HASH_ALGORITHM}:{hashlib.new(HASH_ALGORITHM, data).hexdigest()}"


def digest_to_filename(digest: str, suffix: str = ".txt") -> str:
    """Filesystem-safe name for a digest (``sha256:ab..`` -> ``sha256_ab...txt``)."""
    return digest.replace(":", "_") + suffix
