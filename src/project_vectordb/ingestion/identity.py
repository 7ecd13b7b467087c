"""Content-addressed chunk identifiers.

Ids are the hex prefix of ``sha256(f"{file_path}-{chunk_index}")``. Re-ingesting
an unchanged tree produces the same ids, so writes overwrite instead of
duplicating. A 16 character prefix keeps 64 bits of the digest; collisions are
possible in principle and accepted at the corpus sizes this library targets.
"""

from __future__ import annotations

import hashlib

DEFAULT_ID_LENGTH = 16


def generate_chunk_id(file_path: str, chunk_index: int, *, length: int = DEFAULT_ID_LENGTH) -> str:
    if not 1 <= length <= 64:
        raise ValueError(f"id length must be between 1 and 64 (got {length})")
    digest = hashlib.sha256(f"{file_path}-{chunk_index}".encode("utf-8")).hexdigest()
    return digest[:length]


__all__ = ["DEFAULT_ID_LENGTH", "generate_chunk_id"]
