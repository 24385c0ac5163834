from __future__ import annotations

import hashlib
from typing import BinaryIO, Iterable

from .constants import DEFAULT_READ_SIZE


def blake2s_hex_chunks(chunks: Iterable[bytes]) -> str:
    h = hashlib.blake2s(digest_size=32)
    for chunk in chunks:
        h.update(chunk)
    return h.hexdigest()


def blake2s_hex_file(f: BinaryIO) -> str:
    """Digest of a whole stream, read in bounded pieces."""
    return blake2s_hex_chunks(iter(lambda: f.read(DEFAULT_READ_SIZE), b""))
