from __future__ import annotations

import io
from typing import BinaryIO, Optional, Union

from .constants import BLOCK_SIZE
from .errors import ShortBlockError


Source = Union[BinaryIO, bytes, bytearray, memoryview]


class BlockSource:
    """Splits a binary stream into successive 512-byte blocks.

    ``offset`` is the number of bytes consumed so far and is always a multiple
    of the block size.
    """

    def __init__(self, fileobj: BinaryIO):
        self.f = fileobj
        self.offset = 0

    @classmethod
    def wrap(cls, source: Source) -> "BlockSource":
        if isinstance(source, BlockSource):
            return source
        if isinstance(source, (bytes, bytearray, memoryview)):
            return cls(io.BytesIO(bytes(source)))
        return cls(source)

    def next_block(self) -> Optional[bytes]:
        """Return the next block, or None on a clean end of stream."""
        buf = bytearray()
        # Pipes may hand back fewer bytes than requested
        while len(buf) < BLOCK_SIZE:
            chunk = self.f.read(BLOCK_SIZE - len(buf))
            if not chunk:
                break
            buf += chunk
        if not buf:
            return None
        if len(buf) != BLOCK_SIZE:
            raise ShortBlockError(len(buf), self.offset)
        self.offset += BLOCK_SIZE
        return bytes(buf)
