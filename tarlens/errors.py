from __future__ import annotations

from typing import Optional


class TarLensError(Exception):
    """Base class for tarlens-specific errors."""


class FormatError(TarLensError):
    """The byte stream is not a structurally valid tar archive."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} at offset {offset}"
        super().__init__(message)


class ShortBlockError(TarLensError, OSError):
    """A read returned a partial 512-byte block."""

    def __init__(self, got: int, offset: int):
        self.got = got
        self.offset = offset
        super().__init__(f"short block ({got} of 512 bytes) at offset {offset}")


class CacheConsistencyError(TarLensError):
    pass
