from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .constants import (
    REGTYPE,
    AREGTYPE,
    LNKTYPE,
    SYMTYPE,
    CHRTYPE,
    BLKTYPE,
    DIRTYPE,
    FIFOTYPE,
    CONTTYPE,
)


class EntryType(enum.Enum):
    NORMAL = "file"
    HARDLINK = "hardlink"
    SYMLINK = "symlink"
    CHARDEV = "chardev"
    BLOCKDEV = "blockdev"
    DIRECTORY = "directory"
    FIFO = "fifo"
    CONTIGUOUS = "contiguous"
    UNKNOWN = "unknown"

    @classmethod
    def from_typeflag(cls, typeflag: str) -> "EntryType":
        return _TYPEFLAG_MAP.get(typeflag, cls.UNKNOWN)

    @property
    def is_device(self) -> bool:
        return self in (EntryType.CHARDEV, EntryType.BLOCKDEV)


_TYPEFLAG_MAP = {
    REGTYPE: EntryType.NORMAL,
    AREGTYPE: EntryType.NORMAL,
    "": EntryType.NORMAL,
    LNKTYPE: EntryType.HARDLINK,
    SYMTYPE: EntryType.SYMLINK,
    CHRTYPE: EntryType.CHARDEV,
    BLKTYPE: EntryType.BLOCKDEV,
    DIRTYPE: EntryType.DIRECTORY,
    FIFOTYPE: EntryType.FIFO,
    CONTTYPE: EntryType.CONTIGUOUS,
}


class DiagnosticKind(enum.Enum):
    WARNING = "warning"
    ALERT = "alert"


@dataclass
class Diagnostic:
    offset: int
    kind: DiagnosticKind
    message: str

    def __str__(self) -> str:
        return f"{self.message} (offset {self.offset})"


@dataclass
class RawHeader:
    """One header block split at the ustar field boundaries.

    Text fields have their NUL padding removed. Numeric fields keep their full
    width since a base-256 value may end in NUL bytes.
    """

    name: bytes
    mode: bytes
    uid: bytes
    gid: bytes
    size: bytes
    mtime: bytes
    checksum: bytes
    typeflag: bytes
    linkname: bytes
    magic: bytes
    version: bytes
    uname: bytes
    gname: bytes
    devmajor: bytes
    devminor: bytes
    prefix: bytes


Timestamp = Union[int, float]


@dataclass
class Entry:
    name: str
    type: EntryType
    typeflag: str
    size: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    mtime: Timestamp = 0
    atime: Optional[Timestamp] = None
    ctime: Optional[Timestamp] = None
    linkpath: Optional[str] = None
    user: Optional[str] = None
    group: Optional[str] = None
    device_major: Optional[int] = None
    device_minor: Optional[int] = None
    checksum_recorded: Optional[int] = None
    checksum_computed: int = 0
    offset: int = 0
    pax: Dict[str, str] = field(default_factory=dict)
    content: Any = None

    @property
    def checksum_ok(self) -> bool:
        return self.checksum_recorded == self.checksum_computed
