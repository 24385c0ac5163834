from __future__ import annotations

from typing import Callable, Optional, Union

from .constants import (
    BLOCK_SIZE,
    CHKSUM_MASK,
    FIELD_NAME,
    FIELD_MODE,
    FIELD_UID,
    FIELD_GID,
    FIELD_SIZE,
    FIELD_MTIME,
    FIELD_CHKSUM,
    FIELD_TYPEFLAG,
    FIELD_LINKNAME,
    FIELD_MAGIC,
    FIELD_VERSION,
    FIELD_UNAME,
    FIELD_GNAME,
    FIELD_DEVMAJOR,
    FIELD_DEVMINOR,
    FIELD_PREFIX,
    REGTYPE,
)
from .errors import FormatError
from .records import Diagnostic, DiagnosticKind, Entry, EntryType, RawHeader


_OCTAL_DIGITS = b"01234567"
# GNU headers reuse the prefix area for atime/ctime/sparse data
_GNU_MAGIC = b"ustar "


def _slice(block: bytes, layout) -> bytes:
    off, width = layout
    return block[off : off + width]


def _text_field(block: bytes, layout) -> bytes:
    # NUL-terminated; anything after the first NUL is padding
    return _slice(block, layout).split(b"\x00", 1)[0]


def decode_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("iso-8859-1")


def decode_raw(block: bytes, offset: int = 0) -> Optional[RawHeader]:
    """Split a header block into its fields.

    Returns None for an all-zero block, the candidate end-of-archive marker.
    """
    if len(block) != BLOCK_SIZE:
        raise FormatError(f"header block has {len(block)} bytes, expected {BLOCK_SIZE}", offset)
    if not any(block):
        return None
    return RawHeader(
        name=_text_field(block, FIELD_NAME),
        mode=_slice(block, FIELD_MODE),
        uid=_slice(block, FIELD_UID),
        gid=_slice(block, FIELD_GID),
        size=_slice(block, FIELD_SIZE),
        mtime=_slice(block, FIELD_MTIME),
        checksum=_slice(block, FIELD_CHKSUM),
        typeflag=_text_field(block, FIELD_TYPEFLAG),
        linkname=_text_field(block, FIELD_LINKNAME),
        magic=_text_field(block, FIELD_MAGIC),
        version=_text_field(block, FIELD_VERSION),
        uname=_text_field(block, FIELD_UNAME),
        gname=_text_field(block, FIELD_GNAME),
        devmajor=_slice(block, FIELD_DEVMAJOR),
        devminor=_slice(block, FIELD_DEVMINOR),
        prefix=_text_field(block, FIELD_PREFIX),
    )


def compute_checksum(block: bytes) -> int:
    """Unsigned byte sum of the block with the checksum field read as spaces."""
    off, width = FIELD_CHKSUM
    total = sum(block[:off]) + width * 0x20 + sum(block[off + width :])
    return total & CHKSUM_MASK


def parse_checksum_field(field: bytes) -> Optional[int]:
    """Value of the leading octal digit run, or None if there is none.

    Writers disagree on the terminator (NUL, space, or both), so only the
    digits are significant.
    """
    field = field.lstrip(b" ")
    end = 0
    while end < len(field) and field[end] in _OCTAL_DIGITS:
        end += 1
    if end == 0:
        return None
    return int(field[:end], 8)


def checksums_match(
    recorded: Union[bytes, int, None], computed: Union[bytes, int, None], offset: Optional[int] = None
) -> bool:
    r = recorded if not isinstance(recorded, (bytes, bytearray)) else parse_checksum_field(bytes(recorded))
    c = computed if not isinstance(computed, (bytes, bytearray)) else parse_checksum_field(bytes(computed))
    if r is None and c is None:
        raise FormatError("checksum field holds no octal digits", offset)
    return r == c


def decode_numeric(field: bytes, name: str = "numeric", offset: Optional[int] = None) -> int:
    """Decode a numeric header field.

    GNU base-256: the high bit of the first byte is set and the remaining
    bits form a big-endian integer. Otherwise the field is octal ASCII,
    optionally space-padded on the left and terminated by NUL or space.
    """
    if field and field[0] & 0x80:
        value = field[0] & 0x7F
        for b in field[1:]:
            value = value * 256 + b
        return value
    digits = field.split(b"\x00", 1)[0].lstrip(b" ")
    digits = digits.split(b" ", 1)[0]
    if not digits:
        return 0
    for b in digits:
        if b not in _OCTAL_DIGITS:
            raise FormatError(f"invalid {name} field {field!r}", offset)
    return int(digits, 8)


def decode_header(
    raw: RawHeader,
    block: bytes,
    offset: int = 0,
    warn: Optional[Callable[[Diagnostic], None]] = None,
) -> Entry:
    """Resolve a RawHeader into an Entry shell (no content, no extended attributes)."""
    typeflag = decode_text(raw.typeflag) or REGTYPE
    etype = EntryType.from_typeflag(typeflag)

    name = decode_text(raw.name)
    if raw.prefix and raw.magic != _GNU_MAGIC:
        name = decode_text(raw.prefix) + "/" + name

    entry = Entry(
        name=name,
        type=etype,
        typeflag=typeflag,
        mode=decode_numeric(raw.mode, "mode", offset),
        uid=decode_numeric(raw.uid, "uid", offset),
        gid=decode_numeric(raw.gid, "gid", offset),
        size=decode_numeric(raw.size, "size", offset),
        mtime=decode_numeric(raw.mtime, "mtime", offset),
        linkpath=decode_text(raw.linkname) if raw.linkname else None,
        user=decode_text(raw.uname) if raw.uname else None,
        group=decode_text(raw.gname) if raw.gname else None,
        offset=offset,
    )
    if etype.is_device:
        entry.device_major = decode_numeric(raw.devmajor, "devmajor", offset)
        entry.device_minor = decode_numeric(raw.devminor, "devminor", offset)

    entry.checksum_recorded = parse_checksum_field(raw.checksum)
    entry.checksum_computed = compute_checksum(block)
    if not checksums_match(entry.checksum_recorded, entry.checksum_computed, offset) and warn is not None:
        recorded = "none" if entry.checksum_recorded is None else f"{entry.checksum_recorded:o}"
        warn(
            Diagnostic(
                offset=offset,
                kind=DiagnosticKind.WARNING,
                message=f"checksum mismatch: recorded {recorded}, computed {entry.checksum_computed:o}",
            )
        )
    return entry
