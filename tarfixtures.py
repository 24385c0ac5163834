"""Hand-built tar blocks for tests that need malformed or unusual archives."""

from __future__ import annotations

import io
import tarfile
from typing import Iterable, Optional, Tuple, Union

from tarlens.constants import (
    BLOCK_SIZE,
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
)


END_MARKER = b"\x00" * (2 * BLOCK_SIZE)


def _b(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def _octal(value: int, width: int) -> bytes:
    return ("%0*o" % (width - 1, value)).encode("ascii") + b"\x00"


def _put(buf: bytearray, layout, value: bytes) -> None:
    off, width = layout
    if len(value) > width:
        raise ValueError(f"{value!r} does not fit in {width} bytes")
    buf[off : off + len(value)] = value


def make_header(
    name: Union[str, bytes],
    *,
    size: int = 0,
    typeflag: Union[str, bytes] = b"0",
    mode: int = 0o644,
    uid: int = 1000,
    gid: int = 1000,
    mtime: int = 1700000000,
    linkname: Union[str, bytes] = b"",
    prefix: Union[str, bytes] = b"",
    uname: Union[str, bytes] = b"alice",
    gname: Union[str, bytes] = b"staff",
    magic: bytes = b"ustar\x00",
    version: bytes = b"00",
    devmajor: int = 0,
    devminor: int = 0,
    size_field: Optional[bytes] = None,
    mode_field: Optional[bytes] = None,
) -> bytes:
    """Build one ustar header block with a valid checksum."""
    buf = bytearray(BLOCK_SIZE)
    _put(buf, FIELD_NAME, _b(name))
    _put(buf, FIELD_MODE, mode_field if mode_field is not None else _octal(mode, 8))
    _put(buf, FIELD_UID, _octal(uid, 8))
    _put(buf, FIELD_GID, _octal(gid, 8))
    _put(buf, FIELD_SIZE, size_field if size_field is not None else _octal(size, 12))
    _put(buf, FIELD_MTIME, _octal(mtime, 12))
    _put(buf, FIELD_TYPEFLAG, _b(typeflag))
    _put(buf, FIELD_LINKNAME, _b(linkname))
    _put(buf, FIELD_MAGIC, magic)
    _put(buf, FIELD_VERSION, version)
    _put(buf, FIELD_UNAME, _b(uname))
    _put(buf, FIELD_GNAME, _b(gname))
    _put(buf, FIELD_DEVMAJOR, _octal(devmajor, 8))
    _put(buf, FIELD_DEVMINOR, _octal(devminor, 8))
    _put(buf, FIELD_PREFIX, _b(prefix))
    _put(buf, FIELD_CHKSUM, b" " * 8)
    _put(buf, FIELD_CHKSUM, b"%06o\x00 " % sum(buf))
    return bytes(buf)


def pad(data: bytes) -> bytes:
    """Zero-pad ``data`` up to the next block boundary."""
    rem = len(data) % BLOCK_SIZE
    return data if rem == 0 else data + b"\x00" * (BLOCK_SIZE - rem)


def member(name: Union[str, bytes], content: bytes = b"", **kwargs) -> bytes:
    return make_header(name, size=len(content), **kwargs) + pad(content)


def pax_record(key: str, value: str) -> bytes:
    body = f" {key}={value}\n".encode("utf-8")
    length = len(body) + 1
    while len(str(length)) + len(body) != length:
        length = len(str(length)) + len(body)
    return str(length).encode("ascii") + body


def pax_member(records: Iterable[Tuple[str, str]], *, typeflag: bytes = b"x") -> bytes:
    payload = b"".join(pax_record(k, v) for k, v in records)
    return member("././@PaxHeader", payload, typeflag=typeflag)


def stdlib_archive(files: Iterable[Tuple[str, bytes]], *, fmt: int = tarfile.GNU_FORMAT) -> bytes:
    """Regular files written by the standard library writer."""
    out = io.BytesIO()
    with tarfile.open(fileobj=out, mode="w", format=fmt) as tf:
        for name, data in files:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            info.mtime = 1700000000
            tf.addfile(info, io.BytesIO(data))
    return out.getvalue()
