from __future__ import annotations

import enum
import re
from typing import Callable, Dict, List, Optional, Tuple

from .constants import GNUTYPE_LONGNAME, GNUTYPE_LONGLINK, XHDTYPE, XGLTYPE
from .header import decode_text
from .records import Diagnostic, DiagnosticKind, Entry


_DIGITS = b"0123456789"
_MAX_LENGTH_DIGITS = 18


class MetaKind(enum.Enum):
    LONGNAME = GNUTYPE_LONGNAME
    LONGLINK = GNUTYPE_LONGLINK
    PAX = XHDTYPE
    PAX_GLOBAL = XGLTYPE

    @classmethod
    def for_typeflag(cls, typeflag: str) -> Optional["MetaKind"]:
        try:
            return cls(typeflag)
        except ValueError:
            return None


class PaxRecordParser:
    """Incremental parser for ``<len> <key>=<value>\\n`` records.

    Bytes may arrive in arbitrary pieces; a record whose declared length runs
    past the buffered data waits for the next ``feed``. Malformed records are
    skipped.
    """

    def __init__(self):
        self._buf = bytearray()

    def feed(self, data: bytes) -> List[Tuple[str, str]]:
        self._buf += data
        out: List[Tuple[str, str]] = []
        buf = self._buf
        pos = 0
        while pos < len(buf):
            j = pos
            while j < len(buf) and buf[j] in _DIGITS:
                j += 1
            if j == len(buf):
                break
            length = int(buf[pos:j]) if 0 < j - pos <= _MAX_LENGTH_DIGITS else 0
            if length == 0 or buf[j] != 0x20 or length <= j - pos + 1:
                # No usable length prefix; resynchronise on the next newline
                nl = buf.find(b"\n", pos)
                if nl == -1:
                    break
                pos = nl + 1
                continue
            if pos + length > len(buf):
                break
            body = bytes(buf[j + 1 : pos + length])
            pos += length
            if body.endswith(b"\n"):
                body = body[:-1]
            key, sep, value = body.partition(b"=")
            if not sep or not key:
                continue
            out.append((decode_text(key), decode_text(value)))
        del buf[:pos]
        return out

    def finish(self) -> int:
        """Drop whatever never formed a complete record; return its length."""
        leftover = len(self._buf)
        self._buf.clear()
        return leftover


class PendingAttributes:
    """Extended attributes waiting for the next real entry.

    Two layers are kept so that PAX values always win over GNU long
    name/link values regardless of the order they were read in.
    """

    def __init__(self):
        self.gnu: Dict[str, str] = {}
        self.pax: Dict[str, str] = {}

    def __bool__(self) -> bool:
        return bool(self.gnu or self.pax)

    def set_gnu(self, key: str, value: str) -> None:
        self.gnu[key] = value

    def set_pax(self, key: str, value: str) -> None:
        if key == "path":
            key = "name"
        self.pax[key] = value

    def merged(self) -> Dict[str, str]:
        out = dict(self.gnu)
        out.update(self.pax)
        return out

    def clear(self) -> None:
        self.gnu.clear()
        self.pax.clear()

    def apply(self, entry: Entry, warn: Optional[Callable[[Diagnostic], None]] = None) -> Entry:
        """Overlay the pending attributes on ``entry`` in place."""
        for key, value in self.merged().items():
            if key == "name":
                entry.name = value
            elif key == "linkpath":
                entry.linkpath = value
            elif key == "uname":
                entry.user = value
            elif key == "gname":
                entry.group = value
            elif key in ("size", "uid", "gid", "mtime", "atime", "ctime"):
                try:
                    parsed = _parse_number(value, allow_fraction=key.endswith("time"))
                except ValueError:
                    if warn is not None:
                        warn(
                            Diagnostic(
                                offset=entry.offset,
                                kind=DiagnosticKind.WARNING,
                                message=f"ignoring malformed extended attribute {key}={value!r}",
                            )
                        )
                    continue
                setattr(entry, key, parsed)
        entry.pax = dict(self.pax)
        return entry


_COUNT_RE = re.compile(r"[0-9]+")
# times may be negative or fractional
_TIME_RE = re.compile(r"-?[0-9]+(\.[0-9]*)?")


def _parse_number(value: str, *, allow_fraction: bool):
    value = value.strip()
    pattern = _TIME_RE if allow_fraction else _COUNT_RE
    if pattern.fullmatch(value) is None:
        raise ValueError(f"not a decimal number: {value!r}")
    if "." in value:
        return float(value)
    return int(value, 10)


class MetaCollector:
    """Consumes the payload of one L/K/x/g entry into PendingAttributes."""

    def __init__(self, kind: MetaKind, pending: PendingAttributes):
        self.kind = kind
        self.pending = pending
        self._chunks: List[bytes] = []
        self._pax = PaxRecordParser() if kind in (MetaKind.PAX, MetaKind.PAX_GLOBAL) else None

    def feed(self, data: bytes) -> None:
        if self._pax is None:
            self._chunks.append(data)
            return
        for key, value in self._pax.feed(data):
            self.pending.set_pax(key, value)

    def finish(self) -> None:
        if self._pax is not None:
            self._pax.finish()
            return
        value = decode_text(b"".join(self._chunks).rstrip(b"\x00"))
        self._chunks = []
        if self.kind is MetaKind.LONGNAME:
            self.pending.set_gnu("name", value)
        else:
            self.pending.set_gnu("linkpath", value)
