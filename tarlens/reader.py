from __future__ import annotations

import enum
from typing import Callable, Iterator, List, Optional, Union

from .blocks import BlockSource, Source
from .constants import BLOCK_SIZE, DEFAULT_READ_SIZE, FIELD_MAGIC, MAX_META_SIZE, USTAR_MAGIC
from .errors import FormatError, TarLensError
from .extattrs import MetaCollector, MetaKind, PendingAttributes
from .header import decode_header, decode_raw
from .records import Diagnostic, DiagnosticKind, Entry


_MAGIC_OFF = FIELD_MAGIC[0]
_MAGIC_END = _MAGIC_OFF + len(USTAR_MAGIC)


class State(enum.Enum):
    EXPECT_HEADER = "expect-header"
    READING_DATA = "reading-data"
    EXPECT_TERMINATOR = "expect-terminator"
    DONE = "done"


class DataKind(enum.Enum):
    DATA = "data"


Kind = Union[MetaKind, DataKind]


class EntryContent:
    """Lazy view over the data blocks of one entry.

    Exactly ``size`` bytes are served; block padding is consumed but never
    returned. The view is only usable until the reader moves on to the next
    header, at which point any unread bytes are skipped.
    """

    def __init__(self, reader: "TarReader", size: int, *, check_magic: bool = False):
        self._reader = reader
        self.size = size
        self._unread = size  # bytes not yet pulled from the block source
        self._buf = b""
        self._check_magic = check_magic
        self._detached = False

    @property
    def exhausted(self) -> bool:
        return self._unread == 0 and not self._buf

    def _pull(self) -> bytes:
        block = self._reader._read_data_block(check_magic=self._check_magic)
        data = block[: min(self._unread, BLOCK_SIZE)]
        self._unread -= len(data)
        return data

    def read(self, n: int = -1) -> bytes:
        if self._detached:
            raise ValueError("entry content is no longer available; the archive has moved past it")
        if n is None or n < 0:
            n = self._unread + len(self._buf)
        out = bytearray()
        while len(out) < n:
            if self._buf:
                take = self._buf[: n - len(out)]
                self._buf = self._buf[len(take) :]
                out += take
                continue
            if self._unread == 0:
                break
            self._buf = self._pull()
        return bytes(out)

    def iter_chunks(self, chunk_size: int = DEFAULT_READ_SIZE) -> Iterator[bytes]:
        while True:
            chunk = self.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def _drain(self) -> None:
        while self._unread > 0:
            self._pull()
        self._buf = b""
        self._detached = True


class TarReader:
    """Single-pass decoder over a tar byte stream.

    Iterating yields resolved entries in archive order. Metadata entries
    (GNU long name/link, PAX headers) are folded into the entry that follows
    them and never yielded. Non-fatal findings are collected in
    ``diagnostics`` and forwarded to ``on_diagnostic`` when given.
    """

    def __init__(self, source: Source, on_diagnostic: Optional[Callable[[Diagnostic], None]] = None):
        self.blocks = BlockSource.wrap(source)
        self.diagnostics: List[Diagnostic] = []
        self._on_diagnostic = on_diagnostic
        self._pending = PendingAttributes()
        self.state = State.EXPECT_HEADER
        self.kind: Optional[Kind] = None
        self._content: Optional[EntryContent] = None
        self._collector: Optional[MetaCollector] = None

    def __iter__(self) -> "TarReader":
        return self

    def __next__(self) -> Entry:
        try:
            entry = self._advance()
        except (TarLensError, OSError):
            self.state = State.DONE
            raise
        if entry is None:
            raise StopIteration
        return entry

    # internals
    def _emit(self, diag: Diagnostic) -> None:
        self.diagnostics.append(diag)
        if self._on_diagnostic is not None:
            self._on_diagnostic(diag)

    def _read_data_block(self, *, check_magic: bool = False) -> bytes:
        offset = self.blocks.offset
        block = self.blocks.next_block()
        if block is None:
            raise FormatError("truncated entry data", offset)
        if check_magic and block[_MAGIC_OFF:_MAGIC_END] == USTAR_MAGIC:
            self._emit(
                Diagnostic(
                    offset=offset,
                    kind=DiagnosticKind.ALERT,
                    message="ustar header magic found inside entry data",
                )
            )
        return block

    def _advance(self) -> Optional[Entry]:
        while True:
            if self.state is State.READING_DATA:
                self._finish_data()
            elif self.state is State.EXPECT_HEADER:
                entry = self._read_header()
                if entry is not None:
                    return entry
            elif self.state is State.EXPECT_TERMINATOR:
                offset = self.blocks.offset
                block = self.blocks.next_block()
                if block is None:
                    raise FormatError("archive ends after a single end-of-archive block", offset)
                if any(block):
                    raise FormatError("unexpected data after end marker", offset)
                self.state = State.DONE
            else:
                return None

    def _finish_data(self) -> None:
        assert self._content is not None
        if isinstance(self.kind, MetaKind):
            assert self._collector is not None
            for chunk in self._content.iter_chunks():
                self._collector.feed(chunk)
            self._collector.finish()
            self._collector = None
        self._content._drain()
        self._content = None
        self.kind = None
        self.state = State.EXPECT_HEADER

    def _read_header(self) -> Optional[Entry]:
        offset = self.blocks.offset
        block = self.blocks.next_block()
        if block is None:
            raise FormatError("unexpected end of archive (no end-of-archive marker)", offset)
        raw = decode_raw(block, offset)
        if raw is None:
            self.state = State.EXPECT_TERMINATOR
            return None
        entry = decode_header(raw, block, offset, warn=self._emit)

        meta = MetaKind.for_typeflag(entry.typeflag)
        if meta is not None:
            if entry.size > MAX_META_SIZE:
                raise FormatError(f"extended header of {entry.size} bytes exceeds safety bound", offset)
            self._collector = MetaCollector(meta, self._pending)
            self._content = EntryContent(self, entry.size)
            self.kind = meta
            self.state = State.READING_DATA
            return None

        if self._pending:
            self._pending.apply(entry, warn=self._emit)
            self._pending.clear()
        entry.content = EntryContent(self, entry.size, check_magic=True)
        self._content = entry.content
        self.kind = DataKind.DATA
        self.state = State.READING_DATA
        return entry


def decode(source: Source, on_diagnostic: Optional[Callable[[Diagnostic], None]] = None) -> TarReader:
    """Decode a tar stream lazily.

    ``source`` is a binary file object or a bytes-like value. The returned
    reader is an iterator of Entry objects; it cannot be restarted.
    """
    return TarReader(source, on_diagnostic=on_diagnostic)
