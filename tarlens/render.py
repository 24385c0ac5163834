"""
Human-readable rendering of decoded tar entries.

The output is meant to be diffed: one block per entry, metadata as
``key: value`` lines, text content inlined and binary content reduced to a
digest. Any change to the layout must bump RENDER_FORMAT_VERSION.
"""

from __future__ import annotations

import stat
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional

from .hashutil import blake2s_hex_chunks
from .reader import decode
from .blocks import Source
from .records import Diagnostic, Entry, EntryType, Timestamp


# Text content larger than this is shown as a digest only
MAX_TEXT_CONTENT = 1024 * 1024

_INDENT = "    "
_CONTENT_INDENT = _INDENT * 2

# Attributes already shown as regular fields
_SHOWN_PAX_KEYS = {"name", "linkpath", "size", "uid", "gid", "uname", "gname", "mtime", "atime", "ctime"}

_TYPE_BITS = {
    EntryType.NORMAL: stat.S_IFREG,
    EntryType.CONTIGUOUS: stat.S_IFREG,
    EntryType.HARDLINK: stat.S_IFREG,
    EntryType.DIRECTORY: stat.S_IFDIR,
    EntryType.SYMLINK: stat.S_IFLNK,
    EntryType.CHARDEV: stat.S_IFCHR,
    EntryType.BLOCKDEV: stat.S_IFBLK,
    EntryType.FIFO: stat.S_IFIFO,
}


def format_mode(mode: int, etype: EntryType) -> str:
    """Octal permission bits plus an ``ls -l`` style string, e.g. ``0644 (-rw-r--r--)``."""
    perms = mode & 0o7777
    return f"{perms:04o} ({stat.filemode(_TYPE_BITS.get(etype, 0) | perms)})"


def format_time(ts: Timestamp) -> str:
    try:
        human = datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    except (OverflowError, ValueError, OSError):
        return str(ts)
    return f"{human} ({ts})"


def _format_type(entry: Entry) -> str:
    if entry.type is EntryType.UNKNOWN:
        return f"unknown ({entry.typeflag!r})"
    return entry.type.value


def _content_lines(entry: Entry) -> List[str]:
    kept = bytearray()
    overflow = False

    def _chunks() -> Iterator[bytes]:
        nonlocal overflow
        for chunk in entry.content.iter_chunks():
            if not overflow:
                if len(kept) + len(chunk) > MAX_TEXT_CONTENT:
                    overflow = True
                    kept.clear()
                else:
                    kept.extend(chunk)
            yield chunk

    digest = blake2s_hex_chunks(_chunks())
    text: Optional[str] = None
    if not overflow and b"\x00" not in kept:
        try:
            text = kept.decode("utf-8")
        except UnicodeDecodeError:
            text = None
    if text is None:
        reason = "too large to show" if overflow else "binary"
        return [f"{_INDENT}content: blake2s:{digest} ({reason})"]

    lines = [f"{_INDENT}content:"]
    parts = text.split("\n")
    trailing_newline = parts[-1] == ""
    if trailing_newline:
        parts.pop()
    lines.extend(_CONTENT_INDENT + p for p in parts)
    if not trailing_newline:
        lines.append(_CONTENT_INDENT + "\\ no newline at end of content")
    return lines


def render_entry(entry: Entry, *, show_times: bool = True, show_content: bool = True) -> List[str]:
    lines = [entry.name]
    lines.append(f"{_INDENT}type: {_format_type(entry)}")
    lines.append(f"{_INDENT}mode: {format_mode(entry.mode, entry.type)}")
    owner = f"{entry.uid}/{entry.gid}"
    if entry.user or entry.group:
        owner += f" ({entry.user or '-'}/{entry.group or '-'})"
    lines.append(f"{_INDENT}owner: {owner}")
    lines.append(f"{_INDENT}size: {entry.size}")
    if entry.linkpath is not None:
        lines.append(f"{_INDENT}link: {entry.linkpath}")
    if entry.device_major is not None:
        lines.append(f"{_INDENT}device: {entry.device_major},{entry.device_minor}")
    if show_times:
        lines.append(f"{_INDENT}mtime: {format_time(entry.mtime)}")
        if entry.atime is not None:
            lines.append(f"{_INDENT}atime: {format_time(entry.atime)}")
        if entry.ctime is not None:
            lines.append(f"{_INDENT}ctime: {format_time(entry.ctime)}")
    for key in sorted(entry.pax):
        if key not in _SHOWN_PAX_KEYS:
            lines.append(f"{_INDENT}pax {key}: {entry.pax[key]}")
    if show_content and entry.content is not None and entry.size > 0:
        lines.extend(_content_lines(entry))
    return lines


def render_archive(
    source: Source,
    *,
    show_times: bool = True,
    show_content: bool = True,
    on_diagnostic: Optional[Callable[[Diagnostic], None]] = None,
) -> str:
    out: List[str] = []
    for entry in decode(source, on_diagnostic=on_diagnostic):
        out.extend(render_entry(entry, show_times=show_times, show_content=show_content))
    return "".join(line + "\n" for line in out)
