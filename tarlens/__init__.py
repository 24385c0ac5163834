"""
tarlens — read tar archives the way a diff reads text.

Features:

- Streaming ustar/GNU/PAX decoder: 512-byte block reader, checksum checks,
  octal and GNU base-256 numeric fields, GNU long name/link and PAX extended
  headers folded into the entry they describe.
- Structured diagnostics (checksum warnings, embedded-header alerts) kept
  apart from the entry stream; structural damage raises FormatError with the
  byte offset.
- Diff-friendly rendering, a write-once render cache, and a CLI usable as a
  git textconv filter or GIT_EXTERNAL_DIFF driver.

Programmatic entry point: ``tarlens.reader.decode``.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "blocks",
    "header",
    "extattrs",
    "reader",
    "render",
    "cache",
    "diff",
]
