from __future__ import annotations

import io
import tarfile
import unittest

from tarlens.constants import MAX_META_SIZE
from tarlens.errors import FormatError, ShortBlockError
from tarlens.header import compute_checksum
from tarlens.reader import State, TarReader, decode
from tarlens.records import DiagnosticKind, EntryType

from tarfixtures import END_MARKER, make_header, member, pad, pax_member, stdlib_archive


def _read_all(data: bytes):
    """Decode ``data`` eagerly into (entry, content) pairs plus diagnostics."""
    reader = decode(data)
    out = [(e, e.content.read()) for e in reader]
    return out, reader.diagnostics


class _TrickleStream(io.RawIOBase):
    """Hands out at most ``step`` bytes per read, like a pipe."""

    def __init__(self, data: bytes, step: int):
        self._data = data
        self._pos = 0
        self._step = step

    def readable(self):
        return True

    def read(self, n=-1):
        if n is None or n < 0:
            n = len(self._data) - self._pos
        n = min(n, self._step)
        chunk = self._data[self._pos : self._pos + n]
        self._pos += len(chunk)
        return chunk


class EndToEndTests(unittest.TestCase):
    def test_hello_txt(self):
        data = make_header("hello.txt", mode=0o644, size=3) + b"hi\n" + b"\x00" * 509 + END_MARKER
        entries, diags = _read_all(data)
        self.assertEqual(len(entries), 1)
        entry, content = entries[0]
        self.assertEqual(entry.name, "hello.txt")
        self.assertEqual(entry.mode, 0o644)
        self.assertEqual(entry.size, 3)
        self.assertEqual(content, b"hi\n")
        self.assertEqual(diags, [])

    def test_stdlib_archive_order_and_sizes(self):
        files = [("a.txt", b"alpha\n"), ("dir/b.bin", bytes(range(256)) * 5), ("empty", b""), ("c.txt", b"x" * 512)]
        entries, diags = _read_all(stdlib_archive(files))
        self.assertEqual([(e.name, e.size) for e, _ in entries], [(n, len(d)) for n, d in files])
        self.assertEqual([c for _, c in entries], [d for _, d in files])
        self.assertTrue(all(e.checksum_ok for e, _ in entries))
        self.assertEqual(diags, [])

    def test_checksum_reproducible_from_accepted_headers(self):
        data = stdlib_archive([("one", b"1"), ("two", b"22")])
        for entry in decode(data):
            block = data[entry.offset : entry.offset + 512]
            self.assertEqual(compute_checksum(block), entry.checksum_computed)

    def test_pipe_like_source(self):
        data = member("a", b"x" * 700) + member("b", b"yz") + END_MARKER
        entries = [(e.name, e.content.read()) for e in decode(_TrickleStream(data, 37))]
        self.assertEqual(entries, [("a", b"x" * 700), ("b", b"yz")])

    def test_record_padding_after_terminator_is_not_read(self):
        data = member("a", b"1") + END_MARKER + b"\x00" * 8192
        stream = io.BytesIO(data)
        reader = decode(stream)
        self.assertEqual([e.name for e in reader], ["a"])
        self.assertIs(reader.state, State.DONE)
        self.assertEqual(stream.tell(), len(member("a", b"1")) + len(END_MARKER))

    def test_empty_archive(self):
        self.assertEqual(list(decode(END_MARKER)), [])


class ExtendedHeaderTests(unittest.TestCase):
    def test_gnu_long_name_precedence(self):
        long_name = b"a/very/long/path/name.bin\x00"
        data = (
            member("././@LongLink", long_name, typeflag=b"L")
            + member(b"garb\xffage", b"data")
            + END_MARKER
        )
        entries, _ = _read_all(data)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0][0].name, "a/very/long/path/name.bin")
        self.assertEqual(entries[0][1], b"data")

    def test_gnu_long_link(self):
        data = member("././@LongLink", b"t" * 300 + b"\x00", typeflag=b"K") + member("ln", typeflag=b"2", linkname="t" * 99) + END_MARKER
        entries, _ = _read_all(data)
        self.assertEqual(entries[0][0].linkpath, "t" * 300)
        self.assertIs(entries[0][0].type, EntryType.SYMLINK)

    def test_pax_path_precedence(self):
        data = pax_member([("path", "foo/bar")]) + member("short", b"abc") + END_MARKER
        entries, _ = _read_all(data)
        self.assertEqual(entries[0][0].name, "foo/bar")
        self.assertEqual(entries[0][0].pax, {"name": "foo/bar"})

    def test_pax_beats_gnu(self):
        data = (
            pax_member([("path", "pax/name")])
            + member("././@LongLink", b"gnu/name\x00", typeflag=b"L")
            + member("short")
            + END_MARKER
        )
        entries, _ = _read_all(data)
        self.assertEqual(entries[0][0].name, "pax/name")

    def test_attributes_apply_to_next_entry_only(self):
        data = pax_member([("path", "renamed")]) + member("first") + member("second") + END_MARKER
        entries, _ = _read_all(data)
        self.assertEqual([e.name for e, _ in entries], ["renamed", "second"])
        self.assertEqual(entries[1][0].pax, {})

    def test_global_header_applies_to_next_entry_only(self):
        data = pax_member([("uname", "globaluser")], typeflag=b"g") + member("first") + member("second") + END_MARKER
        entries, _ = _read_all(data)
        self.assertEqual([e.user for e, _ in entries], ["globaluser", "alice"])

    def test_pax_size_drives_stream_advancement(self):
        data = (
            pax_member([("size", "5")])
            + make_header("big", size=0)
            + pad(b"12345")
            + member("next", b"n")
            + END_MARKER
        )
        entries, _ = _read_all(data)
        self.assertEqual([(e.name, e.size, c) for e, c in entries], [("big", 5, b"12345"), ("next", 1, b"n")])

    def test_stdlib_long_names(self):
        name = "d" * 60 + "/" + "f" * 90 + ".txt"
        for fmt in (tarfile.GNU_FORMAT, tarfile.PAX_FORMAT, tarfile.USTAR_FORMAT):
            entries, _ = _read_all(stdlib_archive([(name, b"payload")], fmt=fmt))
            self.assertEqual([e.name for e, _ in entries], [name], msg=f"format {fmt}")
            self.assertEqual(entries[0][1], b"payload")

    def test_meta_size_bound(self):
        data = make_header("././@LongLink", typeflag=b"L", size=MAX_META_SIZE + 1) + END_MARKER
        with self.assertRaises(FormatError):
            list(decode(data))

    def test_unknown_type_is_emitted(self):
        data = member("weird", b"zz", typeflag=b"Z") + END_MARKER
        entries, _ = _read_all(data)
        self.assertIs(entries[0][0].type, EntryType.UNKNOWN)
        self.assertEqual(entries[0][0].typeflag, "Z")
        self.assertEqual(entries[0][1], b"zz")


class DiagnosticTests(unittest.TestCase):
    def test_checksum_mismatch_is_not_fatal(self):
        block = bytearray(make_header("hello.txt", size=3))
        block[300] = ord("x")  # inside gname
        data = bytes(block) + pad(b"hi\n") + member("after", b"!") + END_MARKER
        seen = []
        reader = decode(data, on_diagnostic=seen.append)
        entries = [(e.name, e.size, e.content.read()) for e in reader]
        self.assertEqual(entries, [("hello.txt", 3, b"hi\n"), ("after", 1, b"!")])
        self.assertEqual(len(seen), 1)
        self.assertIs(seen[0].kind, DiagnosticKind.WARNING)
        self.assertEqual(seen[0].offset, 0)
        self.assertEqual(reader.diagnostics, seen)

    def test_embedded_header_alert(self):
        inner = member("inner.txt", b"secret")
        data = member("outer.tar", inner) + END_MARKER
        entries, diags = _read_all(data)
        self.assertEqual(entries[0][1], inner)
        self.assertEqual([d.kind for d in diags], [DiagnosticKind.ALERT])
        self.assertEqual(diags[0].offset, 512)

    def test_alert_also_raised_for_skipped_content(self):
        data = member("outer.tar", member("inner", b"")) + END_MARKER
        reader = decode(data)
        self.assertEqual([e.name for e in reader], ["outer.tar"])
        self.assertEqual(len(reader.diagnostics), 1)


class ContentStreamTests(unittest.TestCase):
    def test_partial_reads(self):
        data = member("f", b"0123456789" * 100) + END_MARKER
        entry = next(decode(data))
        self.assertEqual(entry.content.read(4), b"0123")
        self.assertEqual(b"".join(entry.content.iter_chunks(333)), (b"0123456789" * 100)[4:])
        self.assertTrue(entry.content.exhausted)
        self.assertEqual(entry.content.read(), b"")

    def test_unread_content_is_skipped(self):
        data = member("a", b"A" * 2000) + member("b", b"B") + END_MARKER
        reader = decode(data)
        self.assertEqual([e.name for e in reader], ["a", "b"])

    def test_content_unavailable_after_advance(self):
        data = member("a", b"A") + member("b", b"B") + END_MARKER
        reader = decode(data)
        first = next(reader)
        next(reader)
        with self.assertRaises(ValueError):
            first.content.read()

    def test_not_restartable(self):
        data = member("a", b"A") + END_MARKER
        reader = decode(data)
        self.assertEqual(len(list(reader)), 1)
        self.assertEqual(list(reader), [])
        self.assertIsInstance(reader, TarReader)


class FailureTests(unittest.TestCase):
    def test_eof_without_end_marker(self):
        with self.assertRaises(FormatError):
            list(decode(member("a", b"A")))

    def test_eof_after_single_zero_block(self):
        with self.assertRaises(FormatError):
            list(decode(member("a", b"A") + b"\x00" * 512))

    def test_data_block_short_by_one_byte(self):
        data = member("a", b"A" * 10)[:-1]
        with self.assertRaises(ShortBlockError) as ctx:
            list(decode(data))
        self.assertIsInstance(ctx.exception, OSError)
        self.assertEqual(ctx.exception.offset, 512)

    def test_missing_data_blocks(self):
        data = make_header("a", size=2000) + pad(b"A" * 100)
        reader = decode(data)
        entry = next(reader)
        with self.assertRaises(FormatError) as ctx:
            entry.content.read()
        self.assertIn("truncated", str(ctx.exception))

    def test_data_after_end_marker(self):
        data = member("a", b"A") + b"\x00" * 512 + make_header("b")
        with self.assertRaises(FormatError) as ctx:
            list(decode(data))
        self.assertIn("unexpected data after end marker", str(ctx.exception))
        self.assertEqual(ctx.exception.offset, 1536)

    def test_bad_numeric_field_carries_offset(self):
        data = member("a", b"A") + make_header("b", mode_field=b"rwxr-x\x00\x00") + END_MARKER
        reader = decode(data)
        next(reader)
        with self.assertRaises(FormatError) as ctx:
            next(reader)
        self.assertEqual(ctx.exception.offset, 1024)
        # decoding stops after a fatal error
        self.assertEqual(list(reader), [])

    def test_read_errors_propagate(self):
        class Broken(io.RawIOBase):
            def readable(self):
                return True

            def read(self, n=-1):
                raise OSError("device gone")

        with self.assertRaises(OSError):
            list(decode(Broken()))


class NumericEncodingTests(unittest.TestCase):
    def test_base256_size_in_stream(self):
        size_field = bytes([0x80]) + (3).to_bytes(11, "big")
        data = make_header("b256", size_field=size_field) + pad(b"abc") + END_MARKER
        entries, _ = _read_all(data)
        self.assertEqual((entries[0][0].size, entries[0][1]), (3, b"abc"))


if __name__ == "__main__":
    unittest.main()
