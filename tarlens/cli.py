from __future__ import annotations

import os
import sys
import argparse
from typing import List, Optional

from tarlens.cache import RenderCache, cached_render
from tarlens.constants import ENV_CACHE_DIR
from tarlens.diff import NULL_PATH, colorize, diff_archives, render_path
from tarlens.errors import FormatError, ShortBlockError, TarLensError
from tarlens.reader import decode
from tarlens.records import Diagnostic, DiagnosticKind
from tarlens.render import render_archive


def _diagnostic_printer(path: str):
    def _print(diag: Diagnostic) -> None:
        label = "Alert" if diag.kind is DiagnosticKind.ALERT else "Warning"
        print(f"{label}: {path}: {diag}", file=sys.stderr)

    return _print


def _open_input(path: str):
    if path == "-":
        return sys.stdin.buffer
    return open(path, "rb")


def _use_color(mode: str) -> bool:
    if mode == "always":
        return True
    if mode == "never":
        return False
    return sys.stdout.isatty()


def cmd_cat(archive: str, *, show_times: bool = True, show_content: bool = True) -> bool:
    """Pretty-print every entry of an archive.

    Args:
        archive: Path to a tar file, or "-" for standard input.
        show_times: Include mtime/atime/ctime lines.
        show_content: Inline text content and digests of binary content.
    """
    f = _open_input(archive)
    try:
        text = render_archive(
            f,
            show_times=show_times,
            show_content=show_content,
            on_diagnostic=_diagnostic_printer(archive),
        )
    finally:
        if f is not sys.stdin.buffer:
            f.close()
    sys.stdout.write(text)
    return True


def cmd_list(archive: str) -> bool:
    f = _open_input(archive)
    try:
        for entry in decode(f, on_diagnostic=_diagnostic_printer(archive)):
            print(entry.name)
    finally:
        if f is not sys.stdin.buffer:
            f.close()
    return True


def cmd_textconv(
    path: str,
    *,
    cache_dir: Optional[str] = None,
    verify_cache: bool = False,
    show_times: bool = True,
) -> bool:
    """Print the rendering of ``path`` for use as a git textconv filter.

    Args:
        path: Blob file handed over by git.
        cache_dir: Render cache directory; defaults to $TARLENS_CACHE_DIR, no cache when unset.
        verify_cache: Re-render on a cache hit and fail if the cached text differs.
        show_times: Include timestamps in the rendering.
    """
    cache_dir = cache_dir or os.environ.get(ENV_CACHE_DIR)

    def _render() -> str:
        return render_path(path, show_times=show_times, on_diagnostic=_diagnostic_printer(path))

    if cache_dir:
        cache = RenderCache(cache_dir)
        text = cached_render(cache, path, _render, variant="" if show_times else "notimes", verify=verify_cache)
    else:
        text = _render()
    sys.stdout.write(text)
    return True


def cmd_diff(old: str, new: str, *, color: str = "auto", show_times: bool = True) -> bool:
    """Diff two archives by their renderings.

    Returns:
        True when the renderings are identical, False otherwise.
    """
    lines = diff_archives(
        old,
        new,
        show_times=show_times,
        on_diagnostic=_diagnostic_printer(f"{old} | {new}"),
    )
    if _use_color(color):
        lines = colorize(lines)
    sys.stdout.writelines(lines)
    return not lines


def cmd_git_diff(
    path: str,
    old_file: str,
    old_hex: str,
    old_mode: str,
    new_file: str,
    new_hex: str,
    new_mode: str,
    *,
    color: str = "auto",
    show_times: bool = True,
) -> bool:
    """External diff driver following git's GIT_EXTERNAL_DIFF convention."""
    out: List[str] = [f"diff --git a/{path} b/{path}\n"]
    if old_file == NULL_PATH:
        out.append(f"new file mode {new_mode}\n")
    elif new_file == NULL_PATH:
        out.append(f"deleted file mode {old_mode}\n")
    elif old_mode != new_mode:
        out.append(f"old mode {old_mode}\n")
        out.append(f"new mode {new_mode}\n")
    out.append(f"index {old_hex[:7]}..{new_hex[:7]}\n")
    try:
        lines = diff_archives(
            old_file,
            new_file,
            old_label=f"a/{path}" if old_file != NULL_PATH else NULL_PATH,
            new_label=f"b/{path}" if new_file != NULL_PATH else NULL_PATH,
            show_times=show_times,
            on_diagnostic=_diagnostic_printer(path),
        )
    except (FormatError, ShortBlockError) as exc:
        print(f"Warning: {path}: not a readable tar archive: {exc}", file=sys.stderr)
        out.append(f"Binary files a/{path} and b/{path} differ\n")
        sys.stdout.writelines(out)
        return True
    if _use_color(color):
        lines = colorize(lines)
    sys.stdout.writelines(out + lines)
    return True


def main(argv=None):
    ap = argparse.ArgumentParser(prog="tarlens", description="Inspect and diff tar archives as text")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_cat = sub.add_parser("cat", help="Pretty-print archive entries")
    ap_cat.add_argument("archive", help="Archive path ('-' for stdin)")
    ap_cat.add_argument("--no-times", action="store_true", help="Omit timestamps")
    ap_cat.add_argument("--no-content", action="store_true", help="Omit entry content")

    ap_list = sub.add_parser("list", help="List entry names")
    ap_list.add_argument("archive", help="Archive path ('-' for stdin)")

    ap_textconv = sub.add_parser("textconv", help="Render a blob for git textconv")
    ap_textconv.add_argument("path", help="Blob path")
    ap_textconv.add_argument("--cache-dir", help=f"Render cache directory (default: ${ENV_CACHE_DIR})")
    ap_textconv.add_argument("--verify-cache", action="store_true", help="Re-render and compare on cache hits")
    ap_textconv.add_argument("--no-times", action="store_true", help="Omit timestamps")

    ap_diff = sub.add_parser("diff", help="Diff two archives")
    ap_diff.add_argument("old", help="Old archive")
    ap_diff.add_argument("new", help="New archive")
    ap_diff.add_argument("--color", choices=["auto", "always", "never"], default="auto")
    ap_diff.add_argument("--no-times", action="store_true", help="Omit timestamps")

    ap_git = sub.add_parser("git-diff", help="GIT_EXTERNAL_DIFF driver")
    ap_git.add_argument("path")
    ap_git.add_argument("rest", nargs="*", help="old-file old-hex old-mode new-file new-hex new-mode")
    ap_git.add_argument("--color", choices=["auto", "always", "never"], default="auto")
    ap_git.add_argument("--no-times", action="store_true", help="Omit timestamps")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "cat":
            cmd_cat(args.archive, show_times=not args.no_times, show_content=not args.no_content)
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "textconv":
            cmd_textconv(
                args.path,
                cache_dir=args.cache_dir,
                verify_cache=args.verify_cache,
                show_times=not args.no_times,
            )
        elif args.cmd == "diff":
            same = cmd_diff(args.old, args.new, color=args.color, show_times=not args.no_times)
            sys.exit(0 if same else 1)
        elif args.cmd == "git-diff":
            if len(args.rest) != 6:
                # git passes only the path for unmerged entries
                print(f"* Unmerged path {args.path}")
                return
            cmd_git_diff(args.path, *args.rest, color=args.color, show_times=not args.no_times)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (TarLensError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
