from __future__ import annotations

import difflib
import os
from typing import Callable, Iterable, List, Optional

from .records import Diagnostic
from .render import render_archive


NULL_PATH = os.devnull

_RESET = "\x1b[0m"
_BOLD = "\x1b[1m"
_RED = "\x1b[31m"
_GREEN = "\x1b[32m"
_CYAN = "\x1b[36m"


def render_path(
    path: str,
    *,
    show_times: bool = True,
    show_content: bool = True,
    on_diagnostic: Optional[Callable[[Diagnostic], None]] = None,
    missing_ok: bool = False,
) -> str:
    """Render the archive at ``path``.

    ``/dev/null`` is an empty archive, and so is a nonexistent path when
    ``missing_ok`` is set.
    """
    if path == NULL_PATH:
        return ""
    if missing_ok and not os.path.exists(path):
        return ""
    with open(path, "rb") as fh:
        return render_archive(fh, show_times=show_times, show_content=show_content, on_diagnostic=on_diagnostic)


def diff_renderings(old_text: str, new_text: str, old_label: str, new_label: str) -> List[str]:
    """Unified diff of two renderings, one string per line (newline included)."""
    return list(
        difflib.unified_diff(
            old_text.splitlines(keepends=True),
            new_text.splitlines(keepends=True),
            fromfile=old_label,
            tofile=new_label,
        )
    )


def diff_archives(
    old_path: str,
    new_path: str,
    *,
    old_label: Optional[str] = None,
    new_label: Optional[str] = None,
    show_times: bool = True,
    on_diagnostic: Optional[Callable[[Diagnostic], None]] = None,
) -> List[str]:
    old_text = render_path(old_path, show_times=show_times, on_diagnostic=on_diagnostic, missing_ok=True)
    new_text = render_path(new_path, show_times=show_times, on_diagnostic=on_diagnostic, missing_ok=True)
    return diff_renderings(old_text, new_text, old_label or old_path, new_label or new_path)


def colorize(lines: Iterable[str]) -> List[str]:
    out: List[str] = []
    for line in lines:
        body = line.rstrip("\n")
        tail = line[len(body) :]
        if body.startswith(("---", "+++")):
            color = _BOLD
        elif body.startswith("@@"):
            color = _CYAN
        elif body.startswith("+"):
            color = _GREEN
        elif body.startswith("-"):
            color = _RED
        else:
            out.append(line)
            continue
        out.append(f"{color}{body}{_RESET}{tail}")
    return out
