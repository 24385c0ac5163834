from __future__ import annotations

import os
import tempfile
from typing import Callable, Optional

from .constants import RENDER_FORMAT_VERSION
from .errors import CacheConsistencyError
from .hashutil import blake2s_hex_file


class RenderCache:
    """Write-once store of renderings keyed by blob digest.

    Entries live under ``<root>/<version>/<digest[:2]>/<key>``; changing the
    version tag leaves older entries unreachable. An entry is never
    overwritten: a second write with different text for the same key raises
    CacheConsistencyError.
    """

    def __init__(self, root: str, version: str = RENDER_FORMAT_VERSION):
        self.root = root
        self.version = version

    def path_for(self, key: str) -> str:
        return os.path.join(self.root, self.version, key[:2], key)

    def get(self, key: str) -> Optional[str]:
        try:
            with open(self.path_for(key), "r", encoding="utf-8", newline="") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def put(self, key: str, text: str) -> None:
        dest = self.path_for(key)
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=os.path.dirname(dest))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
            try:
                # link() refuses to replace an existing entry
                os.link(tmp, dest)
            except FileExistsError:
                existing = self.get(key)
                if existing != text:
                    raise CacheConsistencyError(f"cache entry {key} already holds a different rendering")
        finally:
            os.unlink(tmp)


def cached_render(
    cache: RenderCache,
    path: str,
    render: Callable[[], str],
    *,
    variant: str = "",
    verify: bool = False,
) -> str:
    """Return the rendering of the file at ``path``, consulting ``cache`` first.

    ``variant`` distinguishes renderings of the same blob made with different
    options. With ``verify`` a hit is re-rendered and compared; a difference
    raises CacheConsistencyError.
    """
    with open(path, "rb") as fh:
        digest = blake2s_hex_file(fh)
    key = f"{digest}-{variant}" if variant else digest
    hit = cache.get(key)
    if hit is not None:
        if verify and render() != hit:
            raise CacheConsistencyError(f"cached rendering for {key} does not match a fresh rendering")
        return hit
    text = render()
    cache.put(key, text)
    return text
