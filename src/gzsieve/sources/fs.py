# fs.py
# SPDX-License-Identifier: MIT
"""Filesystem discovery of compressed archives."""

from __future__ import annotations

import os
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import DiscoveryError
from ..core.log import get_logger

__all__ = [
    "DEFAULT_SUFFIX",
    "iter_suffix_files",
    "discover_files",
    "SuffixFileDiscoverer",
]

log = get_logger(__name__)

DEFAULT_SUFFIX = ".gz"


def _is_regular(entry: os.DirEntry[str], follow_symlinks: bool) -> bool:
    if entry.is_symlink() and not follow_symlinks:
        return False
    return stat.S_ISREG(entry.stat(follow_symlinks=follow_symlinks).st_mode)


def _walk_lexical(directory: Path, *, follow_symlinks: bool, seen: set[tuple[int, int]]) -> Iterator[Path]:
    """Depth-first walk yielding files in lexical order, descending in place."""
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=follow_symlinks):
            if entry.is_symlink():
                # Guard against symlink cycles when following links.
                st = entry.stat(follow_symlinks=True)
                key = (st.st_dev, st.st_ino)
                if key in seen:
                    continue
                seen.add(key)
            yield from _walk_lexical(Path(entry.path), follow_symlinks=follow_symlinks, seen=seen)
        elif _is_regular(entry, follow_symlinks):
            yield Path(entry.path)


def iter_suffix_files(
    root: os.PathLike[str] | str,
    *,
    suffix: str = DEFAULT_SUFFIX,
    follow_symlinks: bool = False,
) -> Iterator[Path]:
    """Yield regular files under ``root`` whose name ends with ``suffix``.

    Entries within a directory are visited in lexical order and
    subdirectories are descended where they sort, so the overall order is
    the lexical order of the full paths.

    Raises:
        OSError: If the root or any directory below it cannot be read.
    """
    walk_root = Path(root)
    st = walk_root.stat()
    if not stat.S_ISDIR(st.st_mode):
        raise NotADirectoryError(str(walk_root))
    seen = {(st.st_dev, st.st_ino)}
    for path in _walk_lexical(walk_root, follow_symlinks=follow_symlinks, seen=seen):
        if path.name.endswith(suffix):
            yield path


def discover_files(
    root: os.PathLike[str] | str,
    *,
    suffix: str = DEFAULT_SUFFIX,
    follow_symlinks: bool = False,
) -> list[Path]:
    """Return every matching file under ``root``, or fail as a whole.

    Args:
        root: Directory to walk.
        suffix: Filename suffix to match (case-sensitive).
        follow_symlinks: Whether to follow symlinked files and directories.

    Returns:
        list[Path]: Matching files in lexical path order.

    Raises:
        DiscoveryError: If any part of the walk fails; no partial list is
            returned.
    """
    try:
        files = list(iter_suffix_files(root, suffix=suffix, follow_symlinks=follow_symlinks))
    except OSError as exc:
        raise DiscoveryError(f"failed to find {suffix} files", path=root, cause=exc) from exc
    log.info("Discovered %d %s files under %s", len(files), suffix, root)
    return files


@dataclass(frozen=True)
class SuffixFileDiscoverer:
    """Discoverer adapter over :func:`discover_files`."""

    suffix: str = DEFAULT_SUFFIX
    follow_symlinks: bool = False

    def list_files(self, root: str | Path) -> list[Path]:
        return discover_files(root, suffix=self.suffix, follow_symlinks=self.follow_symlinks)
