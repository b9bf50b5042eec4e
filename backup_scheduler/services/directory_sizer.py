"""Recursive directory size measurement."""

from __future__ import annotations

import os
from pathlib import Path

from backup_scheduler.models.domain import DirectorySize


def directory_size(path: str | Path) -> DirectorySize:
    """Compute the total byte size and file count of a directory tree.

    The walk is depth-first with an explicit stack. Directories do not count
    toward ``file_count``. Symlinks are never followed: each one counts as a
    single file sized by ``lstat``, which matches what ``shutil.rmtree``
    removes and keeps the walk free of symlink loops.

    Args:
        path: Root of the tree to measure.

    Returns:
        ``DirectorySize(0, 0)`` if ``path`` does not exist, otherwise the
        totals for the tree.

    Raises:
        OSError: If an existing directory or entry cannot be read.
    """
    root = Path(path)
    if not root.exists():
        return DirectorySize(0, 0)
    if not root.is_dir():
        return DirectorySize(root.lstat().st_size, 1)

    total_bytes = 0
    file_count = 0
    stack = [root]

    while stack:
        current = stack.pop()
        with os.scandir(current) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(Path(entry.path))
                else:
                    total_bytes += entry.stat(follow_symlinks=False).st_size
                    file_count += 1

    return DirectorySize(total_bytes, file_count)
