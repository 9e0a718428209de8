"""Filesystem helpers."""

from __future__ import annotations

import os


def dir_exists(path: str | os.PathLike[str]) -> bool:
    """Return True if ``path`` names an existing directory; an empty path never does."""
    if not os.fspath(path):
        return False
    return os.path.isdir(path)