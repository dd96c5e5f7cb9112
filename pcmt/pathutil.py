"""Path helpers.

Paths are compared ignoring case unless the caller passes
``ignore_case=False`` for a working copy on a case-sensitive filesystem.
"""

from __future__ import annotations

import os
from typing import Iterator, Optional


def normalize_path(path: str) -> str:
    """Return an absolute, normalized path without a trailing separator."""
    return os.path.normpath(os.path.abspath(path))


def path_key(path: str, ignore_case: bool = True) -> str:
    """Key used to compare paths."""
    norm = normalize_path(path)
    return norm.casefold() if ignore_case else norm


def same_path(left: str, right: str, ignore_case: bool = True) -> bool:
    return path_key(left, ignore_case) == path_key(right, ignore_case)


def is_below(path: str, root: str) -> bool:
    """True when ``path`` is strictly inside ``root``."""
    path_k = path_key(path)
    root_k = path_key(root)
    if path_k == root_k:
        return False
    prefix = root_k if root_k.endswith(os.sep) else root_k + os.sep
    return path_k.startswith(prefix)


def is_at_or_below(path: str, root: str) -> bool:
    return same_path(path, root) or is_below(path, root)


def parent_path(path: str) -> Optional[str]:
    """Return the parent directory, or None at the filesystem root."""
    norm = normalize_path(path)
    parent = os.path.dirname(norm)
    if not parent or parent == norm:
        return None
    return parent


def ancestors(path: str) -> Iterator[str]:
    """Yield parent directories from nearest to farthest."""
    parent = parent_path(path)
    while parent is not None:
        yield parent
        parent = parent_path(parent)


def get_true_path(path: str) -> Optional[str]:
    """Return ``path`` spelled with the casing actually found on disk.

    Every component is matched case-insensitively against its directory
    listing; an exact match wins over a case-insensitive one. Returns None
    when some component does not exist under any casing.
    """
    norm = normalize_path(path)
    drive, rest = os.path.splitdrive(norm)
    current = drive + os.sep
    for part in [p for p in rest.split(os.sep) if p]:
        try:
            names = os.listdir(current)
        except OSError:
            return None
        if part in names:
            match = part
        else:
            wanted = part.casefold()
            match = next((n for n in names if n.casefold() == wanted), None)
            if match is None:
                return None
        current = os.path.join(current, match)
    return current
