"""Change-detection cache: backend state of every path the pipeline touches."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .exceptions import GitError, GitErrorCode
from .models import Depth, ItemState, ItemStatus, StatusEntry, StatusOptions
from .pathutil import (
    get_true_path,
    is_below,
    normalize_path,
    parent_path,
    path_key,
    same_path,
)
from .services import VersionControlBackend

logger = logging.getLogger(__name__)


class StatusCache:
    """Lazily populated index of :class:`ItemState` keyed by path.

    Entries marked dirty keep serving their old state until :meth:`flush`
    re-reads them from the backend.
    Keys fold case only when the backend's filesystem does.
    """

    def __init__(self, backend: VersionControlBackend) -> None:
        self._backend = backend
        self.ignores_case = backend.ignores_case
        self._items: dict[str, ItemState] = {}
        self._dirty: set[str] = set()

    def __getitem__(self, path: str) -> ItemState:
        key = path_key(path, self.ignores_case)
        item = self._items.get(key)
        if item is None:
            item = self._fetch(path)
            self._items[key] = item
        return item

    def __contains__(self, path: str) -> bool:
        return path_key(path, self.ignores_case) in self._items

    def mark_dirty(self, path: str) -> None:
        self._dirty.add(normalize_path(path))

    def mark_dirty_with_parents(self, path: str) -> None:
        """Mark ``path`` and every cached ancestor dirty."""
        self.mark_dirty(path)
        parent = parent_path(path)
        while parent is not None:
            if parent in self:
                self.mark_dirty(parent)
            parent = parent_path(parent)

    @property
    def dirty_paths(self) -> list[str]:
        return sorted(self._dirty)

    def flush(self) -> list[str]:
        """Re-read every dirty entry; returns the refreshed paths."""
        refreshed: list[str] = []
        for path in sorted(self._dirty):
            self._items[path_key(path, self.ignores_case)] = self._fetch(path)
            refreshed.append(path)
        self._dirty.clear()
        if refreshed:
            logger.debug("Refreshed %d cache entries", len(refreshed))
        return refreshed

    def recorded_casing(self, path: str) -> Optional[str]:
        """Return ``path`` in the casing the backend recorded, if any."""
        directory = parent_path(path)
        if directory is None:
            return None
        found: list[str] = []

        def visit(entry: StatusEntry) -> None:
            if same_path(entry.path, path):
                found.append(entry.path)

        try:
            self._backend.status(directory, StatusOptions(depth=Depth.FILES), visit)
        except GitError as exc:
            logger.debug("Status of %s failed: %s", directory, exc)
            return None
        return found[0] if found else None

    def entries_below(self, directory: str) -> list[StatusEntry]:
        """Return every backend status entry strictly inside ``directory``."""
        entries: list[StatusEntry] = []

        def visit(entry: StatusEntry) -> None:
            if is_below(entry.path, directory):
                entries.append(entry)

        self._backend.status(directory, StatusOptions(depth=Depth.INFINITY), visit)
        return entries

    def _fetch(self, path: str) -> ItemState:
        norm = normalize_path(path)
        exact: Optional[StatusEntry] = None
        folded: Optional[StatusEntry] = None

        def visit(entry: StatusEntry) -> None:
            nonlocal exact, folded
            if normalize_path(entry.path) == norm:
                exact = entry
            elif (
                self.ignores_case
                and folded is None
                and same_path(entry.path, norm)
            ):
                folded = entry

        try:
            self._backend.status(norm, StatusOptions(depth=Depth.EMPTY), visit)
        except GitError as exc:
            if exc.code != GitErrorCode.PATH_NO_REPOSITORY:
                raise
            return ItemState(
                path=norm,
                status=ItemStatus.UNMANAGED,
                exists=os.path.lexists(norm),
                is_directory=os.path.isdir(norm),
            )

        entry = exact or folded
        exists = os.path.lexists(norm)
        if entry is not None:
            status = entry.status
        else:
            status = ItemStatus.NORMAL if exists else ItemStatus.NONEXISTENT

        item = ItemState(
            path=norm,
            status=status,
            exists=exists,
            is_directory=os.path.isdir(norm)
            or (entry is not None and entry.is_directory),
            recorded_path=entry.path if entry is not None else None,
        )
        if status == ItemStatus.MISSING:
            item.true_path = get_true_path(norm)
        return item
