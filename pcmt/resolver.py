"""Working-copy lookup and partitioning of pending changes by root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from .git import find_git_repo_root
from .models import PendingChange, WorkingCopy
from .pathutil import is_at_or_below, normalize_path, parent_path, path_key
from .services import GroupingChooser

logger = logging.getLogger(__name__)

RootLocator = Callable[[Path], Optional[Path]]


class WorkingCopyResolver:
    """Maps a path to the working copy that owns it.

    Registered roots are matched by longest prefix. Paths outside every
    registered root are handed to ``locator``; its answers are memoized per
    directory.
    """

    def __init__(
        self,
        roots: Iterable[str] = (),
        locator: Optional[RootLocator] = find_git_repo_root,
    ) -> None:
        self._roots: list[WorkingCopy] = []
        self._locator = locator
        self._memo: dict[str, Optional[WorkingCopy]] = {}
        for root in roots:
            self.register(root)

    def register(self, root: str) -> WorkingCopy:
        wc = WorkingCopy(normalize_path(root))
        if wc not in self._roots:
            self._roots.append(wc)
            self._roots.sort(key=lambda w: len(w.root_path), reverse=True)
        self._memo.clear()
        return wc

    def resolve(self, path: str) -> Optional[WorkingCopy]:
        norm = normalize_path(path)
        for wc in self._roots:
            if is_at_or_below(norm, wc.root_path):
                return wc
        if self._locator is None:
            return None

        directory = parent_path(norm) or norm
        key = path_key(directory)
        if key not in self._memo:
            found = self._locator(Path(directory))
            self._memo[key] = (
                WorkingCopy(normalize_path(str(found))) if found else None
            )
        return self._memo[key]


class CommitRootSplitter:
    """Partitions pending changes so each commit touches one working copy."""

    def __init__(
        self,
        resolver: WorkingCopyResolver,
        chooser: Optional[GroupingChooser] = None,
    ) -> None:
        self.resolver = resolver
        self.chooser = chooser

    def group(
        self, changes: Iterable[PendingChange]
    ) -> tuple[list[WorkingCopy], list[list[PendingChange]]]:
        """Group by working copy in first-seen order.

        Changes outside every working copy are left out.
        """
        working_copies: list[WorkingCopy] = []
        groups: list[list[PendingChange]] = []
        for change in changes:
            wc = self.resolver.resolve(change.path)
            if wc is None:
                continue
            try:
                index = working_copies.index(wc)
            except ValueError:
                working_copies.append(wc)
                groups.append([])
                index = len(groups) - 1
            groups[index].append(change)
        return working_copies, groups

    def split(self, changes: Iterable[PendingChange]) -> list[list[PendingChange]]:
        """Return the partitions to stage; an empty list means abort."""
        changes = list(changes)
        working_copies, groups = self.group(changes)
        if len(working_copies) <= 1:
            return [changes]

        if self.chooser is None:
            logger.info(
                "Changes span %d working copies and no grouping is available",
                len(working_copies),
            )
            return []

        chosen = self.chooser.choose_groups(working_copies, groups)
        if not chosen:
            return []
        return [list(group) for group in chosen if group]
