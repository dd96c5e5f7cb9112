"""Per-working-copy staging context."""

from __future__ import annotations

import contextlib
import logging
from enum import Enum
from typing import ContextManager, Iterable, Iterator, Optional, TypeVar

from .cache import StatusCache
from .models import Depth, ItemStatus, PendingChange
from .pathutil import normalize_path, path_key
from .resolver import WorkingCopyResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Pending states a recursive commit would pick up alongside a deletion.
_SWEPT = {
    ItemStatus.MODIFIED,
    ItemStatus.ADDED,
    ItemStatus.UNVERSIONED,
    ItemStatus.CONFLICTED,
}


class Phase(Enum):
    CREATED = "created"
    STAGING = "staging"
    READY = "ready"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CommitPaths:
    """Ordered set of absolute paths.

    With ``ignore_case`` set, paths differing only in case count as one.
    """

    def __init__(self, paths: Iterable[str] = (), ignore_case: bool = True) -> None:
        self.ignore_case = ignore_case
        self._paths: list[str] = []
        for path in paths:
            self.add(path)

    def add(self, path: str) -> bool:
        if path in self:
            return False
        self._paths.append(normalize_path(path))
        return True

    def index(self, path: str) -> int:
        key = path_key(path, self.ignore_case)
        for i, existing in enumerate(self._paths):
            if path_key(existing, self.ignore_case) == key:
                return i
        raise ValueError(f"{path} is not a commit path")

    def replace(self, old: str, new: str) -> None:
        """Rewrite ``old`` in place, keeping its position."""
        self._paths[self.index(old)] = normalize_path(new)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        key = path_key(path, self.ignore_case)
        return any(path_key(p, self.ignore_case) == key for p in self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def __repr__(self) -> str:
        return f"CommitPaths({self._paths!r})"


class CommitState:
    """Mutable state of one staging and execution cycle.

    Use as a context manager: resources handed to :meth:`hold` are released
    when the block exits, however it exits.
    """

    def __init__(
        self,
        changes: Iterable[PendingChange],
        cache: StatusCache,
        resolver: WorkingCopyResolver,
        log_message: Optional[str] = None,
        amend_last_commit: bool = False,
        message_required: bool = True,
    ) -> None:
        self.changes = tuple(changes)
        self.cache = cache
        self.resolver = resolver
        self.commit_paths = CommitPaths(
            (c.path for c in self.changes), ignore_case=cache.ignores_case
        )
        self.log_message = log_message
        self.amend_last_commit = amend_last_commit
        self.message_required = message_required
        self.phase = Phase.CREATED
        self._resources = contextlib.ExitStack()
        self._closed = False

    def __enter__(self) -> "CommitState":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def hold(self, resource: ContextManager[T]) -> T:
        """Enter ``resource`` and keep it until the state is closed."""
        return self._resources.enter_context(resource)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._resources.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def flush_state(self) -> None:
        self.cache.flush()

    def calculate_commit_depth(self) -> Depth:
        """Shallowest depth that commits every path and nothing else.

        Deleting a directory needs a recursive commit; when such a commit
        would also pick up a pending change that is not selected, no depth
        works and UNKNOWN is returned.
        """
        depth = Depth.EMPTY
        recursive: list[str] = []
        for path in self.commit_paths:
            item = self.cache[path]
            if item.is_directory and item.is_delete_scheduled:
                depth = Depth.INFINITY
                recursive.append(path)

        for directory in recursive:
            for entry in self.cache.entries_below(directory):
                if entry.status not in _SWEPT or entry.path in self.commit_paths:
                    continue
                logger.debug(
                    "Recursive commit of %s would include %s", directory, entry.path
                )
                return Depth.UNKNOWN
        return depth
