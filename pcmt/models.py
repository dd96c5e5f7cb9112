"""Data model shared by the staging pipeline and its backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .pathutil import path_key


class PendingChangeKind(Enum):
    """What the change detector saw happen to a path."""

    NONE = "none"
    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"
    MISSING = "missing"
    CONFLICTED = "conflicted"


class ItemStatus(Enum):
    """Backend view of a single path."""

    NORMAL = "normal"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    MISSING = "missing"
    UNVERSIONED = "unversioned"
    CONFLICTED = "conflicted"
    IGNORED = "ignored"
    NONEXISTENT = "nonexistent"
    UNMANAGED = "unmanaged"


_VERSIONED = {
    ItemStatus.NORMAL,
    ItemStatus.MODIFIED,
    ItemStatus.ADDED,
    ItemStatus.DELETED,
    ItemStatus.MISSING,
    ItemStatus.CONFLICTED,
}


class OperationKind(Enum):
    APPLY = "apply"
    CREATE_PATCH = "create-patch"
    COMMIT = "commit"


class Depth(Enum):
    """Recursion depth of a backend operation.

    EMPTY < FILES < INFINITY; UNKNOWN means no depth satisfies the request.
    """

    UNKNOWN = -1
    EMPTY = 0
    FILES = 1
    INFINITY = 2

    def __lt__(self, other: "Depth") -> bool:
        if not isinstance(other, Depth):
            return NotImplemented
        return self.value < other.value


class Revision(Enum):
    BASE = "base"
    WORKING = "working"
    HEAD = "head"


@dataclass(frozen=True)
class RevisionRange:
    start: Revision
    end: Revision


@dataclass(frozen=True, eq=False)
class WorkingCopy:
    """A directory under version control."""

    root_path: str

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkingCopy):
            return NotImplemented
        return path_key(self.root_path) == path_key(other.root_path)

    def __hash__(self) -> int:
        return hash(path_key(self.root_path))


@dataclass(frozen=True)
class PendingChange:
    """A locally modified path awaiting commit."""

    path: str
    kind: PendingChangeKind = PendingChangeKind.MODIFIED
    is_versioned: bool = True
    is_versionable: bool = True
    is_casing_conflicted: bool = False


@dataclass
class CommitResult:
    """Outcome of a commit against the backend."""

    succeeded: bool
    revision_id: str = ""
    post_commit_error: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class StatusEntry:
    """One line of backend status output, in recorded casing."""

    path: str
    status: ItemStatus
    is_directory: bool = False


@dataclass(frozen=True)
class UserConfig:
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class AddOptions:
    add_parents: bool = True
    depth: Depth = Depth.EMPTY


@dataclass(frozen=True)
class DeleteOptions:
    keep_local: bool = True


@dataclass(frozen=True)
class CommitOptions:
    depth: Depth = Depth.EMPTY
    log_message: Optional[str] = None
    amend_last_commit: bool = False


@dataclass(frozen=True)
class DiffOptions:
    depth: Depth = Depth.EMPTY
    ignore_ancestry: bool = True
    no_deleted: bool = False
    relative_to_path: Optional[str] = None


@dataclass(frozen=True)
class StatusOptions:
    depth: Depth = Depth.EMPTY


@dataclass
class ItemState:
    """Cached backend state of one path."""

    path: str
    status: ItemStatus
    exists: bool = False
    is_directory: bool = False
    recorded_path: Optional[str] = None
    true_path: Optional[str] = field(default=None, repr=False)

    @property
    def is_versioned(self) -> bool:
        return self.status in _VERSIONED

    @property
    def is_versionable(self) -> bool:
        return self.status == ItemStatus.UNVERSIONED

    @property
    def is_new_addition(self) -> bool:
        return self.status == ItemStatus.ADDED

    @property
    def is_conflicted(self) -> bool:
        return self.status == ItemStatus.CONFLICTED

    @property
    def is_delete_scheduled(self) -> bool:
        return self.status in (ItemStatus.DELETED, ItemStatus.MISSING)

    @property
    def is_casing_conflicted(self) -> bool:
        """Missing under the recorded name, yet present with other casing."""
        return self.status == ItemStatus.MISSING and self.true_path is not None


@dataclass
class ApplyArgs:
    pass


@dataclass
class CreatePatchArgs:
    file_name: str
    relative_to_path: Optional[str] = None
    add_unversioned_files: bool = False


@dataclass
class CommitArgs:
    log_message: Optional[str] = None
    amend_last_commit: bool = False
    store_message_on_error: bool = False
