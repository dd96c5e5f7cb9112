"""Exception hierarchy for pcmt."""

from __future__ import annotations

from enum import Enum


class GitErrorCode(Enum):
    """Error codes a version-control backend can report."""

    UNEXPECTED = "unexpected"
    PATH_NO_REPOSITORY = "path-no-repository"
    OUT_OF_DATE = "out-of-date"
    REVISION_NOT_FOUND = "revision-not-found"


class PendingCommitError(Exception):
    """Base exception for pcmt."""


class GitError(PendingCommitError):
    """Raised by a backend when a version-control operation fails."""

    def __init__(
        self, message: str, code: GitErrorCode = GitErrorCode.UNEXPECTED
    ) -> None:
        super().__init__(message)
        self.code = code


class ConfigError(PendingCommitError):
    """Raised when configuration cannot be loaded or is invalid."""
