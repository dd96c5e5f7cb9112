"""Collaborator interfaces consumed by the commit pipeline.

Every collaborator is passed in explicitly. The null implementations at the
bottom of this module let the pipeline run without an interactive host.
"""

from __future__ import annotations

import contextlib
import logging
from enum import Enum
from typing import (
    Callable,
    ContextManager,
    Iterable,
    Optional,
    Protocol,
    Sequence,
    TextIO,
    runtime_checkable,
)

from .models import (
    AddOptions,
    CommitOptions,
    CommitResult,
    DeleteOptions,
    DiffOptions,
    PendingChange,
    RevisionRange,
    StatusEntry,
    StatusOptions,
    UserConfig,
    WorkingCopy,
)

logger = logging.getLogger(__name__)


class Buttons(Enum):
    OK = "ok"
    YES_NO = "yes-no"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Answer(Enum):
    OK = "ok"
    YES = "yes"
    NO = "no"


class LockMode(Enum):
    NO_RELOAD = "no-reload"


@runtime_checkable
class VersionControlBackend(Protocol):
    """Operations the pipeline needs from a version-control engine.

    Failures are raised as :class:`pcmt.exceptions.GitError`. ``ignores_case``
    is True when paths differing only in case name the same file.
    """

    ignores_case: bool

    def add(self, path: str, options: AddOptions) -> None: ...

    def delete(self, path: str, options: DeleteOptions) -> None: ...

    def commit(self, paths: Sequence[str], options: CommitOptions) -> CommitResult: ...

    def diff(
        self,
        path: str,
        revisions: RevisionRange,
        options: DiffOptions,
        output: TextIO,
    ) -> None: ...

    def get_user_config(self) -> UserConfig: ...

    def status(
        self,
        path: str,
        options: StatusOptions,
        visitor: Callable[[StatusEntry], None],
    ) -> None: ...


@runtime_checkable
class OpenDocumentTracker(Protocol):
    def save_documents(self, paths: Iterable[str]) -> bool: ...

    def lock_documents(
        self, paths: Iterable[str], mode: LockMode
    ) -> ContextManager[object]: ...


@runtime_checkable
class ProgressRunner(Protocol):
    def run_modal(self, title: str, work: Callable[[], None]) -> bool:
        """Run ``work`` to completion; False when the operator cancelled."""
        ...


@runtime_checkable
class MessagePrompt(Protocol):
    def show(
        self,
        message: str,
        caption: str = "",
        buttons: Buttons = Buttons.OK,
        severity: Severity = Severity.WARNING,
    ) -> Answer: ...


@runtime_checkable
class ConfigurationService(Protocol):
    def add_recent_message(self, message: str) -> None: ...

    def recent_messages(self) -> list[str]: ...


@runtime_checkable
class LastChangeNotifier(Protocol):
    def set_last_change(
        self, caption: Optional[str], value: Optional[str]
    ) -> None: ...


@runtime_checkable
class GroupingChooser(Protocol):
    def choose_groups(
        self,
        working_copies: Sequence[WorkingCopy],
        groups: Sequence[Sequence[PendingChange]],
    ) -> Optional[list[list[PendingChange]]]:
        """Return the groups to commit, or None when cancelled."""
        ...


class NullDocumentTracker:
    """Document tracker for hosts without open editors."""

    def save_documents(self, paths: Iterable[str]) -> bool:
        return True

    def lock_documents(
        self, paths: Iterable[str], mode: LockMode
    ) -> ContextManager[object]:
        return contextlib.nullcontext()


class InlineProgressRunner:
    """Runs work on the calling thread; cannot be cancelled."""

    def run_modal(self, title: str, work: Callable[[], None]) -> bool:
        logger.debug("%s", title)
        work()
        return True


class NonInteractivePrompt:
    """Prompt that answers without asking anyone.

    Yes/no questions are answered with ``assume_yes``. Every message shown is
    kept in ``messages`` and logged.
    """

    def __init__(self, assume_yes: bool = False) -> None:
        self.assume_yes = assume_yes
        self.messages: list[str] = []

    def show(
        self,
        message: str,
        caption: str = "",
        buttons: Buttons = Buttons.OK,
        severity: Severity = Severity.WARNING,
    ) -> Answer:
        self.messages.append(message)
        level = logging.ERROR if severity == Severity.ERROR else logging.WARNING
        if severity == Severity.INFO:
            level = logging.INFO
        logger.log(level, "%s", message)
        if buttons == Buttons.YES_NO:
            return Answer.YES if self.assume_yes else Answer.NO
        return Answer.OK


class NullNotifier:
    def set_last_change(
        self, caption: Optional[str], value: Optional[str]
    ) -> None:
        return None

