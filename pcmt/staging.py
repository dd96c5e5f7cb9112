"""Validation and normalization steps that run before a commit or patch."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import GitError, GitErrorCode
from .models import (
    AddOptions,
    DeleteOptions,
    Depth,
    ItemState,
    ItemStatus,
    OperationKind,
    PendingChange,
    PendingChangeKind,
    WorkingCopy,
)
from .pathutil import ancestors, get_true_path, is_below, path_key, same_path
from .services import (
    Answer,
    Buttons,
    LockMode,
    MessagePrompt,
    OpenDocumentTracker,
    Severity,
    VersionControlBackend,
)
from .state import CommitState, Phase

logger = logging.getLogger(__name__)

COMMIT_SINGLE_WC = "A commit can only contain changes from a single working copy."
NO_MESSAGE_PROVIDED = "No log message was provided. Continue without a log message?"
ITEMS_CONFLICTED = (
    "One or more items are in a conflicted state. "
    "Resolve the conflicts before committing."
)
NAME_OR_EMAIL_NOT_SET = (
    "The user name or email address is not configured. "
    "Set user.name and user.email before committing."
)
FAILED_TO_SAVE = "Failed to save all documents before committing."
NO_REPOSITORY = (
    "Cannot add {path}: the path is not inside a repository. "
    "Create or clone a repository first."
)
ADD_FAILED = "Adding {path} failed:\n{error}\n\nContinue without adding it?"
DELETE_FAILED = "Removing missing file {path} failed:\n{error}"


def normalize_log_message(message: str) -> str:
    """Normalize a log message the way the command-line client would.

    No trailing whitespace on any line and exactly one newline at the end.
    """
    lines = message.replace("\r", "").split("\n")
    return "\n".join(line.rstrip() for line in lines).rstrip() + "\n"


@dataclass(frozen=True)
class StepResult:
    """Outcome of a staging step: continue, or abort with a reason."""

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def proceed(cls) -> "StepResult":
        return cls(True)

    @classmethod
    def abort(cls, reason: str) -> "StepResult":
        return cls(False, reason)


Step = Callable[[CommitState], StepResult]


class StagingPipeline:
    """Runs the ordered staging steps for one commit state.

    Steps never raise for backend failures; a :class:`GitError` escaping a
    step is shown to the operator and turned into an abort.
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        documents: OpenDocumentTracker,
        prompt: MessagePrompt,
    ) -> None:
        self.backend = backend
        self.documents = documents
        self.prompt = prompt
        self.last_abort: Optional[tuple[str, str]] = None

    def steps_for(
        self, operation: OperationKind, add_unversioned_files: bool = True
    ) -> list[tuple[str, Step]]:
        steps: dict[str, Step] = {
            "verify_single_root": self.verify_single_root,
            "verify_log_message": self.verify_log_message,
            "verify_no_conflicts": self.verify_no_conflicts,
            "verify_configuration": self.verify_configuration,
            "save_dirty": self.save_dirty,
            "add_new_files": self.add_new_files,
            "handle_missing_files": self.handle_missing_files,
            "flush_state": self.flush_state,
            "add_needed_parents": self.add_needed_parents,
        }
        if operation == OperationKind.COMMIT:
            names = [
                "verify_single_root",
                "verify_log_message",
                "verify_no_conflicts",
                "verify_configuration",
                "save_dirty",
                "add_new_files",
                "handle_missing_files",
                "flush_state",
                "add_needed_parents",
                "verify_single_root",
            ]
        elif operation == OperationKind.CREATE_PATCH:
            names = ["verify_single_root", "verify_log_message", "save_dirty"]
            if add_unversioned_files:
                names += ["add_new_files", "handle_missing_files"]
            names += ["flush_state", "add_needed_parents", "verify_single_root"]
        elif operation == OperationKind.APPLY:
            names = [
                "save_dirty",
                "add_new_files",
                "handle_missing_files",
                "flush_state",
                "add_needed_parents",
            ]
        else:
            raise ValueError(f"Unknown operation: {operation!r}")
        return [(name, steps[name]) for name in names]

    def stage(
        self,
        state: CommitState,
        operation: OperationKind,
        add_unversioned_files: bool = True,
    ) -> bool:
        """Run every step for ``operation``; False as soon as one aborts."""
        if state is None:
            raise ValueError("state is required")

        self.last_abort = None
        state.phase = Phase.STAGING
        for name, step in self.steps_for(operation, add_unversioned_files):
            try:
                result = step(state)
            except GitError as exc:
                self.prompt.show(str(exc), severity=Severity.ERROR)
                result = StepResult.abort(str(exc))
            if not result.ok:
                self.last_abort = (name, result.reason or "")
                state.phase = Phase.FAILED
                logger.info("Staging stopped at %s: %s", name, result.reason)
                return False
            logger.debug("Staging step %s passed", name)
        state.phase = Phase.READY
        return True

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def verify_single_root(self, state: CommitState) -> StepResult:
        ignore_case = state.cache.ignores_case
        changes: dict[str, PendingChange] = {
            path_key(c.path, ignore_case): c for c in state.changes
        }
        first: Optional[WorkingCopy] = None
        for path in state.commit_paths:
            change = changes.get(path_key(path, ignore_case))
            if change is not None:
                versioned = change.is_versioned or change.is_versionable
            else:
                item = state.cache[path]
                versioned = item.is_versioned or item.is_versionable
            if not versioned:
                continue

            wc = state.resolver.resolve(path)
            if first is None:
                first = wc
            elif wc is not None and wc != first:
                message = "\n".join(
                    [
                        COMMIT_SINGLE_WC,
                        f"Working copy: {first.root_path}",
                        f"Working copy: {wc.root_path}",
                    ]
                )
                self.prompt.show(message)
                return StepResult.abort(COMMIT_SINGLE_WC)
        return StepResult.proceed()

    def verify_log_message(self, state: CommitState) -> StepResult:
        if not state.message_required:
            return StepResult.proceed()

        if state.log_message is None or not state.log_message.strip():
            answer = self.prompt.show(NO_MESSAGE_PROVIDED, buttons=Buttons.YES_NO)
            if answer != Answer.YES:
                return StepResult.abort("no log message")

        if state.log_message is None:
            return StepResult.proceed()

        state.log_message = normalize_log_message(state.log_message)
        return StepResult.proceed()

    def verify_no_conflicts(self, state: CommitState) -> StepResult:
        for change in state.changes:
            if (
                change.kind == PendingChangeKind.CONFLICTED
                or state.cache[change.path].is_conflicted
            ):
                self.prompt.show(ITEMS_CONFLICTED)
                return StepResult.abort(f"{change.path} is conflicted")
        return StepResult.proceed()

    def verify_configuration(self, state: CommitState) -> StepResult:
        config = self.backend.get_user_config()
        if not config.name or not config.email:
            self.prompt.show(NAME_OR_EMAIL_NOT_SET)
            return StepResult.abort("user name or email not set")
        return StepResult.proceed()

    def save_dirty(self, state: CommitState) -> StepResult:
        paths = list(state.commit_paths)
        if not self.documents.save_documents(paths):
            self.prompt.show(FAILED_TO_SAVE)
            return StepResult.abort(FAILED_TO_SAVE)
        # Held until the state closes, so no reload lands mid-commit.
        state.hold(self.documents.lock_documents(paths, LockMode.NO_RELOAD))
        return StepResult.proceed()

    def add_new_files(self, state: CommitState) -> StepResult:
        options = AddOptions(add_parents=True, depth=Depth.EMPTY)
        for change in state.changes:
            if change.kind != PendingChangeKind.NEW:
                continue
            if state.cache[change.path].is_versioned:
                continue

            try:
                self.backend.add(change.path, options)
            except GitError as exc:
                if exc.code == GitErrorCode.PATH_NO_REPOSITORY:
                    message = NO_REPOSITORY.format(path=change.path)
                    self.prompt.show(message, severity=Severity.ERROR)
                    return StepResult.abort(message)
                answer = self.prompt.show(
                    ADD_FAILED.format(path=change.path, error=exc),
                    buttons=Buttons.YES_NO,
                )
                if answer == Answer.YES:
                    continue
                return StepResult.abort(str(exc))
            state.cache.mark_dirty_with_parents(change.path)
        return StepResult.proceed()

    def handle_missing_files(self, state: CommitState) -> StepResult:
        for path in list(state.commit_paths):
            item = state.cache[path]
            if item.status != ItemStatus.MISSING:
                continue

            if item.is_casing_conflicted:
                self._fix_casing(state, path, item)
            elif not item.exists:
                try:
                    self.backend.delete(path, DeleteOptions(keep_local=True))
                except GitError as exc:
                    message = DELETE_FAILED.format(path=path, error=exc)
                    self.prompt.show(message, severity=Severity.ERROR)
                    return StepResult.abort(message)
                state.cache.mark_dirty(path)
        return StepResult.proceed()

    def flush_state(self, state: CommitState) -> StepResult:
        state.flush_state()
        return StepResult.proceed()

    def add_needed_parents(self, state: CommitState) -> StepResult:
        for path in list(state.commit_paths):
            if not state.cache[path].is_new_addition:
                continue

            wc = state.resolver.resolve(path)
            if wc is None:
                # An added item outside any working copy; refresh and move on.
                state.cache.mark_dirty(path)
                continue

            for parent in ancestors(path):
                if not is_below(parent, wc.root_path):
                    break
                if parent in state.commit_paths:
                    break
                if not state.cache[parent].is_new_addition:
                    break
                state.commit_paths.add(parent)
        return StepResult.proceed()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _fix_casing(self, state: CommitState, path: str, item: ItemState) -> bool:
        """Rename the file on disk to the casing the backend recorded."""
        correct = state.cache.recorded_casing(path)
        actual = get_true_path(item.path)
        if correct is None or actual is None or not same_path(correct, actual):
            return False
        if os.path.basename(correct) == os.path.basename(actual):
            # Casing differs in a directory name only; renaming won't help.
            return False

        with self.documents.lock_documents([correct], LockMode.NO_RELOAD):
            with self.documents.lock_documents([actual], LockMode.NO_RELOAD):
                try:
                    os.rename(actual, correct)
                    state.commit_paths.replace(path, correct)
                    return True
                except OSError as exc:
                    logger.debug("Could not rename %s to %s: %s", actual, correct, exc)
                    return False
                finally:
                    state.cache.mark_dirty(correct)
