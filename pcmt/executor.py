"""Final backend calls: commit to the repository or export a patch."""

from __future__ import annotations

import io
import logging
import re
from typing import Iterable, Optional

from .exceptions import GitError, GitErrorCode
from .models import (
    CommitOptions,
    CommitResult,
    CreatePatchArgs,
    Depth,
    DiffOptions,
    PendingChange,
    Revision,
    RevisionRange,
)
from .pathutil import is_at_or_below
from .resolver import WorkingCopyResolver
from .services import (
    LastChangeNotifier,
    MessagePrompt,
    ProgressRunner,
    Severity,
    VersionControlBackend,
)
from .state import CommitState, Phase

logger = logging.getLogger(__name__)

COMMIT_TITLE = "Committing"
DIFF_TITLE = "Creating patch"
COMMITTED_PREFIX = "Committed"
DEPTH_UNKNOWN = (
    "The selection cannot be committed: a directory deletion would also "
    "commit changes that are not selected."
)
OUT_OF_DATE = (
    "The commit was rejected because the working copy is out of date. "
    "Update the working copy and commit again."
)
POST_COMMIT_WARNING = "The commit succeeded, but a hook reported:\n{error}"
CANCELLED = "The operation was cancelled."

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def describe_error_chain(error: BaseException) -> str:
    """One line per exception, following ``__cause__``/``__context__``."""
    lines: list[str] = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current).strip() or type(current).__name__
        lines.append(f"{type(current).__name__}: {text}")
        current = current.__cause__ or current.__context__
    return "\n".join(lines)


def write_patch(file_name: str, text: str) -> None:
    """Write ``text`` re-terminating every line with ``\\n``."""
    lines = _LINE_BREAK.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    with open(file_name, "w", encoding="utf-8", newline="") as handle:
        for line in lines:
            handle.write(line + "\n")


class CommitExecutor:
    """Performs the backend call once staging has succeeded."""

    def __init__(
        self,
        backend: VersionControlBackend,
        progress: ProgressRunner,
        prompt: MessagePrompt,
        notifier: LastChangeNotifier,
    ) -> None:
        self.backend = backend
        self.progress = progress
        self.prompt = prompt
        self.notifier = notifier

    def commit_to_repository(self, state: CommitState) -> CommitResult:
        if state is None:
            raise ValueError("state is required")

        try:
            depth = state.calculate_commit_depth()
        except GitError as exc:
            return self._fail(state, str(exc))
        if depth == Depth.UNKNOWN:
            return self._fail(state, DEPTH_UNKNOWN, severity=Severity.WARNING)

        options = CommitOptions(
            depth=depth,
            log_message=state.log_message,
            amend_last_commit=state.amend_last_commit,
        )
        paths = list(state.commit_paths)
        outcome: dict[str, object] = {}

        def work() -> None:
            try:
                outcome["result"] = self.backend.commit(paths, options)
            except GitError as exc:
                outcome["error"] = exc

        state.phase = Phase.EXECUTING
        logger.debug("Committing %d path(s) at depth %s", len(paths), depth.name)
        completed = self.progress.run_modal(COMMIT_TITLE, work)

        error = outcome.get("error")
        if isinstance(error, GitError):
            if error.code == GitErrorCode.OUT_OF_DATE:
                return self._fail(
                    state, f"{OUT_OF_DATE}\n\n{describe_error_chain(error)}"
                )
            return self._fail(state, str(error))

        result = outcome.get("result")
        if not completed or not isinstance(result, CommitResult):
            return self._fail(state, CANCELLED, severity=Severity.INFO)
        if not result.succeeded:
            state.phase = Phase.FAILED
            if result.error:
                self.prompt.show(result.error, severity=Severity.ERROR)
            return result

        if result.revision_id:
            self.notifier.set_last_change(COMMITTED_PREFIX, result.revision_id)
        if result.post_commit_error:
            self.prompt.show(
                POST_COMMIT_WARNING.format(error=result.post_commit_error),
                severity=Severity.INFO,
            )
        state.phase = Phase.SUCCEEDED
        logger.info("Committed revision %s", result.revision_id or "(unknown)")
        return result

    def create_patch(
        self,
        changes: Iterable[PendingChange],
        args: CreatePatchArgs,
        resolver: WorkingCopyResolver,
    ) -> bool:
        """Diff every change from base to working tree into ``args.file_name``."""
        if not args.file_name:
            raise ValueError("a patch file name is required")

        changes = list(changes)
        revisions = RevisionRange(Revision.BASE, Revision.WORKING)
        buffer = io.StringIO()
        failures: list[GitError] = []

        def work() -> None:
            for change in changes:
                relative_to = args.relative_to_path
                if not relative_to or not is_at_or_below(change.path, relative_to):
                    wc = resolver.resolve(change.path)
                    relative_to = wc.root_path if wc else None
                options = DiffOptions(
                    depth=Depth.EMPTY,
                    ignore_ancestry=True,
                    no_deleted=False,
                    relative_to_path=relative_to,
                )
                try:
                    self.backend.diff(change.path, revisions, options, buffer)
                except GitError as exc:
                    failures.append(exc)
                    return

        completed = self.progress.run_modal(DIFF_TITLE, work)
        if failures:
            self.prompt.show(str(failures[0]), severity=Severity.ERROR)
            return False
        if not completed:
            return False

        write_patch(args.file_name, buffer.getvalue())
        logger.info("Wrote patch for %d change(s) to %s", len(changes), args.file_name)
        return True

    def _fail(
        self,
        state: CommitState,
        message: str,
        severity: Severity = Severity.ERROR,
    ) -> CommitResult:
        state.phase = Phase.FAILED
        self.prompt.show(message, severity=severity)
        return CommitResult(succeeded=False, error=message)
