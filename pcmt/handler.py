"""Entry points for applying, patching and committing pending changes."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .cache import StatusCache
from .executor import CommitExecutor
from .models import (
    ApplyArgs,
    CommitArgs,
    CommitResult,
    CreatePatchArgs,
    OperationKind,
    PendingChange,
)
from .resolver import CommitRootSplitter, WorkingCopyResolver
from .services import (
    ConfigurationService,
    GroupingChooser,
    InlineProgressRunner,
    LastChangeNotifier,
    MessagePrompt,
    NonInteractivePrompt,
    NullDocumentTracker,
    NullNotifier,
    OpenDocumentTracker,
    ProgressRunner,
    VersionControlBackend,
)
from .staging import StagingPipeline
from .state import CommitState

logger = logging.getLogger(__name__)


class PendingChangeHandler:
    """Stages pending changes and hands them to the backend.

    Collaborators that are not supplied fall back to non-interactive
    defaults: no open documents, inline progress, a prompt answering "no"
    and no last-change display.
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        documents: Optional[OpenDocumentTracker] = None,
        progress: Optional[ProgressRunner] = None,
        prompt: Optional[MessagePrompt] = None,
        configuration: Optional[ConfigurationService] = None,
        notifier: Optional[LastChangeNotifier] = None,
        resolver: Optional[WorkingCopyResolver] = None,
        chooser: Optional[GroupingChooser] = None,
    ) -> None:
        self.backend = backend
        self.documents = documents or NullDocumentTracker()
        self.progress = progress or InlineProgressRunner()
        self.prompt = prompt or NonInteractivePrompt()
        self.configuration = configuration
        self.notifier = notifier or NullNotifier()
        self.resolver = resolver or WorkingCopyResolver()
        self.splitter = CommitRootSplitter(self.resolver, chooser)
        self.pipeline = StagingPipeline(self.backend, self.documents, self.prompt)
        self.executor = CommitExecutor(
            self.backend, self.progress, self.prompt, self.notifier
        )
        self.last_result: Optional[CommitResult] = None

    def _new_state(
        self,
        changes: Iterable[PendingChange],
        cache: Optional[StatusCache] = None,
        message_required: bool = True,
    ) -> CommitState:
        return CommitState(
            changes,
            cache or StatusCache(self.backend),
            self.resolver,
            message_required=message_required,
        )

    def apply_changes(
        self, changes: Iterable[PendingChange], args: Optional[ApplyArgs] = None
    ) -> bool:
        """Add new files and remove missing ones without committing."""
        with self._new_state(changes, message_required=False) as state:
            return self.pipeline.stage(state, OperationKind.APPLY)

    def create_patch(
        self, changes: Iterable[PendingChange], args: CreatePatchArgs
    ) -> bool:
        if args is None:
            raise ValueError("args is required")

        changes = list(changes)
        with self._new_state(changes, message_required=False) as state:
            if not self.pipeline.stage(
                state,
                OperationKind.CREATE_PATCH,
                add_unversioned_files=args.add_unversioned_files,
            ):
                return False
        return self.executor.create_patch(changes, args, self.resolver)

    def get_commit_roots(
        self,
        changes: Iterable[PendingChange],
        cache: Optional[StatusCache] = None,
    ) -> list[CommitState]:
        """One state per working copy to commit; empty when aborted."""
        cache = cache or StatusCache(self.backend)
        return [self._new_state(group, cache) for group in self.splitter.split(changes)]

    def commit(self, changes: Iterable[PendingChange], args: CommitArgs) -> bool:
        if args is None:
            raise ValueError("args is required")

        changes = list(changes)
        self.last_result = None
        self.notifier.set_last_change(None, None)
        if not changes:
            logger.info("Nothing to commit")
            return False

        store_message = args.store_message_on_error
        states = self.get_commit_roots(changes)
        if not states:
            return False

        for state in states:
            with state:
                try:
                    state.log_message = args.log_message
                    state.amend_last_commit = args.amend_last_commit

                    if not self.pipeline.stage(state, OperationKind.COMMIT):
                        return False

                    result = self.executor.commit_to_repository(state)
                    self.last_result = result
                    if not result.succeeded:
                        return False
                    store_message = True
                finally:
                    if store_message:
                        self._store_message(state.log_message)
        return True

    def _store_message(self, message: Optional[str]) -> None:
        if self.configuration is None or not message or not message.strip():
            return
        self.configuration.add_recent_message(message)
