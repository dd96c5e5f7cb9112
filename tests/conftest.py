import contextlib
from collections.abc import Generator
from pathlib import Path

import pytest

from pcmt.models import (
    CommitResult,
    Depth,
    ItemStatus,
    StatusEntry,
    UserConfig,
)
from pcmt.pathutil import is_at_or_below, normalize_path, parent_path, same_path
from pcmt.resolver import WorkingCopyResolver
from pcmt.services import Answer, Buttons


@pytest.fixture(autouse=True)
def reset_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.delenv("PCMT_REPO_PATH", raising=False)
    monkeypatch.delenv("PCMT_RECENT_MESSAGE_LIMIT", raising=False)
    monkeypatch.delenv("PCMT_ASSUME_YES", raising=False)

    from pcmt.config import clear_active_config

    clear_active_config()
    yield
    clear_active_config()


class FakeBackend:
    """In-memory backend; recorded paths are matched ignoring case by default."""

    def __init__(self, user=None, ignores_case=True):
        self.ignores_case = ignores_case
        self.entries = {}
        self.user = user or UserConfig("Tester", "tester@example.com")
        self.calls = []
        self.status_calls = []
        self.errors = {}
        self.result = CommitResult(succeeded=True, revision_id="abc1234")
        self.diffs = {}

    def record(self, path, status, is_directory=False):
        norm = normalize_path(str(path))
        self.entries[norm] = StatusEntry(norm, status, is_directory)
        return norm

    def _raise(self, op):
        error = self.errors.get(op)
        if error is not None:
            raise error

    def _lookup(self, path):
        for key, entry in self.entries.items():
            if same_path(key, path, self.ignores_case):
                return key, entry
        return None, None

    def add(self, path, options):
        self.calls.append(("add", path, options))
        self._raise("add")
        key, entry = self._lookup(path)
        self.entries[key or normalize_path(path)] = StatusEntry(
            key or normalize_path(path),
            ItemStatus.ADDED,
            entry.is_directory if entry else False,
        )

    def delete(self, path, options):
        self.calls.append(("delete", path, options))
        self._raise("delete")
        key, entry = self._lookup(path)
        if key is not None:
            self.entries[key] = StatusEntry(key, ItemStatus.DELETED, entry.is_directory)

    def commit(self, paths, options):
        self.calls.append(("commit", list(paths), options))
        self._raise("commit")
        return self.result

    def diff(self, path, revisions, options, output):
        self.calls.append(("diff", path, options))
        self._raise("diff")
        output.write(self.diffs.get(normalize_path(path), ""))

    def get_user_config(self):
        return self.user

    def status(self, path, options, visitor):
        self.status_calls.append((path, options.depth))
        self._raise("status")
        for key, entry in list(self.entries.items()):
            if options.depth == Depth.EMPTY:
                match = same_path(key, path, self.ignores_case)
            elif options.depth == Depth.FILES:
                parent = parent_path(key)
                match = same_path(key, path, self.ignores_case) or (
                    parent is not None and same_path(parent, path, self.ignores_case)
                )
            else:
                match = is_at_or_below(key, path)
            if match:
                visitor(entry)

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in ("add", "delete", "commit")]


class RecordingPrompt:
    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.shown = []

    def show(self, message, caption="", buttons=Buttons.OK, severity=None):
        self.shown.append((message, buttons, severity))
        if buttons == Buttons.YES_NO:
            return self.answers.pop(0) if self.answers else Answer.NO
        return Answer.OK

    @property
    def messages(self):
        return [message for message, _, _ in self.shown]


class RecordingTracker:
    def __init__(self, save_ok=True):
        self.save_ok = save_ok
        self.saved = []
        self.events = []

    def save_documents(self, paths):
        self.saved.append(list(paths))
        return self.save_ok

    @contextlib.contextmanager
    def lock_documents(self, paths, mode):
        paths = list(paths)
        self.events.append(("lock", paths, mode))
        try:
            yield
        finally:
            self.events.append(("unlock", paths, mode))


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def set_last_change(self, caption, value):
        self.calls.append((caption, value))


class RecordingProgress:
    def __init__(self, cancel=False):
        self.cancel = cancel
        self.titles = []

    def run_modal(self, title, work):
        self.titles.append(title)
        if self.cancel:
            return False
        work()
        return True


class RecordingConfiguration:
    def __init__(self):
        self.messages = []

    def add_recent_message(self, message):
        self.messages.insert(0, message)

    def recent_messages(self):
        return list(self.messages)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def prompt() -> RecordingPrompt:
    return RecordingPrompt()


@pytest.fixture
def tracker() -> RecordingTracker:
    return RecordingTracker()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def wc_root(tmp_path: Path) -> Path:
    root = tmp_path / "wc"
    root.mkdir()
    return root


@pytest.fixture
def resolver(wc_root: Path) -> WorkingCopyResolver:
    return WorkingCopyResolver(roots=[str(wc_root)], locator=None)
