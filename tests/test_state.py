import contextlib

import pytest

from pcmt.cache import StatusCache
from pcmt.models import Depth, ItemStatus, PendingChange
from pcmt.state import CommitPaths, CommitState, Phase


def _state(backend, resolver, *paths):
    changes = [PendingChange(str(p)) for p in paths]
    return CommitState(changes, StatusCache(backend), resolver)


def test_commit_paths_unique_ignoring_case(wc_root):
    paths = CommitPaths([str(wc_root / "a.txt"), str(wc_root / "A.TXT")])

    assert len(paths) == 1
    assert paths.add(str(wc_root / "b.txt")) is True
    assert paths.add(str(wc_root / "B.txt")) is False
    assert str(wc_root / "B.TXT") in paths
    assert list(paths) == [str(wc_root / "a.txt"), str(wc_root / "b.txt")]


def test_commit_paths_replace_keeps_position(wc_root):
    paths = CommitPaths([str(wc_root / "a"), str(wc_root / "C.txt"), str(wc_root / "z")])

    paths.replace(str(wc_root / "C.txt"), str(wc_root / "c.txt"))

    assert list(paths)[1] == str(wc_root / "c.txt")
    with pytest.raises(ValueError):
        paths.index(str(wc_root / "missing"))


def test_state_releases_held_resources_on_exit(backend, resolver, wc_root):
    released = []

    @contextlib.contextmanager
    def resource(name):
        try:
            yield name
        finally:
            released.append(name)

    with pytest.raises(RuntimeError):
        with _state(backend, resolver, wc_root / "a.txt") as state:
            assert state.hold(resource("first")) == "first"
            state.hold(resource("second"))
            raise RuntimeError("boom")

    assert released == ["second", "first"]
    assert state.closed
    state.close()
    assert released == ["second", "first"]


def test_new_state_starts_created_with_change_paths(backend, resolver, wc_root):
    state = _state(backend, resolver, wc_root / "a.txt", wc_root / "b.txt")

    assert state.phase == Phase.CREATED
    assert list(state.commit_paths) == [str(wc_root / "a.txt"), str(wc_root / "b.txt")]


def test_file_only_paths_commit_at_empty_depth(backend, resolver, wc_root):
    backend.record(wc_root / "a.txt", ItemStatus.MODIFIED)
    backend.record(wc_root / "b.txt", ItemStatus.DELETED)
    state = _state(backend, resolver, wc_root / "a.txt", wc_root / "b.txt")

    assert state.calculate_commit_depth() == Depth.EMPTY


def test_deleted_directory_needs_infinite_depth(backend, resolver, wc_root):
    gone = backend.record(wc_root / "gone", ItemStatus.DELETED, is_directory=True)
    backend.record(wc_root / "gone" / "x.txt", ItemStatus.DELETED)
    backend.record(wc_root / "a.txt", ItemStatus.MODIFIED)
    state = _state(backend, resolver, gone, wc_root / "a.txt")

    assert state.calculate_commit_depth() == Depth.INFINITY


def test_recursive_commit_sweeping_unselected_change_is_unknown(
    backend, resolver, wc_root
):
    gone = backend.record(wc_root / "gone", ItemStatus.DELETED, is_directory=True)
    backend.record(wc_root / "gone" / "keep.txt", ItemStatus.ADDED)
    state = _state(backend, resolver, gone)

    assert state.calculate_commit_depth() == Depth.UNKNOWN


def test_case_sensitive_commit_paths_keep_both_spellings(wc_root):
    paths = CommitPaths(
        [str(wc_root / "Readme.txt"), str(wc_root / "README.txt")],
        ignore_case=False,
    )

    assert len(paths) == 2
    assert str(wc_root / "readme.txt") not in paths
    assert paths.index(str(wc_root / "README.txt")) == 1


def test_state_follows_backend_case_sensitivity(backend, resolver, wc_root):
    backend.ignores_case = False

    state = _state(backend, resolver, wc_root / "Readme.txt", wc_root / "README.txt")

    assert list(state.commit_paths) == [
        str(wc_root / "Readme.txt"),
        str(wc_root / "README.txt"),
    ]
