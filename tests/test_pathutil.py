import os

from pcmt.pathutil import (
    ancestors,
    get_true_path,
    is_at_or_below,
    is_below,
    normalize_path,
    parent_path,
    path_key,
    same_path,
)


def test_normalize_and_compare_ignore_case(tmp_path):
    a = str(tmp_path / "Dir" / ".." / "File.TXT")
    b = str(tmp_path / "file.txt")
    assert normalize_path(a) == str(tmp_path / "File.TXT")
    assert path_key(a) == path_key(b)
    assert same_path(a, b)


def test_is_below_is_strict(tmp_path):
    root = str(tmp_path)
    child = str(tmp_path / "a" / "b.txt")
    assert is_below(child, root)
    assert not is_below(root, root)
    assert is_at_or_below(root, root)
    assert not is_below(str(tmp_path) + "x", root)


def test_ancestors_nearest_first(tmp_path):
    path = str(tmp_path / "a" / "b" / "c.txt")
    found = list(ancestors(path))
    assert found[0] == str(tmp_path / "a" / "b")
    assert found[1] == str(tmp_path / "a")
    assert found[-1] == os.sep
    assert parent_path(os.sep) is None


def test_get_true_path_finds_disk_casing(tmp_path):
    (tmp_path / "Sub").mkdir()
    (tmp_path / "Sub" / "Readme.MD").write_text("x")

    found = get_true_path(str(tmp_path / "sub" / "readme.md"))

    assert found == str(tmp_path / "Sub" / "Readme.MD")


def test_get_true_path_prefers_exact_match(tmp_path):
    (tmp_path / "a.txt").write_text("lower")
    (tmp_path / "A.txt").write_text("upper")

    assert get_true_path(str(tmp_path / "A.txt")) == str(tmp_path / "A.txt")


def test_get_true_path_missing_returns_none(tmp_path):
    assert get_true_path(str(tmp_path / "nope" / "x")) is None


def test_case_sensitive_keys_keep_spellings_apart(tmp_path):
    a = str(tmp_path / "Readme.txt")
    b = str(tmp_path / "README.txt")

    assert path_key(a, ignore_case=False) != path_key(b, ignore_case=False)
    assert not same_path(a, b, ignore_case=False)
    assert same_path(a, str(tmp_path / "." / "Readme.txt"), ignore_case=False)
