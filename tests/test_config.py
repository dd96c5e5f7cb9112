import json
from pathlib import Path

import pytest

from pcmt.config import (
    Config,
    RecentMessageStore,
    clear_active_config,
    config_file_path,
    get_active_config,
    load_config,
    load_persisted_config,
    save_config,
    set_active_config,
)
from pcmt.exceptions import ConfigError


def test_load_config_defaults(tmp_path):
    cfg = load_config(repo_root=tmp_path)

    assert Path(cfg.repo_path) == tmp_path.resolve()
    assert cfg.recent_message_limit == 25
    assert cfg.store_message_on_error is False
    assert cfg.assume_yes is False
    assert get_active_config() is cfg


def test_environment_overrides_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("PCMT_RECENT_MESSAGE_LIMIT", "5")
    monkeypatch.setenv("PCMT_ASSUME_YES", "yes")

    cfg = load_config(repo_root=tmp_path)

    assert cfg.recent_message_limit == 5
    assert cfg.assume_yes is True


def test_overrides_take_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("PCMT_ASSUME_YES", "1")
    overrides = {
        "repo_path": "sub",
        "recent_message_limit": "3",
        "assume_yes": False,
        "store_message_on_error": True,
    }

    cfg = load_config(repo_root=tmp_path, overrides=overrides)

    assert Path(cfg.repo_path) == (tmp_path / "sub").resolve()
    assert cfg.recent_message_limit == 3
    assert cfg.assume_yes is False
    assert cfg.store_message_on_error is True


def test_invalid_limit_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("PCMT_RECENT_MESSAGE_LIMIT", "lots")
    with pytest.raises(ConfigError):
        load_config(repo_root=tmp_path)

    with pytest.raises(ConfigError):
        load_config(repo_root=tmp_path, overrides={"recent_message_limit": -1})


def test_save_and_load_persisted_config(tmp_path):
    cfg = Config(repo_path=".", recent_message_limit=7, store_message_on_error=True)
    save_config(cfg, tmp_path)

    data = json.loads(config_file_path(tmp_path).read_text())
    assert data["repo_path"] == str(tmp_path.resolve())

    loaded = load_persisted_config(tmp_path)
    assert loaded.recent_message_limit == 7
    assert loaded.store_message_on_error is True

    again = load_config(repo_root=tmp_path)
    assert again.recent_message_limit == 7
    assert again.store_message_on_error is True


def test_persisted_config_ignores_unknown_keys(tmp_path):
    path = config_file_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"recent_message_limit": 2, "legacy": True}))

    assert load_persisted_config(tmp_path).recent_message_limit == 2


def test_corrupt_config_raises(tmp_path):
    path = config_file_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{not json")

    with pytest.raises(ConfigError):
        load_persisted_config(tmp_path)


def test_active_config_slot(tmp_path):
    cfg = Config(repo_path=str(tmp_path))
    set_active_config(cfg)
    assert get_active_config() is cfg

    clear_active_config()
    assert get_active_config() is not cfg


def test_recent_messages_most_recent_first_and_capped(tmp_path):
    store = RecentMessageStore(tmp_path, limit=2)
    assert store.recent_messages() == []

    store.add_recent_message("one\n")
    store.add_recent_message("two\n")
    store.add_recent_message("one\n")
    store.add_recent_message("three\n")

    assert store.recent_messages() == ["three\n", "one\n"]
    assert RecentMessageStore(tmp_path, limit=2).recent_messages() == [
        "three\n",
        "one\n",
    ]
