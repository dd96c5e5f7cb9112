"""Configuration management for pcmt."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError

CONFIG_DIR_NAME = ".pcmt"
CONFIG_FILE_NAME = "config.json"
RECENT_MESSAGES_FILE_NAME = "recent_messages.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """Runtime configuration for pcmt."""

    repo_path: str = "."
    recent_message_limit: int = 25
    store_message_on_error: bool = False
    assume_yes: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialise configuration to a dict for persistence."""
        return asdict(self)


_CONFIG_STATE: dict[str, Optional[Config]] = {"active": None}


def _ensure_path(path_like: Optional[Path]) -> Path:
    if path_like is None:
        return Path.cwd().resolve(strict=False)
    return Path(path_like).expanduser().resolve(strict=False)


def _config_dir(repo_root: Optional[Path] = None) -> Path:
    return _ensure_path(repo_root) / CONFIG_DIR_NAME


def config_file_path(repo_root: Optional[Path] = None) -> Path:
    return _config_dir(repo_root) / CONFIG_FILE_NAME


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def save_config(config: Config, repo_root: Optional[Path] = None) -> None:
    """Persist configuration JSON within the repository."""
    cfg_path = config_file_path(repo_root)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    base_root = _ensure_path(repo_root)
    candidate = Path(data.get("repo_path") or ".").expanduser()
    if not candidate.is_absolute():
        candidate = base_root / candidate
    data["repo_path"] = str(candidate.resolve(strict=False))
    config.repo_path = data["repo_path"]
    cfg_path.write_text(json.dumps(data, indent=2))


def load_persisted_config(
    repo_root: Optional[Path] = None,
) -> Optional[Config]:
    cfg_path = config_file_path(repo_root)
    if not cfg_path.exists():
        return None
    try:
        data = json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid configuration file {cfg_path}: {exc}") from exc
    known = {f.name for f in fields(Config)}
    data = {k: v for k, v in data.items() if k in known}
    return Config(**data)


def load_config(
    *,
    repo_root: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> Config:
    """Build configuration from config file, environment and overrides."""

    overrides = overrides or {}
    repo_root = _ensure_path(repo_root)
    persisted = load_persisted_config(repo_root)

    repo_path_raw = (
        overrides.get("repo_path")
        or os.environ.get("PCMT_REPO_PATH")
        or (persisted.repo_path if persisted else str(repo_root))
    )
    repo_candidate = Path(repo_path_raw).expanduser()
    if not repo_candidate.is_absolute():
        repo_candidate = repo_root / repo_candidate
    repo_path = str(repo_candidate.resolve(strict=False))

    limit_raw = (
        overrides.get("recent_message_limit")
        or os.environ.get("PCMT_RECENT_MESSAGE_LIMIT")
        or (persisted.recent_message_limit if persisted else 25)
    )
    try:
        recent_message_limit = int(limit_raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid recent message limit: {limit_raw!r}") from exc
    if recent_message_limit < 0:
        raise ConfigError("Recent message limit must not be negative")

    if overrides.get("assume_yes") is not None:
        assume_yes = _as_bool(overrides["assume_yes"])
    elif os.environ.get("PCMT_ASSUME_YES"):
        assume_yes = _as_bool(os.environ["PCMT_ASSUME_YES"])
    else:
        assume_yes = persisted.assume_yes if persisted else False

    def _flag(name: str) -> bool:
        if overrides.get(name) is not None:
            return _as_bool(overrides[name])
        return bool(getattr(persisted, name, False)) if persisted else False

    config = Config(
        repo_path=repo_path,
        recent_message_limit=recent_message_limit,
        store_message_on_error=_flag("store_message_on_error"),
        assume_yes=assume_yes,
    )

    set_active_config(config)
    return config


def set_active_config(config: Config) -> None:
    _CONFIG_STATE["active"] = config


def get_active_config() -> Config:
    active = _CONFIG_STATE.get("active")
    if active is None:
        return load_config()
    return active


def clear_active_config() -> None:
    _CONFIG_STATE["active"] = None


class RecentMessageStore:
    """Recent log messages, most recent first, kept next to the config."""

    def __init__(self, repo_root: Optional[Path] = None, limit: int = 25) -> None:
        self.path = _config_dir(repo_root) / RECENT_MESSAGES_FILE_NAME
        self.limit = limit

    def recent_messages(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid message history {self.path}: {exc}") from exc
        return [m for m in data if isinstance(m, str)]

    def add_recent_message(self, message: str) -> None:
        messages = [m for m in self.recent_messages() if m != message]
        messages.insert(0, message)
        del messages[self.limit :]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(messages, indent=2))
