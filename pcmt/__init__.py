"""pcmt - stage and commit pending changes one working copy at a time."""

from importlib import import_module

__version__ = "0.1.0"

# Public API (lazy-exported to avoid import-time side effects)
__all__ = [
    # Config
    "Config", "load_config", "RecentMessageStore",
    # Git
    "GitRepo",
    # Handler
    "PendingChangeHandler", "CommitState", "StatusCache",
    "WorkingCopyResolver", "CommitRootSplitter",
    # Model
    "PendingChange", "PendingChangeKind", "CommitArgs", "CreatePatchArgs",
    "ApplyArgs", "CommitResult",
    # Exceptions
    "PendingCommitError", "GitError", "GitErrorCode", "ConfigError",
]


def __getattr__(name: str):
    """Lazy attribute loader.

    Keeps ``import pcmt`` from reading configuration or probing for git
    until one of the exported names is actually used.
    """
    mapping = {
        # Config
        "Config": ("pcmt.config", "Config"),
        "load_config": ("pcmt.config", "load_config"),
        "RecentMessageStore": ("pcmt.config", "RecentMessageStore"),
        # Git
        "GitRepo": ("pcmt.git", "GitRepo"),
        # Handler
        "PendingChangeHandler": ("pcmt.handler", "PendingChangeHandler"),
        "CommitState": ("pcmt.state", "CommitState"),
        "StatusCache": ("pcmt.cache", "StatusCache"),
        "WorkingCopyResolver": ("pcmt.resolver", "WorkingCopyResolver"),
        "CommitRootSplitter": ("pcmt.resolver", "CommitRootSplitter"),
        # Model
        "PendingChange": ("pcmt.models", "PendingChange"),
        "PendingChangeKind": ("pcmt.models", "PendingChangeKind"),
        "CommitArgs": ("pcmt.models", "CommitArgs"),
        "CreatePatchArgs": ("pcmt.models", "CreatePatchArgs"),
        "ApplyArgs": ("pcmt.models", "ApplyArgs"),
        "CommitResult": ("pcmt.models", "CommitResult"),
        # Exceptions
        "PendingCommitError": ("pcmt.exceptions", "PendingCommitError"),
        "GitError": ("pcmt.exceptions", "GitError"),
        "GitErrorCode": ("pcmt.exceptions", "GitErrorCode"),
        "ConfigError": ("pcmt.exceptions", "ConfigError"),
    }
    if name in mapping:
        mod_name, attr = mapping[name]
        mod = import_module(mod_name)
        value = getattr(mod, attr)
        globals()[name] = value  # cache for future access
        return value
    raise AttributeError(f"module 'pcmt' has no attribute {name!r}")
