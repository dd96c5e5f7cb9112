"""Command-line interface for pcmt."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .config import Config, RecentMessageStore, load_config
from .exceptions import ConfigError, GitError
from .git import GitRepo, find_git_repo_root
from .handler import PendingChangeHandler
from .models import (
    ApplyArgs,
    CommitArgs,
    CreatePatchArgs,
    PendingChange,
    PendingChangeKind,
)
from .pathutil import is_at_or_below, normalize_path
from .resolver import WorkingCopyResolver
from .services import Answer, Buttons, Severity

RESET = "\033[0m"
BOLD = "\033[1m"
CYAN = "\033[96m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
DIM = "\033[2m"
RED = "\033[91m"

_SEVERITY_COLOURS = {
    Severity.INFO: CYAN,
    Severity.WARNING: YELLOW,
    Severity.ERROR: RED,
}

_KIND_LABELS = {
    PendingChangeKind.NEW: ("new", GREEN),
    PendingChangeKind.MODIFIED: ("modified", CYAN),
    PendingChangeKind.DELETED: ("deleted", RED),
    PendingChangeKind.MISSING: ("missing", YELLOW),
    PendingChangeKind.CONFLICTED: ("conflicted", RED),
}


class ConsolePrompt:
    """Prints messages to the terminal and reads yes/no answers from stdin."""

    def __init__(self, assume_yes: bool = False) -> None:
        self.assume_yes = assume_yes

    def show(
        self,
        message: str,
        caption: str = "",
        buttons: Buttons = Buttons.OK,
        severity: Severity = Severity.WARNING,
    ) -> Answer:
        colour = _SEVERITY_COLOURS.get(severity, "")
        if caption:
            print(f"{BOLD}{caption}{RESET}")
        print(f"{colour}{message}{RESET}")
        if buttons != Buttons.YES_NO:
            return Answer.OK
        if self.assume_yes:
            print(f"{DIM}(assuming yes){RESET}")
            return Answer.YES
        try:
            reply = input("Continue? [y/N] ")
        except (EOFError, OSError):
            return Answer.NO
        return Answer.YES if reply.strip().lower() in {"y", "yes"} else Answer.NO


class ConsoleNotifier:
    def __init__(self) -> None:
        self.caption: Optional[str] = None
        self.value: Optional[str] = None

    def set_last_change(self, caption: Optional[str], value: Optional[str]) -> None:
        self.caption = caption
        self.value = value
        if caption and value:
            print(f"{GREEN}{caption} {BOLD}{value}{RESET}")


def select_changes(
    changes: list[PendingChange], paths: Optional[list[str]]
) -> list[PendingChange]:
    """Keep the changes at or below any of ``paths``; all of them when empty."""
    if not paths:
        return list(changes)
    targets = [normalize_path(p) for p in paths]
    return [
        change
        for change in changes
        if any(is_at_or_below(change.path, target) for target in targets)
    ]


class CLI:
    """Command-line interface for pcmt."""

    def __init__(self) -> None:
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="pcmt",
            description="Stage and commit pending changes with git",
        )
        parser.add_argument(
            "--repo-path",
            default=None,
            help="Path to the repository (default: current directory)",
        )
        parser.add_argument(
            "--debug", action="store_true", help="Enable debug logging"
        )
        parser.add_argument(
            "--yes",
            action="store_true",
            default=None,
            help="Answer yes to every confirmation",
        )

        sub = parser.add_subparsers(dest="command", required=True)

        sub.add_parser("status", help="List pending changes")

        commit = sub.add_parser("commit", help="Commit pending changes")
        commit.add_argument("-m", "--message", required=True, help="Log message")
        commit.add_argument(
            "--amend", action="store_true", help="Amend the last commit"
        )
        commit.add_argument("paths", nargs="*", help="Limit to these paths")

        patch = sub.add_parser("patch", help="Write pending changes as a patch")
        patch.add_argument("file", help="Patch file to write")
        patch.add_argument(
            "--relative-to", default=None, help="Directory patch paths are relative to"
        )
        patch.add_argument(
            "--add-unversioned",
            action="store_true",
            help="Schedule unversioned files for addition first",
        )
        patch.add_argument("paths", nargs="*", help="Limit to these paths")

        apply = sub.add_parser(
            "apply", help="Add new files and remove missing ones without committing"
        )
        apply.add_argument("paths", nargs="*", help="Limit to these paths")

        return parser

    def run(self, args: Optional[list[str]] = None) -> int:
        try:
            parsed = self.parser.parse_args(args)
        except SystemExit as exc:
            return int(exc.code or 0)

        if parsed.debug:
            logging.basicConfig(level=logging.DEBUG)

        try:
            config = self._load_config(parsed)
            repo = GitRepo(config.repo_path, config)
        except (ConfigError, GitError) as exc:
            self._print_error(str(exc))
            return 2

        handler = self._build_handler(repo, config)
        try:
            changes = repo.list_pending_changes()
        except GitError as exc:
            self._print_error(str(exc))
            return 2

        if parsed.command == "status":
            return self._status(changes)

        selected = select_changes(changes, parsed.paths)
        if not selected:
            print(f"{YELLOW}No pending changes{RESET}")
            return 1

        if parsed.command == "commit":
            ok = handler.commit(
                selected,
                CommitArgs(
                    log_message=parsed.message,
                    amend_last_commit=parsed.amend,
                    store_message_on_error=config.store_message_on_error,
                ),
            )
        elif parsed.command == "patch":
            ok = handler.create_patch(
                selected,
                CreatePatchArgs(
                    file_name=os.path.abspath(parsed.file),
                    relative_to_path=(
                        normalize_path(parsed.relative_to)
                        if parsed.relative_to
                        else None
                    ),
                    add_unversioned_files=parsed.add_unversioned,
                ),
            )
            if ok:
                print(f"{GREEN}Patch written to {parsed.file}{RESET}")
        else:
            ok = handler.apply_changes(selected, ApplyArgs())
        return 0 if ok else 1

    def _load_config(self, parsed: argparse.Namespace) -> Config:
        start = Path(parsed.repo_path or Path.cwd()).expanduser()
        repo_root = find_git_repo_root(start)
        if repo_root is None:
            raise ConfigError(f"No git repository found at {start}")
        overrides = {"repo_path": str(repo_root), "assume_yes": parsed.yes}
        return load_config(repo_root=repo_root, overrides=overrides)

    def _build_handler(self, repo: GitRepo, config: Config) -> PendingChangeHandler:
        return PendingChangeHandler(
            repo,
            prompt=ConsolePrompt(assume_yes=config.assume_yes),
            configuration=RecentMessageStore(
                Path(config.repo_path), config.recent_message_limit
            ),
            notifier=ConsoleNotifier(),
            resolver=WorkingCopyResolver(roots=[config.repo_path]),
        )

    def _status(self, changes: list[PendingChange]) -> int:
        if not changes:
            print(f"{DIM}Nothing pending{RESET}")
            return 0
        cwd = os.getcwd()
        for change in changes:
            label, colour = _KIND_LABELS.get(change.kind, (change.kind.value, ""))
            shown = os.path.relpath(change.path, cwd)
            suffix = " (casing)" if change.is_casing_conflicted else ""
            print(f"{colour}{label:>10}{RESET}  {shown}{suffix}")
        return 0

    def _print_error(self, message: str) -> None:
        print(f"{RED}Error: {message}{RESET}", file=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    return CLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
