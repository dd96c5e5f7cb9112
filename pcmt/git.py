"""Git backend for pcmt, driven through the ``git`` executable."""

import os
import subprocess
from functools import cached_property
from pathlib import Path
from typing import Callable, Optional, Sequence, TextIO

from .config import CONFIG_DIR_NAME, Config, get_active_config
from .exceptions import GitError, GitErrorCode
from .models import (
    AddOptions,
    CommitOptions,
    CommitResult,
    DeleteOptions,
    Depth,
    DiffOptions,
    ItemStatus,
    PendingChange,
    PendingChangeKind,
    Revision,
    RevisionRange,
    StatusEntry,
    StatusOptions,
    UserConfig,
)
from .pathutil import get_true_path, normalize_path

_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}

_OUT_OF_DATE_MARKERS = (
    "cannot lock ref",
    "but expected",
    "non-fast-forward",
    "fetch first",
)
_NO_REPOSITORY_MARKERS = ("not a git repository", "outside repository")
_REVISION_MARKERS = ("unknown revision", "bad revision", "bad object")


def find_git_repo_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return the top-level Git repository directory for ``start_path``.

    Attempts ``git rev-parse --show-toplevel`` first so worktrees and
    submodules are handled correctly. Falls back to walking parent
    directories looking for a ``.git`` directory or file. Returns ``None``
    when no Git repository can be found starting from ``start_path``.
    """

    path = Path(start_path or Path.cwd()).expanduser().resolve(strict=False)
    if path.is_file():
        path = path.parent
    while not path.exists() and path.parent != path:
        path = path.parent

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        top = result.stdout.strip()
        if top:
            return Path(top)
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass

    for candidate in (path, *path.parents):
        git_meta = candidate / ".git"
        if git_meta.exists():
            return candidate

    return None


def classify_error(stderr: str) -> GitErrorCode:
    """Map git's stderr to a :class:`GitErrorCode`."""
    text = (stderr or "").lower()
    if any(marker in text for marker in _NO_REPOSITORY_MARKERS):
        return GitErrorCode.PATH_NO_REPOSITORY
    if any(marker in text for marker in _OUT_OF_DATE_MARKERS):
        return GitErrorCode.OUT_OF_DATE
    if any(marker in text for marker in _REVISION_MARKERS):
        return GitErrorCode.REVISION_NOT_FOUND
    return GitErrorCode.UNEXPECTED


def status_from_porcelain(code: str) -> ItemStatus:
    """Translate a two-letter porcelain status code."""
    if code == "??":
        return ItemStatus.UNVERSIONED
    if code == "!!":
        return ItemStatus.IGNORED
    if code in _CONFLICT_CODES:
        return ItemStatus.CONFLICTED
    index, worktree = code[0], code[1]
    if index == "D":
        return ItemStatus.DELETED
    if worktree == "D":
        return ItemStatus.MISSING
    if index in ("A", "R", "C"):
        return ItemStatus.ADDED
    return ItemStatus.MODIFIED


class GitRepo:
    """Handles Git repository operations."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        """Initialize Git repository handler."""

        self._config = config or get_active_config()
        self.repo_path = Path(repo_path or self._config.repo_path)
        if not self._is_git_repo():
            raise GitError(
                f"Not a Git repository: {self.repo_path}",
                GitErrorCode.PATH_NO_REPOSITORY,
            )

    def _is_git_repo(self) -> bool:
        """Check if the current directory is a Git repository."""
        try:
            self._run_git_command(["rev-parse", "--git-dir"])
            return True
        except GitError:
            return False

    def _run_git(
        self,
        args: list[str],
        cwd: Optional[Path] = None,
        check: bool = True,
    ) -> "subprocess.CompletedProcess[str]":
        """Run a Git command and return the completed process."""
        try:
            return subprocess.run(
                ["git"] + args,
                cwd=cwd or self.repo_path,
                capture_output=True,
                text=True,
                check=check,
                encoding="utf-8",
                errors="replace",
            )
        except subprocess.CalledProcessError as e:
            cmd = " ".join(args)
            stderr = e.stderr or ""
            raise GitError(
                f"Git command failed: {cmd}\n{stderr}", classify_error(stderr)
            ) from e
        except FileNotFoundError as exc:
            raise GitError(
                "Git command not found. Please install Git."
            ) from exc

    def _run_git_command(self, args: list[str]) -> str:
        """Run a Git command and return its output."""
        return self._run_git(args).stdout.strip()

    @cached_property
    def ignores_case(self) -> bool:
        """Git's ``core.ignorecase``, set at init on case-insensitive filesystems."""
        completed = self._run_git(
            ["config", "--bool", "--get", "core.ignorecase"], check=False
        )
        return completed.stdout.strip() == "true"

    def _relative(self, path: str) -> str:
        """Path relative to the repository root, using ``/`` separators."""
        root = normalize_path(str(self.repo_path))
        rel = os.path.relpath(normalize_path(path), root)
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            raise GitError(
                f"{path} is outside repository {root}",
                GitErrorCode.PATH_NO_REPOSITORY,
            )
        return rel.replace(os.sep, "/")

    def _absolute(self, rel_path: str) -> str:
        return normalize_path(os.path.join(str(self.repo_path), rel_path))

    # ------------------------------------------------------------------
    # Backend operations
    # ------------------------------------------------------------------
    def add(self, path: str, options: AddOptions) -> None:
        """Stage ``path``; git needs no explicit parent directories."""
        if options.depth == Depth.EMPTY and os.path.isdir(path):
            return
        self._run_git(["add", "--", self._relative(path)])

    def delete(self, path: str, options: DeleteOptions) -> None:
        args = ["rm", "-r", "--quiet", "--ignore-unmatch"]
        if options.keep_local:
            args.append("--cached")
        self._run_git(args + ["--", self._relative(path)])

    def commit(self, paths: Sequence[str], options: CommitOptions) -> CommitResult:
        """Commit exactly ``paths``; hook output on stderr is reported back."""
        rel_paths = [
            self._relative(p)
            for p in paths
            if not (options.depth == Depth.EMPTY and os.path.isdir(p))
        ]
        if not rel_paths and not options.amend_last_commit:
            raise GitError("Nothing to commit")

        message = options.log_message or ""
        args = ["commit", "--only"]
        if options.amend_last_commit:
            args.append("--amend")
        if not message.strip():
            args.append("--allow-empty-message")
        args += ["-m", message]
        if rel_paths:
            args += ["--"] + rel_paths

        completed = self._run_git(args)
        revision = self._run_git_command(["rev-parse", "HEAD"])
        hook_output = (completed.stderr or "").strip()
        return CommitResult(
            succeeded=True,
            revision_id=revision,
            post_commit_error=hook_output or None,
        )

    def diff(
        self,
        path: str,
        revisions: RevisionRange,
        options: DiffOptions,
        output: TextIO,
    ) -> None:
        """Write the diff of ``path`` between ``revisions`` to ``output``."""
        if options.depth == Depth.EMPTY and os.path.isdir(path):
            return

        cwd = self.repo_path
        if options.relative_to_path and os.path.isdir(options.relative_to_path):
            cwd = Path(options.relative_to_path)

        target = os.path.relpath(normalize_path(path), normalize_path(str(cwd)))
        target = target.replace(os.sep, "/")
        if os.path.exists(path) and not self._is_tracked(path):
            args = ["diff", "--no-color", "--no-ext-diff", "--no-index", "--"]
            args += [os.devnull, target]
        else:
            args = ["diff", "--no-color", "--no-ext-diff"]
            if options.relative_to_path:
                args.append("--relative")
            if options.ignore_ancestry:
                args.append("--no-renames")
            if options.no_deleted:
                args.append("--diff-filter=d")
            args += self._revision_args(revisions)
            args += ["--", target]

        completed = self._run_git(args, cwd=cwd, check=False)
        # --no-index exits 1 when the files differ.
        if completed.returncode not in (0, 1) or (
            completed.returncode == 1 and "--no-index" not in args
        ):
            stderr = completed.stderr or ""
            raise GitError(
                f"Git command failed: {' '.join(args)}\n{stderr}",
                classify_error(stderr),
            )
        output.write(completed.stdout)

    def get_user_config(self) -> UserConfig:
        return UserConfig(
            name=self._config_value("user.name"),
            email=self._config_value("user.email"),
        )

    def status(
        self,
        path: str,
        options: StatusOptions,
        visitor: Callable[[StatusEntry], None],
    ) -> None:
        """Report entries for ``path`` limited to ``options.depth``."""
        rel = self._relative(path)
        norm = normalize_path(path)
        for code, entry_rel in self._run_git_porcelain(rel):
            full = self._absolute(entry_rel)
            if not self._within_depth(full, norm, options.depth):
                continue
            visitor(StatusEntry(full, status_from_porcelain(code)))

        if options.depth == Depth.EMPTY:
            entry = self._directory_entry(norm, rel)
            if entry is not None:
                visitor(entry)

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------
    def list_pending_changes(self) -> list[PendingChange]:
        """Return one :class:`PendingChange` per changed path.

        pcmt's own state directory is never reported.
        """
        changes: list[PendingChange] = []
        for code, rel_path in self._run_git_porcelain():
            status = status_from_porcelain(code)
            if status == ItemStatus.IGNORED:
                continue
            if rel_path.split("/", 1)[0] == CONFIG_DIR_NAME:
                continue
            full = self._absolute(rel_path)
            kind = {
                ItemStatus.UNVERSIONED: PendingChangeKind.NEW,
                ItemStatus.ADDED: PendingChangeKind.NEW,
                ItemStatus.DELETED: PendingChangeKind.DELETED,
                ItemStatus.MISSING: PendingChangeKind.MISSING,
                ItemStatus.CONFLICTED: PendingChangeKind.CONFLICTED,
            }.get(status, PendingChangeKind.MODIFIED)
            changes.append(
                PendingChange(
                    path=full,
                    kind=kind,
                    is_versioned=status != ItemStatus.UNVERSIONED,
                    is_versionable=True,
                    is_casing_conflicted=(
                        status == ItemStatus.MISSING
                        and self.ignores_case
                        and get_true_path(full) is not None
                    ),
                )
            )
        return changes

    def _run_git_porcelain(self, rel_path: Optional[str] = None) -> list[tuple[str, str]]:
        """Return porcelain status entries as (status, path)."""
        args = ["status", "--porcelain", "-z", "--untracked-files=all"]
        if rel_path is not None:
            args += ["--", rel_path]
        output = self._run_git(args).stdout

        entries: list[tuple[str, str]] = []
        fields = output.split("\0")
        i = 0
        while i < len(fields):
            record = fields[i]
            i += 1
            if len(record) < 4:
                continue
            status = record[:2]
            path = record[3:]
            if status[0] in ("R", "C"):
                # The original path of a rename follows as its own field.
                i += 1
            entries.append((status, path.rstrip("/")))
        return entries

    def _within_depth(self, entry: str, target: str, depth: Depth) -> bool:
        if depth == Depth.EMPTY:
            return entry == target
        if depth == Depth.FILES:
            return os.path.dirname(entry) == target or entry == target
        return True

    def _directory_entry(self, norm: str, rel: str) -> Optional[StatusEntry]:
        """Synthesize an entry for a directory; git tracks none itself."""
        if rel == ".":
            return None
        in_head = self._ls(["ls-tree", "-r", "--name-only", "HEAD", "--", rel])
        if os.path.isdir(norm):
            in_index = self._ls(["ls-files", "--", rel])
            if not in_index:
                return StatusEntry(norm, ItemStatus.UNVERSIONED, is_directory=True)
            if not in_head:
                return StatusEntry(norm, ItemStatus.ADDED, is_directory=True)
            return None
        if os.path.exists(norm) or not in_head:
            return None
        if in_head == [rel]:
            # A file, already reported by porcelain.
            return None
        in_index = self._ls(["ls-files", "--", rel])
        status = ItemStatus.MISSING if in_index else ItemStatus.DELETED
        return StatusEntry(norm, status, is_directory=True)

    def _ls(self, args: list[str]) -> list[str]:
        completed = self._run_git(args, check=False)
        if completed.returncode != 0:
            return []
        return [line for line in completed.stdout.splitlines() if line]

    def _is_tracked(self, path: str) -> bool:
        completed = self._run_git(
            ["ls-files", "--error-unmatch", "--", self._relative(path)], check=False
        )
        return completed.returncode == 0

    def _revision_args(self, revisions: RevisionRange) -> list[str]:
        args: list[str] = []
        for revision in (revisions.start, revisions.end):
            if revision in (Revision.BASE, Revision.HEAD):
                args.append(self._head_or_empty_tree())
        return args

    def _head_or_empty_tree(self) -> str:
        """``HEAD``, or the empty tree while the branch has no commits yet."""
        head = self._run_git(["rev-parse", "--verify", "--quiet", "HEAD"], check=False)
        if head.returncode == 0:
            return "HEAD"
        return self._run_git_command(["hash-object", "-t", "tree", os.devnull])

    def _config_value(self, key: str) -> Optional[str]:
        completed = self._run_git(["config", "--get", key], check=False)
        value = completed.stdout.strip()
        return value or None
