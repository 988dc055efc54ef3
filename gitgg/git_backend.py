from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

MISSING_PATH_MARKERS = (
    "does not exist",
    "bad object",
    "unknown revision",
    "exists on disk, but not in",
    "bad revision",
)


class GitCommandError(RuntimeError):
    def __init__(self, args: list[str], returncode: int, message: str) -> None:
        super().__init__(f"git {' '.join(args)} failed: {message}")
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = message


def run_git(repo: Path, args: list[str], ok_returncodes: tuple[int, ...] = (0,)) -> str:
    process = subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    if process.returncode not in ok_returncodes:
        message = process.stderr.strip() or process.stdout.strip()
        raise GitCommandError(args, process.returncode, message)
    return process.stdout


def is_missing_path_error(error: Exception) -> bool:
    """True when git failed because the path or ref has no object to read."""
    text = str(getattr(error, "stderr", "") or error).lower()
    return any(marker in text for marker in MISSING_PATH_MARKERS)


@dataclass(frozen=True)
class BranchSummary:
    current: str
    all: tuple[str, ...]


@dataclass(frozen=True)
class FileStatusEntry:
    path: str
    index: str
    working_dir: str


@dataclass(frozen=True)
class WorkingTreeStatus:
    modified: frozenset[str] = frozenset()
    untracked: frozenset[str] = frozenset()
    deleted: frozenset[str] = frozenset()
    files: dict[str, FileStatusEntry] = field(default_factory=dict)

    def entry(self, path: str) -> FileStatusEntry | None:
        return self.files.get(path)

    def touches(self, path: str) -> bool:
        return path in self.modified or path in self.untracked or path in self.deleted


def parse_porcelain_status(raw: str) -> WorkingTreeStatus:
    """Parse `git status --porcelain=v1 -z` output."""
    modified: set[str] = set()
    untracked: set[str] = set()
    deleted: set[str] = set()
    files: dict[str, FileStatusEntry] = {}

    fields = raw.split("\0")
    index = 0
    while index < len(fields):
        record = fields[index]
        index += 1
        if len(record) < 4:
            continue
        x, y, path = record[0], record[1], record[3:]
        if x in "RC":
            # renames and copies carry the source path in the next field
            index += 1
        files[path] = FileStatusEntry(path=path, index=x, working_dir=y)
        if x == "?" and y == "?":
            untracked.add(path)
            continue
        if "M" in (x, y):
            modified.add(path)
        if "D" in (x, y):
            deleted.add(path)

    return WorkingTreeStatus(
        modified=frozenset(modified),
        untracked=frozenset(untracked),
        deleted=frozenset(deleted),
        files=files,
    )


class GitBackend:
    """Thin subprocess adapter over the `git` binary for one repository."""

    def __init__(self, repo: Path) -> None:
        self.repo = repo

    def _git(self, args: list[str], ok_returncodes: tuple[int, ...] = (0,)) -> str:
        return run_git(self.repo, args, ok_returncodes)

    def is_repository(self) -> bool:
        try:
            return self._git(["rev-parse", "--is-inside-work-tree"]).strip() == "true"
        except (GitCommandError, OSError):
            return False

    def list_local_branches(self) -> BranchSummary:
        names = [
            line.strip()
            for line in self._git(["branch", "--format=%(refname:short)"]).splitlines()
            if line.strip()
        ]
        current = self._git(["branch", "--show-current"]).strip()
        if not current:
            current = self._git(["rev-parse", "--abbrev-ref", "HEAD"]).strip()
        return BranchSummary(current=current, all=tuple(names))

    def list_remotes(self) -> list[str]:
        return [line.strip() for line in self._git(["remote"]).splitlines() if line.strip()]

    def fetch(self, remote: str, branch: str) -> None:
        self._git(["fetch", remote, branch])

    def working_tree_status(self) -> WorkingTreeStatus:
        raw = self._git(["status", "--porcelain=v1", "-z", "--untracked-files=all"])
        return parse_porcelain_status(raw)

    def diff(self, args: list[str], ok_returncodes: tuple[int, ...] = (0,)) -> str:
        return self._git(["diff", "--no-color", *args], ok_returncodes)

    def show_file_at_ref(self, ref: str, path: str) -> str:
        return self._git(["show", f"{ref}:{path}"])
