from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from gitgg.git_backend import BranchSummary, GitCommandError, WorkingTreeStatus

GIT_AVAILABLE = shutil.which("git") is not None


def make_patch(path: str, body_lines: list[str], *, new_file: bool = False, deleted: bool = False) -> str:
    lines = [f"diff --git a/{path} b/{path}"]
    if new_file:
        lines.append("new file mode 100644")
    if deleted:
        lines.append("deleted file mode 100644")
    lines.append("index 1111111..2222222")
    lines.append("--- /dev/null" if new_file else f"--- a/{path}")
    lines.append("+++ /dev/null" if deleted else f"+++ b/{path}")
    lines.append(f"@@ -1,{len(body_lines)} +1,{len(body_lines)} @@")
    lines.extend(body_lines)
    return "\n".join(lines) + "\n"


class FakeGitBackend:
    def __init__(
        self,
        *,
        current: str = "main",
        branches: tuple[str, ...] = ("main", "develop"),
        remotes: tuple[str, ...] = ("origin",),
        fetch_error: bool = False,
        status: WorkingTreeStatus | None = None,
        diffs: dict[str, object] | None = None,
        untracked_diffs: dict[str, object] | None = None,
        blobs: dict[tuple[str, str], str] | None = None,
        is_repo: bool = True,
    ) -> None:
        self.current = current
        self.branches = branches
        self.remotes = remotes
        self.fetch_error = fetch_error
        self.status = status or WorkingTreeStatus()
        self.diffs = diffs or {}
        self.untracked_diffs = untracked_diffs or {}
        self.blobs = blobs or {}
        self.is_repo = is_repo
        self.calls: list[tuple[str, ...]] = []

    def _value(self, value: object) -> str:
        if isinstance(value, Exception):
            raise value
        return str(value)

    def is_repository(self) -> bool:
        self.calls.append(("is_repository",))
        return self.is_repo

    def list_local_branches(self) -> BranchSummary:
        self.calls.append(("list_local_branches",))
        return BranchSummary(current=self.current, all=self.branches)

    def list_remotes(self) -> list[str]:
        self.calls.append(("list_remotes",))
        return list(self.remotes)

    def fetch(self, remote: str, branch: str) -> None:
        self.calls.append(("fetch", remote, branch))
        if self.fetch_error:
            raise GitCommandError(["fetch", remote, branch], 128, "fatal: couldn't find remote ref")

    def working_tree_status(self) -> WorkingTreeStatus:
        self.calls.append(("status",))
        return self.status

    def diff(self, args: list[str], ok_returncodes: tuple[int, ...] = (0,)) -> str:
        self.calls.append(("diff", *args))
        path = args[-1]
        if "--no-index" in args:
            return self._value(self.untracked_diffs.get(path, ""))
        return self._value(self.diffs.get(path, ""))

    def show_file_at_ref(self, ref: str, path: str) -> str:
        self.calls.append(("show", ref, path))
        if (ref, path) not in self.blobs:
            raise GitCommandError(["show", f"{ref}:{path}"], 128, f"fatal: path '{path}' does not exist in '{ref}'")
        return self.blobs[(ref, path)]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class RecordingViewer:
    def __init__(self) -> None:
        self.opened: list[tuple[Path, Path, str]] = []

    def open_comparison(self, left: Path, right: Path, title: str) -> None:
        self.opened.append((left, right, title))


def git(repo: Path, *args: str) -> str:
    process = subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return process.stdout


def init_repo(repo: Path, files: dict[str, str]) -> None:
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    for name, content in files.items():
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", "initial")
