from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .cancellation import CancellationToken, check_cancelled
from .comparison import ComparisonTarget
from .git_backend import GitBackend, GitCommandError, WorkingTreeStatus, is_missing_path_error

STATUS_ADDED = "added"
STATUS_CHANGED = "changed"
STATUS_DELETED = "deleted"
STATUS_UNCHANGED = "unchanged"
VALID_FILE_STATUSES = (STATUS_ADDED, STATUS_CHANGED, STATUS_DELETED, STATUS_UNCHANGED)

NEW_FILE_MARKER = "new file mode"
DELETED_FILE_MARKER = "deleted file mode"
EMPTY_SOURCE_HEADER = "--- /dev/null"


@dataclass(frozen=True)
class FileDiffRecord:
    path: str
    patch: str | None
    status: str

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "patch": self.patch, "status": self.status}


def is_empty_patch(patch: str | None) -> bool:
    return not patch or not patch.strip()


def patch_lines(patch: str | None) -> list[str]:
    """Split a patch on newlines only; form feeds and other separators stay inside their line."""
    text = patch or ""
    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def patch_header_lines(patch: str) -> list[str]:
    """Lines of a patch before its first hunk."""
    header: list[str] = []
    for line in patch_lines(patch):
        if line.startswith("@@"):
            break
        header.append(line)
    return header


def rewrite_empty_source_header(patch: str, path: str) -> str:
    lines = patch.split("\n")
    for index, line in enumerate(lines):
        if line == EMPTY_SOURCE_HEADER:
            lines[index] = f"--- a/{path}"
            break
        if line.startswith("@@"):
            break
    return "\n".join(lines)


class PatchHeaderStrategy:
    """Infers the status from `new file mode` / `deleted file mode` header markers."""

    name = "patch-header"

    def classify(self, path: str, patch: str | None) -> str:
        if is_empty_patch(patch):
            return STATUS_UNCHANGED
        header = patch_header_lines(patch or "")
        if any(line.startswith(NEW_FILE_MARKER) for line in header):
            return STATUS_ADDED
        if any(line.startswith(DELETED_FILE_MARKER) for line in header):
            return STATUS_DELETED
        return STATUS_CHANGED


class StatusEvidenceStrategy:
    """Prefers working tree status records; header markers only fill the gaps."""

    name = "status-evidence"

    def __init__(self, status: WorkingTreeStatus) -> None:
        self.status = status
        self._fallback = PatchHeaderStrategy()

    def classify(self, path: str, patch: str | None) -> str:
        if path in self.status.deleted:
            return STATUS_DELETED
        if is_empty_patch(patch):
            return STATUS_UNCHANGED
        entry = self.status.entry(path)
        if path in self.status.untracked or (entry is not None and entry.index == "A"):
            return STATUS_ADDED
        return self._fallback.classify(path, patch)


class DiffClassifier:
    def __init__(
        self,
        backend: GitBackend,
        target: ComparisonTarget,
        *,
        status: WorkingTreeStatus | None = None,
        local_ref: str | None = None,
    ) -> None:
        self.backend = backend
        self.target = target
        self.local_ref = local_ref
        self.status = status if local_ref is None else None
        if self.status is not None:
            self.strategy: PatchHeaderStrategy | StatusEvidenceStrategy = StatusEvidenceStrategy(self.status)
        else:
            self.strategy = PatchHeaderStrategy()

    def _untracked_patch(self, path: str) -> str | None:
        try:
            raw = self.backend.diff(["--no-index", "--", "/dev/null", path], ok_returncodes=(0, 1))
        except (GitCommandError, OSError):
            return None
        return rewrite_empty_source_header(raw, path)

    def _ref_patch(self, path: str) -> str | None:
        refs = [self.target.resolved_ref]
        if self.local_ref is not None:
            refs.append(self.local_ref)
        try:
            return self.backend.diff([*refs, "--", path])
        except GitCommandError as error:
            if is_missing_path_error(error):
                return ""
            return None
        except OSError:
            return None

    def fetch_patch(self, path: str) -> str | None:
        if self.status is not None and path in self.status.untracked:
            return self._untracked_patch(path)
        return self._ref_patch(path)

    def classify(self, path: str) -> FileDiffRecord:
        patch = self.fetch_patch(path)
        return FileDiffRecord(path=path, patch=patch, status=self.strategy.classify(path, patch))

    def classify_all(
        self,
        paths: Iterable[str],
        *,
        token: CancellationToken | None = None,
        on_progress: Callable[[int, int, str], None] | None = None,
    ) -> list[FileDiffRecord]:
        items = list(paths)
        records: list[FileDiffRecord] = []
        for index, path in enumerate(items, start=1):
            check_cancelled(token)
            if on_progress is not None:
                on_progress(index, len(items), path)
            records.append(self.classify(path))
        return records
