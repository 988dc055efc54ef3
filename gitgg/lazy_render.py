from __future__ import annotations

import tempfile
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Iterable

from .classify import STATUS_UNCHANGED, FileDiffRecord, patch_lines
from .comparison import ComparisonTarget
from .config import DEFAULT_LINE_LIMIT
from .errors import ProtocolError
from .git_backend import GitBackend, GitCommandError
from .report import ReportModel
from .viewers import ComparisonViewer

STATE_COLLAPSED = "collapsed"
STATE_EXPANDING = "expanding"
STATE_EXPANDED = "expanded"
OPEN_DIFF_COMMAND = "openDiff"
TRUNCATED_NOTICE = 'Diff truncated. Use "View full Diff" to see the complete file.'


def truncate_patch(patch: str | None, limit: int = DEFAULT_LINE_LIMIT) -> tuple[str, bool]:
    lines = patch_lines(patch)
    if len(lines) > limit:
        return "\n".join(lines[:limit]), True
    return "\n".join(lines), False


@dataclass(frozen=True)
class BoundedDiff:
    text: str
    truncated: bool

    @property
    def notice(self) -> str | None:
        return TRUNCATED_NOTICE if self.truncated else None


class ReportEntry:
    """One file of an open report.

    Entries start collapsed. The first toggle lays out the diff body bounded to
    `line_limit` lines; later toggles only flip visibility. Unchanged files only
    ever show their header.
    """

    def __init__(self, record: FileDiffRecord, line_limit: int = DEFAULT_LINE_LIMIT) -> None:
        self.record = record
        self.line_limit = line_limit
        self.state = STATE_COLLAPSED
        self.visible = False
        self.layout_count = 0
        self._bounded: BoundedDiff | None = None

    @property
    def path(self) -> str:
        return self.record.path

    @property
    def expandable(self) -> bool:
        return self.record.status != STATUS_UNCHANGED

    @property
    def bounded_diff(self) -> BoundedDiff | None:
        return self._bounded

    def toggle(self) -> bool:
        if not self.expandable:
            return False
        if self._bounded is None:
            self.state = STATE_EXPANDING
            text, truncated = truncate_patch(self.record.patch, self.line_limit)
            self._bounded = BoundedDiff(text=text, truncated=truncated)
            self.layout_count += 1
            self.state = STATE_EXPANDED
        self.visible = not self.visible
        return self.visible


class FullDiffCache:
    """Blob contents already fetched for one report, keyed by repo-relative path."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def __contains__(self, path: object) -> bool:
        return path in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, path: str) -> str | None:
        return self._items.get(path)

    def store(self, path: str, content: str) -> None:
        self._items[path] = content


class FullDiffService:
    def __init__(
        self,
        backend: GitBackend,
        target: ComparisonTarget,
        local_label: str,
        repo_root: Path,
        viewer: ComparisonViewer,
        *,
        deleted_paths: Iterable[str] = (),
        local_ref: str | None = None,
        temp_dir: Path | None = None,
        cache: FullDiffCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.target = target
        self.local_label = local_label
        self.repo_root = repo_root
        self.viewer = viewer
        self.deleted_paths = frozenset(deleted_paths)
        self.local_ref = local_ref
        self.temp_dir = temp_dir
        self.cache = cache if cache is not None else FullDiffCache()
        self.clock = clock

    def _show(self, ref: str, path: str) -> str:
        try:
            return self.backend.show_file_at_ref(ref, path)
        except (GitCommandError, OSError):
            return ""

    def _write_scratch(self, stem: str, content: str) -> Path:
        directory = self.temp_dir or Path(tempfile.gettempdir())
        directory.mkdir(parents=True, exist_ok=True)
        base = f"gitgg-{stem}-{int(self.clock() * 1000)}"
        candidate = directory / base
        suffix = 1
        while candidate.exists():
            candidate = directory / f"{base}-{suffix}"
            suffix += 1
        candidate.write_text(content, encoding="utf-8")
        return candidate

    def title_for(self, path: str) -> str:
        name = PurePosixPath(path).name
        return f"Comparing {name} ({self.target.requested_branch}) ↔ ({self.local_label})"

    def open_full_diff(self, path: str) -> dict[str, Any]:
        cached = path in self.cache
        if cached:
            content = self.cache.get(path) or ""
        else:
            content = self._show(self.target.resolved_ref, path)
            self.cache.store(path, content)

        name = PurePosixPath(path).name
        left = self._write_scratch(name, content)
        working_file = self.repo_root / path
        if self.local_ref is not None:
            right = self._write_scratch(f"{name}-local", self._show(self.local_ref, path))
        elif path in self.deleted_paths or not working_file.exists():
            right = self._write_scratch(f"{name}-deleted", "")
        else:
            right = working_file
        self.viewer.open_comparison(left, right, self.title_for(path))
        return {"path": path, "cached": cached, "left": str(left), "right": str(right)}


class ReportSession:
    """State of one open report: its entries, and the channel for full diff requests."""

    def __init__(self, model: ReportModel, service: FullDiffService, line_limit: int = DEFAULT_LINE_LIMIT) -> None:
        self.model = model
        self.service = service
        self.line_limit = line_limit
        self.entries: dict[str, ReportEntry] = {
            record.path: ReportEntry(record, line_limit) for record in model.records()
        }

    @property
    def cache(self) -> FullDiffCache:
        return self.service.cache

    def entry(self, path: str) -> ReportEntry:
        try:
            return self.entries[path]
        except KeyError as error:
            raise ProtocolError(f"Path is not part of this report: {path}") from error

    def toggle(self, path: str) -> bool:
        return self.entry(path).toggle()

    def handle_message(self, message: Any) -> dict[str, Any]:
        if not isinstance(message, dict):
            raise ProtocolError("Message must be a JSON object.")
        command = message.get("command")
        if command != OPEN_DIFF_COMMAND:
            raise ProtocolError(f"Unsupported command: {command!r}")
        path = message.get("path")
        if not isinstance(path, str) or not path:
            raise ProtocolError("`path` must be a non-empty string.")
        self.entry(path)
        return self.service.open_full_diff(path)
