from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .cancellation import CancellationToken, check_cancelled
from .classify import DiffClassifier, FileDiffRecord
from .comparison import (
    ComparisonTarget,
    RepositoryContext,
    choose_target_branch,
    load_repository_context,
    resolve_comparison_target,
    select_local_label,
)
from .config import CompareConfig
from .errors import OperationCancelled
from .git_backend import GitBackend, WorkingTreeStatus
from .lazy_render import FullDiffService, ReportSession
from .report import ReportModel, build_report_model
from .selection import discover_repository_root, resolve_file_set
from .viewers import ComparisonViewer

MODE_AUTO = "auto"
MODE_SEPARATE = "separate"
MODE_REPORT = "report"

ProgressCallback = Callable[[float, str], None]


def _no_progress(_increment: float, _message: str) -> None:
    return None


@dataclass(frozen=True)
class ComparisonResult:
    context: RepositoryContext
    target: ComparisonTarget
    local_label: str
    local_ref: str | None
    status: WorkingTreeStatus | None
    file_paths: tuple[str, ...]
    records: tuple[FileDiffRecord, ...]
    model: ReportModel


def prepare_workspace(
    paths: list[str],
    *,
    active_document: str | None = None,
    repo: str | Path | None = None,
) -> tuple[Path, list[str]]:
    seeds = list(paths) or ([active_document] if active_document else [])
    repo_root = discover_repository_root(repo, seeds)
    return repo_root, resolve_file_set(paths, repo_root, active_document=active_document)


def run_comparison(
    backend: GitBackend,
    repo_root: Path,
    file_paths: list[str],
    *,
    branch: str | None,
    config: CompareConfig,
    local_ref: str | None = None,
    token: CancellationToken | None = None,
    progress: ProgressCallback = _no_progress,
    prompt_branch: Callable[[tuple[str, ...]], str | None] | None = None,
    on_warning: Callable[[str], None] | None = None,
) -> ComparisonResult:
    progress(10, "Checking Git repository...")
    context = load_repository_context(backend, repo_root)

    progress(15, "Reading local branches...")
    target_branch = choose_target_branch(branch, context.branches, prompt_branch)
    if target_branch is None:
        raise OperationCancelled()
    check_cancelled(token)

    progress(25, f"Fetching updates for '{target_branch}'...")
    target = resolve_comparison_target(
        backend,
        target_branch,
        remotes=context.remotes,
        preferred_remote=config.preferred_remote,
        fetch=config.fetch,
        token=token,
    )
    if target.warning and on_warning is not None:
        on_warning(target.warning)
    check_cancelled(token)

    status = None if local_ref is not None else backend.working_tree_status()
    if local_ref is not None:
        local_label = local_ref
    else:
        local_label = select_local_label(target_branch, context.current_branch, status, file_paths)

    classifier = DiffClassifier(backend, target, status=status, local_ref=local_ref)
    share = 40 / max(len(file_paths), 1)

    def on_file(_index: int, _total: int, path: str) -> None:
        progress(share, f"Comparing {Path(path).name}...")

    records = classifier.classify_all(file_paths, token=token, on_progress=on_file)
    check_cancelled(token)

    progress(10, "Rendering view...")
    model = build_report_model(records, local_label, target_branch)
    return ComparisonResult(
        context=context,
        target=target,
        local_label=local_label,
        local_ref=local_ref,
        status=status,
        file_paths=tuple(file_paths),
        records=tuple(records),
        model=model,
    )


def choose_mode(
    file_count: int,
    requested: str,
    *,
    threshold: int,
    ask: Callable[[int], str | None] | None = None,
    notify: Callable[[str], None] | None = None,
) -> str:
    if requested != MODE_AUTO:
        return requested
    if file_count <= 1:
        return MODE_SEPARATE
    if file_count <= threshold:
        if ask is None:
            return MODE_REPORT
        choice = ask(file_count)
        if choice is None:
            raise OperationCancelled()
        return choice
    if notify is not None:
        notify(f"Comparing {file_count} files in a single view for better performance.")
    return MODE_REPORT


def build_full_diff_service(
    result: ComparisonResult,
    backend: GitBackend,
    viewer: ComparisonViewer,
    config: CompareConfig,
) -> FullDiffService:
    deleted = result.status.deleted if result.status is not None else frozenset()
    return FullDiffService(
        backend,
        result.target,
        result.local_label,
        result.context.root,
        viewer,
        deleted_paths=deleted,
        local_ref=result.local_ref,
        temp_dir=config.temp_dir,
    )


def build_report_session(
    result: ComparisonResult,
    backend: GitBackend,
    viewer: ComparisonViewer,
    config: CompareConfig,
) -> ReportSession:
    service = build_full_diff_service(result, backend, viewer, config)
    return ReportSession(result.model, service, line_limit=config.line_limit)


def open_separate_comparisons(
    file_paths: list[str] | tuple[str, ...],
    service: FullDiffService,
    *,
    token: CancellationToken | None = None,
    progress: ProgressCallback = _no_progress,
) -> int:
    opened = 0
    share = 25 / max(len(file_paths), 1)
    for path in file_paths:
        check_cancelled(token)
        progress(share, f"Comparing {Path(path).name}...")
        service.open_full_diff(path)
        opened += 1
    return opened
