from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Union

from .errors import ConfigurationError, SelectionError
from .git_backend import GitCommandError, run_git

NO_SELECTION_MESSAGE = "No file or folder selected for comparison."
SKIPPED_DIR_NAMES = {".git"}


@dataclass(frozen=True)
class ExplicitPaths:
    paths: tuple[str, ...]


@dataclass(frozen=True)
class ActiveDocument:
    path: str


@dataclass(frozen=True)
class ContainerReference:
    """A host object wrapping one resource, such as a source control list entry."""

    resource_path: str


SelectionSource = Union[ExplicitPaths, ActiveDocument, ContainerReference]


def extract_paths(sources: Iterable[SelectionSource]) -> list[str]:
    paths: list[str] = []
    for source in sources:
        if isinstance(source, ExplicitPaths):
            paths.extend(str(value) for value in source.paths if str(value).strip())
        elif isinstance(source, ContainerReference):
            if source.resource_path.strip():
                paths.append(source.resource_path)
    return paths


def active_document_of(sources: Iterable[SelectionSource]) -> str | None:
    for source in sources:
        if isinstance(source, ActiveDocument) and source.path.strip():
            return source.path
    return None


def _absolute(path: str | Path) -> Path:
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = Path.cwd() / candidate
    return candidate.resolve()


def to_repo_relative(path: Path, repo_root: Path) -> str:
    try:
        relative = path.relative_to(repo_root)
    except ValueError as error:
        raise SelectionError(f"Path is outside the repository {repo_root}: {path}") from error
    return PurePosixPath(*relative.parts).as_posix()


def _walk_files(directory: Path) -> list[Path]:
    files: list[Path] = []
    for current, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIPPED_DIR_NAMES)
        for filename in sorted(filenames):
            files.append(Path(current) / filename)
    return files


def resolve_file_set(
    paths: Iterable[str | Path],
    repo_root: Path,
    *,
    active_document: str | Path | None = None,
) -> list[str]:
    repo_root = repo_root.resolve()
    candidates = [_absolute(path) for path in paths]
    if not candidates and active_document is not None:
        candidates = [_absolute(active_document)]
    if not candidates:
        raise SelectionError(NO_SELECTION_MESSAGE)

    resolved: dict[str, None] = {}
    for candidate in candidates:
        try:
            is_dir = candidate.is_dir()
        except OSError:
            is_dir = False
        if is_dir:
            for file_path in _walk_files(candidate):
                resolved.setdefault(to_repo_relative(file_path, repo_root), None)
            continue
        # paths that cannot be stat'ed are kept; deletions are classified later
        resolved.setdefault(to_repo_relative(candidate, repo_root), None)

    if not resolved:
        raise SelectionError("No valid files found in the selection to compare.")
    return list(resolved)


def discover_repository_root(explicit: str | Path | None, paths: list[str]) -> Path:
    if explicit is not None:
        root = _absolute(explicit)
        if not root.is_dir():
            raise ConfigurationError(f"Repository path is not a directory: {root}")
        start = root
    else:
        start = Path.cwd()
        if paths:
            first = _absolute(paths[0])
            if first.is_dir():
                start = first
            elif first.parent.is_dir():
                start = first.parent
    try:
        top = run_git(start, ["rev-parse", "--show-toplevel"]).strip()
    except (GitCommandError, OSError) as error:
        raise ConfigurationError(
            "Could not determine the Git workspace. Please run inside a folder containing a Git repository."
        ) from error
    return Path(top).resolve()
