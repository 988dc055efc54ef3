from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from rapidfuzz import process as rapidfuzz_process

from .cancellation import CancellationToken, check_cancelled
from .errors import ConfigurationError
from .git_backend import GitBackend, GitCommandError, WorkingTreeStatus

WORKING_TREE_LABEL = "Working Tree"


@dataclass(frozen=True)
class RepositoryContext:
    root: Path
    current_branch: str
    branches: tuple[str, ...]
    remotes: tuple[str, ...]


@dataclass(frozen=True)
class ComparisonTarget:
    requested_branch: str
    resolved_ref: str
    used_remote: bool
    remote: str | None = None
    warning: str | None = None


def load_repository_context(backend: GitBackend, root: Path) -> RepositoryContext:
    if not backend.is_repository():
        raise ConfigurationError("The selected folder is not a Git repository.")
    branches = backend.list_local_branches()
    return RepositoryContext(
        root=root,
        current_branch=branches.current,
        branches=branches.all,
        remotes=tuple(backend.list_remotes()),
    )


def choose_remote(remotes: Iterable[str], preferred: str = "origin") -> str | None:
    names = [name for name in remotes if name]
    if preferred in names:
        return preferred
    return names[0] if names else None


def choose_target_branch(
    requested: str | None,
    branches: tuple[str, ...],
    prompt: Callable[[tuple[str, ...]], str | None] | None = None,
) -> str | None:
    """Return the branch to compare with, or None when the user dismissed the prompt."""
    if not branches:
        raise ConfigurationError("The repository has no local branches to compare with.")
    if requested is None:
        if prompt is None:
            raise ConfigurationError("No branch given. Pass --branch or run interactively.")
        return prompt(branches)
    if requested in branches:
        return requested
    message = f"Unknown local branch: {requested}"
    suggestion = rapidfuzz_process.extractOne(requested, list(branches), score_cutoff=60)
    if suggestion is not None:
        message += f" (did you mean '{suggestion[0]}'?)"
    raise ConfigurationError(message)


def resolve_comparison_target(
    backend: GitBackend,
    target_branch: str,
    *,
    remotes: Iterable[str],
    preferred_remote: str = "origin",
    fetch: bool = True,
    token: CancellationToken | None = None,
) -> ComparisonTarget:
    remote = choose_remote(remotes, preferred_remote)
    if remote is None or not fetch:
        return ComparisonTarget(requested_branch=target_branch, resolved_ref=target_branch, used_remote=False)

    check_cancelled(token)
    try:
        backend.fetch(remote, target_branch)
    except (GitCommandError, OSError):
        return ComparisonTarget(
            requested_branch=target_branch,
            resolved_ref=target_branch,
            used_remote=False,
            remote=remote,
            warning=(
                f"Could not fetch updates for '{target_branch}'. "
                "Comparing with the local version, which may be outdated."
            ),
        )
    return ComparisonTarget(
        requested_branch=target_branch,
        resolved_ref=f"{remote}/{target_branch}",
        used_remote=True,
        remote=remote,
    )


def select_local_label(
    target_branch: str,
    current_branch: str,
    status: WorkingTreeStatus | None,
    paths: Iterable[str],
) -> str:
    if target_branch != current_branch or status is None:
        return current_branch
    if any(status.touches(path) for path in paths):
        return WORKING_TREE_LABEL
    return current_branch
