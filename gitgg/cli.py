from __future__ import annotations

import argparse
import dataclasses
import json
import signal
import sys
import webbrowser
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import Callable, Iterator

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt
from rich.table import Table

from .cancellation import CancellationToken
from .compare import (
    MODE_AUTO,
    MODE_REPORT,
    MODE_SEPARATE,
    build_full_diff_service,
    build_report_session,
    choose_mode,
    open_separate_comparisons,
    prepare_workspace,
    run_comparison,
)
from .config import CompareConfig, load_compare_config
from .errors import ConfigurationError, GitggError, OperationCancelled
from .git_backend import GitBackend
from .html_report import render_compare_report_html
from .render import render_file_table, render_report_summary
from .report_app import PaneComparisonViewer, launch_report_app
from .report_server import ReportServerState, serve_report
from .selection import ActiveDocument, ExplicitPaths, SelectionSource, active_document_of, extract_paths
from .viewers import ComparisonViewer, build_viewer

VIEW_CHOICES = ("tui", "serve", "html", "summary")
EXIT_CANCELLED = 130


def parse_compare_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gitgg",
        description="Compare selected files or folders with a branch, preferring its freshly fetched remote copy.",
    )
    parser.add_argument("paths", nargs="*", help="Files or folders to compare.")
    parser.add_argument("--repo", help="Repository root (default: discovered from the first path).")
    parser.add_argument("-b", "--branch", help="Branch to compare with (default: ask).")
    parser.add_argument(
        "--local-ref",
        help="Compare the branch with this ref instead of the working tree.",
    )
    parser.add_argument("--active-file", help="File used when no path is given, e.g. the file open in an editor.")
    parser.add_argument(
        "--mode",
        choices=[MODE_AUTO, MODE_SEPARATE, MODE_REPORT],
        default=MODE_AUTO,
        help="separate: one full comparison per file. report: one summary view. Default: auto.",
    )
    parser.add_argument("--view", choices=VIEW_CHOICES, default="tui", help="Report surface (default: tui).")
    parser.add_argument("--output", default="gitgg-report.html", help="Output path for --view html.")
    parser.add_argument("--host", default="127.0.0.1", help="Host for --view serve. Default: 127.0.0.1.")
    parser.add_argument("--port", type=int, default=8766, help="Port for --view serve. Default: 8766.")
    parser.add_argument("--open", action="store_true", help="Open the HTML report in your default browser.")
    parser.add_argument("--json", dest="as_json", action="store_true", help="Print the report payload as JSON.")
    parser.add_argument("--config", help="Path to a gitgg TOML config file.")
    parser.add_argument("--remote", help="Remote to refresh the branch from (default: origin).")
    parser.add_argument("--no-fetch", action="store_true", help="Compare with the local branch without fetching.")
    parser.add_argument("--line-limit", type=int, help="Lines shown per file before the diff is truncated.")
    parser.add_argument("-y", "--yes", action="store_true", help="Never prompt; use defaults.")
    return parser.parse_args(argv)


def apply_cli_overrides(config: CompareConfig, args: argparse.Namespace) -> CompareConfig:
    changes: dict[str, object] = {}
    if args.remote:
        changes["preferred_remote"] = args.remote
    if args.no_fetch:
        changes["fetch"] = False
    if args.line_limit is not None:
        if args.line_limit < 1:
            raise ConfigurationError("--line-limit must be a positive integer")
        changes["line_limit"] = args.line_limit
    return dataclasses.replace(config, **changes) if changes else config


def _selection_sources(args: argparse.Namespace) -> list[SelectionSource]:
    sources: list[SelectionSource] = [ExplicitPaths(tuple(args.paths))]
    if args.active_file:
        sources.append(ActiveDocument(args.active_file))
    return sources


def _interactive(args: argparse.Namespace) -> bool:
    return not args.yes and sys.stdin.isatty()


def _branch_prompt(console: Console, progress: Progress) -> Callable[[tuple[str, ...]], str | None]:
    def ask(branches: tuple[str, ...]) -> str | None:
        progress.stop()
        table = Table(title="Local branches", header_style="bold magenta")
        table.add_column("branch", style="cyan")
        for name in branches:
            table.add_row(name)
        console.print(table)
        answer = Prompt.ask("Compare with branch", choices=list(branches), console=console)
        progress.start()
        return answer or None

    return ask


def _mode_prompt(console: Console) -> Callable[[int], str | None]:
    def ask(file_count: int) -> str | None:
        return Prompt.ask(
            f"How do you want to compare the {file_count} selected files?",
            choices=[MODE_SEPARATE, MODE_REPORT],
            default=MODE_REPORT,
            console=console,
        )

    return ask


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Turn the first Ctrl-C into a cooperative cancel; a second one interrupts at once."""

    def on_interrupt(_signum: int, _frame: FrameType | None) -> None:
        token.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous if previous is not None else signal.default_int_handler)


def run_compare(argv: list[str]) -> int:
    args = parse_compare_args(argv)
    console = Console()
    token = CancellationToken()
    try:
        return _run(args, console, token)
    except (OperationCancelled, KeyboardInterrupt):
        return EXIT_CANCELLED
    except GitggError as error:
        print(f"[error] {error}", file=sys.stderr)
        return 2
    except Exception as error:  # noqa: BLE001
        print(f"[error] An error occurred: {error}", file=sys.stderr)
        return 1


def _run(args: argparse.Namespace, console: Console, token: CancellationToken) -> int:
    sources = _selection_sources(args)
    repo_root, file_paths = prepare_workspace(
        extract_paths(sources),
        active_document=active_document_of(sources),
        repo=args.repo,
    )
    config = apply_cli_overrides(
        load_compare_config(Path(args.config) if args.config else None, repo_root),
        args,
    )
    backend = GitBackend(repo_root)
    interactive = _interactive(args)

    with cancel_on_interrupt(token), Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("gitgg: Preparing comparison...", total=100)

        def report(increment: float, message: str) -> None:
            progress.update(task, advance=increment, description=message)

        result = run_comparison(
            backend,
            repo_root,
            file_paths,
            branch=args.branch,
            config=config,
            local_ref=args.local_ref,
            token=token,
            progress=report,
            prompt_branch=_branch_prompt(console, progress) if interactive else None,
            on_warning=lambda message: print(f"[warning] {message}", file=sys.stderr),
        )
    token.raise_if_cancelled()

    if args.as_json:
        print(json.dumps(result.model.to_payload(), ensure_ascii=False, indent=2))
        return 0

    mode = choose_mode(
        len(file_paths),
        args.mode,
        threshold=config.separate_threshold,
        ask=_mode_prompt(console) if interactive else None,
        notify=print,
    )

    viewer: ComparisonViewer
    if args.view == "tui" and mode == MODE_REPORT and not config.viewer_command:
        viewer = PaneComparisonViewer()
    else:
        viewer = build_viewer(config.viewer_command, console)

    if mode == MODE_SEPARATE:
        service = build_full_diff_service(result, backend, viewer, config)
        with cancel_on_interrupt(token):
            open_separate_comparisons(result.file_paths, service, token=token)
        return 0

    session = build_report_session(result, backend, viewer, config)
    if args.view == "summary":
        render_report_summary(console, result.model, result.target.resolved_ref)
        render_file_table(console, result.model)
        return 0
    if args.view == "html":
        output = Path(args.output).expanduser().resolve()
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            render_compare_report_html(result.model, line_limit=config.line_limit),
            encoding="utf-8",
        )
        print(f"Wrote: {output}")
        if args.open:
            webbrowser.open(output.as_uri())
        return 0
    if args.view == "serve":
        return serve_report(ReportServerState(session), host=args.host, port=args.port, open_browser=args.open)
    return launch_report_app(session, result.target.resolved_ref)


def main() -> int:
    return run_compare(sys.argv[1:])
