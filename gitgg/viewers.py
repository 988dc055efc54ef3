from __future__ import annotations

import difflib
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from .errors import ConfigurationError


class ComparisonViewer(Protocol):
    def open_comparison(self, left: Path, right: Path, title: str) -> None: ...


def _read_text(path: Path) -> list[str]:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8", errors="replace").splitlines(keepends=True)


def unified_diff_text(left: Path, right: Path) -> str:
    diff_lines = difflib.unified_diff(
        _read_text(left),
        _read_text(right),
        fromfile=str(left),
        tofile=str(right),
    )
    return "".join(diff_lines).rstrip("\n")


class ConsoleComparisonViewer:
    """Prints the complete unified diff of both sides to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def open_comparison(self, left: Path, right: Path, title: str) -> None:
        text = unified_diff_text(left, right)
        body = Syntax(text, "diff", word_wrap=True) if text else "(no differences)"
        self.console.print(Panel(body, title=title, border_style="magenta"))


def _substitute(part: str, values: dict[str, str]) -> str:
    # other braces, e.g. a JSON argument, pass through untouched
    for placeholder, value in values.items():
        part = part.replace(placeholder, value)
    return part


class CommandComparisonViewer:
    """Launches an external diff tool, e.g. `code --diff {left} {right}`."""

    def __init__(self, command: tuple[str, ...] | list[str]) -> None:
        if not command:
            raise ConfigurationError("viewer_command must not be empty")
        self.command = tuple(command)

    def build_argv(self, left: Path, right: Path, title: str) -> list[str]:
        values = {"{left}": str(left), "{right}": str(right), "{title}": title}
        argv = [_substitute(part, values) for part in self.command]
        if not any("{left}" in part or "{right}" in part for part in self.command):
            argv.extend([str(left), str(right)])
        executable = shutil.which(argv[0])
        if executable:
            argv[0] = executable
        return argv

    def open_comparison(self, left: Path, right: Path, title: str) -> None:
        subprocess.Popen(self.build_argv(left, right, title))  # noqa: S603


def build_viewer(command: tuple[str, ...], console: Console | None = None) -> ComparisonViewer:
    if command:
        return CommandComparisonViewer(command)
    return ConsoleComparisonViewer(console)
