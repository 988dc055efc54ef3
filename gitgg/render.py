from __future__ import annotations

from pathlib import PurePosixPath

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .classify import STATUS_ADDED, STATUS_CHANGED, STATUS_DELETED, STATUS_UNCHANGED, patch_lines
from .lazy_render import ReportEntry
from .report import ReportModel, line_changes

STATUS_LABELS = {
    STATUS_ADDED: "ADDED",
    STATUS_CHANGED: "CHANGED",
    STATUS_DELETED: "DELETED",
    STATUS_UNCHANGED: "UNCHANGED",
}


def status_style(status: str) -> str:
    if status == STATUS_ADDED:
        return "green"
    if status == STATUS_DELETED:
        return "red"
    if status == STATUS_CHANGED:
        return "yellow"
    return "dim"


def summary_title(model: ReportModel) -> str:
    counts = model.summary()
    total = counts["withChanges"]
    if total > 0:
        parts = [
            f"{label}: {counts[status]}"
            for status, label in ((STATUS_ADDED, "Added"), (STATUS_CHANGED, "Changed"), (STATUS_DELETED, "Deleted"))
            if counts[status] > 0
        ]
        plural = "s" if total > 1 else ""
        return f"Comparison Summary: {total} file{plural} with changes ( {' '.join(parts)} )"
    if counts[STATUS_UNCHANGED] > 0:
        return "Comparison Summary: No differences found."
    return "Comparison Summary: No files compared."


def report_title(model: ReportModel) -> str:
    return f"Changes between ({model.target_branch}) ↔ ({model.local_file_label}) ({model.file_count} files)"


def render_report_summary(console: Console, model: ReportModel, resolved_ref: str | None = None) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    table.add_row("Summary", summary_title(model))
    table.add_row("Branches", f"{model.target_branch} ↔ {model.local_file_label}")
    if resolved_ref:
        table.add_row("Diffed against", resolved_ref)
    console.print(Panel(table, title=report_title(model), border_style="blue"))


def render_file_table(console: Console, model: ReportModel) -> None:
    table = Table(title=f"Files ({model.file_count})", header_style="bold magenta")
    table.add_column("status", no_wrap=True)
    table.add_column("file", no_wrap=True)
    table.add_column("+", justify="right")
    table.add_column("-", justify="right")
    table.add_column("path", overflow="ellipsis")
    for status, bucket in model.buckets():
        for record in bucket:
            changes = line_changes(record.patch)
            table.add_row(
                Text(STATUS_LABELS[status], style=status_style(status)),
                PurePosixPath(record.path).name,
                str(changes["added"]) if changes["added"] else "",
                str(changes["removed"]) if changes["removed"] else "",
                record.path,
            )
    console.print(table)


def diff_line_style(line: str) -> str:
    if line.startswith("@@"):
        return "cyan"
    if line.startswith("+") and not line.startswith("+++"):
        return "green"
    if line.startswith("-") and not line.startswith("---"):
        return "red"
    if line.startswith(("diff ", "index ", "---", "+++", "new file", "deleted file")):
        return "bold"
    return ""


def bounded_diff_text(entry: ReportEntry) -> Text:
    bounded = entry.bounded_diff
    text = Text()
    if bounded is None:
        return text
    for line in patch_lines(bounded.text):
        text.append(line + "\n", style=diff_line_style(line))
    if bounded.notice:
        text.append(bounded.notice, style="italic yellow")
    return text

