from __future__ import annotations

from pathlib import Path, PurePosixPath

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import DataTable, Footer, Header, Static

from .classify import patch_lines
from .errors import ProtocolError
from .lazy_render import OPEN_DIFF_COMMAND, ReportEntry, ReportSession
from .render import STATUS_LABELS, bounded_diff_text, diff_line_style, report_title, status_style, summary_title
from .report import line_changes
from .viewers import unified_diff_text

COLLAPSED_HINT = "Press Enter or Space to expand this file."
UNCHANGED_HINT = "No differences for this file."


class PaneComparisonViewer:
    """Shows full comparisons inside the report app instead of a separate window."""

    def __init__(self) -> None:
        self.app: CompareReportApp | None = None

    def open_comparison(self, left: Path, right: Path, title: str) -> None:
        if self.app is not None:
            self.app.show_full_diff(title, unified_diff_text(left, right))


class CompareReportApp(App[None]):
    CSS = """
    Screen { layout: vertical; }
    #summary { height: 4; border: round #3a86ff; padding: 0 1; }
    #main { height: 1fr; }
    #files { width: 45%; border: round #4cc9f0; }
    #diff-pane { width: 55%; border: round #f72585; }
    #diff { padding: 0 1; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("space", "toggle_entry", "Expand/Collapse"),
        Binding("f", "view_full_diff", "View full Diff"),
    ]

    def __init__(self, session: ReportSession, resolved_ref: str | None = None) -> None:
        super().__init__()
        self.session = session
        self.resolved_ref = resolved_ref
        self.last_message: str = ""
        self.title = report_title(session.model)

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(self._summary_text(), id="summary")
        with Horizontal(id="main"):
            yield DataTable(id="files", cursor_type="row")
            with VerticalScroll(id="diff-pane"):
                yield Static(COLLAPSED_HINT, id="diff")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#files", DataTable)
        table.add_columns("status", "file", "+", "-", "path")
        for entry in self.session.entries.values():
            status = entry.record.status
            changes = line_changes(entry.record.patch)
            table.add_row(
                Text(STATUS_LABELS[status], style=status_style(status)),
                PurePosixPath(entry.path).name,
                str(changes["added"]) if changes["added"] else "",
                str(changes["removed"]) if changes["removed"] else "",
                entry.path,
                key=entry.path,
            )
        table.focus()
        current = self.current_path()
        if current is not None:
            self._show_entry(self.session.entries[current])

    def _summary_text(self) -> str:
        model = self.session.model
        lines = [summary_title(model), f"Branches Compared: {model.target_branch} ↔ {model.local_file_label}"]
        if self.resolved_ref:
            lines[-1] += f"  (diffed against {self.resolved_ref})"
        return "\n".join(lines)

    def current_path(self) -> str | None:
        table = self.query_one("#files", DataTable)
        if table.row_count == 0:
            return None
        row_key, _column_key = table.coordinate_to_cell_key(table.cursor_coordinate)
        return str(row_key.value)

    def _show_entry(self, entry: ReportEntry) -> None:
        pane = self.query_one("#diff", Static)
        if not entry.expandable:
            pane.update(Text(f"{entry.path}\n{UNCHANGED_HINT}", style="dim"))
            return
        if not entry.visible:
            pane.update(Text(f"{entry.path}\n{COLLAPSED_HINT}", style="dim"))
            return
        pane.update(bounded_diff_text(entry))

    def _toggle(self, path: str) -> None:
        entry = self.session.entries[path]
        entry.toggle()
        self._show_entry(entry)

    def action_toggle_entry(self) -> None:
        path = self.current_path()
        if path is not None:
            self._toggle(path)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._toggle(str(event.row_key.value))

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        entry = self.session.entries.get(str(event.row_key.value))
        if entry is not None:
            self._show_entry(entry)

    def action_view_full_diff(self) -> None:
        path = self.current_path()
        if path is None:
            return
        try:
            result = self.session.handle_message({"command": OPEN_DIFF_COMMAND, "path": path})
        except ProtocolError as error:
            self.last_message = str(error)
            self.notify(self.last_message, severity="error")
            return
        self.last_message = f"Opened full diff for {path}" + (" (cached)" if result.get("cached") else "")
        self.notify(self.last_message, timeout=1.5)

    def show_full_diff(self, title: str, diff_text: str) -> None:
        text = Text(title + "\n", style="bold magenta")
        for line in patch_lines(diff_text) or ["(no differences)"]:
            text.append(line + "\n", style=diff_line_style(line))
        self.query_one("#diff", Static).update(text)


def launch_report_app(session: ReportSession, resolved_ref: str | None = None) -> int:
    app = CompareReportApp(session, resolved_ref)
    if isinstance(session.service.viewer, PaneComparisonViewer):
        session.service.viewer.app = app
    app.run()
    return 0
