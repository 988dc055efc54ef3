import io
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rich.console import Console  # noqa: E402

from gitgg.classify import STATUS_ADDED, STATUS_CHANGED, STATUS_DELETED, STATUS_UNCHANGED, FileDiffRecord  # noqa: E402
from gitgg.lazy_render import TRUNCATED_NOTICE, ReportEntry  # noqa: E402
from gitgg.render import (  # noqa: E402
    bounded_diff_text,
    diff_line_style,
    render_file_table,
    render_report_summary,
    summary_title,
)
from gitgg.report import build_report_model  # noqa: E402
from tests.helpers import make_patch  # noqa: E402


class TestSummaryTitle(unittest.TestCase):
    def test_counts_only_non_empty_buckets(self):
        model = build_report_model(
            [
                FileDiffRecord("a", make_patch("a", ["+x"]), STATUS_CHANGED),
                FileDiffRecord("b", make_patch("b", ["-x"], deleted=True), STATUS_DELETED),
                FileDiffRecord("c", "", STATUS_UNCHANGED),
            ],
            "main",
            "develop",
        )
        self.assertEqual(summary_title(model), "Comparison Summary: 2 files with changes ( Changed: 1 Deleted: 1 )")

    def test_single_file_and_no_changes(self):
        one = build_report_model([FileDiffRecord("a", make_patch("a", ["+x"], new_file=True), STATUS_ADDED)], "m", "d")
        self.assertEqual(summary_title(one), "Comparison Summary: 1 file with changes ( Added: 1 )")
        same = build_report_model([FileDiffRecord("a", "", STATUS_UNCHANGED)], "m", "d")
        self.assertEqual(summary_title(same), "Comparison Summary: No differences found.")
        self.assertEqual(summary_title(build_report_model([], "m", "d")), "Comparison Summary: No files compared.")


class TestDiffText(unittest.TestCase):
    def test_line_styles(self):
        self.assertEqual(diff_line_style("@@ -1 +1 @@"), "cyan")
        self.assertEqual(diff_line_style("+added"), "green")
        self.assertEqual(diff_line_style("-removed"), "red")
        self.assertEqual(diff_line_style("+++ b/a"), "bold")
        self.assertEqual(diff_line_style(" context"), "")

    def test_bounded_text_carries_notice(self):
        entry = ReportEntry(FileDiffRecord("a", make_patch("a", ["+x"] * 10), STATUS_CHANGED), line_limit=4)
        self.assertEqual(bounded_diff_text(entry).plain, "")
        entry.toggle()
        text = bounded_diff_text(entry).plain
        self.assertEqual(len(text.splitlines()), 5)
        self.assertTrue(text.endswith(TRUNCATED_NOTICE))


class TestConsoleReport(unittest.TestCase):
    def test_summary_and_table(self):
        model = build_report_model(
            [FileDiffRecord("src/a.py", make_patch("src/a.py", ["-x", "+y", "+z"]), STATUS_CHANGED)],
            "Working Tree",
            "develop",
        )
        buffer = io.StringIO()
        console = Console(file=buffer, width=160, color_system=None)
        render_report_summary(console, model, "origin/develop")
        render_file_table(console, model)
        output = buffer.getvalue()
        self.assertIn("develop ↔ Working Tree", output)
        self.assertIn("origin/develop", output)
        self.assertIn("CHANGED", output)
        self.assertIn("src/a.py", output)


if __name__ == "__main__":
    unittest.main()
