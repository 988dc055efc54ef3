import json
import sys
import tempfile
import threading
import unittest
import urllib.error
import urllib.request
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gitgg.classify import STATUS_CHANGED, STATUS_UNCHANGED, FileDiffRecord  # noqa: E402
from gitgg.comparison import ComparisonTarget  # noqa: E402
from gitgg.errors import ProtocolError  # noqa: E402
from gitgg.lazy_render import OPEN_DIFF_COMMAND, FullDiffService, ReportSession  # noqa: E402
from gitgg.report import build_report_model  # noqa: E402
from gitgg.report_server import MESSAGE_PATH, ReportServerState, create_report_server  # noqa: E402
from tests.helpers import FakeGitBackend, RecordingViewer, make_patch  # noqa: E402


class ReportServerCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.repo = Path(self._tmp.name)
        (self.repo / "src").mkdir()
        (self.repo / "src" / "a.ts").write_text("local\n", encoding="utf-8")
        model = build_report_model(
            [
                FileDiffRecord("src/a.ts", make_patch("src/a.ts", ["-remote", "+local"]), STATUS_CHANGED),
                FileDiffRecord("README.md", "", STATUS_UNCHANGED),
            ],
            "main",
            "develop",
        )
        target = ComparisonTarget(requested_branch="develop", resolved_ref="origin/develop", used_remote=True)
        self.backend = FakeGitBackend(blobs={("origin/develop", "src/a.ts"): "remote\n"})
        self.viewer = RecordingViewer()
        service = FullDiffService(
            self.backend, target, "main", self.repo, self.viewer, temp_dir=self.repo / ".scratch"
        )
        self.state = ReportServerState(ReportSession(model, service))

    def tearDown(self):
        self._tmp.cleanup()


class TestReportServerState(ReportServerCase):
    def test_render_html_points_at_message_endpoint(self):
        html = self.state.render_html()
        self.assertIn('"messageUrl": "/api/message"', html)
        self.assertIn("View full Diff", html)

    def test_handle_message_opens_viewer(self):
        result = self.state.handle_message({"command": OPEN_DIFF_COMMAND, "path": "src/a.ts"})
        self.assertFalse(result["cached"])
        self.assertEqual(len(self.viewer.opened), 1)
        with self.assertRaises(ProtocolError):
            self.state.handle_message({"command": OPEN_DIFF_COMMAND, "path": "other.ts"})


class TestReportServerHttp(ReportServerCase):
    def setUp(self):
        super().setUp()
        self.server = create_report_server(self.state, "127.0.0.1", 0)
        self.server.RequestHandlerClass.log_message = lambda *_args: None
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        host, port = self.server.server_address[:2]
        self.base_url = f"http://{host}:{port}"

    def tearDown(self):
        self.server.shutdown()
        self.server.server_close()
        self.thread.join(timeout=5)
        super().tearDown()

    def _post(self, body: bytes) -> tuple[int, dict]:
        request = urllib.request.Request(
            self.base_url + MESSAGE_PATH,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=5) as response:
                return response.status, json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as error:
            return error.code, json.loads(error.read().decode("utf-8"))

    def test_get_endpoints(self):
        with urllib.request.urlopen(self.base_url + "/", timeout=5) as response:
            self.assertIn("report-data", response.read().decode("utf-8"))
        with urllib.request.urlopen(self.base_url + "/api/report", timeout=5) as response:
            payload = json.loads(response.read().decode("utf-8"))
        self.assertEqual(payload["targetBranch"], "develop")
        with urllib.request.urlopen(self.base_url + "/api/health", timeout=5) as response:
            health = json.loads(response.read().decode("utf-8"))
        self.assertTrue(health["ok"])
        self.assertEqual(health["files"], 2)

    def test_open_diff_twice_uses_cache(self):
        body = json.dumps({"command": OPEN_DIFF_COMMAND, "path": "src/a.ts"}).encode("utf-8")
        status, first = self._post(body)
        self.assertEqual(status, 200)
        self.assertTrue(first["ok"])
        self.assertFalse(first["cached"])
        status, second = self._post(body)
        self.assertTrue(second["cached"])
        self.assertEqual(self.backend.count("show"), 1)

    def test_bad_requests(self):
        status, body = self._post(b"not json")
        self.assertEqual(status, 400)
        self.assertFalse(body["ok"])
        status, body = self._post(json.dumps({"command": "nope"}).encode("utf-8"))
        self.assertEqual(status, 400)
        self.assertIn("Unsupported command", body["error"])

        try:
            urllib.request.urlopen(self.base_url + "/missing", timeout=5)
        except urllib.error.HTTPError as error:
            self.assertEqual(error.code, 404)
        else:
            self.fail("expected 404")


if __name__ == "__main__":
    unittest.main()
