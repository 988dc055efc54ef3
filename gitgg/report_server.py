from __future__ import annotations

import json
import threading
import webbrowser
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlparse

from .errors import ProtocolError
from .html_report import render_compare_report_html
from .lazy_render import ReportSession

MESSAGE_PATH = "/api/message"
MAX_MESSAGE_BYTES = 1024 * 1024


def _iso_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class ReportServerState:
    session: ReportSession
    title: str | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)

    def render_html(self) -> str:
        return render_compare_report_html(
            self.session.model,
            line_limit=self.session.line_limit,
            message_url=MESSAGE_PATH,
            title=self.title,
        )

    def handle_message(self, message: Any) -> dict[str, Any]:
        # the host viewer and the cache are driven one request at a time
        with self.lock:
            return self.session.handle_message(message)


def _handler_factory(state: ReportServerState) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        server_version = "GitggReportServer/1.0"

        def _send_common_headers(self) -> None:
            self.send_header("Cache-Control", "no-store")

        def _write_json(self, status: int, payload: dict[str, Any]) -> None:
            raw = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            self.send_response(status)
            self._send_common_headers()
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            self.wfile.write(raw)

        def _write_html(self, html: str) -> None:
            raw = html.encode("utf-8")
            self.send_response(200)
            self._send_common_headers()
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            self.wfile.write(raw)

        def do_GET(self) -> None:  # noqa: N802
            path = urlparse(self.path).path
            if path in {"/", "/index.html"}:
                self._write_html(state.render_html())
                return
            if path == "/api/report":
                self._write_json(200, state.session.model.to_payload())
                return
            if path == "/api/health":
                self._write_json(
                    200,
                    {
                        "ok": True,
                        "targetBranch": state.session.model.target_branch,
                        "files": state.session.model.file_count,
                        "cachedFullDiffs": len(state.session.cache),
                        "time": _iso_now(),
                    },
                )
                return
            self._write_json(404, {"ok": False, "error": f"Not found: {path}"})

        def do_POST(self) -> None:  # noqa: N802
            path = urlparse(self.path).path
            if path != MESSAGE_PATH:
                self._write_json(404, {"ok": False, "error": f"Not found: {path}"})
                return
            try:
                length = int(self.headers.get("Content-Length", "0"))
            except ValueError:
                self._write_json(400, {"ok": False, "error": "Invalid Content-Length header."})
                return
            if length <= 0:
                self._write_json(400, {"ok": False, "error": "Request body is required."})
                return
            if length > MAX_MESSAGE_BYTES:
                self._write_json(413, {"ok": False, "error": "Request body too large."})
                return
            raw = self.rfile.read(length)
            try:
                message = json.loads(raw.decode("utf-8"))
                result = state.handle_message(message)
            except (ProtocolError, ValueError) as error:
                self._write_json(400, {"ok": False, "error": str(error)})
                return
            except Exception as error:  # noqa: BLE001
                self._write_json(500, {"ok": False, "error": str(error)})
                return
            self._write_json(200, {"ok": True, **result})

        def log_message(self, fmt: str, *args: Any) -> None:
            message = fmt % args
            print(f"[http] {self.address_string()} {message}")

    return Handler


def create_report_server(state: ReportServerState, host: str, port: int) -> ThreadingHTTPServer:
    return ThreadingHTTPServer((host, port), _handler_factory(state))


def serve_report(state: ReportServerState, *, host: str = "127.0.0.1", port: int = 8766, open_browser: bool = False) -> int:
    server = create_report_server(state, host, port)
    bound_host, bound_port = server.server_address[:2]
    base_url = f"http://{bound_host}:{bound_port}/"
    print(f"Serving: {base_url}")
    print(f"Branch : {state.session.model.target_branch} ↔ {state.session.model.local_file_label}")
    if open_browser:
        webbrowser.open(base_url)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nStopping server.")
    finally:
        server.server_close()
    return 0
