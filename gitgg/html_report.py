from __future__ import annotations

import json
from html import escape

from .config import DEFAULT_LINE_LIMIT
from .render import report_title, summary_title
from .report import ReportModel, report_payload_json


def render_compare_report_html(
    model: ReportModel,
    *,
    line_limit: int = DEFAULT_LINE_LIMIT,
    message_url: str | None = None,
    title: str | None = None,
) -> str:
    page_title = title or report_title(model)
    report_config = {
        "messageUrl": str(message_url or "").strip(),
        "lineLimit": int(line_limit),
    }
    counts = model.summary()

    return """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{page_title}</title>
  <style>
    :root {{
      --bg: #1e1e1e;
      --panel: #252526;
      --border: #3c3c3c;
      --text: #d4d4d4;
      --muted: #8c8c8c;
      --added: #2ea043;
      --deleted: #f85149;
      --changed: #d29922;
      --add-row: rgba(46, 160, 67, 0.18);
      --del-row: rgba(248, 81, 73, 0.18);
    }}
    body {{ margin: 0; padding: 16px 24px; background: var(--bg); color: var(--text); font: 13px/1.45 -apple-system, "Segoe UI", sans-serif; }}
    #summary-container {{ border: 1px solid var(--border); background: var(--panel); border-radius: 6px; padding: 10px 14px; margin-bottom: 16px; }}
    #summary-title {{ font-size: 15px; font-weight: 600; }}
    #summary-branches {{ color: var(--muted); margin-top: 4px; }}
    #message-status {{ color: var(--muted); margin-top: 4px; min-height: 1em; }}
    #message-status.error {{ color: var(--deleted); }}
    .file-wrapper {{ border: 1px solid var(--border); border-radius: 6px; margin-bottom: 8px; overflow: hidden; }}
    .file-header {{ display: flex; align-items: center; justify-content: space-between; gap: 8px; padding: 6px 10px; background: var(--panel); }}
    .file-header.expandable {{ cursor: pointer; }}
    .file-header.collapsed .file-caret::before {{ content: "▸"; }}
    .file-header .file-caret::before {{ content: "▾"; }}
    .file-header.unchanged .file-caret::before {{ content: "·"; }}
    .file-title {{ display: flex; align-items: center; gap: 8px; min-width: 0; }}
    .file-name {{ font-weight: 600; }}
    .file-path {{ color: var(--muted); overflow: hidden; text-overflow: ellipsis; white-space: nowrap; }}
    .status-badge {{ border-radius: 4px; padding: 0 6px; font-size: 11px; font-weight: 600; }}
    .status-added {{ background: var(--added); color: #fff; }}
    .status-deleted {{ background: var(--deleted); color: #fff; }}
    .status-changed {{ border: 1px solid var(--changed); color: var(--changed); }}
    .status-unchanged {{ border: 1px solid var(--muted); color: var(--muted); }}
    .line-badge-added {{ color: var(--added); }}
    .line-badge-removed {{ color: var(--deleted); }}
    .full-diff-btn {{ background: transparent; color: var(--text); border: 1px solid var(--border); border-radius: 4px; padding: 2px 8px; cursor: pointer; }}
    .full-diff-btn:hover {{ border-color: var(--text); }}
    .diff-body {{ border-top: 1px solid var(--border); }}
    table.diff-table {{ width: 100%; border-collapse: collapse; font: 12px/1.4 ui-monospace, Menlo, Consolas, monospace; }}
    table.diff-table td {{ padding: 0 6px; vertical-align: top; white-space: pre-wrap; word-break: break-all; }}
    table.diff-table td.num {{ width: 1%; color: var(--muted); text-align: right; user-select: none; }}
    tr.row-add {{ background: var(--add-row); }}
    tr.row-delete {{ background: var(--del-row); }}
    tr.row-hunk {{ color: #79c0ff; }}
    tr.row-meta {{ color: var(--muted); }}
    .truncated-message {{ padding: 6px 10px; color: var(--changed); font-style: italic; border-top: 1px dashed var(--border); }}
  </style>
</head>
<body>
  <header id="summary-container">
    <div id="summary-title">{summary}</div>
    <div id="summary-branches">Branches Compared: {target_branch} &harr; {local_label}</div>
    <div id="summary-counts" data-added="{added}" data-changed="{changed}" data-deleted="{deleted}" data-unchanged="{unchanged}"></div>
    <div id="message-status"></div>
  </header>
  <main id="diff-container"></main>
  <script id="report-data" type="application/json">{payload_json}</script>
  <script id="report-config-json" type="application/json">{report_config_json}</script>
  <script>
    (() => {{
      const data = JSON.parse(document.getElementById("report-data").textContent);
      const config = JSON.parse(document.getElementById("report-config-json").textContent);
      const lineLimit = Number(config.lineLimit) > 0 ? Number(config.lineLimit) : 100;
      const messageUrl = String(config.messageUrl || "");
      const container = document.getElementById("diff-container");
      const messageStatus = document.getElementById("message-status");
      const HUNK_RE = /^@@ -(\\d+)(?:,\\d+)? \\+(\\d+)(?:,\\d+)? @@/;

      function fileName(path) {{
        return path.split("/").pop();
      }}

      function splitLines(patch) {{
        const text = String(patch || "").replace(/\\r?\\n$/, "");
        return text ? text.split(/\\r?\\n/) : [];
      }}

      function lineChanges(patch) {{
        let added = 0;
        let removed = 0;
        splitLines(patch).forEach((line) => {{
          if (line.startsWith("+") && !line.startsWith("+++")) added += 1;
          else if (line.startsWith("-") && !line.startsWith("---")) removed += 1;
        }});
        return {{ added, removed }};
      }}

      function boundedPatch(patch) {{
        const lines = splitLines(patch);
        if (lines.length > lineLimit) {{
          return {{ lines: lines.slice(0, lineLimit), truncated: true }};
        }}
        return {{ lines, truncated: false }};
      }}

      function el(tag, className, text) {{
        const node = document.createElement(tag);
        if (className) node.className = className;
        if (text !== undefined) node.textContent = text;
        return node;
      }}

      function renderDiffTable(lines) {{
        const table = el("table", "diff-table");
        const body = el("tbody");
        let oldNo = 0;
        let newNo = 0;
        let inHunk = false;
        lines.forEach((line) => {{
          let kind = "meta";
          let oldCell = "";
          let newCell = "";
          const hunk = HUNK_RE.exec(line);
          if (hunk) {{
            kind = "hunk";
            oldNo = Number(hunk[1]);
            newNo = Number(hunk[2]);
            inHunk = true;
          }} else if (inHunk && line.startsWith("+")) {{
            kind = "add";
            newCell = String(newNo++);
          }} else if (inHunk && line.startsWith("-")) {{
            kind = "delete";
            oldCell = String(oldNo++);
          }} else if (inHunk && line.startsWith(" ")) {{
            kind = "context";
            oldCell = String(oldNo++);
            newCell = String(newNo++);
          }}
          const row = el("tr", "row-" + kind);
          row.appendChild(el("td", "num", oldCell));
          row.appendChild(el("td", "num", newCell));
          row.appendChild(el("td", "code", line));
          body.appendChild(row);
        }});
        table.appendChild(body);
        return table;
      }}

      function setMessageStatus(text, isError) {{
        messageStatus.textContent = text;
        messageStatus.classList.toggle("error", Boolean(isError));
      }}

      async function requestFullDiff(path) {{
        setMessageStatus("Opening full diff for " + path + "...", false);
        try {{
          const response = await fetch(messageUrl, {{
            method: "POST",
            headers: {{ "Content-Type": "application/json" }},
            body: JSON.stringify({{ command: "openDiff", path }}),
          }});
          const raw = await response.text();
          let body = {{}};
          if (raw) {{
            try {{
              body = JSON.parse(raw);
            }} catch (_error) {{
              body = {{}};
            }}
          }}
          if (!response.ok) {{
            throw new Error(body && body.error ? String(body.error) : "HTTP " + response.status);
          }}
          setMessageStatus("Opened full diff for " + path + (body.cached ? " (cached)" : ""), false);
        }} catch (error) {{
          const message = error && error.message ? error.message : String(error);
          setMessageStatus("Failed to open full diff: " + message, true);
        }}
      }}

      const BADGES = {{
        added: ["ADDED", "status-added"],
        changed: ["CHANGED", "status-changed"],
        deleted: ["DELETED", "status-deleted"],
        unchanged: ["UNCHANGED", "status-unchanged"],
      }};

      function renderFiles(files, fileType) {{
        (files || []).forEach((file) => {{
          const wrapper = el("section", "file-wrapper");
          wrapper.setAttribute("data-path", file.path);
          wrapper.setAttribute("data-status", fileType);
          const expandable = fileType !== "unchanged";
          const header = el("div", "file-header " + (expandable ? "expandable collapsed" : "unchanged"));
          const titleBox = el("div", "file-title");
          titleBox.title = file.path;
          titleBox.appendChild(el("span", "file-caret"));
          titleBox.appendChild(el("span", "file-name", fileName(file.path)));
          const badge = BADGES[fileType];
          titleBox.appendChild(el("span", "status-badge " + badge[1], badge[0]));
          const changes = lineChanges(file.patch);
          if (changes.added > 0) titleBox.appendChild(el("span", "line-badge-added", "+" + changes.added));
          if (changes.removed > 0) titleBox.appendChild(el("span", "line-badge-removed", "-" + changes.removed));
          titleBox.appendChild(el("span", "file-path", file.path));
          header.appendChild(titleBox);

          if (messageUrl) {{
            const button = el("button", "full-diff-btn", "View full Diff");
            button.type = "button";
            button.addEventListener("click", (event) => {{
              event.stopPropagation();
              void requestFullDiff(file.path);
            }});
            header.appendChild(button);
          }}
          wrapper.appendChild(header);
          container.appendChild(wrapper);

          if (!expandable) {{
            return;
          }}
          const diffBody = el("div", "diff-body");
          diffBody.hidden = true;
          wrapper.appendChild(diffBody);
          let drawn = false;
          header.addEventListener("click", () => {{
            if (!drawn) {{
              const bounded = boundedPatch(file.patch);
              diffBody.appendChild(renderDiffTable(bounded.lines));
              if (bounded.truncated) {{
                diffBody.appendChild(
                  el("div", "truncated-message", 'Diff truncated. Click "View full Diff" to see the complete file.')
                );
              }}
              drawn = true;
            }}
            diffBody.hidden = !diffBody.hidden;
            header.classList.toggle("collapsed", diffBody.hidden);
          }});
        }});
      }}

      renderFiles(data.addedFiles, "added");
      renderFiles(data.changedFiles, "changed");
      renderFiles(data.deletedFiles, "deleted");
      renderFiles(data.unchangedFiles, "unchanged");
    }})();
  </script>
</body>
</html>
""".format(
        page_title=escape(page_title),
        summary=escape(summary_title(model)),
        target_branch=escape(model.target_branch),
        local_label=escape(model.local_file_label),
        added=counts["added"],
        changed=counts["changed"],
        deleted=counts["deleted"],
        unchanged=counts["unchanged"],
        payload_json=report_payload_json(model),
        report_config_json=json.dumps(report_config, ensure_ascii=False).replace("</", "<\\/"),
    )
