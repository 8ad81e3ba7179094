"""Files the driver leaves in the run directory."""

import html
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from game_qc_runner.models.summary import DEFAULT_ARTIFACTS, Summary
from game_qc_runner.summary_store import LEGACY_FILENAME

ARTIFACTS_DIRNAME = "artifacts"
FAILURE_DUMP_NAME = "failureDump"

_STATUS_COLORS = {"pass": "#1a7f37", "fail": "#cf222e", "infra_error": "#9a6700"}


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")


def write_artifacts(run_dir: Path, artifacts: Mapping[str, Any]) -> dict[str, str]:
    """Write each debug artifact as JSON; returns name → relative path."""
    written = {}
    for name, value in artifacts.items():
        relative = f"{ARTIFACTS_DIRNAME}/{name}.json"
        _write_json(run_dir / relative, value)
        written[name] = relative
    return written


def render_html(summary: Summary) -> str:
    """Self-contained HTML report of one run."""
    rows = "\n".join(
        "<tr><td>{id}</td><td>{severity}</td><td>{ok}</td><td>{message}</td></tr>".format(
            id=html.escape(check.id),
            severity=check.severity,
            ok="✅" if check.ok else "❌",
            message=html.escape(check.message or ""),
        )
        for check in summary.checks
    )
    warnings = "\n".join(f"<li>{html.escape(w)}</li>" for w in summary.warnings) or "<li>None</li>"
    color = _STATUS_COLORS.get(summary.status, "#57606a")
    run = summary.run
    return f"""<!doctype html>
<html>
<head><meta charset="utf-8"><title>QC run {html.escape(run.run_id)}</title></head>
<body>
<h1>QC run {html.escape(run.run_id)}</h1>
<p>Status: <strong style="color: {color}">{summary.status}</strong></p>
<p>Game: <code>{html.escape(run.game_url)}</code></p>
<p>Duration: {run.duration_ms if run.duration_ms is not None else "-"} ms</p>
<h2>Checks</h2>
<table border="1" cellpadding="4">
<tr><th>Id</th><th>Severity</th><th>OK</th><th>Message</th></tr>
{rows}
</table>
<h2>Warnings</h2>
<ul>
{warnings}
</ul>
</body>
</html>
"""


def write_report(run_dir: Path, summary: Summary) -> None:
    """Write the HTML report, the JSON report and the driver summary file."""
    wire = summary.to_wire()
    html_path = run_dir / DEFAULT_ARTIFACTS["playwrightHtmlReport"]
    html_path.parent.mkdir(parents=True, exist_ok=True)
    html_path.write_text(render_html(summary), encoding="utf-8")
    _write_json(run_dir / DEFAULT_ARTIFACTS["playwrightJsonReport"], wire)
    _write_json(run_dir / LEGACY_FILENAME, wire)
