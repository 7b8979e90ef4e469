"""HTML report for a remediation run.

Building the report is pure; writing it to disk is separate so the
payload can be checked without touching the filesystem.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Template

from ..actions.models import RemediationResult

logger = logging.getLogger(__name__)

REPORT_TITLE = "Citrix Broker Remediation Report"

HTML_TEMPLATE = Template(
    """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{{ title }}</title>
    <style>
        body { font-family: Arial, sans-serif; color: #333; }
        h1 { color: #1976d2; }
        table { border-collapse: collapse; margin-bottom: 20px; }
        th { background-color: #f5f5f5; text-align: left; }
        th, td { padding: 6px 12px; border: 1px solid #ddd; }
        .failed { color: #d32f2f; }
    </style>
</head>
<body>
    <h1>{{ title }}{% if dry_run %} (dry run){% endif %}</h1>
    <p>Generated: {{ generated }}</p>

    <h2>Power actions</h2>
    <table>
        <tr><th>Machine</th><th>Action</th></tr>
        {% for record in actions %}
        <tr><td>{{ record.machine_name }}</td><td>{{ record.action.value }}</td></tr>
        {% endfor %}
    </table>

    {% if maintenance %}
    <h2>Maintenance mode</h2>
    <table>
        <tr><th>Machine</th><th>Action</th></tr>
        {% for record in maintenance %}
        <tr><td>{{ record.machine_name }}</td><td>{{ record.action }}</td></tr>
        {% endfor %}
    </table>
    {% endif %}

    {% if failures %}
    <h2 class="failed">Failed commands</h2>
    <table>
        <tr><th>Machine</th><th>Command</th><th>Error</th></tr>
        {% for failure in failures %}
        <tr><td>{{ failure.machine_name }}</td><td>{{ failure.command }}</td><td>{{ failure.error }}</td></tr>
        {% endfor %}
    </table>
    {% endif %}
</body>
</html>
""",
    autoescape=True,
)


class ReportDeliveryError(Exception):
    """The report could not be written or mailed."""


@dataclass(frozen=True)
class Report:
    """A rendered report ready for delivery."""
    title: str
    filename: str
    html: str
    text: str


def report_filename(generated_at: datetime) -> str:
    """``2026-10-19T07:30:00`` style timestamp with ``:`` replaced by ``-``."""
    stamp = generated_at.strftime("%Y-%m-%dT%H:%M:%S").replace(":", "-")
    return f"{stamp}.html"


def _render_text(result: RemediationResult, generated: str) -> str:
    lines = [REPORT_TITLE, f"Generated: {generated}", "", "Power actions:"]
    lines += [f"- {r.machine_name}: {r.action.value}" for r in result.actions]

    if result.maintenance:
        lines += ["", "Maintenance mode:"]
        lines += [f"- {r.machine_name}: {r.action}" for r in result.maintenance]

    if result.failures:
        lines += ["", "Failed commands:"]
        lines += [f"- {f.machine_name}: {f.command} ({f.error})" for f in result.failures]

    return "\n".join(lines) + "\n"


def build_report(result: RemediationResult, generated_at: datetime) -> Optional[Report]:
    """Render the report, or return None when no power action was taken.

    Maintenance mode changes alone never produce a report.
    """
    if not result.has_actions:
        return None

    generated = generated_at.strftime("%Y-%m-%d %H:%M:%S")
    html = HTML_TEMPLATE.render(
        title=REPORT_TITLE,
        generated=generated,
        dry_run=result.dry_run,
        actions=result.actions,
        maintenance=result.maintenance,
        failures=result.failures,
    )

    return Report(
        title=REPORT_TITLE,
        filename=report_filename(generated_at),
        html=html,
        text=_render_text(result, generated),
    )


def write_report(report: Report, directory: Path) -> Path:
    """Write the report HTML into directory, creating it if needed.

    Raises:
        ReportDeliveryError: if the file cannot be written
    """
    path = Path(directory) / report.filename
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.html, encoding="utf-8")
    except OSError as e:
        raise ReportDeliveryError(f"Cannot write report {path}: {e}") from e

    logger.info(f"Report written to {path}")
    return path
