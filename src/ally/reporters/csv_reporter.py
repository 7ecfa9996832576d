from __future__ import annotations

from pathlib import Path

from ally.engine.types import AllyReport
from ally.utils import report_path

CSV_HEADER = ("file", "violation_id", "impact", "description", "selector", "wcag", "help_url")


def escape_csv_field(value: str) -> str:
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def render_csv(report: AllyReport, *, project_root: Path) -> str:
    """One row per affected node."""

    rows = [",".join(CSV_HEADER)]
    for scan in report.results:
        file_label = report_path(scan.source, project_root)
        for violation in scan.violations:
            for node in violation.nodes:
                fields = (
                    file_label,
                    violation.id,
                    violation.impact,
                    violation.help,
                    " > ".join(node.target),
                    "; ".join(violation.wcag_tags),
                    violation.help_url,
                )
                rows.append(",".join(escape_csv_field(f) for f in fields))
    return "\n".join(rows)
