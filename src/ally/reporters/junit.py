from __future__ import annotations

from pathlib import Path

from ally.engine.types import AllyReport
from ally.utils import report_path

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(text: str) -> str:
    for raw, entity in _XML_ESCAPES:
        text = text.replace(raw, entity)
    return text


def render_junit(report: AllyReport, *, project_root: Path) -> str:
    """
    Render the report as JUnit XML for CI test dashboards.

    Every affected node is one failing test case; there are no passing cases.
    """

    cases: list[str] = []
    for scan in report.results:
        file_label = report_path(scan.source, project_root)
        for violation in scan.violations:
            for node in violation.nodes:
                message = f"{violation.help}. {node.failure_summary}"
                details = "\n".join(
                    [
                        f"File: {file_label}",
                        f"Selector: {' > '.join(node.target)}",
                        f"HTML: {node.html}",
                        f"WCAG: {', '.join(violation.wcag_tags)}",
                        f"Help: {violation.help_url}",
                    ]
                )
                cases.append(
                    f'    <testcase name="{escape_xml(violation.id)}" classname="{escape_xml(violation.impact)}" time="0">\n'
                    f'      <failure message="{escape_xml(message)}" type="{escape_xml(violation.impact)}">\n'
                    f"{escape_xml(details)}\n"
                    "      </failure>\n"
                    "    </testcase>"
                )

    total = len(cases)
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<testsuites name="ally-a11y" tests="{total}" failures="{total}" errors="0" time="0">',
        f'  <testsuite name="accessibility" tests="{total}" failures="{total}" errors="0" skipped="0" time="0">',
        *cases,
        "  </testsuite>",
        "</testsuites>",
    ]
    return "\n".join(lines)
