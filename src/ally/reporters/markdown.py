from __future__ import annotations

from datetime import datetime
from pathlib import Path

from ally.engine.scoring import score_emoji
from ally.engine.types import SEVERITY_ORDER, AllyReport, Severity
from ally.reporters.badge import render_badge_markdown
from ally.utils import report_path

SEVERITY_ICONS: dict[Severity, str] = {
    "critical": "🔴",
    "serious": "🟠",
    "moderate": "🟡",
    "minor": "🔵",
}


def format_scan_date(scan_date: str) -> str:
    try:
        return datetime.fromisoformat(scan_date).date().isoformat()
    except ValueError:
        return scan_date


def render_markdown(report: AllyReport, *, project_root: Path) -> str:
    summary = report.summary
    lines: list[str] = []
    lines.append(f"# Accessibility Report {score_emoji(summary.score)}")
    lines.append("")
    lines.append(f"> Generated by ally on {format_scan_date(report.scan_date)}")
    lines.append("")
    lines.append(f"## Score: {summary.score}/100")
    lines.append("")
    lines.append(render_badge_markdown(summary.score))
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append("| Severity | Count |")
    lines.append("|----------|-------|")
    for sev in SEVERITY_ORDER:
        lines.append(f"| {SEVERITY_ICONS[sev]} {sev.title()} | {summary.by_severity.get(sev, 0)} |")
    lines.append(f"| **Total** | **{summary.total_violations}** |")
    lines.append("")

    lines.append("## Top Issues")
    lines.append("")
    if summary.top_issues:
        for issue in summary.top_issues:
            lines.append(f"### {SEVERITY_ICONS.get(issue.severity, '⚪')} {_md_inline(issue.description)}")
            lines.append("")
            lines.append(f"- **Occurrences:** {issue.count}")
            lines.append(f"- **Rule ID:** `{issue.id}`")
            lines.append("")
    else:
        lines.append("No issues found! 🎉")
        lines.append("")

    lines.append("## Files Scanned")
    lines.append("")
    lines.append(f"Total: {report.total_files} files")
    lines.append("")
    if report.results:
        lines.append("| File | Issues |")
        lines.append("|------|--------|")
        for result in report.results:
            count = len(result.violations)
            icon = "✅" if count == 0 else "⚠️" if count < 5 else "❌"
            lines.append(f"| {icon} {_md_escape_cell(report_path(result.source, project_root))} | {count} |")
        lines.append("")

    failing = [r for r in report.results if r.violations]
    if failing:
        lines.append("## Violations")
        lines.append("")
        for result in failing:
            lines.append(f"### {report_path(result.source, project_root)}")
            lines.append("")
            lines.append("| Rule | Impact | Nodes | Help |")
            lines.append("|------|--------|------:|------|")
            for v in sorted(result.violations, key=lambda v: SEVERITY_ORDER.index(v.impact)):
                help_cell = _md_escape_cell(v.help)
                if v.help_url:
                    help_cell = f"[{help_cell}]({v.help_url})"
                lines.append(f"| `{v.id}` | {v.impact} | {len(v.nodes)} | {help_cell} |")
            lines.append("")

    lines.append("## WCAG 2.1 Compliance")
    lines.append("")
    criteria = sorted({tag for r in report.results for v in r.violations for tag in v.wcag_tags})
    if criteria:
        lines.append("The following WCAG criteria have violations:")
        lines.append("")
        lines.extend(f"- `{criterion}`" for criterion in criteria)
    else:
        lines.append("No WCAG violations detected! ✅")
    lines.append("")

    lines.append("## Next Steps")
    lines.append("")
    if summary.total_violations > 0:
        lines.append("1. Run `ally explain` to understand each issue")
        lines.append("2. Run `ally fix` to apply automated fixes")
        lines.append("3. Re-scan with `ally scan` to verify fixes")
    else:
        lines.append("Your site is looking great! Consider:")
        lines.append("- Testing with real screen readers (NVDA, VoiceOver)")
        lines.append("- Running manual keyboard navigation tests")
        lines.append("- Getting user feedback from people with disabilities")
    lines.append("")

    lines.append("---")
    lines.append("")
    lines.append(
        "*This report was automatically generated. Automated testing can only catch ~50% of "
        "accessibility issues. Manual testing is recommended.*"
    )
    lines.append("")
    return "\n".join(lines)


def _md_inline(text: str) -> str:
    return text.replace("\n", " ").strip()


def _md_escape_cell(text: str) -> str:
    # Markdown tables break on pipes/newlines.
    return text.replace("\\", "\\\\").replace("|", "\\|").replace("\n", " ").strip()
