from __future__ import annotations

import html
from pathlib import Path

from ally import __version__
from ally.engine.scoring import score_hex_color, score_tier
from ally.engine.types import SEVERITY_ORDER, AllyReport, Violation
from ally.reporters.markdown import format_scan_date
from ally.utils import report_path

_GRADIENT_END = {
    "excellent": "#22c55e",
    "good": "#84cc16",
    "fair": "#eab308",
    "poor": "#ef4444",
}


def score_gradient(score: int) -> str:
    return f"linear-gradient(135deg, {score_hex_color(score)}, {_GRADIENT_END[score_tier(score)]})"


def render_html(report: AllyReport, *, project_root: Path) -> str:
    """
    Render a standalone HTML report.

    Stdlib only; every interpolated string goes through `html.escape`.
    """

    summary = report.summary

    out: list[str] = []
    out.append("<!DOCTYPE html>")
    out.append('<html lang="en">')
    out.append("<head>")
    out.append('  <meta charset="UTF-8">')
    out.append('  <meta name="viewport" content="width=device-width, initial-scale=1.0">')
    out.append("  <title>Accessibility Report</title>")
    out.append("  <style>")
    out.append(_CSS)
    out.append(f"    .score {{ background: {score_gradient(summary.score)}; }}")
    out.append("  </style>")
    out.append("</head>")
    out.append("<body>")
    out.append('  <a class="skip" href="#main">Skip to content</a>')
    out.append('  <main id="main">')
    out.append("  <h1>Accessibility Report</h1>")
    out.append(f'  <div class="score" role="img" aria-label="Score {summary.score} out of 100">{summary.score}/100</div>')

    out.append("  <h2>Violations by Severity</h2>")
    out.append('  <div class="severity-grid">')
    for sev in SEVERITY_ORDER:
        out.append(f'    <div class="severity-card {sev}">')
        out.append(f'      <div class="count">{summary.by_severity.get(sev, 0)}</div>')
        out.append(f"      <div>{sev.title()}</div>")
        out.append("    </div>")
    out.append("  </div>")

    out.append("  <h2>Top Issues</h2>")
    if summary.top_issues:
        out.append("  <table>")
        out.append("    <thead>")
        out.append('      <tr><th scope="col">Issue</th><th scope="col">Severity</th><th scope="col">Count</th></tr>')
        out.append("    </thead>")
        out.append("    <tbody>")
        for issue in summary.top_issues:
            out.append(
                f"      <tr><td>{html.escape(issue.description)}</td>"
                f"<td>{html.escape(issue.severity)}</td><td>{issue.count}</td></tr>"
            )
        out.append("    </tbody>")
        out.append("  </table>")
    else:
        out.append("  <p>No issues found!</p>")

    failing = [r for r in report.results if r.violations]
    if failing:
        out.append("  <h2>Violations</h2>")
    for result in failing:
        out.append("  <section>")
        out.append(f"    <h3>{html.escape(report_path(result.source, project_root))}</h3>")
        out.append("    <ul>")
        for v in sorted(result.violations, key=lambda v: SEVERITY_ORDER.index(v.impact)):
            out.append(_render_violation(v))
        out.append("    </ul>")
        out.append("  </section>")

    out.append("  </main>")
    out.append("  <footer>")
    out.append(
        f"    <p><em>Generated by ally {html.escape(__version__)} on "
        f"{html.escape(format_scan_date(report.scan_date))}</em></p>"
    )
    out.append("  </footer>")
    out.append("</body>")
    out.append("</html>")
    return "\n".join(out)


def _render_violation(v: Violation) -> str:
    help_text = html.escape(v.help)
    if v.help_url:
        help_text = f'<a href="{html.escape(v.help_url)}">{help_text}</a>'
    nodes = "".join(f"<li><code>{html.escape(n.html)}</code></li>" for n in v.nodes)
    return (
        f'      <li class="violation {html.escape(v.impact)}">'
        f'<span class="badge {html.escape(v.impact)}">{html.escape(v.impact)}</span> '
        f"<strong>{html.escape(v.id)}</strong>: {help_text}"
        f"<ul>{nodes}</ul></li>"
    )


_CSS = """
    :root {
      --critical: #dc2626;
      --serious: #ea580c;
      --moderate: #ca8a04;
      --minor: #2563eb;
      --pass: #16a34a;
    }
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      max-width: 800px;
      margin: 0 auto;
      padding: 2rem;
      line-height: 1.6;
    }
    .skip { position: absolute; left: -999px; }
    .skip:focus { left: 1rem; top: 1rem; }
    .score {
      font-size: 4rem;
      font-weight: bold;
      text-align: center;
      padding: 2rem;
      border-radius: 1rem;
      color: white;
    }
    .severity-grid {
      display: grid;
      grid-template-columns: repeat(4, 1fr);
      gap: 1rem;
      margin: 2rem 0;
    }
    .severity-card { padding: 1rem; border-radius: 0.5rem; text-align: center; color: white; }
    .severity-card .count { font-size: 2rem; }
    .severity-card.critical, .badge.critical { background: var(--critical); }
    .severity-card.serious, .badge.serious { background: var(--serious); }
    .severity-card.moderate, .badge.moderate { background: var(--moderate); }
    .severity-card.minor, .badge.minor { background: var(--minor); }
    .badge { color: white; border-radius: 0.25rem; padding: 0 0.4rem; font-size: 0.85rem; }
    table { width: 100%; border-collapse: collapse; margin: 1rem 0; }
    th, td { padding: 0.75rem; text-align: left; border-bottom: 1px solid #e5e7eb; }
    th { background: #f9fafb; }
    code { word-break: break-all; }
""".rstrip("\n")
