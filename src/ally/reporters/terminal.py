from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ally import __version__
from ally.engine.scoring import score_style
from ally.engine.types import SEVERITY_ORDER, AllyReport, ScanResult, Severity, Violation
from ally.utils import plural, report_path

SEVERITY_ICON: dict[Severity, str] = {"critical": "✖", "serious": "✖", "moderate": "⚠", "minor": "ℹ"}
SEVERITY_STYLE: dict[Severity, str] = {
    "critical": "bold red",
    "serious": "red",
    "moderate": "yellow",
    "minor": "blue",
}


def render_terminal(report: AllyReport, *, project_root: Path, console: Console, show_details: bool = True) -> None:
    header = Text()
    header.append("ally ", style="bold")
    header.append(f"v{__version__}", style="dim")
    header.append(" · accessibility audit", style="dim")

    console.print(Panel(header, subtitle=f"Scanned {plural(report.total_files, 'page')}", border_style="cyan"))

    if show_details:
        for result in report.results:
            print_scan_result(result, project_root=project_root, console=console)

    print_summary(report, console=console)


def print_scan_result(result: ScanResult, *, project_root: Path, console: Console) -> None:
    label = report_path(result.source, project_root)
    if not result.violations:
        line = Text()
        line.append("✓ ", style="green")
        line.append(label, style="bold")
        line.append("  no issues", style="dim")
        console.print(line)
        return

    console.print(Text(label, style="bold"))
    for v in sort_by_severity(result.violations):
        print_violation(v, console=console)
    console.print()


def print_violation(v: Violation, *, console: Console, compact: bool = False) -> None:
    style = SEVERITY_STYLE.get(v.impact, "")
    line = Text()
    line.append(f"  {SEVERITY_ICON.get(v.impact, '•')} ", style=style)
    line.append(v.id, style="bold")
    line.append(f"  [{v.impact}]", style=style)
    line.append(f"  {v.help}")
    if len(v.nodes) > 1:
        line.append(f"  ({len(v.nodes)} elements)", style="dim")
    console.print(line)

    if compact:
        return
    for node in v.nodes[:3]:
        console.print(f"     {node.html}", style="dim", markup=False, highlight=False)
    if len(v.nodes) > 3:
        console.print(f"     … and {len(v.nodes) - 3} more", style="dim")


def print_summary(report: AllyReport, *, console: Console) -> None:
    summary = report.summary
    console.print(Text("─" * 60, style="dim"))
    console.print(Text(f"Score: {summary.score}/100", style=score_style(summary.score)))
    counts = Text()
    for idx, sev in enumerate(SEVERITY_ORDER):
        if idx:
            counts.append("  ")
        counts.append(f"{sev}: {summary.by_severity.get(sev, 0)}", style=SEVERITY_STYLE[sev])
    console.print(counts)
    console.print(Text(f"Total violations: {summary.total_violations}", style="bold"))
    console.print(Text("─" * 60, style="dim"))


def sort_by_severity(violations: tuple[Violation, ...]) -> list[Violation]:
    return sorted(violations, key=lambda v: SEVERITY_ORDER.index(v.impact))
