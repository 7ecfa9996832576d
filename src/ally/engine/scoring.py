from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Literal

from ally.engine.types import (
    SEVERITY_ORDER,
    AllyReport,
    ReportSummary,
    ScanResult,
    Severity,
    TopIssue,
)

REPORT_VERSION = "1.0.0"

# Penalty per affected node. Strictly ordered so that a single critical finding
# always outweighs any single lower-impact finding.
SEVERITY_WEIGHTS: dict[Severity, int] = {
    "critical": 25,
    "serious": 15,
    "moderate": 5,
    "minor": 1,
}

# A violation repeated on hundreds of nodes (e.g. contrast on every paragraph)
# should not zero the score on its own.
MAX_NODES_PER_VIOLATION = 10
MAX_PENALTY = 100
MAX_TOP_ISSUES = 5

ScoreTier = Literal["excellent", "good", "fair", "poor"]

_TIER_BADGE_COLOR: dict[ScoreTier, str] = {
    "excellent": "brightgreen",
    "good": "green",
    "fair": "yellow",
    "poor": "red",
}
_TIER_EMOJI: dict[ScoreTier, str] = {
    "excellent": "🌟",
    "good": "✅",
    "fair": "⚠️",
    "poor": "❌",
}
_TIER_STYLE: dict[ScoreTier, str] = {
    "excellent": "bold green",
    "good": "green",
    "fair": "yellow",
    "poor": "bold red",
}
_TIER_HEX: dict[ScoreTier, str] = {
    "excellent": "#16a34a",
    "good": "#65a30d",
    "fair": "#ca8a04",
    "poor": "#dc2626",
}


def score_tier(score: int) -> ScoreTier:
    """
    Map a 0-100 score onto the tier used by every output format.

    Markdown, HTML, badges and the terminal UI all go through this helper so a
    score never renders green in one place and yellow in another.
    """

    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def score_badge_color(score: int) -> str:
    return _TIER_BADGE_COLOR[score_tier(score)]


def score_emoji(score: int) -> str:
    return _TIER_EMOJI[score_tier(score)]


def score_style(score: int) -> str:
    return _TIER_STYLE[score_tier(score)]


def score_hex_color(score: int) -> str:
    return _TIER_HEX[score_tier(score)]


def violation_penalty(impact: Severity, node_count: int) -> int:
    nodes = min(max(int(node_count), 1), MAX_NODES_PER_VIOLATION)
    return SEVERITY_WEIGHTS.get(impact, 1) * nodes


def calculate_score(results: Iterable[ScanResult]) -> int:
    total_penalty = 0
    for result in results:
        for violation in result.violations:
            total_penalty += violation_penalty(violation.impact, len(violation.nodes))

    return max(0, 100 - min(total_penalty, MAX_PENALTY))


def empty_severity_counts() -> dict[Severity, int]:
    return {sev: 0 for sev in SEVERITY_ORDER}


def generate_summary(results: Iterable[ScanResult]) -> ReportSummary:
    results = tuple(results)
    by_severity = empty_severity_counts()
    issue_counts: dict[str, int] = {}
    issue_meta: dict[str, tuple[str, Severity]] = {}

    total = 0
    for result in results:
        for violation in result.violations:
            total += 1
            by_severity[violation.impact] = by_severity.get(violation.impact, 0) + 1
            if violation.id not in issue_counts:
                # dicts keep insertion order, which gives the first-seen tie-break below.
                issue_counts[violation.id] = 0
                issue_meta[violation.id] = (violation.help, violation.impact)
            issue_counts[violation.id] += 1

    ranked = sorted(issue_counts.items(), key=lambda item: -item[1])
    top_issues = tuple(
        TopIssue(id=issue_id, count=count, description=issue_meta[issue_id][0], severity=issue_meta[issue_id][1])
        for issue_id, count in ranked[:MAX_TOP_ISSUES]
    )

    return ReportSummary(
        total_violations=total,
        by_severity=by_severity,
        score=calculate_score(results),
        top_issues=top_issues,
    )


def create_report(results: Iterable[ScanResult], *, now: datetime | None = None) -> AllyReport:
    results = tuple(results)
    scan_date = (now or datetime.now(UTC)).isoformat()
    return AllyReport(
        version=REPORT_VERSION,
        scan_date=scan_date,
        total_files=len(results),
        results=results,
        summary=generate_summary(results),
    )
