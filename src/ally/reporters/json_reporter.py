from __future__ import annotations

import json
from typing import Any, cast

from ally.engine.scoring import REPORT_VERSION, empty_severity_counts
from ally.engine.types import (
    SEVERITY_ORDER,
    AllyReport,
    ReportSummary,
    ScanResult,
    Severity,
    TopIssue,
    Violation,
    ViolationNode,
)


def render_json(report: AllyReport) -> str:
    return json.dumps(report_to_dict(report), indent=2, ensure_ascii=False)


def report_to_dict(report: AllyReport) -> dict[str, Any]:
    return {
        "version": report.version,
        "scanDate": report.scan_date,
        "totalFiles": report.total_files,
        "results": [_result_to_dict(r) for r in report.results],
        "summary": {
            "totalViolations": report.summary.total_violations,
            "bySeverity": {sev: report.summary.by_severity.get(sev, 0) for sev in SEVERITY_ORDER},
            "score": report.summary.score,
            "topIssues": [
                {"id": t.id, "count": t.count, "description": t.description, "severity": t.severity}
                for t in report.summary.top_issues
            ],
        },
    }


def _result_to_dict(result: ScanResult) -> dict[str, Any]:
    out: dict[str, Any] = {"url": result.url}
    if result.file is not None:
        out["file"] = result.file
    out["timestamp"] = result.timestamp
    out["violations"] = [_violation_to_dict(v) for v in result.violations]
    out["passes"] = result.passes
    out["incomplete"] = result.incomplete
    return out


def _violation_to_dict(v: Violation) -> dict[str, Any]:
    return {
        "id": v.id,
        "impact": v.impact,
        "description": v.description,
        "help": v.help,
        "helpUrl": v.help_url,
        "tags": list(v.tags),
        "nodes": [
            {"html": n.html, "target": list(n.target), "failureSummary": n.failure_summary}
            for n in v.nodes
        ],
    }


def parse_json_report(text: str) -> AllyReport:
    """
    Parse a report produced by `render_json()` back into an `AllyReport`.

    This powers `ally report` / `explain` / `fix` / `badge`, which work from
    the saved scan instead of re-scanning. Raises ValueError (including
    `json.JSONDecodeError`) for content that is not an ally report.
    """

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Scan report must be a JSON object.")

    results_raw = data.get("results")
    if not isinstance(results_raw, list):
        raise ValueError("Scan report missing required field: results.")
    results = tuple(_parse_result(item) for item in results_raw if isinstance(item, dict))

    summary_raw = data.get("summary")
    if not isinstance(summary_raw, dict):
        raise ValueError("Scan report missing required field: summary.")

    total_files = data.get("totalFiles", len(results))
    return AllyReport(
        version=str(data.get("version", REPORT_VERSION)),
        scan_date=str(data.get("scanDate", "")),
        total_files=int(total_files) if isinstance(total_files, int) else len(results),
        results=results,
        summary=_parse_summary(summary_raw),
    )


def _severity(value: Any) -> Severity:
    normalized = str(value or "").strip().lower()
    if normalized in SEVERITY_ORDER:
        return cast(Severity, normalized)
    return "minor"


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(x) for x in value)


def _int(value: Any, default: int = 0) -> int:
    return int(value) if isinstance(value, int) and not isinstance(value, bool) else default


def _parse_result(item: dict[str, Any]) -> ScanResult:
    violations_raw = item.get("violations", [])
    if not isinstance(violations_raw, list):
        raise ValueError("Scan result `violations` must be a list.")
    file_raw = item.get("file")
    return ScanResult(
        url=str(item.get("url", "")),
        file=str(file_raw) if isinstance(file_raw, str) and file_raw else None,
        timestamp=str(item.get("timestamp", "")),
        violations=tuple(_parse_violation(v) for v in violations_raw if isinstance(v, dict)),
        passes=_int(item.get("passes")),
        incomplete=_int(item.get("incomplete")),
    )


def _parse_violation(item: dict[str, Any]) -> Violation:
    nodes_raw = item.get("nodes", [])
    nodes = tuple(
        ViolationNode(
            html=str(n.get("html", "")),
            target=_str_tuple(n.get("target")),
            failure_summary=str(n.get("failureSummary", "") or ""),
        )
        for n in (nodes_raw if isinstance(nodes_raw, list) else [])
        if isinstance(n, dict)
    )
    return Violation(
        id=str(item.get("id", "")),
        impact=_severity(item.get("impact")),
        description=str(item.get("description", "")),
        help=str(item.get("help", "")),
        help_url=str(item.get("helpUrl", "")),
        tags=_str_tuple(item.get("tags")),
        nodes=nodes,
    )


def _parse_summary(item: dict[str, Any]) -> ReportSummary:
    by_severity = empty_severity_counts()
    raw_by_severity = item.get("bySeverity", {})
    if isinstance(raw_by_severity, dict):
        for sev in SEVERITY_ORDER:
            by_severity[sev] = _int(raw_by_severity.get(sev))

    top_raw = item.get("topIssues", [])
    top_issues = tuple(
        TopIssue(
            id=str(t.get("id", "")),
            count=_int(t.get("count")),
            description=str(t.get("description", "")),
            severity=_severity(t.get("severity")),
        )
        for t in (top_raw if isinstance(top_raw, list) else [])
        if isinstance(t, dict)
    )

    return ReportSummary(
        total_violations=_int(item.get("totalViolations")),
        by_severity=by_severity,
        score=_int(item.get("score"), default=100),
        top_issues=top_issues,
    )
