from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ally import __version__
from ally.engine.types import AllyReport, Severity, Violation, ViolationNode
from ally.utils import report_path

SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"
SARIF_VERSION = "2.1.0"

_SARIF_LEVEL: dict[Severity, str] = {
    "critical": "error",
    "serious": "error",
    "moderate": "warning",
    "minor": "note",
}


def render_sarif(report: AllyReport, *, project_root: Path) -> str:
    return json.dumps(build_sarif(report, project_root=project_root), indent=2, sort_keys=False)


def build_sarif(report: AllyReport, *, project_root: Path) -> dict[str, Any]:
    """
    Build a SARIF 2.1.0 log for `report`.

    One rule per distinct violation id (first occurrence wins for the text),
    one result per affected node.
    """

    driver_rules: list[dict[str, Any]] = []
    rule_index: dict[str, int] = {}
    results: list[dict[str, Any]] = []

    for scan in report.results:
        uri = report_path(scan.source, project_root)
        for violation in scan.violations:
            if violation.id not in rule_index:
                rule_index[violation.id] = len(driver_rules)
                driver_rules.append(_rule(violation))
            for node in violation.nodes:
                results.append(_result(violation, node, uri=uri, rule_index=rule_index[violation.id]))

    return {
        "$schema": SARIF_SCHEMA,
        "version": SARIF_VERSION,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "ally",
                        "version": __version__,
                        "informationUri": "https://github.com/dequelabs/axe-core",
                        "rules": driver_rules,
                    }
                },
                "results": results,
            }
        ],
    }


def _rule(v: Violation) -> dict[str, Any]:
    return {
        "id": v.id,
        "name": v.id,
        "shortDescription": {"text": v.help},
        "fullDescription": {"text": v.description},
        "helpUri": v.help_url,
        "defaultConfiguration": {"level": sarif_level(v.impact)},
        "properties": {"tags": list(v.tags)},
    }


def _result(v: Violation, node: ViolationNode, *, uri: str, rule_index: int) -> dict[str, Any]:
    message = v.help
    if node.failure_summary:
        message = f"{v.help}. {node.failure_summary}"

    return {
        "ruleId": v.id,
        "ruleIndex": rule_index,
        "level": sarif_level(v.impact),
        "message": {"text": message},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {"uri": uri, "uriBaseId": "%SRCROOT%"},
                    # axe reports DOM nodes, not source positions.
                    "region": {"startLine": 1, "snippet": {"text": node.html}},
                }
            }
        ],
    }


def sarif_level(impact: Severity) -> str:
    return _SARIF_LEVEL.get(impact, "note")
