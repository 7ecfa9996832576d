from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ally.engine.types import SEVERITY_ORDER, AllyReport, Severity
from ally.utils import report_path

DEFAULT_BASELINE_PATH = Path(".ally") / "baseline.json"


class BaselineError(RuntimeError):
    """Raised when a baseline file is invalid or cannot be processed."""


@dataclass(frozen=True, slots=True)
class Baseline:
    timestamp: str
    # report path (relative file path or URL) -> violation count
    violations: dict[str, int]
    total_violations: int
    by_severity: dict[Severity, int]


@dataclass(frozen=True, slots=True)
class FileDelta:
    file: str
    count: int


@dataclass(frozen=True, slots=True)
class RegressionAnalysis:
    improved: int
    regressed: int
    unchanged: int
    improvement_percentage: float
    regression_percentage: float
    new_violations: tuple[FileDelta, ...] = field(default=())
    fixed_violations: tuple[FileDelta, ...] = field(default=())

    @property
    def has_regressions(self) -> bool:
        return self.regressed > 0


def build_baseline(report: AllyReport, *, project_root: Path, now: datetime | None = None) -> Baseline:
    violations: dict[str, int] = {}
    for result in report.results:
        key = report_path(result.source, project_root) or "unknown"
        violations[key] = violations.get(key, 0) + len(result.violations)

    return Baseline(
        timestamp=(now or datetime.now(UTC)).isoformat(),
        violations=violations,
        total_violations=report.summary.total_violations,
        by_severity={sev: report.summary.by_severity.get(sev, 0) for sev in SEVERITY_ORDER},
    )


def save_baseline(baseline: Baseline, path: Path) -> None:
    payload: dict[str, Any] = {
        "timestamp": baseline.timestamp,
        "violations": dict(sorted(baseline.violations.items())),
        "summary": {
            "totalViolations": baseline.total_violations,
            **{f"{sev}Count": baseline.by_severity.get(sev, 0) for sev in SEVERITY_ORDER},
        },
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def load_baseline(path: Path) -> Baseline:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise BaselineError(f"Failed to read baseline: {path}") from exc

    if not isinstance(data, dict):
        raise BaselineError("Baseline must be a JSON object.")

    raw_violations = data.get("violations", {})
    if not isinstance(raw_violations, dict):
        raise BaselineError("Baseline `violations` must be an object.")
    violations = {
        str(file): int(count)
        for file, count in raw_violations.items()
        if isinstance(count, int) and not isinstance(count, bool)
    }

    summary = data.get("summary", {})
    if not isinstance(summary, dict):
        summary = {}

    def _count(key: str) -> int:
        value = summary.get(key, 0)
        return value if isinstance(value, int) and not isinstance(value, bool) else 0

    return Baseline(
        timestamp=str(data.get("timestamp", "")),
        violations=violations,
        total_violations=_count("totalViolations"),
        by_severity={sev: _count(f"{sev}Count") for sev in SEVERITY_ORDER},
    )


def compare_with_baseline(current: Baseline, previous: Baseline) -> RegressionAnalysis:
    """
    Classify each file in `current` against `previous`.

    Files absent from the previous baseline count once as regressed (all their
    violations are new), or as unchanged when they are clean. Percentages are
    relative to the current file count.
    """

    improved = regressed = unchanged = 0
    new_violations: list[FileDelta] = []
    fixed_violations: list[FileDelta] = []

    for file, count in current.violations.items():
        if file not in previous.violations:
            if count:
                regressed += 1
                new_violations.append(FileDelta(file=file, count=count))
            else:
                unchanged += 1
            continue

        before = previous.violations[file]
        if count < before:
            improved += 1
            fixed_violations.append(FileDelta(file=file, count=before - count))
        elif count > before:
            regressed += 1
            new_violations.append(FileDelta(file=file, count=count - before))
        else:
            unchanged += 1

    total = len(current.violations)
    return RegressionAnalysis(
        improved=improved,
        regressed=regressed,
        unchanged=unchanged,
        improvement_percentage=(improved / total * 100) if total else 0.0,
        regression_percentage=(regressed / total * 100) if total else 0.0,
        new_violations=tuple(new_violations),
        fixed_violations=tuple(fixed_violations),
    )
