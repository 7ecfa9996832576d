from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Severity = Literal["critical", "serious", "moderate", "minor"]

# Most severe first. Reporters and the watch output rely on this ordering.
SEVERITY_ORDER: tuple[Severity, ...] = ("critical", "serious", "moderate", "minor")


@dataclass(frozen=True, slots=True)
class ViolationNode:
    html: str
    target: tuple[str, ...] = ()
    failure_summary: str = ""


@dataclass(frozen=True, slots=True)
class Violation:
    id: str
    impact: Severity
    description: str
    help: str
    help_url: str
    tags: tuple[str, ...] = ()
    nodes: tuple[ViolationNode, ...] = ()

    @property
    def wcag_tags(self) -> tuple[str, ...]:
        return tuple(t for t in self.tags if t.startswith("wcag"))


@dataclass(frozen=True, slots=True)
class ScanResult:
    url: str
    timestamp: str
    violations: tuple[Violation, ...] = ()
    passes: int = 0
    incomplete: int = 0
    file: str | None = None

    @property
    def source(self) -> str:
        """File path when a file was scanned, otherwise the page URL."""

        return self.file or self.url


@dataclass(frozen=True, slots=True)
class TopIssue:
    id: str
    count: int
    description: str
    severity: Severity


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total_violations: int
    by_severity: dict[Severity, int]
    score: int
    top_issues: tuple[TopIssue, ...] = ()


@dataclass(frozen=True, slots=True)
class AllyReport:
    version: str
    scan_date: str
    total_files: int
    results: tuple[ScanResult, ...]
    summary: ReportSummary
