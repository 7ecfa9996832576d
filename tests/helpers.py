from __future__ import annotations

from datetime import UTC, datetime

from ally.engine.scoring import create_report
from ally.engine.types import AllyReport, ScanResult, Severity, Violation, ViolationNode


def make_violation(
    rule_id: str = "image-alt",
    impact: Severity = "critical",
    *,
    nodes: int = 1,
    html: str = '<img src="/img/hero-banner.png">',
    tags: tuple[str, ...] = ("wcag2a", "wcag111", "cat.text-alternatives"),
) -> Violation:
    return Violation(
        id=rule_id,
        impact=impact,
        description=f"{rule_id} description",
        help=f"{rule_id} help",
        help_url=f"https://dequeuniversity.com/rules/axe/4.8/{rule_id}",
        tags=tags,
        nodes=tuple(
            ViolationNode(html=html, target=(f"#n{i}",), failure_summary="Fix any of the following: missing") for i in range(nodes)
        ),
    )


def make_result(file: str | None = "index.html", *violations: Violation, url: str | None = None) -> ScanResult:
    return ScanResult(
        url=url or (f"file:///site/{file}" if file else "https://example.com/"),
        timestamp="2026-01-01T00:00:00+00:00",
        violations=tuple(violations),
        passes=3,
        incomplete=1,
        file=file,
    )


def make_report(*results: ScanResult) -> AllyReport:
    return create_report(results, now=datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC))


class FakeScanner:
    """Stands in for `AccessibilityScanner`: flags a bare <html> tag as html-has-lang."""

    instances: list[FakeScanner] = []
    init_error: Exception | None = None

    def __init__(self, *, timeout_ms: int = 30_000, standard: str = "wcag22aa", headless: bool = True) -> None:
        self.timeout_ms = timeout_ms
        self.standard = standard
        self.scanned: list[str] = []
        self.closed = False
        FakeScanner.instances.append(self)

    async def __aenter__(self) -> FakeScanner:
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def init(self) -> None:
        if FakeScanner.init_error is not None:
            raise FakeScanner.init_error

    async def scan_html_file(self, path) -> ScanResult:
        self.scanned.append(str(path))
        text = path.read_text(encoding="utf-8")
        violations = [make_violation("html-has-lang", "serious", html="<html>")] if "<html>" in text else []
        return make_result(str(path), *violations)

    async def scan_url(self, url: str) -> ScanResult:
        self.scanned.append(url)
        return make_result(None, make_violation("region", "moderate", html="<p>loose</p>"), url=url)

    async def close(self) -> None:
        self.closed = True
