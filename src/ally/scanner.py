from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol, cast

from ally.config import (
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_STANDARD,
    DEFAULT_TIMEOUT_MS,
    AllyConfig,
    load_config,
    load_ignore_patterns,
    path_is_ignored,
)
from ally.engine.types import SEVERITY_ORDER, ScanResult, Severity, Violation, ViolationNode
from ally.errors import EngineUnavailableError, ScanError, diagnose_browser_error

logger = logging.getLogger(__name__)

HTML_EXTENSIONS: frozenset[str] = frozenset({".html", ".htm"})

DEFAULT_SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    ".venv",
    "venv",
    ".ally",
    "node_modules",
    "dist",
    "build",
    "__pycache__",
}

# axe-core tags are cumulative: AA conformance also requires every A criterion.
STANDARD_TAGS: dict[str, tuple[str, ...]] = {
    "wcag2a": ("wcag2a",),
    "wcag2aa": ("wcag2a", "wcag2aa"),
    "wcag2aaa": ("wcag2a", "wcag2aa", "wcag2aaa"),
    "wcag21a": ("wcag2a", "wcag21a"),
    "wcag21aa": ("wcag2a", "wcag2aa", "wcag21a", "wcag21aa"),
    "wcag21aaa": ("wcag2a", "wcag2aa", "wcag2aaa", "wcag21a", "wcag21aa", "wcag21aaa"),
    "wcag22aa": ("wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "wcag22aa"),
    "section508": ("section508",),
    "best-practice": ("best-practice",),
}


class ScanEngine(Protocol):
    """The part of `AccessibilityScanner` the CLI and watch session depend on."""

    async def init(self) -> None: ...

    async def scan_html_file(self, path: Path) -> ScanResult: ...

    async def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class ScanTarget:
    project_root: Path
    scan_path: Path
    config: AllyConfig
    ignore_patterns: tuple[str, ...]


def prepare_target(scan_path: Path) -> ScanTarget:
    """
    Resolve project root and load configuration.

    The project root is the closest directory containing a `pyproject.toml`,
    `package.json` or `.allyignore`, falling back to the scanned directory.
    """

    scan_path = scan_path.resolve()
    project_root = _detect_project_root(scan_path)
    config = load_config(project_root)
    ignore_patterns = (*config.ignore, *load_ignore_patterns(project_root))
    return ScanTarget(project_root=project_root, scan_path=scan_path, config=config, ignore_patterns=ignore_patterns)


def discover_files(target: ScanTarget) -> list[Path]:
    scan_path = target.scan_path
    root = target.project_root
    ignore_patterns = (*DEFAULT_IGNORE_PATTERNS, *target.ignore_patterns)

    if scan_path.is_file():
        if scan_path.suffix.lower() not in HTML_EXTENSIONS:
            return []
        if path_is_ignored(scan_path, project_root=root, ignore_patterns=target.ignore_patterns):
            return []
        return [scan_path]

    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(scan_path, topdown=True):
        dirnames[:] = [d for d in dirnames if d not in DEFAULT_SKIP_DIRS]
        base = Path(dirpath)

        for filename in filenames:
            path = base / filename
            if path.suffix.lower() not in HTML_EXTENSIONS:
                continue
            if path_is_ignored(path, project_root=root, ignore_patterns=ignore_patterns):
                continue
            files.append(path)

    return sorted(set(files))


def convert_axe_results(raw: Mapping[str, Any]) -> tuple[tuple[Violation, ...], int, int]:
    """
    Map an axe-core results object onto the violation model.

    Returns `(violations, passes, incomplete)`. A missing impact is treated as
    `minor`; shadow-DOM/iframe targets (nested lists) are joined with a space.
    """

    violations: list[Violation] = []
    for item in raw.get("violations", []) or []:
        if not isinstance(item, Mapping):
            continue
        nodes = tuple(
            ViolationNode(
                html=str(node.get("html", "")),
                target=tuple(_target_part(t) for t in node.get("target", []) or []),
                failure_summary=str(node.get("failureSummary") or ""),
            )
            for node in item.get("nodes", []) or []
            if isinstance(node, Mapping)
        )
        violations.append(
            Violation(
                id=str(item.get("id", "")),
                impact=_impact(item.get("impact")),
                description=str(item.get("description", "")),
                help=str(item.get("help", "")),
                help_url=str(item.get("helpUrl", "")),
                tags=tuple(str(t) for t in item.get("tags", []) or []),
                nodes=nodes,
            )
        )

    return tuple(violations), len(raw.get("passes", []) or []), len(raw.get("incomplete", []) or [])


def _impact(value: Any) -> Severity:
    normalized = str(value or "").strip().lower()
    if normalized in SEVERITY_ORDER:
        return cast(Severity, normalized)
    return "minor"


def _target_part(value: Any) -> str:
    if isinstance(value, list | tuple):
        return " ".join(str(v) for v in value)
    return str(value)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class AccessibilityScanner:
    """
    Headless Chromium + axe-core.

    One browser for the scanner's lifetime, one page per scan. Callers must
    not run two scans on the same instance concurrently.
    """

    def __init__(
        self,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        standard: str = DEFAULT_STANDARD,
        headless: bool = True,
    ) -> None:
        if standard not in STANDARD_TAGS:
            raise ValueError(f"Unknown standard: {standard!r}")
        self.timeout_ms = timeout_ms
        self.standard = standard
        self.headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._axe: Any = None

    @property
    def tags(self) -> tuple[str, ...]:
        return STANDARD_TAGS[self.standard]

    async def __aenter__(self) -> AccessibilityScanner:
        await self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def init(self) -> None:
        if self._browser is not None:
            return
        try:
            from axe_playwright_python.async_playwright import Axe
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise EngineUnavailableError(
                f"Browser engine is not installed: {exc}",
                diagnosis="Install the scan engine: pip install playwright axe-playwright-python",
            ) from exc

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
        except Exception as exc:
            await self.close()
            raise EngineUnavailableError(str(exc), diagnosis=diagnose_browser_error(exc)) from exc
        self._axe = Axe()
        logger.debug("Chromium started (headless=%s, standard=%s)", self.headless, self.standard)

    async def close(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                logger.debug("Ignoring error while closing browser: %s", exc)
        if playwright is not None:
            await playwright.stop()

    async def scan_html_file(self, path: Path) -> ScanResult:
        uri = path.resolve().as_uri()
        return await self._scan(uri, file=str(path), load=lambda page: page.goto(uri, wait_until="load", timeout=self.timeout_ms))

    async def scan_url(self, url: str) -> ScanResult:
        return await self._scan(url, file=None, load=lambda page: page.goto(url, wait_until="networkidle", timeout=self.timeout_ms))

    async def scan_html_string(self, html: str, label: str = "inline") -> ScanResult:
        return await self._scan(
            label,
            file=label,
            load=lambda page: page.set_content(html, wait_until="domcontentloaded", timeout=self.timeout_ms),
        )

    async def _scan(self, url: str, *, file: str | None, load: Callable[[Any], Any]) -> ScanResult:
        if self._browser is None or self._axe is None:
            raise RuntimeError("Scanner not initialized. Call init() first.")

        page = None
        try:
            page = await self._browser.new_page()
            await load(page)
            results = await self._axe.run(page, options={"runOnly": {"type": "tag", "values": list(self.tags)}})
        except Exception as exc:
            raise ScanError(file or url, diagnose_browser_error(exc)) from exc
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as exc:
                    logger.debug("Ignoring error while closing page: %s", exc)

        violations, passes, incomplete = convert_axe_results(results.response)
        logger.debug("Scanned %s: %d violations", file or url, len(violations))
        return ScanResult(
            url=url,
            file=file,
            timestamp=_now(),
            violations=violations,
            passes=passes,
            incomplete=incomplete,
        )


@dataclass(frozen=True, slots=True)
class FailedScan:
    source: str
    error: str


async def scan_files(
    engine: ScanEngine,
    files: Iterable[Path],
    *,
    on_done: Callable[[Path], None] | None = None,
) -> tuple[list[ScanResult], list[FailedScan]]:
    """
    Scan `files` one after another on a single engine.

    A file that fails is recorded and skipped; the remaining files still run.
    """

    results: list[ScanResult] = []
    failures: list[FailedScan] = []
    for path in files:
        try:
            results.append(await engine.scan_html_file(path))
        except ScanError as exc:
            logger.warning("Failed to scan %s: %s", path, exc)
            failures.append(FailedScan(source=str(path), error=str(exc)))
        if on_done is not None:
            on_done(path)
    return results, failures


def _detect_project_root(start: Path) -> Path:
    base = start if start.is_dir() else start.parent
    for candidate in [base, *base.parents]:
        if any((candidate / marker).exists() for marker in ("pyproject.toml", "package.json", ".allyignore")):
            return candidate
    return base
