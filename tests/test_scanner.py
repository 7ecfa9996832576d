from __future__ import annotations

import asyncio
import sys
import types
from pathlib import Path

import pytest
from helpers import make_result

from ally.errors import EngineUnavailableError, ScanError
from ally.scanner import (
    STANDARD_TAGS,
    AccessibilityScanner,
    convert_axe_results,
    discover_files,
    prepare_target,
    scan_files,
)
from ally.watch import WatchSession

AXE_RESPONSE = {
    "violations": [
        {
            "id": "image-alt",
            "impact": "critical",
            "description": "Ensures <img> elements have alternate text",
            "help": "Images must have alternate text",
            "helpUrl": "https://dequeuniversity.com/rules/axe/4.8/image-alt",
            "tags": ["cat.text-alternatives", "wcag2a", "wcag111"],
            "nodes": [
                {
                    "html": '<img src="logo.png">',
                    "target": ["img"],
                    "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
                },
                {"html": "<img>", "target": [["iframe", "img"]]},
            ],
        },
        {"id": "region", "impact": None, "nodes": []},
    ],
    "passes": [{"id": "document-title"}, {"id": "html-has-lang"}],
    "incomplete": [{"id": "color-contrast"}],
}


def _write(path: Path, text: str = "<!DOCTYPE html><html></html>") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_convert_axe_results_maps_violations() -> None:
    violations, passes, incomplete = convert_axe_results(AXE_RESPONSE)

    assert (passes, incomplete) == (2, 1)
    assert [v.id for v in violations] == ["image-alt", "region"]
    image_alt = violations[0]
    assert image_alt.impact == "critical"
    assert image_alt.help_url.endswith("image-alt")
    assert image_alt.wcag_tags == ("wcag2a", "wcag111")
    assert image_alt.nodes[0].target == ("img",)
    assert image_alt.nodes[1].target == ("iframe img",)
    assert image_alt.nodes[1].failure_summary == ""
    assert violations[1].impact == "minor"


def test_discover_files_walks_html_and_honors_ignores(tmp_path: Path) -> None:
    (tmp_path / ".allyignore").write_text("vendor/\n*.test.html\n", encoding="utf-8")
    index = _write(tmp_path / "index.html")
    about = _write(tmp_path / "pages" / "about.htm")
    _write(tmp_path / "pages" / "form.test.html")
    _write(tmp_path / "vendor" / "widget.html")
    _write(tmp_path / "node_modules" / "pkg" / "index.html")
    _write(tmp_path / ".ally" / "scan.html")
    _write(tmp_path / "notes.txt", "x")

    target = prepare_target(tmp_path)
    assert target.project_root == tmp_path.resolve()
    assert discover_files(target) == sorted([index.resolve(), about.resolve()])


def test_discover_single_file(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text('[tool.ally]\nignore = ["drafts/"]\n', encoding="utf-8")
    page = _write(tmp_path / "site" / "index.html")
    draft = _write(tmp_path / "drafts" / "wip.html")
    text = _write(tmp_path / "readme.md", "# hi")

    assert discover_files(prepare_target(page)) == [page.resolve()]
    assert discover_files(prepare_target(draft)) == []
    assert discover_files(prepare_target(text)) == []


def test_prepare_target_finds_project_root_upwards(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")
    nested = tmp_path / "public" / "docs"
    nested.mkdir(parents=True)
    target = prepare_target(nested)
    assert target.project_root == tmp_path.resolve()
    assert target.scan_path == nested.resolve()


def test_unknown_standard_is_rejected() -> None:
    with pytest.raises(ValueError):
        AccessibilityScanner(standard="wcag9")
    assert AccessibilityScanner(standard="wcag21aa").tags == STANDARD_TAGS["wcag21aa"]
    assert "wcag2a" in STANDARD_TAGS["wcag22aa"]


def test_scan_before_init_raises(tmp_path: Path) -> None:
    scanner = AccessibilityScanner()
    with pytest.raises(RuntimeError, match="not initialized"):
        asyncio.run(scanner.scan_html_file(_write(tmp_path / "a.html")))


def test_init_without_engine_packages_is_engine_unavailable(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "axe_playwright_python.async_playwright", None)
    monkeypatch.setitem(sys.modules, "playwright.async_api", None)
    with pytest.raises(EngineUnavailableError) as excinfo:
        asyncio.run(AccessibilityScanner().init())
    assert "pip install playwright axe-playwright-python" in excinfo.value.diagnosis


class _FakePage:
    def __init__(self, *, fail: Exception | None = None, close_fail: Exception | None = None) -> None:
        self.fail = fail
        self.close_fail = close_fail
        self.loaded: list[str] = []
        self.closed = False

    async def goto(self, url: str, **kwargs) -> None:
        if self.fail is not None:
            raise self.fail
        self.loaded.append(f"{url}|{kwargs['wait_until']}")

    async def set_content(self, html: str, **kwargs) -> None:
        self.loaded.append(html)

    async def close(self) -> None:
        self.closed = True
        if self.close_fail is not None:
            raise self.close_fail


class _FakeBrowser:
    def __init__(self, page: _FakePage, *, new_page_fail: Exception | None = None) -> None:
        self.page = page
        self.new_page_fail = new_page_fail

    async def new_page(self) -> _FakePage:
        if self.new_page_fail is not None:
            raise self.new_page_fail
        return self.page

    async def close(self) -> None:
        return None


class _FakeAxe:
    def __init__(self) -> None:
        self.options: list[dict] = []

    async def run(self, page, options=None):
        self.options.append(options)
        return types.SimpleNamespace(response=AXE_RESPONSE)


def _ready_scanner(page: _FakePage) -> tuple[AccessibilityScanner, _FakeAxe]:
    scanner = AccessibilityScanner(standard="wcag2aa")
    axe = _FakeAxe()
    scanner._browser = _FakeBrowser(page)
    scanner._axe = axe
    return scanner, axe


def test_scan_html_file_runs_axe_with_standard_tags(tmp_path: Path) -> None:
    page = _FakePage()
    scanner, axe = _ready_scanner(page)
    html_file = _write(tmp_path / "index.html")

    result = asyncio.run(scanner.scan_html_file(html_file))

    assert result.file == str(html_file)
    assert result.url == html_file.resolve().as_uri()
    assert page.loaded == [f"{html_file.resolve().as_uri()}|load"]
    assert page.closed is True
    assert axe.options == [{"runOnly": {"type": "tag", "values": ["wcag2a", "wcag2aa"]}}]
    assert [v.id for v in result.violations] == ["image-alt", "region"]
    assert result.passes == 2


def test_scan_url_and_html_string(tmp_path: Path) -> None:
    page = _FakePage()
    scanner, _ = _ready_scanner(page)

    url_result = asyncio.run(scanner.scan_url("https://example.com/"))
    assert url_result.file is None
    assert url_result.source == "https://example.com/"
    assert page.loaded[-1] == "https://example.com/|networkidle"

    inline = asyncio.run(scanner.scan_html_string("<p>hi</p>", label="snippet"))
    assert inline.source == "snippet"
    assert page.loaded[-1] == "<p>hi</p>"


def test_page_failure_becomes_scan_error(tmp_path: Path) -> None:
    page = _FakePage(fail=RuntimeError("net::ERR_NAME_NOT_RESOLVED at https://nope.invalid"))
    scanner, _ = _ready_scanner(page)

    with pytest.raises(ScanError) as excinfo:
        asyncio.run(scanner.scan_url("https://nope.invalid"))
    assert excinfo.value.source == "https://nope.invalid"
    assert "Could not resolve hostname" in str(excinfo.value)
    assert page.closed is True


def test_scan_files_records_failures_and_continues(tmp_path: Path) -> None:
    good = tmp_path / "good.html"
    bad = tmp_path / "bad.html"

    class _Engine:
        async def init(self) -> None:
            return None

        async def scan_html_file(self, path: Path):
            if path == bad:
                raise ScanError(str(path), "Page took too long to load")
            return make_result(str(path))

        async def close(self) -> None:
            return None

    done: list[Path] = []
    results, failures = asyncio.run(scan_files(_Engine(), [bad, good], on_done=done.append))

    assert [r.file for r in results] == [str(good)]
    assert [(f.source, f.error) for f in failures] == [(str(bad), "Page took too long to load")]
    assert done == [bad, good]


_BROWSER_CLOSED = "Target page, context or browser has been closed"


def test_page_close_failure_does_not_mask_scan_error(tmp_path: Path) -> None:
    page = _FakePage(fail=RuntimeError(_BROWSER_CLOSED), close_fail=RuntimeError(_BROWSER_CLOSED))
    scanner, _ = _ready_scanner(page)

    with pytest.raises(ScanError) as excinfo:
        asyncio.run(scanner.scan_html_file(_write(tmp_path / "index.html")))
    assert excinfo.value.source == str(tmp_path / "index.html")
    assert page.closed is True


def test_page_close_failure_after_successful_scan_is_ignored(tmp_path: Path) -> None:
    page = _FakePage(close_fail=RuntimeError(_BROWSER_CLOSED))
    scanner, _ = _ready_scanner(page)

    result = asyncio.run(scanner.scan_html_file(_write(tmp_path / "index.html")))
    assert [v.id for v in result.violations] == ["image-alt", "region"]


def test_new_page_failure_becomes_scan_error(tmp_path: Path) -> None:
    page = _FakePage()
    scanner, _ = _ready_scanner(page)
    scanner._browser = _FakeBrowser(page, new_page_fail=RuntimeError(_BROWSER_CLOSED))

    with pytest.raises(ScanError):
        asyncio.run(scanner.scan_html_file(_write(tmp_path / "index.html")))
    assert page.closed is False


def test_crashed_browser_is_reported_by_watch_cycle(tmp_path: Path) -> None:
    page = _FakePage(fail=RuntimeError(_BROWSER_CLOSED), close_fail=RuntimeError(_BROWSER_CLOSED))
    scanner, _ = _ready_scanner(page)
    html_file = _write(tmp_path / "index.html")
    session = WatchSession(scanner, root=tmp_path)

    outcome = asyncio.run(session.run_cycle(html_file))

    assert outcome.result is None
    assert outcome.error
    assert session.stats.errors == 1
