from __future__ import annotations

from pathlib import Path

from ally.utils import plural, report_path, safe_relpath


def test_safe_relpath_returns_relative_path_when_under_root(tmp_path: Path) -> None:
    path = tmp_path / "site" / "index.html"
    assert safe_relpath(path, tmp_path) == "site/index.html"


def test_safe_relpath_falls_back_when_not_under_root(tmp_path: Path) -> None:
    assert safe_relpath(Path("foo/bar.html"), tmp_path) == "foo/bar.html"


def test_safe_relpath_handles_resolve_oserror(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "site" / "index.html"

    def _boom(self: Path, strict: bool = False) -> Path:
        raise OSError("boom")

    monkeypatch.setattr(type(tmp_path), "resolve", _boom)
    assert safe_relpath(path, tmp_path) == "site/index.html"


def test_report_path_keeps_urls_and_relativizes_files(tmp_path: Path) -> None:
    assert report_path("https://example.com/a", tmp_path) == "https://example.com/a"
    assert report_path(str(tmp_path / "a.html"), tmp_path) == "a.html"
    assert report_path((tmp_path / "b.html").as_uri(), tmp_path) == "b.html"


def test_plural() -> None:
    assert plural(1, "file") == "1 file"
    assert plural(2, "file") == "2 files"
    assert plural(3, "fix", "fixes") == "3 fixes"
