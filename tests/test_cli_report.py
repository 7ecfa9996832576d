from __future__ import annotations

import json
from pathlib import Path

from helpers import make_report, make_result, make_violation
from typer.testing import CliRunner

from ally.cli import app
from ally.store import save_report


def _saved_report(tmp_path: Path) -> Path:
    report = make_report(
        make_result(
            str(tmp_path / "index.html"),
            make_violation("image-alt", "critical"),
            make_violation("html-has-lang", "serious", html="<html>"),
        ),
        make_result(str(tmp_path / "about.html")),
    )
    return save_report(report, tmp_path / ".ally" / "scan.json")


def test_report_defaults_to_accessibility_md(tmp_path: Path, monkeypatch) -> None:
    _saved_report(tmp_path)
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["report"])
    assert res.exit_code == 0, res.output

    md = (tmp_path / "ACCESSIBILITY.md").read_text(encoding="utf-8")
    assert "## Score: 60/100" in md
    assert "| ⚠️ index.html | 2 |" in md
    assert "Badge for README" in res.output
    assert "a11y_score-60%25-yellow" in res.output


def test_report_uses_format_default_name_when_extension_mismatches(tmp_path: Path, monkeypatch) -> None:
    _saved_report(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    assert runner.invoke(app, ["report", "--format", "html"]).exit_code == 0
    assert (tmp_path / "accessibility.html").read_text(encoding="utf-8").startswith("<!DOCTYPE html>")

    assert runner.invoke(app, ["report", "--format", "json", "--output", "reports/a11y.json"]).exit_code == 0
    payload = json.loads((tmp_path / "reports" / "a11y.json").read_text(encoding="utf-8"))
    assert payload["summary"]["score"] == 60

    assert runner.invoke(app, ["report", "--format", "junit"]).exit_code == 0
    assert (tmp_path / "accessibility.junit.xml").exists()


def test_report_all_writes_every_format(tmp_path: Path, monkeypatch) -> None:
    _saved_report(tmp_path)
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["report", "--format", "all"])
    assert res.exit_code == 0, res.output
    for name in (
        "ACCESSIBILITY.md",
        "accessibility.html",
        "accessibility.json",
        "accessibility.sarif",
        "accessibility.junit.xml",
        "accessibility.csv",
    ):
        assert (tmp_path / name).exists(), name
    assert "Generated 6 report files" in res.output


def test_report_without_scan_results_guides_user(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["report"])
    assert res.exit_code == 0
    assert "No scan results found" in res.output
    assert "Run 'ally scan' first" in res.output
    assert not (tmp_path / "ACCESSIBILITY.md").exists()


def test_report_with_corrupted_results_exits_2(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / ".ally").mkdir()
    (tmp_path / ".ally" / "scan.json").write_text("{broken", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["report"])
    assert res.exit_code == 2
    assert "appears to be corrupted" in res.output


def test_report_rejects_unknown_format(tmp_path: Path, monkeypatch) -> None:
    _saved_report(tmp_path)
    monkeypatch.chdir(tmp_path)
    assert CliRunner().invoke(app, ["report", "--format", "pdf"]).exit_code == 2


def test_badge_formats(tmp_path: Path, monkeypatch) -> None:
    _saved_report(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    url = runner.invoke(app, ["badge"])
    assert url.exit_code == 0
    assert url.stdout.strip() == "https://img.shields.io/badge/a11y_score-60%25-yellow"

    md = runner.invoke(app, ["badge", "--format", "markdown"])
    assert md.stdout.strip().startswith("![Accessibility Score](")

    svg = runner.invoke(app, ["badge", "--format", "svg", "--output", "badge.svg"])
    assert svg.exit_code == 0
    assert (tmp_path / "badge.svg").read_text(encoding="utf-8").startswith("<svg")

    assert runner.invoke(app, ["badge", "--format", "png"]).exit_code == 2
