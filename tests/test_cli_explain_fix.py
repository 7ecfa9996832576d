from __future__ import annotations

from pathlib import Path

from helpers import make_report, make_result, make_violation
from typer.testing import CliRunner

from ally.cli import app
from ally.store import save_report

PAGE = """<!DOCTYPE html>
<html>
<body>
  <img src="/img/team-photo.jpg">
  <div tabindex="4">Card</div>
</body>
</html>
"""


def _project(tmp_path: Path) -> Path:
    page = tmp_path / "index.html"
    page.write_text(PAGE, encoding="utf-8")
    report = make_report(
        make_result(
            str(page),
            make_violation("html-has-lang", "serious", html="<html>"),
            make_violation("image-alt", "critical", html='<img src="/img/team-photo.jpg">'),
            make_violation("tabindex", "serious", html='<div tabindex="4">Card</div>'),
            make_violation("scope-attr-valid", "moderate", html="<td scope='x'></td>"),
        ),
        make_result(str(tmp_path / "about.html"), make_violation("image-alt", "critical")),
    )
    save_report(report, tmp_path / ".ally" / "scan.json")
    return page


def test_explain_lists_unique_violations(tmp_path: Path, monkeypatch) -> None:
    _project(tmp_path)
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["explain"])
    assert res.exit_code == 0, res.output
    assert "Accessibility Issues Explained" in res.output
    assert res.output.count("Images are missing alt text") == 1
    assert "Who it affects" in res.output
    assert "scope-attr-valid description" in res.output
    assert "Fix issues directly with: ally fix" in res.output


def test_explain_severity_and_limit(tmp_path: Path, monkeypatch) -> None:
    _project(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    critical = runner.invoke(app, ["explain", "--severity", "critical"])
    assert critical.exit_code == 0
    assert "Images are missing alt text" in critical.output
    assert "doesn't specify a language" not in critical.output

    limited = runner.invoke(app, ["explain", "--limit", "1"])
    assert "doesn't specify a language" in limited.output
    assert "Images are missing alt text" not in limited.output

    nothing = runner.invoke(app, ["explain", "--severity", "minor"])
    assert "No violations to explain." in nothing.output


def test_explain_single_rule_without_report(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    res = runner.invoke(app, ["explain", "button-name"])
    assert res.exit_code == 0, res.output
    assert "accessible names" in res.output
    assert "4.1.2" in res.output

    unknown = runner.invoke(app, ["explain", "not-a-rule"])
    assert unknown.exit_code == 2


def test_explain_without_report_guides_user(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    res = CliRunner().invoke(app, ["explain"])
    assert res.exit_code == 0
    assert "No scan results found" in res.output


def test_fix_dry_run_prints_diff_without_writing(tmp_path: Path, monkeypatch) -> None:
    page = _project(tmp_path)
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["fix", "--dry-run"])
    assert res.exit_code == 0, res.output
    assert '+<html lang="en">' in res.output
    assert "Would apply 2 fixes to 1 file." in res.output
    assert page.read_text(encoding="utf-8") == PAGE


def test_fix_applies_high_confidence_fixes_with_backup(tmp_path: Path, monkeypatch) -> None:
    page = _project(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    res = runner.invoke(app, ["fix", "--backup"])
    assert res.exit_code == 0, res.output
    text = page.read_text(encoding="utf-8")
    assert '<html lang="en">' in text
    assert '<div tabindex="0">Card</div>' in text
    assert '<img src="/img/team-photo.jpg">' in text
    assert (tmp_path / "index.html.ally.bak").read_text(encoding="utf-8") == PAGE

    again = runner.invoke(app, ["fix"])
    assert again.exit_code == 0
    assert "No changes needed." in again.output


def test_fix_min_confidence_and_severity(tmp_path: Path, monkeypatch) -> None:
    page = _project(tmp_path)
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    res = runner.invoke(app, ["fix", "--severity", "critical", "--min-confidence", "0.5"])
    assert res.exit_code == 0, res.output
    text = page.read_text(encoding="utf-8")
    assert 'alt="team photo"' in text
    assert "<html>" in text

    assert runner.invoke(app, ["fix", "--min-confidence", "1.5"]).exit_code == 2


def test_fix_uses_configured_threshold(tmp_path: Path, monkeypatch) -> None:
    page = _project(tmp_path)
    (tmp_path / "pyproject.toml").write_text("[tool.ally]\nfix-threshold = 0.99\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["fix"])
    assert res.exit_code == 0, res.output
    assert "No changes needed." in res.output
    assert page.read_text(encoding="utf-8") == PAGE
