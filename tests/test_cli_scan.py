from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from ally import __version__
from ally.cli import app
from ally.errors import EngineUnavailableError

BROKEN = "<!DOCTYPE html>\n<html>\n<body><h1>Hi</h1></body>\n</html>\n"
CLEAN = '<!DOCTYPE html>\n<html lang="en">\n<body><h1>Hi</h1></body>\n</html>\n'


def _site(tmp_path: Path) -> Path:
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'site'\n", encoding="utf-8")
    (tmp_path / "public").mkdir()
    (tmp_path / "public" / "index.html").write_text(BROKEN, encoding="utf-8")
    (tmp_path / "public" / "about.html").write_text(CLEAN, encoding="utf-8")
    return tmp_path


def test_version_flag() -> None:
    res = CliRunner().invoke(app, ["--version"])
    assert res.exit_code == 0
    assert res.output.strip() == __version__


def test_verbose_and_quiet_are_mutually_exclusive() -> None:
    res = CliRunner().invoke(app, ["-v", "-q", "badge"])
    assert res.exit_code == 2
    assert "Choose at most one" in res.output


def test_scan_saves_results_and_prints_summary(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(_site(tmp_path))

    res = CliRunner().invoke(app, ["scan", "public"])
    assert res.exit_code == 0, res.output

    saved = json.loads((tmp_path / ".ally" / "scan.json").read_text(encoding="utf-8"))
    assert saved["totalFiles"] == 2
    assert saved["summary"]["score"] == 85
    assert saved["summary"]["bySeverity"]["serious"] == 1
    assert "Score: 85/100" in res.output
    assert len(fake_scanner.instances[0].scanned) == 2
    assert fake_scanner.instances[0].closed is True


def test_scan_json_prints_report_to_stdout(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(_site(tmp_path))

    res = CliRunner().invoke(app, ["scan", "public", "--json"])
    assert res.exit_code == 0, res.output
    payload = json.loads(res.stdout)
    assert payload["summary"]["totalViolations"] == 1


def test_scan_writes_extra_format_artifact(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(_site(tmp_path))

    res = CliRunner().invoke(app, ["scan", "public", "--format", "sarif", "--output", "out"])
    assert res.exit_code == 0, res.output
    assert (tmp_path / "out" / "scan.json").exists()
    sarif = json.loads((tmp_path / "out" / "scan.sarif").read_text(encoding="utf-8"))
    uri = sarif["runs"][0]["results"][0]["locations"][0]["physicalLocation"]["artifactLocation"]["uri"]
    assert uri == "public/index.html"


def test_scan_threshold_and_fail_on(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(_site(tmp_path))
    runner = CliRunner()

    failed = runner.invoke(app, ["scan", "public", "--threshold", "0"])
    assert failed.exit_code == 1
    assert "Threshold exceeded" in failed.output

    assert runner.invoke(app, ["scan", "public", "--threshold", "1"]).exit_code == 0
    # Only critical findings count; the page has a serious one.
    assert runner.invoke(app, ["scan", "public", "--fail-on", "critical"]).exit_code == 0
    assert runner.invoke(app, ["scan", "public", "--fail-on", "serious,critical"]).exit_code == 1


def test_scan_uses_config_defaults(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    _site(tmp_path)
    (tmp_path / "pyproject.toml").write_text(
        '[tool.ally]\nstandard = "wcag21aa"\ntimeout = 1234\noutput = "a11y"\nthreshold = 0\n',
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["scan", "public"])
    assert res.exit_code == 1
    assert (tmp_path / "a11y" / "scan.json").exists()
    assert fake_scanner.instances[0].standard == "wcag21aa"
    assert fake_scanner.instances[0].timeout_ms == 1234


def test_scan_url(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["scan", "--url", "https://example.com/", "--json"])
    assert res.exit_code == 0, res.output
    payload = json.loads(res.stdout)
    assert payload["results"][0]["url"] == "https://example.com/"
    assert "file" not in payload["results"][0]


def test_scan_without_html_files(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["scan", "."])
    assert res.exit_code == 0
    assert "No HTML files found" in res.output
    assert fake_scanner.instances == []
    assert not (tmp_path / ".ally" / "scan.json").exists()


def test_scan_reports_engine_diagnosis(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(_site(tmp_path))
    fake_scanner.init_error = EngineUnavailableError(
        "Executable doesn't exist",
        diagnosis="Chromium browser not found",
    )

    res = CliRunner().invoke(app, ["scan", "public"])
    assert res.exit_code == 2
    assert "Chromium browser not found" in res.output


def test_scan_rejects_invalid_options(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    monkeypatch.chdir(_site(tmp_path))
    runner = CliRunner()
    assert runner.invoke(app, ["scan", "public", "--format", "pdf"]).exit_code == 2
    assert runner.invoke(app, ["scan", "public", "--standard", "wcag9"]).exit_code == 2
    assert runner.invoke(app, ["scan", "public", "--fail-on", "fatal"]).exit_code == 2


def test_scan_invalid_config_exits_2(tmp_path: Path, fake_scanner, monkeypatch) -> None:
    _site(tmp_path)
    (tmp_path / "pyproject.toml").write_text('[tool.ally]\nformat = "pdf"\n', encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    res = CliRunner().invoke(app, ["scan", "public"])
    assert res.exit_code == 2
    assert "Invalid configuration" in res.output
