from __future__ import annotations

import csv
import dataclasses
import io
import xml.etree.ElementTree as ET
from pathlib import Path

from helpers import make_report, make_result, make_violation

from ally.reporters.csv_reporter import CSV_HEADER, escape_csv_field, render_csv
from ally.reporters.junit import escape_xml, render_junit


def test_junit_has_one_failing_case_per_node(tmp_path: Path, sample_report) -> None:
    xml = render_junit(sample_report, project_root=tmp_path)
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')

    root = ET.fromstring(xml.split("\n", 1)[1])
    assert root.tag == "testsuites"
    assert root.attrib["tests"] == "4"
    assert root.attrib["failures"] == "4"

    cases = root.findall("./testsuite/testcase")
    assert [c.attrib["name"] for c in cases] == ["image-alt", "image-alt", "color-contrast", "image-alt"]
    assert cases[0].attrib["classname"] == "critical"

    failure = cases[0].find("failure")
    assert failure is not None
    assert failure.attrib["type"] == "critical"
    details = failure.text or ""
    assert "File: index.html" in details
    assert "Selector: #n0" in details
    assert "WCAG: wcag2a, wcag111" in details


def test_junit_escapes_markup(tmp_path: Path) -> None:
    report = make_report(make_result("a.html", make_violation("label", "serious", html='<input name="a&b">')))
    xml = render_junit(report, project_root=tmp_path)
    assert "&lt;input name=&quot;a&amp;b&quot;&gt;" in xml
    ET.fromstring(xml.split("\n", 1)[1])


def test_junit_with_no_violations_is_an_empty_suite(tmp_path: Path) -> None:
    xml = render_junit(make_report(make_result("a.html")), project_root=tmp_path)
    assert 'tests="0" failures="0"' in xml
    assert "<testcase" not in xml


def test_escape_xml() -> None:
    assert escape_xml("""<a href="x">'&'</a>""") == "&lt;a href=&quot;x&quot;&gt;&apos;&amp;&apos;&lt;/a&gt;"


def test_csv_rows_per_node(tmp_path: Path, sample_report) -> None:
    text = render_csv(sample_report, project_root=tmp_path)
    rows = list(csv.reader(io.StringIO(text)))

    assert tuple(rows[0]) == CSV_HEADER
    assert len(rows) == 5
    assert rows[1] == [
        "index.html",
        "image-alt",
        "critical",
        "image-alt help",
        "#n0",
        "wcag2a; wcag111",
        "https://dequeuniversity.com/rules/axe/4.8/image-alt",
    ]


def test_csv_escaping() -> None:
    assert escape_csv_field("plain") == "plain"
    assert escape_csv_field("a,b") == '"a,b"'
    assert escape_csv_field('say "hi"') == '"say ""hi"""'
    assert escape_csv_field("two\nlines") == '"two\nlines"'


def test_csv_quotes_help_text_with_comma_and_quote(tmp_path: Path) -> None:
    violation = dataclasses.replace(
        make_violation("image-alt"),
        description="plain",
        help='Images must have "alternate" text, always',
    )
    text = render_csv(make_report(make_result("a.html", violation)), project_root=tmp_path)

    row = text.splitlines()[1]
    assert row.startswith('a.html,image-alt,critical,"Images must have ""alternate"" text, always",#n0,')
    assert "plain" not in row


def test_junit_failure_message_joins_help_and_summary(tmp_path: Path) -> None:
    xml = render_junit(make_report(make_result("a.html", make_violation("image-alt"))), project_root=tmp_path)
    failure = ET.fromstring(xml.split("\n", 1)[1]).find("./testsuite/testcase/failure")

    assert failure is not None
    assert failure.attrib["message"] == "image-alt help. Fix any of the following: missing"
    assert (failure.text or "").startswith("\nFile: a.html\n")
    assert "      </failure>\n    </testcase>" in xml
