from __future__ import annotations

import logging
from pathlib import Path

from ally.engine.types import AllyReport
from ally.errors import ReportNotFoundError, ReportParseError, ReportReadError
from ally.reporters.json_reporter import parse_json_report, render_json

logger = logging.getLogger(__name__)

DEFAULT_REPORT_PATH = Path(".ally") / "scan.json"


def load_report(path: Path) -> AllyReport:
    """
    Load a saved scan report.

    Errors are typed so callers can pick the right guidance: a missing file
    means "run a scan first", a parse error means "the report is corrupted,
    rescan", anything else is an I/O problem.
    """

    if not path.exists():
        raise ReportNotFoundError(path, f"No scan results found at {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReportReadError(path, f"Failed to read {path}: {exc}") from exc

    try:
        return parse_json_report(text)
    except (ValueError, TypeError) as exc:
        # json.JSONDecodeError is a ValueError.
        raise ReportParseError(path, f"Scan results file appears to be corrupted: {exc}") from exc


def save_report(report: AllyReport, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_json(report) + "\n", encoding="utf-8")
    logger.debug("Wrote scan report to %s", path)
    return path
