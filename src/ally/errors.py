from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


class ReportLoadError(RuntimeError):
    """Raised when the saved scan report cannot be loaded."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(message)
        self.path = path


class ReportNotFoundError(ReportLoadError):
    """No scan report at the expected path; the user needs to run `ally scan` first."""


class ReportParseError(ReportLoadError):
    """The scan report exists but is not valid JSON / not an ally report."""


class ReportReadError(ReportLoadError):
    """The scan report exists but could not be read (permissions, I/O)."""


class EngineUnavailableError(RuntimeError):
    """Raised when the browser or axe-core cannot be started."""

    def __init__(self, message: str, *, diagnosis: str) -> None:
        super().__init__(message)
        self.diagnosis = diagnosis


class ScanError(RuntimeError):
    """Raised when a single page fails to load or analyse."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(message)
        self.source = source


@dataclass(frozen=True, slots=True)
class BrowserDiagnostic:
    pattern: re.Pattern[str]
    message: str
    suggestion: str


BROWSER_DIAGNOSTICS: tuple[BrowserDiagnostic, ...] = (
    BrowserDiagnostic(
        re.compile(r"Executable doesn't exist|Could not find (Chrome|Chromium|browser)|playwright install", re.I),
        "Chromium browser not found",
        "Run 'python -m playwright install chromium' to download the browser",
    ),
    BrowserDiagnostic(
        re.compile(r"No usable sandbox", re.I),
        "Chromium sandbox error (common on Linux/CI)",
        "Run inside a container with user namespaces enabled, or launch Chromium with --no-sandbox",
    ),
    BrowserDiagnostic(
        re.compile(r"ECONNREFUSED|ERR_CONNECTION_REFUSED", re.I),
        "Could not connect to the URL",
        "Check that the server is running and the URL is correct",
    ),
    BrowserDiagnostic(
        re.compile(r"Navigation timeout|TimeoutError|Timeout \d+ms exceeded|Timeout exceeded", re.I),
        "Page took too long to load",
        "Check the page is reachable, or raise the limit with --timeout",
    ),
    BrowserDiagnostic(
        re.compile(r"net::ERR_NAME_NOT_RESOLVED", re.I),
        "Could not resolve hostname",
        "Check the URL is spelled correctly and the domain exists",
    ),
    BrowserDiagnostic(
        re.compile(r"net::ERR_CERT", re.I),
        "SSL certificate error",
        "The site has an invalid SSL certificate. Try using http:// instead of https://",
    ),
    BrowserDiagnostic(
        re.compile(r"Protocol error|Target closed|Target page, context or browser has been closed", re.I),
        "Browser crashed or was closed unexpectedly",
        "Try running the scan again. If the issue persists, check system memory",
    ),
    BrowserDiagnostic(
        re.compile(r"EPERM|EACCES|Permission denied", re.I),
        "Permission denied",
        "Check file permissions or try running with elevated privileges",
    ),
)


def match_browser_diagnostic(error: BaseException) -> BrowserDiagnostic | None:
    text = str(error) or type(error).__name__
    for diagnostic in BROWSER_DIAGNOSTICS:
        if diagnostic.pattern.search(text):
            return diagnostic
    return None


def diagnose_browser_error(error: BaseException) -> str:
    """Turn a raw browser/engine failure into a short message plus a remediation hint."""

    diagnostic = match_browser_diagnostic(error)
    if diagnostic is not None:
        return f"{diagnostic.message}\n\nSuggestion: {diagnostic.suggestion}"
    return (
        f"Browser error: {error}\n\n"
        "If this persists, try:\n"
        "  - Updating Playwright: pip install -U playwright axe-playwright-python\n"
        "  - Reinstalling Chromium: python -m playwright install chromium"
    )
