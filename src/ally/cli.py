from __future__ import annotations

import asyncio
import logging
import signal
import time
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Any, Protocol, cast

import click
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ally import __version__
from ally.autofix import autofix_report, suggest_fixes
from ally.baseline import (
    DEFAULT_BASELINE_PATH,
    BaselineError,
    RegressionAnalysis,
    build_baseline,
    compare_with_baseline,
    load_baseline,
    save_baseline,
)
from ally.config import (
    ConfigError,
    parse_fix_threshold,
    parse_format,
    parse_severities,
    parse_standard,
)
from ally.engine.scoring import create_report, score_style
from ally.engine.types import SEVERITY_ORDER, AllyReport, Severity, Violation
from ally.errors import (
    EngineUnavailableError,
    ReportLoadError,
    ReportNotFoundError,
    ReportParseError,
)
from ally.fix_patterns import confidence_level
from ally.knowledge import explain_rule, explain_violation, unique_violations, wcag_criterion
from ally.logging_utils import configure_logging
from ally.reporters.badge import BADGE_FORMATS, render_badge, render_badge_markdown
from ally.reporters.csv_reporter import render_csv
from ally.reporters.html_reporter import render_html
from ally.reporters.json_reporter import render_json
from ally.reporters.junit import render_junit
from ally.reporters.markdown import render_markdown
from ally.reporters.sarif import render_sarif
from ally.reporters.terminal import SEVERITY_STYLE, print_violation, render_terminal, sort_by_severity
from ally.scanner import AccessibilityScanner, FailedScan, ScanTarget, discover_files, prepare_target, scan_files
from ally.store import DEFAULT_REPORT_PATH, load_report, save_report
from ally.utils import plural, report_path, safe_relpath
from ally.watch import CycleOutcome, WatchSession, WatchStats

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="ally: accessibility audits for HTML pages, powered by axe-core.",
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

# Extra artifact written next to scan.json by `ally scan --format F`.
_SCAN_ARTIFACTS: dict[str, str] = {
    "sarif": "scan.sarif",
    "junit": "scan.xml",
    "csv": "scan.csv",
    "markdown": "scan.md",
    "html": "scan.html",
}

# (accepted suffixes, fallback file name) used by `ally report`.
_REPORT_OUTPUTS: dict[str, tuple[tuple[str, ...], str]] = {
    "markdown": ((".md", ".markdown"), "ACCESSIBILITY.md"),
    "html": ((".html", ".htm"), "accessibility.html"),
    "json": ((".json",), "accessibility.json"),
    "sarif": ((".sarif",), "accessibility.sarif"),
    "junit": ((".xml",), "accessibility.junit.xml"),
    "csv": ((".csv",), "accessibility.csv"),
}


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logs (printed to stderr)."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Reduce non-essential output."),
    ] = False,
) -> None:
    """ally CLI."""

    if verbose and quiet:
        raise typer.BadParameter("Choose at most one: --verbose or --quiet.")
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = {"verbose": verbose, "quiet": quiet}


def _cli_settings() -> dict[str, bool]:
    ctx = click.get_current_context(silent=True)
    if ctx is None or not isinstance(ctx.obj, dict):
        return {"verbose": False, "quiet": False}
    return {"verbose": bool(ctx.obj.get("verbose", False)), "quiet": bool(ctx.obj.get("quiet", False))}


def _render_format(report: AllyReport, fmt: str, *, project_root: Path) -> str:
    if fmt == "json":
        return render_json(report)
    if fmt == "sarif":
        return render_sarif(report, project_root=project_root)
    if fmt == "markdown":
        return render_markdown(report, project_root=project_root)
    if fmt == "html":
        return render_html(report, project_root=project_root)
    if fmt == "junit":
        return render_junit(report, project_root=project_root)
    if fmt == "csv":
        return render_csv(report, project_root=project_root)
    raise typer.BadParameter("Unsupported format. Use: json, sarif, markdown, html, junit, csv.")


def _parse_or_bad_parameter(fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _prepare_target_or_exit(path: Path) -> ScanTarget:
    try:
        return prepare_target(path)
    except ConfigError as exc:
        err_console.print(f"Invalid configuration: {exc}")
        raise typer.Exit(code=2) from exc


def _load_report_or_exit(path: Path) -> AllyReport:
    try:
        return load_report(path)
    except ReportNotFoundError as exc:
        err_console.print(Text("No scan results found", style="yellow"))
        err_console.print("Run 'ally scan' first to generate results", style="dim")
        err_console.print(f"Expected file: {path}", style="dim")
        raise typer.Exit(code=0) from exc
    except ReportParseError as exc:
        err_console.print(Text("Scan results file appears to be corrupted", style="red"))
        err_console.print(f"Delete {path} and run 'ally scan' again", style="dim")
        logger.debug("Parse error: %s", exc)
        raise typer.Exit(code=2) from exc
    except ReportLoadError as exc:
        err_console.print(f"Failed to load scan results: {exc}")
        raise typer.Exit(code=2) from exc


def _print_engine_error(exc: EngineUnavailableError) -> None:
    err_console.print(Panel(exc.diagnosis, title="Could not start the browser", border_style="red"))


def _fail_on_count(report: AllyReport, fail_on: tuple[Severity, ...]) -> int:
    if not fail_on:
        return report.summary.total_violations
    return sum(report.summary.by_severity.get(sev, 0) for sev in fail_on)


async def _run_scan(
    engine: AccessibilityScanner,
    *,
    files: list[Path],
    url: str | None,
    on_done: Callable[[Path], None] | None,
) -> tuple[list[Any], list[FailedScan]]:
    async with engine:
        if url is not None:
            return [await engine.scan_url(url)], []
        return await scan_files(engine, files, on_done=on_done)


@app.command()
def scan(
    path: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=True,
            resolve_path=True,
            help="HTML file or directory to scan (default: current directory).",
        ),
    ] = Path("."),
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Scan a live URL instead of local files."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output directory for scan results (default: config or .ally)."),
    ] = None,
    output_format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Extra artifact: json, sarif, markdown, html, junit, csv."),
    ] = None,
    standard: Annotated[
        str | None,
        typer.Option("--standard", "-s", help="WCAG standard, e.g. wcag2aa, wcag21aa, wcag22aa, section508."),
    ] = None,
    threshold: Annotated[
        int | None,
        typer.Option("--threshold", min=0, help="Exit 1 when violations exceed this count (CI mode)."),
    ] = None,
    fail_on: Annotated[
        list[str] | None,
        typer.Option("--fail-on", help="Only count these severities for --threshold (comma-separated)."),
    ] = None,
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", min=1, help="Page load timeout in milliseconds."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the JSON report to stdout instead of the terminal summary."),
    ] = False,
) -> None:
    """
    Scan HTML files (or a URL) with axe-core and save the results.
    """

    settings = _cli_settings()
    target = _prepare_target_or_exit(path)
    config = target.config

    fmt = _parse_or_bad_parameter(lambda: parse_format(output_format or config.format))
    effective_standard = _parse_or_bad_parameter(lambda: parse_standard(standard or config.standard))
    effective_fail_on = (
        _parse_or_bad_parameter(lambda: parse_severities(fail_on, field_name="--fail-on")) if fail_on else config.fail_on
    )
    effective_threshold = threshold if threshold is not None else config.threshold
    if effective_threshold is None and effective_fail_on:
        effective_threshold = 0

    files: list[Path] = []
    if url is None:
        files = discover_files(target)
        if not files:
            err_console.print(Text(f"No HTML files found in {path}", style="yellow"))
            err_console.print("Point `ally scan` at a directory with .html files, or use --url.", style="dim")
            return

    engine = AccessibilityScanner(timeout_ms=timeout or config.timeout, standard=effective_standard)
    show_progress = not settings["quiet"] and not json_output and len(files) > 1

    try:
        if show_progress:
            from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

            with Progress(
                TextColumn("[bold]Scanning[/bold]"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=err_console,
                transient=True,
            ) as progress:
                task = progress.add_task("scan", total=len(files))
                results, failures = asyncio.run(
                    _run_scan(engine, files=files, url=None, on_done=lambda _p: progress.advance(task))
                )
        else:
            results, failures = asyncio.run(_run_scan(engine, files=files, url=url, on_done=None))
    except EngineUnavailableError as exc:
        _print_engine_error(exc)
        raise typer.Exit(code=2) from exc

    report = create_report(results)
    out_dir = output or Path(config.output)
    json_path = save_report(report, out_dir / "scan.json")
    extra_path: Path | None = None
    if fmt in _SCAN_ARTIFACTS:
        extra_path = out_dir / _SCAN_ARTIFACTS[fmt]
        extra_path.write_text(_render_format(report, fmt, project_root=target.project_root) + "\n", encoding="utf-8")

    if json_output:
        typer.echo(render_json(report))
    else:
        render_terminal(report, project_root=target.project_root, console=console, show_details=not settings["quiet"])
        for failure in failures:
            err_console.print(f"Failed to scan {failure.source}: {failure.error}", markup=False)
        if not settings["quiet"]:
            console.print(f"Results saved to {json_path}", style="dim")
            if extra_path is not None:
                console.print(f"{fmt.upper()} output saved to {extra_path}", style="dim")

    if failures and not results:
        raise typer.Exit(code=2)

    if effective_threshold is not None:
        count = _fail_on_count(report, effective_fail_on)
        if count > effective_threshold:
            scope = ", ".join(effective_fail_on) if effective_fail_on else "all"
            err_console.print(
                f"Threshold exceeded: {plural(count, 'violation')} ({scope}) > {effective_threshold}",
                style="red",
            )
            raise typer.Exit(code=1)


def _report_output_path(output: Path, fmt: str) -> Path:
    suffixes, fallback = _REPORT_OUTPUTS[fmt]
    if output.name.lower().endswith(suffixes):
        return output
    return output.parent / fallback


@app.command()
def report(
    input_path: Annotated[
        Path,
        typer.Option("--input", "-i", help="Scan results JSON produced by `ally scan`."),
    ] = DEFAULT_REPORT_PATH,
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Report output path."),
    ] = Path("ACCESSIBILITY.md"),
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="markdown, html, json, sarif, junit, csv, or all.", show_default=True),
    ] = "markdown",
) -> None:
    """
    Render saved scan results as a report file (ACCESSIBILITY.md by default).
    """

    fmt = _parse_or_bad_parameter(lambda: parse_format(output_format, allow_all=True))
    report_data = _load_report_or_exit(input_path)
    project_root = Path.cwd()

    if fmt == "all":
        out_dir = output.parent
        out_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        for name, (_suffixes, fallback) in _REPORT_OUTPUTS.items():
            out_path = out_dir / fallback
            out_path.write_text(_render_format(report_data, name, project_root=project_root) + "\n", encoding="utf-8")
            written.append(out_path)
        console.print(Text(f"✓ Generated {len(written)} report files:", style="green"))
        for out_path in written:
            console.print(f"  • {out_path}", style="dim")
    else:
        out_path = _report_output_path(output, fmt)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(_render_format(report_data, fmt, project_root=project_root) + "\n", encoding="utf-8")
        console.print(Text(f"✓ Report generated: {out_path}", style="green"))

    if not _cli_settings()["quiet"]:
        console.print()
        console.print(Text("Badge for README:", style="bold"))
        console.print(render_badge_markdown(report_data.summary.score), style="dim", markup=False, highlight=False)


def _print_explanation(index: int, violation: Violation) -> None:
    explanation = explain_violation(violation)
    style = SEVERITY_STYLE.get(violation.impact, "")

    body = Text()
    body.append(f"Severity: {violation.impact.upper()}\n\n", style=style)
    body.append("What's wrong:\n", style="bold")
    body.append(f"{explanation.problem}\n\n")
    body.append("Who it affects:\n", style="bold")
    body.append(f"{explanation.impact}\n\n")
    body.append("How to fix:\n", style="bold")
    body.append(f"{explanation.fix}\n")

    criterion = wcag_criterion(violation.id)
    if criterion is not None:
        body.append(f"\nWCAG {criterion.criterion}: {criterion.why}\n", style="dim")
    if violation.wcag_tags:
        body.append(f"\nWCAG tags: {', '.join(violation.wcag_tags)}", style="dim")
    if violation.help_url:
        body.append(f"\nLearn more: {violation.help_url}", style="dim")

    console.print(Panel(body, title=f"{index}. {violation.help or violation.id}", title_align="left", border_style="cyan"))


@app.command()
def explain(
    rule_id: Annotated[
        str | None,
        typer.Argument(help="Explain a single rule id (e.g. image-alt). Default: every violation in the report."),
    ] = None,
    input_path: Annotated[
        Path,
        typer.Option("--input", "-i", help="Scan results JSON produced by `ally scan`."),
    ] = DEFAULT_REPORT_PATH,
    severity: Annotated[
        str | None,
        typer.Option("--severity", help="Only explain violations of this severity."),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", min=1, help="Maximum number of violations to explain.", show_default=True),
    ] = 10,
) -> None:
    """
    Explain accessibility violations in plain language.
    """

    if rule_id is not None:
        _explain_single_rule(rule_id, input_path)
        return

    severities: tuple[Severity, ...] = ()
    if severity is not None:
        severities = _parse_or_bad_parameter(lambda: parse_severities([severity], field_name="--severity"))
    report_data = _load_report_or_exit(input_path)

    all_violations = [v for result in report_data.results for v in result.violations]
    violations = unique_violations(all_violations, severity=severities[0] if severities else None, limit=limit)
    if not violations:
        console.print("No violations to explain.")
        return

    console.print(Text("Accessibility Issues Explained", style="bold cyan"))
    console.print()
    for idx, violation in enumerate(violations, start=1):
        _print_explanation(idx, violation)

    console.print("Fix issues directly with: ally fix", style="dim")


def _explain_single_rule(rule_id: str, input_path: Path) -> None:
    canonical = rule_id.strip().lower()

    # Prefer the violation from a saved scan: it carries axe's help text and URL.
    if input_path.exists():
        try:
            saved = load_report(input_path)
        except ReportLoadError as exc:
            logger.debug("Ignoring unreadable report %s: %s", input_path, exc)
        else:
            for result in saved.results:
                for violation in result.violations:
                    if violation.id == canonical:
                        _print_explanation(1, violation)
                        return

    explanation = explain_rule(canonical)
    criterion = wcag_criterion(canonical)
    if explanation is None and criterion is None:
        raise typer.BadParameter(f"Unknown rule id: {rule_id!r}. Run `ally scan` and `ally explain` to see found rules.")

    body = Text()
    if explanation is not None:
        body.append("What's wrong:\n", style="bold")
        body.append(f"{explanation.problem}\n\n")
        body.append("Who it affects:\n", style="bold")
        body.append(f"{explanation.impact}\n\n")
        body.append("How to fix:\n", style="bold")
        body.append(f"{explanation.fix}\n")
    if criterion is not None:
        body.append(f"\nWCAG {criterion.criterion}: {criterion.why}", style="dim")
    console.print(Panel(body, title=canonical, title_align="left", border_style="cyan"))


@app.command()
def fix(
    input_path: Annotated[
        Path,
        typer.Option("--input", "-i", help="Scan results JSON produced by `ally scan`."),
    ] = DEFAULT_REPORT_PATH,
    severity: Annotated[
        str | None,
        typer.Option("--severity", help="Only fix violations of this severity."),
    ] = None,
    min_confidence: Annotated[
        float | None,
        typer.Option("--min-confidence", help="Apply fixes at or above this confidence (0-1, default: config or 0.9)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Don't write changes; only print a unified diff."),
    ] = False,
    backup: Annotated[
        bool,
        typer.Option("--backup", help="Create a .ally.bak backup before writing."),
    ] = False,
) -> None:
    """
    Suggest fixes for scanned violations and apply the high-confidence ones.
    """

    settings = _cli_settings()
    project_root = Path.cwd()
    target = _prepare_target_or_exit(project_root)
    threshold = _parse_or_bad_parameter(
        lambda: parse_fix_threshold(
            min_confidence if min_confidence is not None else target.config.fix_threshold,
            field_name="--min-confidence",
        )
    )
    severity_filter: Severity | None = None
    if severity is not None:
        severity_filter = _parse_or_bad_parameter(lambda: parse_severities([severity], field_name="--severity"))[0]

    report_data = _load_report_or_exit(input_path)

    if not settings["quiet"]:
        for result in report_data.results:
            suggestions = suggest_fixes(result.violations, severity=severity_filter)
            if not suggestions:
                continue
            table = Table(title=report_path(result.source, project_root), title_justify="left", box=None)
            table.add_column("Rule", style="bold")
            table.add_column("Confidence")
            table.add_column("Target", overflow="fold", style="dim")
            for suggestion in suggestions:
                level = confidence_level(suggestion.confidence)
                mark = "apply" if suggestion.confidence >= threshold else "review"
                table.add_row(
                    suggestion.rule_id,
                    f"{suggestion.confidence:.0%} {level} ({mark})",
                    " > ".join(suggestion.target),
                )
            console.print(table)

    result = autofix_report(
        report_data,
        base_dir=project_root,
        threshold=threshold,
        severity=severity_filter,
        dry_run=dry_run,
        backup=backup,
    )
    if not result.changed_files:
        console.print("No changes needed.")
        return

    diff = result.diff
    if diff:
        typer.echo(diff)

    verb = "Would apply" if dry_run else "Applied"
    console.print(
        f"{verb} {plural(result.applied_count, 'fix', 'fixes')} to {plural(len(result.changed_files), 'file')}.",
        style="green",
    )
    if not dry_run:
        console.print("Re-scan with `ally scan` to verify.", style="dim")


def _install_stop_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> Callable[[], None]:
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not supported on this platform / thread; KeyboardInterrupt still ends asyncio.run.
            continue
        installed.append(sig)

    def _remove() -> None:
        for sig in installed:
            loop.remove_signal_handler(sig)

    return _remove


def _print_outcome(outcome: CycleOutcome, *, project_root: Path, quiet: bool) -> None:
    rel = safe_relpath(outcome.path, project_root)
    header = Text()
    header.append(time.strftime("%H:%M:%S"), style="dim")
    header.append("  ")
    header.append(rel, style="bold")
    header.append(" changed", style="dim")
    console.print(header)

    if outcome.error is not None:
        console.print(Text(f"  ✖ {outcome.error}", style="red"))
        return
    if outcome.applied_fixes:
        console.print(Text(f"  ✓ Auto-applied {plural(outcome.applied_fixes, 'fix', 'fixes')}", style="green"))

    result = outcome.result
    if result is None:
        return
    if not result.violations:
        console.print(Text(f"  No issues found (score: {outcome.score})", style="green"))
        return

    console.print(
        Text(f"  {plural(len(result.violations), 'issue')} found (score: {outcome.score})", style=score_style(outcome.score))
    )
    if not quiet:
        for violation in sort_by_severity(result.violations):
            print_violation(violation, console=console, compact=True)


def _print_watch_summary(stats: WatchStats) -> None:
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column(justify="right")
    table.add_row("Duration", f"{stats.duration():.1f}s")
    table.add_row("Files scanned", str(stats.files_scanned))
    table.add_row("Total violations", str(stats.total_violations))
    table.add_row("Clean scans", str(stats.clean_scans))
    table.add_row("Auto-fixed", str(stats.auto_fixed))
    if stats.errors:
        table.add_row("Errors", str(stats.errors))
    console.print(Panel(table, title="Watch session summary", border_style="cyan"))


@app.command()
def watch(
    path: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=True,
            resolve_path=True,
            help="File or directory to watch for changes (default: current directory).",
        ),
    ] = Path("."),
    debounce: Annotated[
        float | None,
        typer.Option("--debounce", min=0.0, help="Debounce window in seconds before re-scanning (default: config or 0.5)."),
    ] = None,
    auto_fix: Annotated[
        bool,
        typer.Option("--fix/--no-fix", help="Auto-apply high-confidence fixes, then re-scan once."),
    ] = False,
    fix_threshold: Annotated[
        float | None,
        typer.Option("--fix-threshold", help="Minimum fix confidence for --fix (0-1, default: config or 0.9)."),
    ] = None,
    standard: Annotated[
        str | None,
        typer.Option("--standard", "-s", help="WCAG standard, e.g. wcag21aa, wcag22aa."),
    ] = None,
) -> None:
    """
    Watch HTML files and re-scan them when they change.
    """

    settings = _cli_settings()
    target = _prepare_target_or_exit(path)
    config = target.config
    effective_standard = _parse_or_bad_parameter(lambda: parse_standard(standard or config.standard))
    threshold = _parse_or_bad_parameter(
        lambda: parse_fix_threshold(fix_threshold if fix_threshold is not None else config.fix_threshold)
    )

    try:
        from watchdog.events import FileSystemEventHandler
        from watchdog.observers import Observer
    except ImportError as exc:  # pragma: no cover (watchdog is a hard dependency)
        err_console.print("watch requires watchdog. Install via: pip install watchdog")
        raise typer.Exit(code=2) from exc

    watch_root = target.scan_path
    observe_dir = watch_root if watch_root.is_dir() else watch_root.parent

    session = WatchSession(
        AccessibilityScanner(timeout_ms=config.timeout, standard=effective_standard),
        root=watch_root,
        project_root=target.project_root,
        ignore_patterns=target.ignore_patterns,
        auto_fix=auto_fix,
        fix_threshold=threshold,
        debounce_seconds=debounce if debounce is not None else config.debounce,
        on_outcome=lambda outcome: _print_outcome(outcome, project_root=target.project_root, quiet=settings["quiet"]),
    )

    class _ObserverProto(Protocol):
        def schedule(self, event_handler: Any, path: str, *, recursive: bool) -> object: ...

        def start(self) -> None: ...

        def stop(self) -> None: ...

        def join(self) -> None: ...

    async def _watch_main() -> None:
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()

        class _Handler(FileSystemEventHandler):
            def _emit(self, raw_path: str) -> None:
                if raw_path:
                    loop.call_soon_threadsafe(session.notify, Path(raw_path))

            def on_created(self, event: Any) -> None:
                if getattr(event, "is_directory", False):
                    return
                self._emit(str(getattr(event, "src_path", "")))

            def on_modified(self, event: Any) -> None:
                if getattr(event, "is_directory", False):
                    return
                self._emit(str(getattr(event, "src_path", "")))

            def on_moved(self, event: Any) -> None:
                if getattr(event, "is_directory", False):
                    return
                dest = getattr(event, "dest_path", None)
                if isinstance(dest, str) and dest:
                    self._emit(dest)

        await session.start()
        observer = cast(_ObserverProto, Observer())
        observer.schedule(_Handler(), str(observe_dir), recursive=True)
        remove_handlers = _install_stop_handlers(loop, stop)
        try:
            observer.start()
            mode = "auto-fix on" if auto_fix else "auto-fix off"
            console.print(
                Panel(
                    Text(f"Watching {safe_relpath(watch_root, target.project_root)} ({mode}). Press Ctrl+C to stop.", style="dim"),
                    border_style="cyan",
                )
            )
            await stop.wait()
        finally:
            remove_handlers()
            try:
                observer.stop()
            except Exception as exc:
                logger.debug("Observer stop failed: %s", exc)
            try:
                await asyncio.to_thread(observer.join)
            except Exception as exc:
                logger.debug("Observer join failed: %s", exc)
            await session.close()

    try:
        asyncio.run(_watch_main())
    except EngineUnavailableError as exc:
        _print_engine_error(exc)
        raise typer.Exit(code=2) from exc
    except KeyboardInterrupt:
        pass

    _print_watch_summary(session.stats)


@app.command()
def badge(
    input_path: Annotated[
        Path,
        typer.Option("--input", "-i", help="Scan results JSON produced by `ally scan`."),
    ] = DEFAULT_REPORT_PATH,
    badge_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Badge format: url, markdown, svg.", show_default=True),
    ] = "url",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the badge to a file instead of stdout."),
    ] = None,
) -> None:
    """
    Generate an accessibility score badge for your README.
    """

    normalized = badge_format.strip().lower()
    if normalized not in BADGE_FORMATS:
        raise typer.BadParameter(f"Unsupported format. Use: {', '.join(BADGE_FORMATS)}.")

    report_data = _load_report_or_exit(input_path)
    score = report_data.summary.score
    content = render_badge(score, normalized)

    if output is None:
        typer.echo(content)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content + "\n", encoding="utf-8")
    console.print(Text(f"✓ Badge saved to {output} (score: {score}/100)", style="green"))


def _print_regressions(analysis: RegressionAnalysis) -> None:
    console.print(Text("Regression Analysis", style="bold"))
    if analysis.improved:
        console.print(
            Text(f"  Fixed:      {plural(analysis.improved, 'file')} ({analysis.improvement_percentage:.1f}%)", style="green")
        )
    if analysis.regressed:
        console.print(
            Text(f"  Regressed:  {plural(analysis.regressed, 'file')} ({analysis.regression_percentage:.1f}%)", style="red")
        )
    if analysis.unchanged:
        console.print(Text(f"  Unchanged:  {plural(analysis.unchanged, 'file')}", style="dim"))

    for title, deltas, sign, style in (
        ("Issues fixed:", analysis.fixed_violations, "-", "green"),
        ("New issues:", analysis.new_violations, "+", "red"),
    ):
        if not deltas:
            continue
        console.print(Text(title, style="bold"))
        for delta in deltas[:5]:
            console.print(Text(f"  {delta.file}: {sign}{plural(delta.count, 'issue')}", style=style))
        if len(deltas) > 5:
            console.print(Text(f"  ... and {len(deltas) - 5} more", style="dim"))


@app.command()
def baseline(
    input_path: Annotated[
        Path,
        typer.Option("--input", "-i", help="Scan results JSON produced by `ally scan`."),
    ] = DEFAULT_REPORT_PATH,
    compare: Annotated[
        bool,
        typer.Option("--compare", help="Compare the current results against the saved baseline (exit 1 on regressions)."),
    ] = False,
    baseline_path: Annotated[
        Path,
        typer.Option("--baseline", help="Baseline file path."),
    ] = DEFAULT_BASELINE_PATH,
) -> None:
    """
    Save the current results as a baseline, or compare against it.
    """

    report_data = _load_report_or_exit(input_path)
    current = build_baseline(report_data, project_root=Path.cwd())

    if not compare:
        save_baseline(current, baseline_path)
        console.print(
            f"Wrote baseline for {plural(len(current.violations), 'file')} "
            f"({plural(current.total_violations, 'violation')}): {baseline_path}"
        )
        return

    if not baseline_path.exists():
        err_console.print(f"No baseline found at {baseline_path}. Run `ally baseline` first.")
        raise typer.Exit(code=2)
    try:
        previous = load_baseline(baseline_path)
    except BaselineError as exc:
        err_console.print(f"Invalid baseline: {exc}")
        raise typer.Exit(code=2) from exc

    analysis = compare_with_baseline(current, previous)
    _print_regressions(analysis)

    by_severity = Text()
    for sev in SEVERITY_ORDER:
        delta = current.by_severity.get(sev, 0) - previous.by_severity.get(sev, 0)
        by_severity.append(f"{sev}: {delta:+d}  ", style=SEVERITY_STYLE[sev])
    console.print(by_severity)

    if analysis.has_regressions:
        raise typer.Exit(code=1)
