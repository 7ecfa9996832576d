from __future__ import annotations

import difflib
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ally.engine.types import AllyReport, Severity, Violation
from ally.fix_patterns import DEFAULT_FIX_THRESHOLD, generate_suggested_fix, get_fix_confidence

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".ally.bak"


@dataclass(frozen=True, slots=True)
class SuggestedFix:
    """A patched replacement for one affected node."""

    rule_id: str
    impact: Severity
    original: str
    fixed: str
    confidence: float
    target: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AutoFixFileResult:
    path: Path
    changed: bool
    diff: str
    applied: tuple[SuggestedFix, ...]
    # Below threshold, or the node's markup was not found verbatim in the file.
    skipped: tuple[SuggestedFix, ...]


@dataclass(frozen=True, slots=True)
class AutoFixResult:
    changed_files: tuple[Path, ...]
    file_results: tuple[AutoFixFileResult, ...]

    @property
    def diff(self) -> str:
        chunks = [fr.diff for fr in self.file_results if fr.diff]
        return "\n".join(chunks)

    @property
    def applied_count(self) -> int:
        return sum(len(fr.applied) for fr in self.file_results)


def suggest_fixes(violations: Iterable[Violation], *, severity: Severity | None = None) -> list[SuggestedFix]:
    out: list[SuggestedFix] = []
    for v in violations:
        if severity is not None and v.impact != severity:
            continue
        confidence = get_fix_confidence(v.id)
        if confidence is None:
            continue
        for node in v.nodes:
            fixed = generate_suggested_fix(v.id, node.html)
            if fixed is None:
                continue
            out.append(
                SuggestedFix(
                    rule_id=v.id,
                    impact=v.impact,
                    original=node.html,
                    fixed=fixed,
                    confidence=confidence,
                    target=node.target,
                )
            )
    return out


def apply_fixes_to_text(
    text: str,
    fixes: Iterable[SuggestedFix],
    *,
    threshold: float = DEFAULT_FIX_THRESHOLD,
) -> tuple[str, tuple[SuggestedFix, ...], tuple[SuggestedFix, ...]]:
    """
    Apply every fix at or above `threshold` to `text` in one pass.

    Each fix replaces the first remaining literal occurrence of the node's
    markup. Returns `(updated_text, applied, skipped)`.
    """

    applied: list[SuggestedFix] = []
    skipped: list[SuggestedFix] = []
    updated = text
    for fix in fixes:
        if fix.confidence < threshold or not fix.original or fix.original not in updated:
            skipped.append(fix)
            continue
        updated = updated.replace(fix.original, fix.fixed, 1)
        applied.append(fix)
    return updated, tuple(applied), tuple(skipped)


def autofix_file(
    path: Path,
    violations: Iterable[Violation],
    *,
    threshold: float = DEFAULT_FIX_THRESHOLD,
    severity: Severity | None = None,
    dry_run: bool = False,
    backup: bool = False,
) -> AutoFixFileResult:
    original = path.read_text(encoding="utf-8", errors="replace")
    fixes = suggest_fixes(violations, severity=severity)
    updated, applied, skipped = apply_fixes_to_text(original, fixes, threshold=threshold)

    diff = _unified_diff(original, updated, path=path)
    changed = original != updated

    if changed and not dry_run:
        if backup:
            backup_path = path.with_suffix(path.suffix + BACKUP_SUFFIX)
            if not backup_path.exists():
                backup_path.write_text(original, encoding="utf-8")
        path.write_text(updated, encoding="utf-8")
        logger.debug("Applied %d fixes to %s", len(applied), path)

    return AutoFixFileResult(path=path, changed=changed, diff=diff, applied=applied, skipped=skipped)


def autofix_report(
    report: AllyReport,
    *,
    base_dir: Path,
    threshold: float = DEFAULT_FIX_THRESHOLD,
    severity: Severity | None = None,
    dry_run: bool = False,
    backup: bool = False,
) -> AutoFixResult:
    """
    Apply fixes for every scanned file in `report`.

    Relative file paths are resolved against `base_dir`; URL scans have no
    file to patch and are skipped, as are files that no longer exist.
    """

    file_results: list[AutoFixFileResult] = []
    changed: list[Path] = []
    for result in report.results:
        if result.file is None or not result.violations:
            continue
        path = Path(result.file)
        if not path.is_absolute():
            path = base_dir / path
        if not path.is_file():
            logger.warning("Skipping %s: file not found", result.file)
            continue
        res = autofix_file(
            path,
            result.violations,
            threshold=threshold,
            severity=severity,
            dry_run=dry_run,
            backup=backup,
        )
        file_results.append(res)
        if res.changed:
            changed.append(path)

    return AutoFixResult(changed_files=tuple(changed), file_results=tuple(file_results))


def _unified_diff(before: str, after: str, *, path: Path) -> str:
    if before == after:
        return ""
    diff = difflib.unified_diff(
        before.splitlines(keepends=False),
        after.splitlines(keepends=False),
        fromfile=str(path),
        tofile=str(path),
        lineterm="",
    )
    return "\n".join(diff)
