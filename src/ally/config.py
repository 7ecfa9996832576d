from __future__ import annotations

import fnmatch
import tomllib
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from ally.engine.types import SEVERITY_ORDER, Severity
from ally.fix_patterns import DEFAULT_FIX_THRESHOLD


class ConfigError(ValueError):
    """Raised when ally configuration (pyproject table, CLI value, ignore file) is invalid."""


OUTPUT_FORMATS: tuple[str, ...] = ("json", "sarif", "markdown", "html", "junit", "csv")

STANDARDS: tuple[str, ...] = (
    "wcag2a",
    "wcag2aa",
    "wcag2aaa",
    "wcag21a",
    "wcag21aa",
    "wcag21aaa",
    "wcag22aa",
    "section508",
    "best-practice",
)

DEFAULT_FORMAT = "json"
DEFAULT_OUTPUT_DIR = ".ally"
DEFAULT_STANDARD = "wcag22aa"
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_DEBOUNCE_SECONDS = 0.5
IGNORE_FILE_NAME = ".allyignore"

# Always skipped during discovery and watch, in addition to user patterns.
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = ("node_modules/", "dist/", "build/", ".git/")


@dataclass(frozen=True, slots=True)
class AllyConfig:
    format: str = DEFAULT_FORMAT
    output: str = DEFAULT_OUTPUT_DIR
    standard: str = DEFAULT_STANDARD
    threshold: int | None = None
    fail_on: tuple[Severity, ...] = ()
    fix_threshold: float = DEFAULT_FIX_THRESHOLD
    ignore: tuple[str, ...] = ()
    timeout: int = DEFAULT_TIMEOUT_MS
    debounce: float = DEFAULT_DEBOUNCE_SECONDS


def load_config(project_dir: Path | str = ".") -> AllyConfig:
    """
    Load ally configuration from `pyproject.toml` within `project_dir`.

    If no file / no `[tool.ally]` table exists, returns defaults.
    """

    pyproject_path = Path(project_dir) / "pyproject.toml"
    if not pyproject_path.exists():
        return AllyConfig()

    try:
        data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {pyproject_path}: {exc}") from exc

    tool_table = data.get("tool", {})
    if not isinstance(tool_table, dict):
        return AllyConfig()

    ally_table = tool_table.get("ally", {})
    if not isinstance(ally_table, dict) or not ally_table:
        return AllyConfig()

    return _parse_ally_table(ally_table)


def _get(table: dict[str, Any], key: str, default: Any) -> Any:
    return table.get(key, table.get(key.replace("-", "_"), default))


def _parse_ally_table(table: dict[str, Any]) -> AllyConfig:
    fmt = _get(table, "format", DEFAULT_FORMAT)
    if not isinstance(fmt, str):
        raise ConfigError("`tool.ally.format` must be a string.")

    output = _get(table, "output", DEFAULT_OUTPUT_DIR)
    if not isinstance(output, str) or not output.strip():
        raise ConfigError("`tool.ally.output` must be a non-empty string path.")

    standard = _get(table, "standard", DEFAULT_STANDARD)
    if not isinstance(standard, str):
        raise ConfigError("`tool.ally.standard` must be a string.")

    threshold = _get(table, "threshold", None)
    if threshold is not None and (isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0):
        raise ConfigError("`tool.ally.threshold` must be a non-negative integer.")

    fail_on_raw = _get(table, "fail-on", [])
    if not isinstance(fail_on_raw, list) or any(not isinstance(v, str) for v in fail_on_raw):
        raise ConfigError("`tool.ally.fail-on` must be a list of strings.")

    ignore = _get(table, "ignore", [])
    if not isinstance(ignore, list) or any(not isinstance(v, str) for v in ignore):
        raise ConfigError("`tool.ally.ignore` must be a list of strings.")

    timeout = _get(table, "timeout", DEFAULT_TIMEOUT_MS)
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        raise ConfigError("`tool.ally.timeout` must be a positive integer (milliseconds).")

    debounce = _get(table, "debounce", DEFAULT_DEBOUNCE_SECONDS)
    if isinstance(debounce, bool) or not isinstance(debounce, int | float) or debounce < 0:
        raise ConfigError("`tool.ally.debounce` must be a non-negative number (seconds).")

    return AllyConfig(
        format=parse_format(fmt, field_name="tool.ally.format"),
        output=output.strip(),
        standard=parse_standard(standard, field_name="tool.ally.standard"),
        threshold=threshold,
        fail_on=parse_severities(fail_on_raw, field_name="tool.ally.fail-on"),
        fix_threshold=parse_fix_threshold(_get(table, "fix-threshold", DEFAULT_FIX_THRESHOLD), field_name="tool.ally.fix-threshold"),
        ignore=tuple(p.strip() for p in ignore if p.strip()),
        timeout=timeout,
        debounce=float(debounce),
    )


def parse_format(value: str, *, field_name: str = "--format", allow_all: bool = False) -> str:
    normalized = value.strip().lower()
    if normalized == "md":
        normalized = "markdown"
    allowed = OUTPUT_FORMATS + (("all",) if allow_all else ())
    if normalized not in allowed:
        raise ConfigError(f"`{field_name}` must be one of: {', '.join(allowed)} (got {value!r}).")
    return normalized


def parse_standard(value: str, *, field_name: str = "--standard") -> str:
    normalized = value.strip().lower()
    if normalized not in STANDARDS:
        raise ConfigError(f"`{field_name}` must be one of: {', '.join(STANDARDS)} (got {value!r}).")
    return normalized


def parse_fix_threshold(value: Any, *, field_name: str = "--fix-threshold") -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigError(f"`{field_name}` must be a number between 0 and 1.")
    if not (0.0 <= float(value) <= 1.0):
        raise ConfigError(f"`{field_name}` must be between 0 and 1 (got {value}).")
    return float(value)


def parse_severities(values: Iterable[str], *, field_name: str = "--fail-on") -> tuple[Severity, ...]:
    """Parse severities given as a list and/or comma-separated strings, keeping severity order."""

    seen: set[str] = set()
    for raw in values:
        for token in raw.split(","):
            normalized = token.strip().lower()
            if not normalized:
                continue
            if normalized not in SEVERITY_ORDER:
                raise ConfigError(
                    f"`{field_name}` contains unknown severity {token.strip()!r}. Valid: {', '.join(SEVERITY_ORDER)}."
                )
            seen.add(normalized)
    return tuple(cast(Severity, sev) for sev in SEVERITY_ORDER if sev in seen)


def load_ignore_patterns(project_dir: Path | str = ".") -> tuple[str, ...]:
    """
    Read `.allyignore` from `project_dir`.

    One pattern per line; blank lines and `#` comments are skipped. A missing
    file yields no patterns.
    """

    ignore_path = Path(project_dir) / IGNORE_FILE_NAME
    if not ignore_path.exists():
        return ()
    try:
        text = ignore_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {ignore_path}: {exc}") from exc

    patterns: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        patterns.append(stripped)
    return tuple(patterns)


def path_is_ignored(path: Path, *, project_root: Path, ignore_patterns: Iterable[str]) -> bool:
    """
    Return True if `path` matches any ignore patterns.

    Patterns are evaluated against the POSIX-style relative path from `project_root`.

    Supported patterns:
    - Directory patterns: "vendor/" matches any path with a `vendor` directory
      component, at any depth.
    - Globs without slashes: "*.test.html" matches basenames.
    - Globs with slashes: "src/**/legacy/*.html" matches full relative paths.
    """

    try:
        relative = path.resolve().relative_to(project_root.resolve())
    except (ValueError, OSError, RuntimeError):
        # If the path isn't under root (or can't be resolved), don't ignore it implicitly.
        return False

    rel_posix = relative.as_posix()
    basename = relative.name
    directories = relative.parts[:-1]

    for raw_pattern in ignore_patterns:
        pattern = raw_pattern.strip().replace("\\", "/")
        if not pattern:
            continue
        if pattern.startswith("./"):
            pattern = pattern[2:]

        if pattern.endswith("/"):
            dir_pattern = pattern.rstrip("/")
            if "/" in dir_pattern:
                if rel_posix.startswith(f"{dir_pattern}/") or fnmatch.fnmatch(rel_posix, f"{dir_pattern}/*"):
                    return True
            elif any(fnmatch.fnmatch(part, dir_pattern) for part in directories):
                return True
            continue

        if "/" in pattern:
            if fnmatch.fnmatch(rel_posix, pattern):
                return True
        else:
            if fnmatch.fnmatch(basename, pattern) or fnmatch.fnmatch(rel_posix, pattern):
                return True

    return False
