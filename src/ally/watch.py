from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ally.autofix import apply_fixes_to_text, suggest_fixes
from ally.config import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_IGNORE_PATTERNS, path_is_ignored
from ally.engine.scoring import calculate_score
from ally.engine.types import ScanResult
from ally.errors import ScanError
from ally.fix_patterns import DEFAULT_FIX_THRESHOLD
from ally.scanner import ScanEngine

logger = logging.getLogger(__name__)

WATCH_EXTENSIONS: frozenset[str] = frozenset({".html", ".htm"})


def should_watch_path(
    path: Path,
    *,
    root: Path,
    ignore_patterns: Iterable[str] = (),
    project_root: Path | None = None,
) -> bool:
    """
    Return True if `path` is a candidate for a watch-triggered re-scan.

    - Must be under `root` (or be `root` itself when watching a single file).
    - Must have an HTML extension.
    - Must not sit in a dot-directory or match default/user ignore patterns.
      Patterns are matched relative to `project_root` (defaults to `root`).

    Existence is not checked here; a file deleted before its scan is skipped
    by the session.
    """

    try:
        resolved = path.resolve()
        root_resolved = root.resolve()
    except OSError:
        return False

    if root_resolved.suffix.lower() in WATCH_EXTENSIONS and not root_resolved.is_dir():
        return resolved == root_resolved

    try:
        relative = resolved.relative_to(root_resolved)
    except ValueError:
        return False

    if resolved.suffix.lower() not in WATCH_EXTENSIONS:
        return False

    if any(part.startswith(".") for part in relative.parts[:-1]):
        return False

    patterns = (*DEFAULT_IGNORE_PATTERNS, *ignore_patterns)
    base = project_root.resolve() if project_root is not None else root_resolved
    return not path_is_ignored(resolved, project_root=base, ignore_patterns=patterns)


@dataclass(slots=True)
class WatchStats:
    files_scanned: int = 0
    total_violations: int = 0
    clean_scans: int = 0
    auto_fixed: int = 0
    errors: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def record(self, result: ScanResult) -> None:
        self.files_scanned += 1
        self.total_violations += len(result.violations)
        if not result.violations:
            self.clean_scans += 1

    def duration(self, *, now: float | None = None) -> float:
        return max(0.0, (time.monotonic() if now is None else now) - self.started_at)


@dataclass(frozen=True, slots=True)
class CycleOutcome:
    path: Path
    result: ScanResult | None = None
    applied_fixes: int = 0
    error: str | None = None
    skipped: bool = False

    @property
    def score(self) -> int:
        return calculate_score([self.result]) if self.result is not None else 0


class WatchSession:
    """
    Debounced rescan (and optional auto-fix) cycles for changed files.

    Per path: a change arms a timer; another change before it fires replaces
    the timer. When it fires the file is scanned, optionally patched and
    rescanned once. A change arriving while that path's cycle is running is
    queued and runs one more cycle afterwards. Scans share one engine and are
    serialized through a lock.

    All methods must be called from the event loop thread; other threads go
    through `loop.call_soon_threadsafe(session.notify, path)`.
    """

    def __init__(
        self,
        engine: ScanEngine,
        *,
        root: Path,
        project_root: Path | None = None,
        ignore_patterns: Iterable[str] = (),
        auto_fix: bool = False,
        fix_threshold: float = DEFAULT_FIX_THRESHOLD,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_outcome: Callable[[CycleOutcome], None] | None = None,
    ) -> None:
        self.engine = engine
        self.root = root
        self.project_root = project_root if project_root is not None else root
        self.ignore_patterns = tuple(ignore_patterns)
        self.auto_fix = auto_fix
        self.fix_threshold = fix_threshold
        self.debounce_seconds = debounce_seconds
        self.on_outcome = on_outcome
        self.stats = WatchStats()

        self._engine_lock = asyncio.Lock()
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._running: dict[Path, asyncio.Task[None]] = {}
        self._requeue: set[Path] = set()
        # Content written by auto-fix; the change event it causes is not a user edit.
        self._written: dict[Path, str] = {}
        self._accepting = False

    @property
    def accepting(self) -> bool:
        return self._accepting

    async def start(self) -> None:
        await self.engine.init()
        self.stats = WatchStats()
        self._accepting = True

    def notify(self, path: Path) -> bool:
        """Record a change event. Returns False when the path is not watched."""

        if not self._accepting:
            return False
        if not should_watch_path(
            path, root=self.root, ignore_patterns=self.ignore_patterns, project_root=self.project_root
        ):
            return False

        key = path.resolve()
        pending = self._timers.pop(key, None)
        if pending is not None:
            pending.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.debounce_seconds, self._fire, key)
        return True

    def _fire(self, path: Path) -> None:
        self._timers.pop(path, None)
        if not self._accepting:
            return
        running = self._running.get(path)
        if running is not None and not running.done():
            self._requeue.add(path)
            return
        self._running[path] = asyncio.get_running_loop().create_task(self._run_path(path))

    async def _run_path(self, path: Path) -> None:
        try:
            while True:
                outcome = await self.run_cycle(path)
                if not outcome.skipped and self.on_outcome is not None:
                    self.on_outcome(outcome)
                if path not in self._requeue or not self._accepting:
                    break
                self._requeue.discard(path)
        finally:
            self._running.pop(path, None)
            self._requeue.discard(path)

    async def run_cycle(self, path: Path) -> CycleOutcome:
        """Scan `path`, then optionally fix and rescan it once."""

        try:
            if await self._is_own_write(path):
                return CycleOutcome(path=path, skipped=True)

            result = await self._scan(path)
            applied = 0
            if self.auto_fix and result.violations:
                applied = await self._apply_fixes(path, result)
                if applied:
                    self.stats.auto_fixed += applied
                    result = await self._scan(path)
        except FileNotFoundError:
            logger.debug("Skipping %s: file no longer exists", path)
            return CycleOutcome(path=path, skipped=True)
        except (ScanError, OSError, UnicodeDecodeError) as exc:
            self.stats.errors += 1
            logger.warning("Failed to process %s: %s", path, exc)
            return CycleOutcome(path=path, error=str(exc))

        self.stats.record(result)
        logger.debug("Cycle done for %s: %d violations, %d fixes", path, len(result.violations), applied)
        return CycleOutcome(path=path, result=result, applied_fixes=applied)

    async def _scan(self, path: Path) -> ScanResult:
        if not path.is_file():
            raise FileNotFoundError(path)
        async with self._engine_lock:
            return await self.engine.scan_html_file(path)

    async def _is_own_write(self, path: Path) -> bool:
        written = self._written.pop(path, None)
        if written is None:
            return False
        current = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return current == written

    async def _apply_fixes(self, path: Path, result: ScanResult) -> int:
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        updated, applied, _skipped = apply_fixes_to_text(
            text,
            suggest_fixes(result.violations),
            threshold=self.fix_threshold,
        )
        if not applied:
            return 0
        await asyncio.to_thread(path.write_text, updated, encoding="utf-8")
        self._written[path] = updated
        return len(applied)

    async def drain(self) -> None:
        """Wait until no timer is pending and no cycle is running."""

        while self._timers or self._running:
            tasks = list(self._running.values())
            if tasks:
                await asyncio.wait(tasks)
            else:
                await asyncio.sleep(min(0.05, self.debounce_seconds or 0.05))

    async def close(self) -> None:
        """
        Stop accepting events, drop pending timers, let in-flight cycles
        finish, then release the engine.
        """

        self._accepting = False
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        tasks = list(self._running.values())
        if tasks:
            await asyncio.wait(tasks)
        await self.engine.close()
