"""Rebuild the site when sources change.

Changes are found by comparing mtime snapshots of the watched paths. Bursts
of changes (an editor writing a file several times on save) are coalesced by
``Debouncer`` so that one settled burst produces exactly one build.
"""

from __future__ import annotations

import enum
import logging
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from .builder import BuildResult, build_site
from .config import SiteConfig
from .errors import SiteError

logger = logging.getLogger(__name__)

Snapshot = dict[Path, float]


class State(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class Debouncer:
    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self.clock = clock
        self.state = State.IDLE
        self.pending: set[Path] = set()
        self.deadline = 0.0

    def record(self, paths: Iterable[Path]) -> None:
        paths = set(paths)
        if not paths:
            return
        self.pending |= paths
        self.deadline = self.clock() + self.interval
        self.state = State.ACCUMULATING

    def poll(self) -> Optional[set[Path]]:
        """Hand back the settled batch once the interval passed with no new events."""
        if self.state is State.IDLE or self.clock() < self.deadline:
            return None
        batch = self.pending
        self.pending = set()
        self.state = State.IDLE
        return batch


def snapshot(roots: Iterable[Path]) -> Snapshot:
    mtimes: Snapshot = {}
    for root in roots:
        if root.is_file():
            candidates = [root]
        elif root.is_dir():
            candidates = [path for path in root.rglob("*") if path.is_file()]
        else:
            continue
        for path in candidates:
            try:
                mtimes[path] = path.stat().st_mtime
            except FileNotFoundError:
                # Removed between listing and stat.
                continue
    return mtimes


def diff_snapshots(before: Snapshot, after: Snapshot) -> set[Path]:
    changed = set(before.keys() ^ after.keys())
    changed.update(path for path, mtime in after.items() if path in before and before[path] != mtime)
    return changed


Builder = Callable[[SiteConfig, Optional[BuildResult], Optional[set[Path]]], BuildResult]


class WatchLoop:
    def __init__(
        self,
        config: SiteConfig,
        build: Builder = build_site,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        scan: Callable[[Iterable[Path]], Snapshot] = snapshot,
    ):
        self.config = config
        self.build = build
        self.sleep = sleep
        self.scan = scan
        self.debouncer = Debouncer(config.debounce, clock)
        self.result: Optional[BuildResult] = None
        self.builds = 0
        self.failed: set[Path] = set()
        self.stopped = False
        self.previous_snapshot: Snapshot = {}

    def run_build(self, changed: Optional[set[Path]]) -> None:
        if changed is not None:
            changed = changed | self.failed
        try:
            self.result = self.build(self.config, self.result, changed)
        except SiteError as exc:
            logger.error("Build failed: %s", exc)
            if changed is not None:
                self.failed = changed
        else:
            self.failed = set()
            for problem in self.result.report.problems:
                logger.warning("%s", problem)
        finally:
            self.builds += 1

    def start(self) -> None:
        self.previous_snapshot = self.scan(self.config.watched_roots())
        self.run_build(None)

    def tick(self) -> bool:
        current = self.scan(self.config.watched_roots())
        changed = diff_snapshots(self.previous_snapshot, current)
        self.previous_snapshot = current
        if changed:
            logger.debug("Detected %d changed files", len(changed))
            self.debouncer.record(changed)
        batch = self.debouncer.poll()
        if batch is None:
            return False
        logger.info("Rebuilding after changes to %d files", len(batch))
        # A fresh scan happens on the next tick, so edits made while this
        # build runs form the next batch instead of overlapping it.
        self.run_build(batch if self.result is not None else None)
        return True

    def stop(self) -> None:
        self.stopped = True

    def run(self, max_builds: Optional[int] = None) -> None:
        self.start()
        logger.info("Watching %s for changes. Ctrl+C to stop.", ", ".join(str(p) for p in self.config.watched_roots()))
        while not self.stopped:
            if max_builds is not None and self.builds >= max_builds:
                break
            self.tick()
            self.sleep(self.config.poll_interval)
