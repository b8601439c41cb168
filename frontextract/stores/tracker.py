"""Tracks transient scratch paths so long-running processes never accumulate them."""

from __future__ import annotations

import shutil
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from ..logging import get_logger

DEFAULT_MAX_AGE = 7 * 24 * 60 * 60.0
DEFAULT_CLEANUP_INTERVAL = 24 * 60 * 60.0
SCRATCH_PREFIXES = ("frontextract-", "dmg-mount-")


@dataclass(frozen=True)
class TrackerStats:
    total: int
    expired: int
    max_age: float


class EphemeralResourceTracker:
    """Registry of scratch paths with age-based cleanup.

    Paths registered here are removed once older than ``max_age`` whether or
    not the run that created them succeeded. ``start()`` runs the sweep on a
    background thread; ``shutdown()`` stops it.
    """

    def __init__(
        self,
        *,
        max_age: float = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age = max_age
        self._clock = clock
        self._paths: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._system_roots: List[Path] = []
        self.logger = get_logger("tracker")

    def register(self, path: Path | str) -> None:
        with self._lock:
            self._paths[str(path)] = self._clock()
        self.logger.debug("Registered scratch path %s", path)

    def release(self, path: Path | str) -> None:
        with self._lock:
            self._paths.pop(str(path), None)

    def tracked(self) -> List[str]:
        with self._lock:
            return sorted(self._paths)

    def cleanup_expired(self, now: float | None = None) -> List[str]:
        """Remove registered paths older than ``max_age``; return those removed."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [path for path, created in self._paths.items() if now - created > self.max_age]
            for path in expired:
                self._paths.pop(path, None)
        removed = [path for path in expired if _remove_path(Path(path), self.logger)]
        if expired:
            self.logger.info("Cleaned %d expired scratch path(s)", len(expired))
        return removed

    def cleanup_all(self) -> List[str]:
        with self._lock:
            paths = list(self._paths)
            self._paths.clear()
        return [path for path in paths if _remove_path(Path(path), self.logger)]

    def stats(self, now: float | None = None) -> TrackerStats:
        now = self._clock() if now is None else now
        with self._lock:
            expired = sum(1 for created in self._paths.values() if now - created > self.max_age)
            return TrackerStats(total=len(self._paths), expired=expired, max_age=self.max_age)

    # ------------------------------------------------------------------
    # Background sweep

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(
        self,
        interval: float = DEFAULT_CLEANUP_INTERVAL,
        *,
        system_root: Path | None = None,
    ) -> None:
        """Start the periodic sweep; later calls only add system roots.

        A ``system_root`` not seen before is swept for stale prefixed scratch
        directories right away and on every later tick.
        """
        if system_root is not None:
            self._add_system_root(Path(system_root))
        if self.running:
            return
        self._stop_event.clear()

        def _worker() -> None:
            while not self._stop_event.wait(interval):
                self.sweep()

        self._thread = threading.Thread(
            target=_worker, name="frontextract-tracker", daemon=True
        )
        self._thread.start()

    def sweep(self) -> List[str]:
        """Run one cleanup pass over registered paths and system roots."""
        removed = self.cleanup_expired()
        with self._lock:
            roots = list(self._system_roots)
        for root in roots:
            removed.extend(sweep_system_temp(root, max_age=self.max_age))
        return removed

    def _add_system_root(self, root: Path) -> None:
        with self._lock:
            if root in self._system_roots:
                return
            self._system_roots.append(root)
        removed = sweep_system_temp(root, max_age=self.max_age)
        if removed:
            self.logger.info("Removed %d stale scratch path(s) under %s", len(removed), root)

    def shutdown(self) -> None:
        thread = self._thread
        self._thread = None
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout=5)


def sweep_system_temp(
    root: Path,
    prefixes: Iterable[str] = SCRATCH_PREFIXES,
    *,
    max_age: float = DEFAULT_MAX_AGE,
    now: float | None = None,
) -> List[str]:
    """Remove stale scratch directories left under ``root`` by crashed runs."""
    logger = get_logger("tracker")
    now = time.time() if now is None else now
    prefix_tuple = tuple(prefixes)
    removed: List[str] = []
    try:
        entries = list(root.iterdir())
    except OSError as exc:
        logger.debug("Cannot list %s for stale scratch trees: %s", root, exc)
        return removed
    for entry in entries:
        if not entry.name.startswith(prefix_tuple):
            continue
        try:
            age = now - entry.stat().st_mtime
        except OSError:
            continue
        if age > max_age and _remove_path(entry, logger):
            removed.append(str(entry))
    return removed


def _remove_path(path: Path, logger) -> bool:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            return False
    except OSError as exc:
        logger.warning("Failed to remove scratch path %s: %s", path, exc)
        return False
    return True


_default_tracker: Optional[EphemeralResourceTracker] = None
_default_lock = threading.Lock()


def default_tracker(max_age: float | None = None) -> EphemeralResourceTracker:
    """Return the process-wide tracker; ``max_age`` only applies on first use."""
    global _default_tracker
    with _default_lock:
        if _default_tracker is None:
            _default_tracker = EphemeralResourceTracker(
                max_age=DEFAULT_MAX_AGE if max_age is None else max_age
            )
        return _default_tracker


__all__ = [
    "EphemeralResourceTracker",
    "SCRATCH_PREFIXES",
    "TrackerStats",
    "default_tracker",
    "sweep_system_temp",
]
