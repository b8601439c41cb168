"""Classification of unpacked files into semantic buckets."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .errors import ScanFailure
from .governor import ResourceGovernor
from .logging import get_logger
from .models import ClassifiedFileSet
from .stores.transform_cache import TransformCache

DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_WORKERS = 4
DEFAULT_PRESSURE_EVICT_PERCENT = 30.0

# First matching category wins.
CATEGORY_EXTENSIONS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("html", (".html", ".htm")),
    ("css", (".css",)),
    ("js", (".js", ".jsx", ".ts", ".tsx", ".mjs")),
    ("images", (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico")),
    ("fonts", (".woff", ".woff2", ".ttf", ".otf", ".eot")),
    ("config", (".json", ".yaml", ".yml", ".xml")),
)

CODE_CATEGORIES = frozenset({"html", "css", "js"})


def classify(path: str | Path) -> str:
    """Return the category for ``path`` based on its extension."""
    suffix = Path(path).suffix.lower()
    for category, extensions in CATEGORY_EXTENSIONS:
        if suffix in extensions:
            return category
    return "other"


def is_code_file(path: str | Path) -> bool:
    return classify(path) in CODE_CATEGORIES


def worker_count(limit: int = DEFAULT_MAX_WORKERS) -> int:
    """Size of the bounded worker pool: ``min(cpu_count, limit)``."""
    return max(1, min(os.cpu_count() or 1, limit))


_Inspected = Optional[Tuple[str, str]]


class Scanner:
    """Walks a scratch tree in fixed-size batches on a bounded thread pool.

    Each batch is a synchronization point: its results are merged into the
    file set, resource pressure is checked, and only then does the walk move
    on (sub-directories are recursed after the batch that found them).
    """

    def __init__(
        self,
        governor: ResourceGovernor | None = None,
        cache: TransformCache | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        pressure_evict_percent: float = DEFAULT_PRESSURE_EVICT_PERCENT,
    ) -> None:
        self.governor = governor
        self.cache = cache
        self.batch_size = max(1, int(batch_size))
        self.max_workers = worker_count(max_workers)
        self.pressure_evict_percent = pressure_evict_percent
        self.logger = get_logger("scanner")

    def scan(self, root: str | Path) -> ClassifiedFileSet:
        """Return the frozen classification of every file below ``root``."""
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise ScanFailure(f"Scan root not found: {root}")
        if not root_path.is_dir():
            raise ScanFailure(f"Scan root is not a directory: {root}")
        root_path = root_path.resolve()

        files = ClassifiedFileSet(root=str(root_path))
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="frontextract-scan"
        ) as pool:
            self._scan_directory(root_path, files, pool, is_root=True)

        self.logger.info(
            "Scanned %s: %d file(s), %d recognized",
            root_path,
            files.total_count(),
            files.recognized_count(),
        )
        return files.freeze()

    def _scan_directory(
        self,
        directory: Path,
        files: ClassifiedFileSet,
        pool: ThreadPoolExecutor,
        *,
        is_root: bool = False,
    ) -> None:
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            if is_root:
                raise ScanFailure(f"Cannot read scan root {directory}: {exc}") from exc
            self.logger.warning("Skipping unreadable directory %s: %s", directory, exc)
            return

        for start in range(0, len(entries), self.batch_size):
            batch = entries[start : start + self.batch_size]
            results = list(pool.map(self._inspect, batch))
            subdirectories = self._merge(results, files)
            self._relieve_pressure()
            for subdirectory in subdirectories:
                self._scan_directory(subdirectory, files, pool)

    def _inspect(self, entry: os.DirEntry) -> _Inspected:
        try:
            if entry.is_symlink():
                self.logger.warning("Skipping symlink %s", entry.path)
                return None
            if entry.is_dir(follow_symlinks=False):
                return ("dir", entry.path)
            if entry.is_file(follow_symlinks=False):
                return (classify(entry.name), entry.path)
        except OSError as exc:
            self.logger.warning("Skipping %s: %s", entry.path, exc)
        return None

    def _merge(self, results: Sequence[_Inspected], files: ClassifiedFileSet) -> List[Path]:
        subdirectories: List[Path] = []
        pairs: List[Tuple[str, str]] = []
        for result in results:
            if result is None:
                continue
            kind, path = result
            if kind == "dir":
                subdirectories.append(Path(path))
            else:
                pairs.append((kind, path))
        files.merge(pairs)
        return subdirectories

    def _relieve_pressure(self) -> None:
        if self.governor is None or self.cache is None:
            return
        if self.governor.pressure():
            report = self.cache.evict_percentage(self.pressure_evict_percent)
            self.logger.debug(
                "Memory pressure during scan; evicted %d cached transform(s)", report.removed
            )


__all__ = [
    "CATEGORY_EXTENSIONS",
    "CODE_CATEGORIES",
    "Scanner",
    "classify",
    "is_code_file",
    "worker_count",
]
