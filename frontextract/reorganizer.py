"""Lays classified files out as a canonical web asset tree."""

from __future__ import annotations

import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Set, Tuple

from jinja2 import Environment, FileSystemLoader, TemplateError

from .errors import FrontExtractError, ReorganizeFailure
from .framework import Framework, FrameworkDetector
from .governor import ResourceGovernor
from .logging import get_logger
from .models import ClassifiedFileSet, Stage
from .progress import REORGANIZE_RANGE, ProgressObserver, emit
from .scanner import CODE_CATEGORIES, Scanner, worker_count
from .stores.transform_cache import TransformCache
from .transform import Beautifier

ENTRY_FILENAME = "index.html"
TEMPLATES_DIR = Path(__file__).with_name("templates")

# Category -> directory relative to the output root, in processing order.
CATEGORY_TARGETS: Tuple[Tuple[str, str], ...] = (
    ("html", ""),
    ("css", "css"),
    ("js", "js"),
    ("images", "assets/images"),
    ("fonts", "assets/fonts"),
    ("config", ""),
)

_LAYOUT_DIRS = ("css", "js", "assets/images", "assets/fonts")

_ENTRY_TITLES: Dict[Framework, str] = {
    Framework.VUE: "Vue App",
    Framework.REACT: "React App",
    Framework.ANGULAR: "Angular App",
    Framework.UNKNOWN: "Extracted Frontend",
}


@dataclass(frozen=True)
class ReorganizeResult:
    framework: str
    file_count: int
    skipped: int = 0


def render_entry(framework: Framework | str) -> str:
    """Render the entry document for ``framework``."""
    framework = Framework(framework) if not isinstance(framework, Framework) else framework
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    name = "generic" if framework is Framework.UNKNOWN else framework.value
    template = env.get_template(f"entry/{name}.html.j2")
    return template.render(
        title=_ENTRY_TITLES[framework],
        lang="en",
        stylesheet="style.css",
        script="script.js",
    )


class _NameAllocator:
    """Hands out collision-free target paths inside flat output directories."""

    def __init__(self, reserved: Iterable[Path] = ()) -> None:
        self._claimed: Set[Path] = set(reserved)
        self._lock = threading.Lock()

    def claim(self, directory: Path, filename: str) -> Path:
        candidate = directory / filename
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        with self._lock:
            while candidate in self._claimed or candidate.exists():
                candidate = directory / f"{stem}-{counter}{suffix}"
                counter += 1
            self._claimed.add(candidate)
        return candidate


class Reorganizer:
    """Copies (and beautifies) classified files into the canonical layout.

    html and config land at the root, css in ``css/``, js in ``js/``, images
    and fonts under ``assets/``. Files classified as ``other`` are dropped.
    Code is pretty-printed through the transform cache, everything else is
    copied byte for byte. The root ``index.html`` is always the entry document
    rendered for the detected framework; extracted pages that would collide
    with it are kept as ``index-1.html`` and so on.
    """

    def __init__(
        self,
        governor: ResourceGovernor | None = None,
        cache: TransformCache | None = None,
        *,
        beautifier: Beautifier | None = None,
        detector: FrameworkDetector | None = None,
        scanner: Scanner | None = None,
        code_batch_size: int = 5,
        asset_batch_size: int = 20,
        pressure_evict_percent: float = 50.0,
        per_file_evict_percent: float = 10.0,
        max_workers: int = 4,
    ) -> None:
        self.governor = governor
        self.cache = cache if cache is not None else TransformCache().init()
        self.beautifier = beautifier or Beautifier(self.cache)
        self.detector = detector or FrameworkDetector()
        self.scanner = scanner or Scanner(governor, self.cache)
        self.code_batch_size = max(1, int(code_batch_size))
        self.asset_batch_size = max(1, int(asset_batch_size))
        self.pressure_evict_percent = pressure_evict_percent
        self.per_file_evict_percent = per_file_evict_percent
        self.max_workers = worker_count(max_workers)
        self.logger = get_logger("reorganizer")

    def reorganize(
        self,
        source: str | Path,
        dest: str | Path,
        *,
        observer: ProgressObserver | None = None,
        files: ClassifiedFileSet | None = None,
    ) -> ReorganizeResult:
        source_path = Path(source)
        dest_path = Path(dest)
        if files is None:
            files = self.scanner.scan(source_path)

        try:
            framework = self.detector.detect(source_path, files.get("js"))
            self._create_layout(dest_path)
            total = files.recognized_count()
            emit(
                observer,
                Stage.REORGANIZING,
                REORGANIZE_RANGE.start,
                f"Reorganizing {total} file(s) ({framework.value})",
            )
            skipped = self._copy_categories(files, dest_path, total, observer)
            self._write_entry(dest_path, framework)
        except FrontExtractError:
            raise
        except OSError as exc:
            raise ReorganizeFailure(f"Failed to reorganize {source_path}: {exc}") from exc
        finally:
            self.cache.clear_all()

        emit(observer, Stage.REORGANIZING, REORGANIZE_RANGE.end, "Reorganization complete")
        self.logger.info(
            "Reorganized %d file(s) into %s (framework=%s, skipped=%d)",
            total,
            dest_path,
            framework.value,
            skipped,
        )
        return ReorganizeResult(
            framework=framework.value,
            file_count=total,
            skipped=skipped,
        )

    # ------------------------------------------------------------------
    # Stages

    def _create_layout(self, dest: Path) -> None:
        try:
            dest.mkdir(parents=True, exist_ok=True)
            for relative in _LAYOUT_DIRS:
                (dest / relative).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ReorganizeFailure(f"Cannot create output layout in {dest}: {exc}") from exc

    def _copy_categories(
        self,
        files: ClassifiedFileSet,
        dest: Path,
        total: int,
        observer: ProgressObserver | None,
    ) -> int:
        # The entry document always takes index.html; copied pages get a suffix.
        allocator = _NameAllocator(reserved=[dest / ENTRY_FILENAME])
        processed = 0
        skipped = 0
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="frontextract-reorganize"
        ) as pool:
            for category, relative in CATEGORY_TARGETS:
                paths = files.get(category)
                if not paths:
                    continue
                target_dir = dest / relative if relative else dest
                is_code = category in CODE_CATEGORIES
                batch_size = self.code_batch_size if is_code else self.asset_batch_size

                for start in range(0, len(paths), batch_size):
                    batch = paths[start : start + batch_size]
                    jobs = [
                        (Path(path), allocator.claim(target_dir, Path(path).name), is_code)
                        for path in batch
                    ]
                    outcomes = list(pool.map(self._process_file, jobs))
                    skipped += outcomes.count(False)
                    processed += len(batch)
                    emit(
                        observer,
                        Stage.REORGANIZING,
                        REORGANIZE_RANGE.at(processed, total),
                        f"Processing {category} files ({processed}/{total})",
                    )
                    self._relieve_pressure()
        return skipped

    def _process_file(self, job: Tuple[Path, Path, bool]) -> bool:
        source, target, is_code = job
        if source.is_symlink():
            self.logger.warning("Skipping symlink %s", source)
            return False
        try:
            if is_code:
                content = self.beautifier.transform(source)
                target.write_text(content, encoding="utf-8")
                self.cache.evict_percentage(self.per_file_evict_percent)
            else:
                shutil.copy2(source, target)
        except (OSError, ValueError) as exc:
            self.logger.warning("Skipping %s: %s", source, exc)
            return False
        return True

    def _relieve_pressure(self) -> None:
        if self.governor is not None and self.governor.pressure():
            report = self.cache.evict_percentage(self.pressure_evict_percent)
            self.logger.debug(
                "Memory pressure during reorganize; evicted %d cached transform(s)",
                report.removed,
            )

    def _write_entry(self, dest: Path, framework: Framework) -> None:
        entry = dest / ENTRY_FILENAME
        try:
            entry.write_text(render_entry(framework), encoding="utf-8")
        except (OSError, TemplateError) as exc:
            raise ReorganizeFailure(f"Failed to write entry document: {exc}") from exc
        self.logger.info("Synthesized %s entry document", framework.value)


def summarize(result: ReorganizeResult) -> Dict[str, object]:
    return {
        "framework": result.framework,
        "file_count": result.file_count,
        "skipped": result.skipped,
    }


__all__ = [
    "CATEGORY_TARGETS",
    "ENTRY_FILENAME",
    "ReorganizeResult",
    "Reorganizer",
    "render_entry",
    "summarize",
]
