"""End-to-end orchestration of a single extraction run."""

from __future__ import annotations

import asyncio
import inspect
import shutil
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Type

from .config import FrontExtractConfig, load_config
from .errors import (
    Cancelled,
    FrontExtractError,
    PackageFailure,
    ReorganizeFailure,
    ResourceInsufficient,
    ScanFailure,
    UnpackFailure,
    ValidationFailure,
)
from .formats import detect_container
from .governor import ResourceGovernor
from .logging import get_logger
from .models import (
    ClassifiedFileSet,
    ContainerHandle,
    PackageKind,
    PipelineResult,
    ResourceAlert,
    ResourceSample,
    Stage,
)
from .packager import Packager, coerce_kind
from .progress import FanoutObserver, LoggingObserver, ProgressObserver, emit
from .reorganizer import ReorganizeResult, Reorganizer, summarize
from .scanner import Scanner
from .stores.tracker import EphemeralResourceTracker, default_tracker
from .stores.transform_cache import TransformCache, default_cache
from .unpack import Unpacker, backend_for_platform

SCRATCH_PREFIX = "frontextract-"

ConfirmHook = Callable[[ContainerHandle], Any]

logger = get_logger("pipeline")


@dataclass(frozen=True)
class ScratchTree:
    """Per-run working directory holding ``unpacked/`` and ``reorganized/``."""

    root: Path

    @property
    def unpacked(self) -> Path:
        return self.root / "unpacked"

    @property
    def reorganized(self) -> Path:
        return self.root / "reorganized"


@contextmanager
def scratch_tree(
    base: Path | None = None, tracker: EphemeralResourceTracker | None = None
) -> Iterator[ScratchTree]:
    """Create a unique scratch tree and remove it on exit, however the body ends."""
    parent = Path(base) if base is not None else Path(tempfile.gettempdir())
    parent.mkdir(parents=True, exist_ok=True)
    tree = ScratchTree(Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=parent)))
    if tracker is not None:
        tracker.register(tree.root)
    logger.debug("Created scratch tree %s", tree.root)
    try:
        tree.unpacked.mkdir()
        tree.reorganized.mkdir()
        yield tree
    finally:
        try:
            shutil.rmtree(tree.root)
        except FileNotFoundError:
            pass
        except OSError as exc:
            # Left registered so the tracker's sweep can retry later.
            logger.warning("Failed to remove scratch tree %s: %s", tree.root, exc)
        else:
            if tracker is not None:
                tracker.release(tree.root)
            logger.debug("Removed scratch tree %s", tree.root)


@contextmanager
def _stage(error_cls: Type[FrontExtractError], label: str) -> Iterator[None]:
    try:
        yield
    except FrontExtractError:
        raise
    except Exception as exc:
        raise error_cls(f"{label} failed: {exc}") from exc


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _resolve_confirmation(result: Any) -> Any:
    if inspect.isawaitable(result):
        return asyncio.run(_await(result))
    return result


class Pipeline:
    """Runs unpack, scan, reorganize, package and validate for one container.

    Components are built from configuration unless injected. The governor
    gates admission before any scratch directory exists and monitors
    resources side-band for the duration of the run.
    """

    def __init__(
        self,
        config: FrontExtractConfig | None = None,
        *,
        governor: ResourceGovernor | None = None,
        cache: TransformCache | None = None,
        tracker: EphemeralResourceTracker | None = None,
        unpacker: Unpacker | None = None,
        scanner: Scanner | None = None,
        reorganizer: Reorganizer | None = None,
        packager: Packager | None = None,
        monitor: bool = True,
    ) -> None:
        self.config = config or FrontExtractConfig()
        self.scratch_root = self.config.scratch.resolved_root()
        self.governor = governor or ResourceGovernor(
            self.config.governor, probe_path=self.scratch_root
        )
        # Injected stores belong to the caller; the process-wide ones outlive
        # any single pipeline.
        self._injected_cache = cache is not None
        self._injected_tracker = tracker is not None
        self.cache = cache if cache is not None else default_cache(self.config.cache.max_entries)
        self.tracker = tracker or default_tracker(self.config.scratch.max_age_hours * 3600)
        self.unpacker = unpacker or Unpacker(
            backend_for_platform(tracker=self.tracker, scratch_root=self.scratch_root),
            batch_size=self.config.unpack.batch_size,
        )
        scan = self.config.scan
        self.scanner = scanner or Scanner(
            self.governor,
            self.cache,
            batch_size=scan.batch_size,
            max_workers=scan.max_workers,
            pressure_evict_percent=scan.pressure_evict_percent,
        )
        reorganize = self.config.reorganize
        self.reorganizer = reorganizer or Reorganizer(
            self.governor,
            self.cache,
            scanner=self.scanner,
            code_batch_size=reorganize.code_batch_size,
            asset_batch_size=reorganize.asset_batch_size,
            pressure_evict_percent=reorganize.pressure_evict_percent,
            per_file_evict_percent=reorganize.per_file_evict_percent,
            max_workers=scan.max_workers,
        )
        self.packager = packager or Packager()
        self.monitor_enabled = monitor
        self.logger = logger

    def shutdown(self) -> None:
        self.governor.stop()
        if self._injected_tracker:
            self.tracker.shutdown()
        if self._injected_cache:
            self.cache.shutdown()

    # ------------------------------------------------------------------
    # Run

    def run(
        self,
        input_path: str | Path,
        output_path: str | Path,
        kind: PackageKind | str = PackageKind.DIRECTORY,
        *,
        observer: ProgressObserver | None = None,
        confirm: ConfirmHook | None = None,
        cancel_event: threading.Event | None = None,
    ) -> PipelineResult:
        """Extract the web assets of ``input_path`` into ``output_path``."""
        destination = Path(output_path).expanduser()
        warnings: List[str] = []
        wrote_output = False
        monitoring = False

        try:
            package_kind = coerce_kind(kind)
            container = detect_container(input_path)
            self.packager.check_destination(destination, package_kind)
            self.logger.info(
                "Starting extraction of %s (%s, %d bytes)",
                container.path,
                container.format.value,
                container.size,
            )
            if confirm is not None and not _resolve_confirmation(confirm(container)):
                raise Cancelled("Extraction cancelled before start")

            self._admit(container, observer, warnings)

            if not self.cache.active:
                self.cache.init()
            self.tracker.start(system_root=self.scratch_root)
            if self.monitor_enabled:
                self.governor.start_monitoring(on_sample=self._alert_forwarder(observer, warnings))
                monitoring = True

            with scratch_tree(self.scratch_root, self.tracker) as scratch:
                files = self._unpack_and_scan(container, scratch, observer, cancel_event)

                with _stage(ReorganizeFailure, "Reorganize"):
                    reorganized = self.reorganizer.reorganize(
                        scratch.unpacked, scratch.reorganized, observer=observer, files=files
                    )

                with _stage(PackageFailure, "Packaging"):
                    # A refused destination is left untouched on failure.
                    self.packager.check_destination(destination, package_kind)
                    wrote_output = True
                    self.packager.package(
                        scratch.reorganized, destination, package_kind, observer=observer
                    )

                emit(observer, Stage.VALIDATING, 95, f"Validating {destination.name}")
                validation = self.packager.validate(destination, package_kind)
                if not validation.valid:
                    raise ValidationFailure(f"Package validation failed: {validation.reason}")

                with _stage(PackageFailure, "Describing package"):
                    artifact = self.packager.describe(destination, reorganized.framework)

            result = PipelineResult(
                artifact=artifact,
                framework=reorganized.framework,
                file_count=reorganized.file_count,
                stats=self._stats(files, reorganized),
                warnings=warnings,
                container=container,
            )
            emit(observer, Stage.COMPLETED, 100, f"Extracted {result.file_count} file(s)")
            self.logger.info(
                "Extraction complete: %s (%s, %d file(s), %s)",
                artifact.path,
                result.framework,
                result.file_count,
                artifact.size_label,
            )
            return result
        except FrontExtractError as exc:
            self._fail(exc, observer, destination if wrote_output else None)
            raise
        except FileNotFoundError as exc:
            self._fail(exc, observer, None)
            raise
        finally:
            if monitoring:
                self.governor.stop()
            self.cache.clear_all()

    # ------------------------------------------------------------------
    # Stages

    def _admit(
        self,
        container: ContainerHandle,
        observer: ProgressObserver | None,
        warnings: List[str],
    ) -> None:
        decision = self.governor.check_admission(container.size)
        for alert in decision.alerts:
            warnings.append(alert.message)
            emit(observer, Stage.WARNING, 0, alert.message)
        if not decision.admitted:
            raise ResourceInsufficient(decision.reason, decision=decision)
        self.logger.debug("Admission granted: %s", decision.reason)

    def _unpack_and_scan(
        self,
        container: ContainerHandle,
        scratch: ScratchTree,
        observer: ProgressObserver | None,
        cancel_event: threading.Event | None,
    ) -> ClassifiedFileSet:
        emit(observer, Stage.UNPACKING, 10, f"Preparing to unpack {container.path.name}")
        with _stage(UnpackFailure, "Unpack"):
            self.unpacker.unpack(
                container.path,
                scratch.unpacked,
                is_large_file=container.size > self.config.unpack.large_file_bytes,
                observer=observer,
                cancel_event=cancel_event,
            )

        emit(observer, Stage.SCANNING, 40, "Scanning unpacked files")
        with _stage(ScanFailure, "Scan"):
            files = self.scanner.scan(scratch.unpacked)
        emit(
            observer,
            Stage.SCANNING,
            60,
            f"Found {files.recognized_count()} front-end file(s) of {files.total_count()}",
        )
        return files

    def _alert_forwarder(
        self, observer: ProgressObserver | None, warnings: List[str]
    ) -> Callable[[ResourceSample, List[ResourceAlert]], None]:
        def _forward(sample: ResourceSample, alerts: List[ResourceAlert]) -> None:
            if not alerts:
                return
            message = f"Resource alert: {alerts[0].message}"
            warnings.append(message)
            emit(observer, Stage.WARNING, 0, message)

        return _forward

    def _fail(
        self,
        exc: Exception,
        observer: ProgressObserver | None,
        written: Optional[Path],
    ) -> None:
        category = exc.category if isinstance(exc, FrontExtractError) else "not_found"
        emit(observer, Stage.ERROR, 0, f"{category}: {exc}")
        self.logger.exception("Extraction failed (%s): %s", category, exc)
        if written is not None:
            _discard_output(written)

    def _stats(self, files: ClassifiedFileSet, reorganized: ReorganizeResult) -> Dict[str, object]:
        return {
            "categories": files.counts(),
            "reorganize": summarize(reorganized),
            "cache": asdict(self.cache.stats()),
            "tracker": asdict(self.tracker.stats()),
        }


def _discard_output(path: Path) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
    except OSError as exc:
        logger.warning("Failed to remove incomplete output %s: %s", path, exc)
    else:
        logger.info("Removed incomplete output %s", path)


def run(
    input_path: str | Path,
    output_path: str | Path,
    kind: PackageKind | str = PackageKind.DIRECTORY,
    *,
    config_path: Path | None = None,
    observer: ProgressObserver | None = None,
    confirm: ConfirmHook | None = None,
) -> PipelineResult:
    """Convenience wrapper: load configuration, run once, release resources."""
    pipeline = Pipeline(load_config(config_path if config_path is not None else Path.cwd()))
    try:
        return pipeline.run(
            input_path,
            output_path,
            kind,
            observer=FanoutObserver(observer, LoggingObserver()) if observer else LoggingObserver(),
            confirm=confirm,
        )
    finally:
        pipeline.shutdown()


__all__ = ["ConfirmHook", "Pipeline", "ScratchTree", "run", "scratch_tree"]
