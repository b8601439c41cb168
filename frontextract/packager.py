"""Emits the reorganized tree as a directory or zip archive and validates it."""

from __future__ import annotations

import os
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .errors import FrontExtractError, PackageFailure
from .logging import get_logger
from .models import PackageArtifact, PackageKind, Stage, format_size
from .progress import ProgressObserver, emit

ENTRY_FILENAME = "index.html"

_PACKING_STARTED = 90
_PACKING_DONE = 95


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.valid


def coerce_kind(kind: PackageKind | str) -> PackageKind:
    if isinstance(kind, PackageKind):
        return kind
    try:
        return PackageKind(str(kind).lower())
    except ValueError as exc:
        raise PackageFailure(f"Unknown package kind: {kind}") from exc


def _walk_files(root: Path):
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            yield Path(dirpath) / filename


class Packager:
    """Writes and checks web asset packages."""

    def __init__(self) -> None:
        self.logger = get_logger("packager")

    def package(
        self,
        source: str | Path,
        dest: str | Path,
        kind: PackageKind | str = PackageKind.DIRECTORY,
        *,
        observer: ProgressObserver | None = None,
    ) -> Path:
        """Emit ``source`` at ``dest`` as a directory copy or a deflated zip."""
        package_kind = coerce_kind(kind)
        source_path = Path(source)
        dest_path = Path(dest)
        if not source_path.is_dir():
            raise PackageFailure(f"Package source is not a directory: {source_path}")
        self.check_destination(dest_path, package_kind)

        emit(observer, Stage.PACKING, _PACKING_STARTED, f"Packing {package_kind.value} output")
        try:
            if package_kind is PackageKind.DIRECTORY:
                self._package_directory(source_path, dest_path)
            else:
                self._package_archive(source_path, dest_path)
        except FrontExtractError:
            raise
        except (OSError, shutil.Error, zipfile.LargeZipFile) as exc:
            raise PackageFailure(f"Failed to write package {dest_path}: {exc}") from exc

        emit(observer, Stage.PACKING, _PACKING_DONE, f"Packed output at {dest_path}")
        self.logger.info("Wrote %s package to %s", package_kind.value, dest_path)
        return dest_path

    def check_destination(self, dest: str | Path, kind: PackageKind | str) -> None:
        """Refuse destinations the package must not replace, before any I/O.

        A directory package may only replace a real directory and an archive
        may only overwrite a regular file.
        """
        package_kind = coerce_kind(kind)
        target = Path(dest)
        if not (target.exists() or target.is_symlink()):
            return
        if package_kind is PackageKind.DIRECTORY:
            if target.is_symlink() or not target.is_dir():
                raise PackageFailure(
                    f"Refusing to replace {target}: directory output needs a directory path"
                )
        elif not target.is_file():
            raise PackageFailure(
                f"Refusing to overwrite {target}: archive output needs a file path"
            )

    def _package_directory(self, source: Path, dest: Path) -> None:
        if dest.is_dir():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, dest)

    def _package_archive(self, source: Path, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in _walk_files(source):
                archive.write(path, arcname=path.relative_to(source).as_posix())

    def validate(self, path: str | Path, kind: PackageKind | str | None = None) -> ValidationResult:
        """Check that the artifact holds a root ``index.html``.

        Never raises: missing paths, unknown kinds and unreadable archives are
        reported as invalid.
        """
        target = Path(path)
        if not target.exists():
            return ValidationResult(False, f"Package not found: {target}")
        try:
            package_kind = coerce_kind(kind) if kind is not None else self._infer_kind(target)
        except PackageFailure as exc:
            return ValidationResult(False, str(exc))

        if package_kind is PackageKind.DIRECTORY:
            if not target.is_dir():
                return ValidationResult(False, f"{target} is not a directory")
            if (target / ENTRY_FILENAME).is_file():
                return ValidationResult(True)
            return ValidationResult(False, f"{ENTRY_FILENAME} missing from {target}")

        try:
            with zipfile.ZipFile(target) as archive:
                names = archive.namelist()
        except (zipfile.BadZipFile, OSError) as exc:
            return ValidationResult(False, f"Unreadable archive {target.name}: {exc}")
        if ENTRY_FILENAME in names:
            return ValidationResult(True)
        return ValidationResult(False, f"{ENTRY_FILENAME} missing from {target.name}")

    def describe(self, path: str | Path, framework: str = "unknown") -> PackageArtifact:
        """Count files and bytes of an emitted package."""
        target = Path(path)
        kind = self._infer_kind(target)
        if kind is PackageKind.DIRECTORY:
            file_count, size = _directory_totals(target)
        else:
            with zipfile.ZipFile(target) as archive:
                file_count = sum(1 for info in archive.infolist() if not info.is_dir())
            size = target.stat().st_size
        artifact = PackageArtifact(
            path=target,
            kind=kind,
            framework=framework,
            file_count=file_count,
            size=size,
        )
        self.logger.debug("%s holds %d file(s), %s", target, file_count, format_size(size))
        return artifact

    @staticmethod
    def _infer_kind(target: Path) -> PackageKind:
        if target.is_dir():
            return PackageKind.DIRECTORY
        if target.suffix.lower() == ".zip" or zipfile.is_zipfile(target):
            return PackageKind.ARCHIVE
        raise PackageFailure(f"Unknown package kind for {target}")


def _directory_totals(root: Path) -> Tuple[int, int]:
    count = 0
    size = 0
    for path in _walk_files(root):
        count += 1
        size += path.stat().st_size
    return count, size


__all__ = ["ENTRY_FILENAME", "Packager", "ValidationResult", "coerce_kind"]
