"""Zip extraction shared by plain zip, asar and self-extracting installers."""

from __future__ import annotations

import threading
import time
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import List

from ..errors import Cancelled, FrontExtractError, UnpackFailure
from ..logging import get_logger
from ..models import Stage
from ..progress import UNPACK_RANGE, ProgressObserver, SubRange, emit

logger = get_logger("unpack.archive")

_ARCHIVE_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError)


def extract_zip(
    path: Path,
    dest: Path,
    *,
    batch_size: int | None = None,
    observer: ProgressObserver | None = None,
    cancel_event: threading.Event | None = None,
    window: SubRange = UNPACK_RANGE,
) -> Path:
    """Extract a zip-structured container into ``dest``.

    With ``batch_size`` set, entries are extracted that many at a time with a
    yield point between batches where cancellation is honoured; otherwise the
    archive is extracted in one step.
    """
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(path) as archive:
            members = archive.infolist()
            _check_members(members, path)
            if batch_size is None:
                archive.extractall(dest)
                return dest
            _extract_in_batches(archive, members, dest, batch_size, observer, cancel_event, window)
    except FrontExtractError:
        raise
    except _ARCHIVE_ERRORS as exc:
        raise UnpackFailure(
            f"Corrupt or unreadable archive {path.name}: {exc}", detail=str(exc)
        ) from exc
    return dest


def _extract_in_batches(
    archive: zipfile.ZipFile,
    members: List[zipfile.ZipInfo],
    dest: Path,
    batch_size: int,
    observer: ProgressObserver | None,
    cancel_event: threading.Event | None,
    window: SubRange,
) -> None:
    files = [member for member in members if not member.is_dir()]
    total = len(files)
    processed = 0
    for start in range(0, total, batch_size):
        batch = files[start : start + batch_size]
        for member in batch:
            archive.extract(member, dest)
            processed += 1
            emit(
                observer,
                Stage.UNPACKING,
                window.at(processed, total),
                f"Unpacking {member.filename} ({processed}/{total})",
            )
        # Yield point between batches.
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled(f"Unpacking cancelled after {processed}/{total} entries")
        time.sleep(0)
    logger.debug("Extracted %d entries in batches of %d", total, batch_size)


def _check_members(members: List[zipfile.ZipInfo], path: Path) -> None:
    for member in members:
        name = PurePosixPath(member.filename.replace("\\", "/"))
        if name.is_absolute() or ".." in name.parts:
            raise UnpackFailure(f"Archive {path.name} contains an unsafe entry: {member.filename}")


def list_entries(path: Path) -> List[str]:
    """Return the entry names of a zip archive without extracting it."""
    with zipfile.ZipFile(path) as archive:
        return archive.namelist()


__all__ = ["extract_zip", "list_entries"]
