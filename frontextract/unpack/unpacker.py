"""Format-aware unpacking of distribution containers into a scratch directory."""

from __future__ import annotations

import threading
from pathlib import Path

from ..errors import FrontExtractError, UnpackFailure, UnsupportedFormat
from ..formats import detect_format, format_family
from ..logging import get_logger
from ..models import FormatFamily, FormatTag, Stage
from ..progress import UNPACK_RANGE, ProgressObserver, SubRange, emit
from .archive import extract_zip
from .backends import InstallerBackend, backend_for_platform

DEFAULT_BATCH_SIZE = 10

_ASAR_STARTED = 25
_INSTALLER_STARTED = 15

# Batched asar progress continues from the "reading" event.
_ASAR_RANGE = SubRange(_ASAR_STARTED, UNPACK_RANGE.end)


class Unpacker:
    """Extracts zip-family containers itself and hands installers to a backend."""

    def __init__(
        self,
        backend: InstallerBackend | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.backend = backend or backend_for_platform()
        self.batch_size = max(1, int(batch_size))
        self.logger = get_logger("unpack")

    def detect_format(self, path: str | Path) -> FormatTag:
        return detect_format(path)

    def unpack(
        self,
        path: str | Path,
        dest: str | Path,
        *,
        is_large_file: bool = False,
        observer: ProgressObserver | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Extract ``path`` into ``dest`` and return ``dest``.

        Raises ``UnsupportedFormat`` before touching the filesystem when the
        extension is not recognised, and ``UnpackFailure`` for corrupt inputs,
        failing tools or an unwritable destination.
        """
        source = Path(path)
        target = Path(dest)
        tag = detect_format(source)
        if tag is FormatTag.UNKNOWN:
            raise UnsupportedFormat(
                f"Unsupported container format: {source.suffix or source.name}"
            )

        emit(observer, Stage.UNPACKING, UNPACK_RANGE.start, f"Unpacking {source.name}")
        self.logger.info("Unpacking %s (%s) into %s", source.name, tag.value, target)
        try:
            if tag is FormatTag.ASAR:
                self._unpack_asar(
                    source,
                    target,
                    batch_size=self.batch_size if is_large_file else None,
                    observer=observer,
                    cancel_event=cancel_event,
                )
            elif format_family(tag) is FormatFamily.ZIP:
                extract_zip(
                    source,
                    target,
                    batch_size=self.batch_size if is_large_file else None,
                    observer=observer,
                    cancel_event=cancel_event,
                )
            else:
                emit(
                    observer,
                    Stage.UNPACKING,
                    _INSTALLER_STARTED,
                    f"Running {self.backend.platform_name} installer backend for {tag.value}",
                )
                self.backend.unpack(tag, source, target)
        except FrontExtractError:
            raise
        except PermissionError as exc:
            raise UnpackFailure(f"Permission denied writing to {target}: {exc}") from exc
        except OSError as exc:
            raise UnpackFailure(f"Failed to unpack {source.name}: {exc}") from exc

        emit(observer, Stage.UNPACKING, UNPACK_RANGE.end, f"Unpacked {source.name}")
        return target

    def _unpack_asar(
        self,
        source: Path,
        target: Path,
        *,
        batch_size: int | None,
        observer: ProgressObserver | None,
        cancel_event: threading.Event | None,
    ) -> None:
        emit(observer, Stage.UNPACKING, _ASAR_STARTED, f"Reading asar archive {source.name}")
        extract_zip(
            source,
            target,
            batch_size=batch_size,
            observer=observer,
            cancel_event=cancel_event,
            window=_ASAR_RANGE,
        )


__all__ = ["DEFAULT_BATCH_SIZE", "Unpacker"]
