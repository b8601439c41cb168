"""Extension-based container format detection."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from .errors import UnsupportedFormat
from .models import ContainerHandle, FormatFamily, FormatTag

_TAG_BY_SUFFIX: Dict[str, FormatTag] = {
    ".zip": FormatTag.ZIP,
    ".asar": FormatTag.ASAR,
    ".exe": FormatTag.EXE,
    ".dmg": FormatTag.DMG,
    ".deb": FormatTag.DEB,
    ".rpm": FormatTag.RPM,
}

_FAMILY_BY_TAG: Dict[FormatTag, FormatFamily] = {
    FormatTag.ZIP: FormatFamily.ZIP,
    FormatTag.ASAR: FormatFamily.ZIP,
    FormatTag.EXE: FormatFamily.INSTALLER,
    FormatTag.DMG: FormatFamily.INSTALLER,
    FormatTag.DEB: FormatFamily.INSTALLER,
    FormatTag.RPM: FormatFamily.INSTALLER,
}


def detect_format(path: str | Path) -> FormatTag:
    """Map a container path to its format tag by extension alone."""
    suffix = Path(path).suffix.lower()
    return _TAG_BY_SUFFIX.get(suffix, FormatTag.UNKNOWN)


def format_family(tag: FormatTag) -> FormatFamily:
    return _FAMILY_BY_TAG.get(tag, FormatFamily.UNKNOWN)


def is_supported(path: str | Path) -> bool:
    return detect_format(path) is not FormatTag.UNKNOWN


def supported_extensions() -> Dict[str, List[str]]:
    """Return supported extensions grouped by family."""
    grouped: Dict[str, List[str]] = {FormatFamily.ZIP.value: [], FormatFamily.INSTALLER.value: []}
    for suffix, tag in _TAG_BY_SUFFIX.items():
        grouped[format_family(tag).value].append(suffix)
    return grouped


def detect_container(path: str | Path) -> ContainerHandle:
    """Build the immutable handle for an input container.

    Unsupported extensions are rejected before the file is touched.
    """
    container_path = Path(path).expanduser()
    tag = detect_format(container_path)
    if tag is FormatTag.UNKNOWN:
        raise UnsupportedFormat(
            f"Unsupported container format: {container_path.suffix or container_path.name}"
        )
    if not container_path.is_file():
        raise FileNotFoundError(f"Container not found: {container_path}")
    size = container_path.stat().st_size
    return ContainerHandle(
        path=container_path.resolve(),
        format=tag,
        family=format_family(tag),
        size=size,
    )


__all__ = [
    "detect_container",
    "detect_format",
    "format_family",
    "is_supported",
    "supported_extensions",
]
