"""Core data models shared across frontextract components."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple


class FormatTag(str, Enum):
    """Structural container tag derived from the file extension."""

    ZIP = "zip"
    ASAR = "asar"
    EXE = "exe"
    DMG = "dmg"
    DEB = "deb"
    RPM = "rpm"
    UNKNOWN = "unknown"


class FormatFamily(str, Enum):
    ZIP = "zip"
    INSTALLER = "installer"
    UNKNOWN = "unknown"


class Stage(str, Enum):
    """Progress stages emitted to the caller's observer."""

    UNPACKING = "unpacking"
    SCANNING = "scanning"
    REORGANIZING = "reorganizing"
    PACKING = "packing"
    VALIDATING = "validating"
    COMPLETED = "completed"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def advisory(self) -> bool:
        return self in {Stage.ERROR, Stage.WARNING, Stage.INFO}


class PackageKind(str, Enum):
    DIRECTORY = "directory"
    ARCHIVE = "archive"


def format_size(num_bytes: int) -> str:
    """Return a human readable size such as `1.5 KB`."""
    if num_bytes <= 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB", "TB")
    value = float(num_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


CATEGORIES: Tuple[str, ...] = ("html", "css", "js", "images", "fonts", "config", "other")
RECOGNIZED_CATEGORIES: Tuple[str, ...] = CATEGORIES[:-1]


@dataclass(frozen=True)
class ContainerHandle:
    """Input container as detected at pipeline entry."""

    path: Path
    format: FormatTag
    family: FormatFamily
    size: int


@dataclass
class ClassifiedFileSet:
    """Absolute file paths bucketed by semantic category."""

    root: str
    buckets: Dict[str, List[str]] = field(
        default_factory=lambda: {name: [] for name in CATEGORIES}
    )
    frozen: bool = False

    def add(self, category: str, path: str) -> None:
        if self.frozen:
            raise RuntimeError("ClassifiedFileSet is read-only once frozen")
        self.buckets.setdefault(category, []).append(path)

    def merge(self, pairs: List[Tuple[str, str]]) -> None:
        for category, path in pairs:
            self.add(category, path)

    def freeze(self) -> "ClassifiedFileSet":
        self.frozen = True
        return self

    def get(self, category: str) -> List[str]:
        return list(self.buckets.get(category, []))

    def recognized_count(self) -> int:
        return sum(len(self.buckets.get(name, [])) for name in RECOGNIZED_CATEGORIES)

    def total_count(self) -> int:
        return sum(len(paths) for paths in self.buckets.values())

    def counts(self) -> Dict[str, int]:
        return {name: len(self.buckets.get(name, [])) for name in CATEGORIES}

    def __iter__(self) -> Iterator[Tuple[str, List[str]]]:
        for name in CATEGORIES:
            yield name, self.get(name)


@dataclass
class CacheEntry:
    """Transformed file content held by the transform cache."""

    key: str
    content: str
    size: int
    last_access: float


@dataclass(frozen=True)
class ResourceSample:
    """Point-in-time view of system memory, CPU and disk."""

    memory_total: int
    memory_free: int
    memory_used_percent: float
    cpu_percent: float
    disk_total: int
    disk_free: int
    disk_used_percent: float
    timestamp: float

    @classmethod
    def empty(cls) -> "ResourceSample":
        return cls(0, 0, 0.0, 0.0, 0, 0, 0.0, time.time())


@dataclass(frozen=True)
class ResourceAlert:
    """Advisory threshold breach."""

    kind: str
    value: float
    threshold: float
    message: str


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of the governor's pre-flight memory check."""

    admitted: bool
    reason: str
    required_bytes: int
    available_bytes: int
    alerts: Tuple[ResourceAlert, ...] = ()


@dataclass(frozen=True)
class ProgressEvent:
    """Discrete progress notification."""

    stage: Stage
    percent: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage.value, "percent": self.percent, "message": self.message}


@dataclass(frozen=True)
class PackageArtifact:
    """Description of an emitted web asset package."""

    path: Path
    kind: PackageKind
    framework: str
    file_count: int
    size: int

    @property
    def size_label(self) -> str:
        return format_size(self.size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "kind": self.kind.value,
            "framework": self.framework,
            "file_count": self.file_count,
            "size": self.size,
            "size_label": self.size_label,
        }


@dataclass
class PipelineResult:
    """Result of a full extraction run."""

    artifact: PackageArtifact
    framework: str
    file_count: int
    stats: Mapping[str, object] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    container: Optional[ContainerHandle] = None


__all__ = [
    "AdmissionDecision",
    "CATEGORIES",
    "CacheEntry",
    "ClassifiedFileSet",
    "ContainerHandle",
    "FormatFamily",
    "FormatTag",
    "PackageArtifact",
    "PackageKind",
    "PipelineResult",
    "ProgressEvent",
    "RECOGNIZED_CATEGORIES",
    "ResourceAlert",
    "ResourceSample",
    "Stage",
    "format_size",
]
