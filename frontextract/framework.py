"""Front-end framework signature detection."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Iterable, Set, Tuple

from .logging import get_logger

logger = get_logger("framework")


class Framework(str, Enum):
    VUE = "vue"
    REACT = "react"
    ANGULAR = "angular"
    UNKNOWN = "unknown"


# Checked in order; the first framework with a matching name wins.
_DEPENDENCY_NAMES: Tuple[Tuple[Framework, Tuple[str, ...]], ...] = (
    (Framework.VUE, ("vue",)),
    (Framework.REACT, ("react",)),
    (Framework.ANGULAR, ("@angular/core", "angular")),
)

_SOURCE_MARKERS: Tuple[Tuple[Framework, Tuple[str, ...]], ...] = (
    (Framework.VUE, ("import Vue", "from 'vue'", 'from "vue"')),
    (Framework.REACT, ("import React", "from 'react'", 'from "react"')),
    (Framework.ANGULAR, ("from '@angular/core'", 'from "@angular/core"')),
)


def _package_dependencies(root: Path) -> Set[str]:
    manifest = root / "package.json"
    if not manifest.is_file():
        return set()
    try:
        payload = json.loads(manifest.read_text(encoding="utf-8", errors="replace"))
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring unreadable package.json at %s: %s", manifest, exc)
        return set()
    if not isinstance(payload, dict):
        return set()

    names: Set[str] = set()
    for section in ("dependencies", "devDependencies"):
        entries = payload.get(section)
        if isinstance(entries, dict):
            names.update(str(name) for name in entries)
    return names


class FrameworkDetector:
    """Guesses the UI framework of an unpacked tree.

    ``package.json`` dependencies are authoritative; otherwise the JS sources
    are searched for framework imports, stopping at the first hit.
    """

    def detect(self, root: str | Path, js_files: Iterable[str | Path] = ()) -> Framework:
        dependencies = _package_dependencies(Path(root))
        for framework, names in _DEPENDENCY_NAMES:
            if dependencies.intersection(names):
                return framework

        for js_file in js_files:
            try:
                content = Path(js_file).read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            for framework, markers in _SOURCE_MARKERS:
                if any(marker in content for marker in markers):
                    return framework
        return Framework.UNKNOWN


__all__ = ["Framework", "FrameworkDetector"]
