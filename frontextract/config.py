"""Configuration loading for frontextract (frontextract.yml)."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "frontextract.yml"

ENV_SCRATCH_ROOT = "FRONTEXTRACT_SCRATCH_ROOT"
ENV_CACHE_MAX_ENTRIES = "FRONTEXTRACT_CACHE_MAX_ENTRIES"


@dataclass
class GovernorConfig:
    """Advisory thresholds (percent) and monitor tick."""

    memory_threshold: float = 80.0
    cpu_threshold: float = 80.0
    disk_threshold: float = 90.0
    monitor_interval: float = 2.0


@dataclass
class UnpackConfig:
    large_file_bytes: int = 100 * 1024 * 1024
    batch_size: int = 10


@dataclass
class ScanConfig:
    batch_size: int = 50
    max_workers: int = 4
    pressure_evict_percent: float = 30.0


@dataclass
class CacheConfig:
    max_entries: int = 100


@dataclass
class ReorganizeConfig:
    code_batch_size: int = 5
    asset_batch_size: int = 20
    pressure_evict_percent: float = 50.0
    per_file_evict_percent: float = 10.0


@dataclass
class ScratchConfig:
    """Where per-run scratch trees live and how long stray ones survive."""

    root: Optional[Path] = None
    max_age_hours: float = 24.0 * 7

    def resolved_root(self) -> Path:
        return (self.root or Path(tempfile.gettempdir())).expanduser()


@dataclass
class FrontExtractConfig:
    """Represents the settings defined in frontextract.yml."""

    source: Optional[Path] = None
    governor: GovernorConfig = field(default_factory=GovernorConfig)
    unpack: UnpackConfig = field(default_factory=UnpackConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    reorganize: ReorganizeConfig = field(default_factory=ReorganizeConfig)
    scratch: ScratchConfig = field(default_factory=ScratchConfig)


def load_config(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> FrontExtractConfig:
    """Load configuration from disk, applying environment overrides."""
    env = os.environ if environ is None else environ
    config = FrontExtractConfig()

    if config_path is not None:
        config_file = _resolve_config_path(Path(config_path))
        if config_file.exists():
            data = _read_config(config_file)
            if not isinstance(data, dict):
                raise ConfigError(f"{config_file.name} must contain a mapping at the root")
            config = _build_config(data, config_file)

    _apply_env_overrides(config, env)
    return config


def _build_config(data: Dict[str, Any], config_file: Path) -> FrontExtractConfig:
    config = FrontExtractConfig(source=config_file)

    governor = _as_dict(data.get("governor"))
    if governor:
        config.governor.memory_threshold = _percent(
            governor.get("memory_threshold"), config.governor.memory_threshold
        )
        config.governor.cpu_threshold = _percent(
            governor.get("cpu_threshold"), config.governor.cpu_threshold
        )
        config.governor.disk_threshold = _percent(
            governor.get("disk_threshold"), config.governor.disk_threshold
        )
        config.governor.monitor_interval = _positive_float(
            governor.get("monitor_interval"), config.governor.monitor_interval
        )

    unpack = _as_dict(data.get("unpack"))
    if unpack:
        config.unpack.large_file_bytes = _positive_int(
            unpack.get("large_file_bytes"), config.unpack.large_file_bytes
        )
        config.unpack.batch_size = _positive_int(unpack.get("batch_size"), config.unpack.batch_size)

    scan = _as_dict(data.get("scan"))
    if scan:
        config.scan.batch_size = _positive_int(scan.get("batch_size"), config.scan.batch_size)
        config.scan.max_workers = _positive_int(scan.get("max_workers"), config.scan.max_workers)
        config.scan.pressure_evict_percent = _percent(
            scan.get("pressure_evict_percent"), config.scan.pressure_evict_percent
        )

    cache = _as_dict(data.get("cache"))
    if cache:
        config.cache.max_entries = _positive_int(cache.get("max_entries"), config.cache.max_entries)

    reorganize = _as_dict(data.get("reorganize"))
    if reorganize:
        config.reorganize.code_batch_size = _positive_int(
            reorganize.get("code_batch_size"), config.reorganize.code_batch_size
        )
        config.reorganize.asset_batch_size = _positive_int(
            reorganize.get("asset_batch_size"), config.reorganize.asset_batch_size
        )
        config.reorganize.pressure_evict_percent = _percent(
            reorganize.get("pressure_evict_percent"), config.reorganize.pressure_evict_percent
        )
        config.reorganize.per_file_evict_percent = _percent(
            reorganize.get("per_file_evict_percent"), config.reorganize.per_file_evict_percent
        )

    scratch = _as_dict(data.get("scratch"))
    if scratch:
        root = _as_str(scratch.get("root"))
        if root:
            root_path = Path(root).expanduser()
            if not root_path.is_absolute():
                root_path = config_file.parent / root_path
            config.scratch.root = root_path
        config.scratch.max_age_hours = _positive_float(
            scratch.get("max_age_hours"), config.scratch.max_age_hours
        )

    return config


def _apply_env_overrides(config: FrontExtractConfig, env: Mapping[str, str]) -> None:
    scratch_root = env.get(ENV_SCRATCH_ROOT)
    if scratch_root:
        config.scratch.root = Path(scratch_root).expanduser()
    max_entries = env.get(ENV_CACHE_MAX_ENTRIES)
    if max_entries:
        config.cache.max_entries = _positive_int(max_entries, config.cache.max_entries)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _positive_int(value: Any, default: int) -> int:
    parsed = _as_int(value)
    return parsed if parsed is not None and parsed > 0 else default


def _positive_float(value: Any, default: float) -> float:
    parsed = _as_float(value)
    return parsed if parsed is not None and parsed > 0 else default


def _percent(value: Any, default: float) -> float:
    parsed = _as_float(value)
    if parsed is None or parsed < 0 or parsed > 100:
        return default
    return parsed


__all__ = [
    "CONFIG_FILENAME",
    "CacheConfig",
    "ConfigError",
    "FrontExtractConfig",
    "GovernorConfig",
    "ReorganizeConfig",
    "ScanConfig",
    "ScratchConfig",
    "UnpackConfig",
    "load_config",
]
