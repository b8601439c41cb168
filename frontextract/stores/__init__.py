"""Process-wide stores shared across pipeline runs."""

from .tracker import EphemeralResourceTracker, TrackerStats, default_tracker, sweep_system_temp
from .transform_cache import CacheStats, EvictionReport, TransformCache, default_cache

__all__ = [
    "CacheStats",
    "EphemeralResourceTracker",
    "EvictionReport",
    "TrackerStats",
    "TransformCache",
    "default_cache",
    "default_tracker",
    "sweep_system_temp",
]
