"""System resource sampling, admission control and side-band monitoring."""

from __future__ import annotations

import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import psutil

from .config import GovernorConfig
from .logging import get_logger
from .models import AdmissionDecision, ResourceAlert, ResourceSample

SampleCallback = Callable[[ResourceSample, List[ResourceAlert]], None]

_CHANNEL_SIZE = 32


def _read_memory() -> Tuple[int, int, float]:
    memory = psutil.virtual_memory()
    return int(memory.total), int(memory.available), float(memory.percent)


def _read_cpu() -> float:
    try:
        load_1m = psutil.getloadavg()[0]
        cpus = psutil.cpu_count() or os.cpu_count() or 1
        return round(load_1m / cpus * 100, 1)
    except (AttributeError, OSError):
        return float(psutil.cpu_percent(interval=None))


def _read_disk(path: Path) -> Tuple[int, int, float]:
    usage = psutil.disk_usage(str(path))
    return int(usage.total), int(usage.free), float(usage.percent)


class ResourceGovernor:
    """Samples memory/CPU/disk and decides whether a run may start.

    Percentage thresholds only ever produce advisory alerts. The admission
    decision looks at absolute free memory alone: a container of ``S`` bytes
    is admitted when more than ``2 * S`` bytes are free.
    """

    def __init__(
        self,
        config: GovernorConfig | None = None,
        *,
        probe_path: Path | None = None,
        sampler: Callable[[], ResourceSample] | None = None,
    ) -> None:
        config = config or GovernorConfig()
        self._thresholds = {
            "memory": config.memory_threshold,
            "cpu": config.cpu_threshold,
            "disk": config.disk_threshold,
        }
        self.monitor_interval = config.monitor_interval
        self.probe_path = probe_path or Path.cwd()
        self._sampler = sampler
        self._lock = threading.Lock()
        self._latest: Optional[ResourceSample] = None
        self._monitor: Optional[ResourceMonitor] = None
        self.logger = get_logger("governor")

    @property
    def thresholds(self) -> dict[str, float]:
        with self._lock:
            return dict(self._thresholds)

    def set_thresholds(self, **overrides: float) -> None:
        unknown = set(overrides) - set(self._thresholds)
        if unknown:
            raise ValueError(f"Unknown thresholds: {', '.join(sorted(unknown))}")
        with self._lock:
            self._thresholds.update({key: float(value) for key, value in overrides.items()})
        self.logger.info("Updated resource thresholds: %s", self.thresholds)

    def sample(self) -> ResourceSample:
        """Return a fresh sample; failing probes degrade to zeros."""
        if self._sampler is not None:
            try:
                result = self._sampler()
            except Exception as exc:  # pragma: no cover
                self.logger.debug("Injected sampler failed: %s", exc)
                result = ResourceSample.empty()
            self._remember(result)
            return result

        memory_total = memory_free = 0
        memory_percent = 0.0
        cpu_percent = 0.0
        disk_total = disk_free = 0
        disk_percent = 0.0

        try:
            memory_total, memory_free, memory_percent = _read_memory()
        except Exception as exc:
            self.logger.debug("Memory probe failed: %s", exc)
        try:
            cpu_percent = _read_cpu()
        except Exception as exc:
            self.logger.debug("CPU probe failed: %s", exc)
        try:
            disk_total, disk_free, disk_percent = _read_disk(self.probe_path)
        except Exception as exc:
            self.logger.debug("Disk probe failed for %s: %s", self.probe_path, exc)

        result = ResourceSample(
            memory_total=memory_total,
            memory_free=memory_free,
            memory_used_percent=memory_percent,
            cpu_percent=cpu_percent,
            disk_total=disk_total,
            disk_free=disk_free,
            disk_used_percent=disk_percent,
            timestamp=time.time(),
        )
        self._remember(result)
        return result

    def evaluate(self, sample: ResourceSample) -> List[ResourceAlert]:
        """Return advisory alerts for every breached threshold."""
        thresholds = self.thresholds
        readings = (
            ("memory", sample.memory_used_percent, "Memory usage high"),
            ("cpu", sample.cpu_percent, "CPU load high"),
            ("disk", sample.disk_used_percent, "Disk usage high"),
        )
        alerts: List[ResourceAlert] = []
        for kind, value, label in readings:
            limit = thresholds[kind]
            if value > limit:
                alerts.append(
                    ResourceAlert(
                        kind=kind,
                        value=value,
                        threshold=limit,
                        message=f"{label}: {value:.0f}% (threshold {limit:.0f}%)",
                    )
                )
        return alerts

    def check_admission(self, expected_workload_bytes: int) -> AdmissionDecision:
        """Decide whether a container of the given size may be processed."""
        current = self.sample()
        alerts = tuple(self.evaluate(current))
        required = 2 * max(0, int(expected_workload_bytes))
        available = current.memory_free
        admitted = available > required
        if admitted:
            reason = f"{available} bytes free exceeds the {required} bytes required"
        else:
            reason = f"Insufficient memory: {required} bytes required, {available} bytes free"
        if alerts:
            self.logger.info(
                "Admission advisory alerts: %s", "; ".join(alert.message for alert in alerts)
            )
        return AdmissionDecision(
            admitted=admitted,
            reason=reason,
            required_bytes=required,
            available_bytes=available,
            alerts=alerts,
        )

    def pressure(self) -> bool:
        """Return True when memory usage breaches its threshold."""
        monitor = self._monitor
        with self._lock:
            latest = self._latest
        if monitor is None or not monitor.running or latest is None:
            latest = self.sample()
        return latest.memory_used_percent > self.thresholds["memory"]

    def start_monitoring(
        self, interval: float | None = None, on_sample: SampleCallback | None = None
    ) -> "ResourceMonitor":
        """Start the side-band monitor; a second call returns the running monitor."""
        if self._monitor is not None and self._monitor.running:
            return self._monitor
        monitor = ResourceMonitor(self, interval or self.monitor_interval, on_sample)
        monitor.start()
        self._monitor = monitor
        return monitor

    def stop(self) -> None:
        """Stop monitoring; safe to call repeatedly or before any start."""
        monitor = self._monitor
        self._monitor = None
        if monitor is not None:
            monitor.stop()

    @property
    def monitoring(self) -> bool:
        return self._monitor is not None and self._monitor.running

    def _remember(self, sample: ResourceSample) -> None:
        with self._lock:
            self._latest = sample


class ResourceMonitor:
    """Supervisor thread that samples on a fixed tick.

    Each tick publishes ``(sample, alerts)`` on a bounded queue (the oldest
    entry is dropped when consumers fall behind) and invokes the optional
    callback. The thread owns its cancellation event, so stopping never races
    with a tick in flight.
    """

    def __init__(
        self,
        governor: ResourceGovernor,
        interval: float,
        on_sample: SampleCallback | None = None,
    ) -> None:
        self._governor = governor
        self.interval = max(0.01, float(interval))
        self._on_sample = on_sample
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.channel: "queue.Queue[Tuple[ResourceSample, List[ResourceAlert]]]" = queue.Queue(
            maxsize=_CHANNEL_SIZE
        )
        self.logger = get_logger("governor.monitor")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="frontextract-monitor", daemon=True
        )
        self._thread.start()
        self.logger.info("Resource monitoring started (interval=%.2fs)", self.interval)

    def stop(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout if timeout is not None else self.interval + 5)
        self._thread = None
        self.logger.info("Resource monitoring stopped")

    def drain(self) -> List[Tuple[ResourceSample, List[ResourceAlert]]]:
        """Return every sample queued since the previous drain."""
        items = []
        while True:
            try:
                items.append(self.channel.get_nowait())
            except queue.Empty:
                return items

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.tick()

    def tick(self) -> Tuple[ResourceSample, List[ResourceAlert]]:
        sample = self._governor.sample()
        alerts = self._governor.evaluate(sample)
        self.logger.debug(
            "Resources: mem=%.0f%% cpu=%.0f%% disk=%.0f%%",
            sample.memory_used_percent,
            sample.cpu_percent,
            sample.disk_used_percent,
        )
        if alerts:
            self.logger.warning(
                "Resource alerts: %s", "; ".join(alert.message for alert in alerts)
            )
        self._publish((sample, alerts))
        if self._on_sample is not None:
            try:
                self._on_sample(sample, alerts)
            except Exception as exc:
                self.logger.warning("Monitor callback failed: %s", exc)
        return sample, alerts

    def _publish(self, item: Tuple[ResourceSample, List[ResourceAlert]]) -> None:
        while True:
            try:
                self.channel.put_nowait(item)
                return
            except queue.Full:
                try:
                    self.channel.get_nowait()
                except queue.Empty:
                    pass


__all__ = ["ResourceGovernor", "ResourceMonitor", "SampleCallback"]
