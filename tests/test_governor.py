"""Resource governor and monitor tests."""

from __future__ import annotations

import threading

import pytest

from frontextract.config import GovernorConfig
from frontextract.governor import ResourceGovernor
from tests._fixtures.archive_builder import GIB, FakeSampler, make_sample


def test_admission_requires_twice_the_workload_free() -> None:
    governor = ResourceGovernor(sampler=FakeSampler(make_sample(memory_free=1000)))

    assert governor.check_admission(499).admitted is True
    assert governor.check_admission(500).admitted is False
    decision = governor.check_admission(600)
    assert decision.required_bytes == 1200
    assert decision.available_bytes == 1000


def test_admission_ignores_threshold_alerts() -> None:
    sample = make_sample(
        memory_free=4 * GIB,
        memory_used_percent=97.0,
        cpu_percent=99.0,
        disk_used_percent=99.0,
    )
    governor = ResourceGovernor(sampler=FakeSampler(sample))

    decision = governor.check_admission(1 * GIB)

    assert decision.admitted is True
    assert {alert.kind for alert in decision.alerts} == {"memory", "cpu", "disk"}


def test_admission_refused_even_without_alerts() -> None:
    governor = ResourceGovernor(sampler=FakeSampler(make_sample(memory_free=GIB)))

    decision = governor.check_admission(GIB)

    assert decision.admitted is False
    assert decision.alerts == ()
    assert "Insufficient memory" in decision.reason


def test_evaluate_is_strictly_greater_than() -> None:
    governor = ResourceGovernor(GovernorConfig(memory_threshold=80, cpu_threshold=80, disk_threshold=90))

    at_limit = make_sample(memory_used_percent=80.0, cpu_percent=80.0, disk_used_percent=90.0)
    over_limit = make_sample(memory_used_percent=80.5, cpu_percent=10.0, disk_used_percent=10.0)

    assert governor.evaluate(at_limit) == []
    alerts = governor.evaluate(over_limit)
    assert [alert.kind for alert in alerts] == ["memory"]
    assert alerts[0].threshold == 80


def test_set_thresholds_validates_names() -> None:
    governor = ResourceGovernor(sampler=FakeSampler())
    governor.set_thresholds(memory=50)
    assert governor.thresholds["memory"] == 50.0

    with pytest.raises(ValueError):
        governor.set_thresholds(network=10)


def test_pressure_follows_memory_threshold() -> None:
    sampler = FakeSampler(make_sample(memory_used_percent=70.0))
    governor = ResourceGovernor(sampler=sampler)
    assert governor.pressure() is False

    governor.set_thresholds(memory=60)
    assert governor.pressure() is True


def test_sample_degrades_when_sampler_fails() -> None:
    def _broken():
        raise OSError("no /proc")

    governor = ResourceGovernor(sampler=_broken)

    sample = governor.sample()

    assert sample.memory_free == 0
    assert sample.cpu_percent == 0.0


def test_sample_reads_host_with_psutil(tmp_path) -> None:
    governor = ResourceGovernor(probe_path=tmp_path)

    sample = governor.sample()

    assert sample.memory_total >= sample.memory_free >= 0
    assert sample.disk_total >= sample.disk_free >= 0


def test_stop_before_start_is_noop() -> None:
    governor = ResourceGovernor(sampler=FakeSampler())
    governor.stop()
    governor.stop()
    assert governor.monitoring is False


def test_monitor_publishes_samples_and_alerts() -> None:
    sample = make_sample(cpu_percent=95.0)
    governor = ResourceGovernor(sampler=FakeSampler(sample))
    seen = threading.Event()
    received = []

    def _on_sample(current, alerts):
        received.append(alerts)
        seen.set()

    monitor = governor.start_monitoring(interval=0.01, on_sample=_on_sample)
    try:
        assert governor.start_monitoring() is monitor
        assert seen.wait(5)
    finally:
        governor.stop()
        governor.stop()

    assert governor.monitoring is False
    assert monitor.running is False
    queued = monitor.drain()
    assert queued
    assert queued[0][0] == sample
    assert [alert.kind for alert in received[0]] == ["cpu"]


def test_monitor_tick_without_thread() -> None:
    governor = ResourceGovernor(sampler=FakeSampler())
    monitor = governor.start_monitoring(interval=60)
    try:
        current, alerts = monitor.tick()
    finally:
        governor.stop()

    assert alerts == []
    assert monitor.drain()[-1] == (current, alerts)
