"""Tests for frontextract.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from frontextract.config import FrontExtractConfig, load_config
from frontextract.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, FrontExtractConfig)
    assert config.source is None
    assert config.governor.memory_threshold == 80
    assert config.governor.disk_threshold == 90
    assert config.unpack.large_file_bytes == 100 * 1024 * 1024
    assert config.scan.batch_size == 50
    assert config.cache.max_entries == 100
    assert config.reorganize.code_batch_size == 5
    assert config.reorganize.asset_batch_size == 20
    assert config.scratch.root is None
    assert config.scratch.max_age_hours == 168


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / "frontextract.yml"
    config_file.write_text(
        """
governor:
  memory_threshold: 70
  cpu_threshold: "85"
  monitor_interval: 0.5
unpack:
  large_file_bytes: 1024
  batch_size: 4
scan:
  batch_size: 25
  max_workers: 2
  pressure_evict_percent: 40
cache:
  max_entries: 12
reorganize:
  code_batch_size: 3
  per_file_evict_percent: 5
scratch:
  root: work/scratch
  max_age_hours: 12
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path, environ={})

    assert config.source == config_file.resolve()
    assert config.governor.memory_threshold == pytest.approx(70.0)
    assert config.governor.cpu_threshold == pytest.approx(85.0)
    assert config.governor.disk_threshold == pytest.approx(90.0)
    assert config.governor.monitor_interval == pytest.approx(0.5)
    assert config.unpack.large_file_bytes == 1024
    assert config.unpack.batch_size == 4
    assert config.scan.batch_size == 25
    assert config.scan.max_workers == 2
    assert config.scan.pressure_evict_percent == pytest.approx(40.0)
    assert config.cache.max_entries == 12
    assert config.reorganize.code_batch_size == 3
    assert config.reorganize.asset_batch_size == 20
    assert config.reorganize.per_file_evict_percent == pytest.approx(5.0)
    assert config.scratch.root == tmp_path.resolve() / "work" / "scratch"
    assert config.scratch.max_age_hours == pytest.approx(12.0)


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yml"
    config_file.write_text(
        """
governor:
  memory_threshold: 140
  cpu_threshold: true
scan:
  batch_size: -1
cache:
  max_entries: lots
""",
        encoding="utf-8",
    )

    config = load_config(config_file, environ={})

    assert config.governor.memory_threshold == 80
    assert config.governor.cpu_threshold == 80
    assert config.scan.batch_size == 50
    assert config.cache.max_entries == 100


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    (tmp_path / "frontextract.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})


def test_malformed_yaml_raises(tmp_path: Path) -> None:
    (tmp_path / "frontextract.yml").write_text("governor: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path, environ={})

    assert excinfo.value.category == "config"


def test_environment_overrides(tmp_path: Path) -> None:
    config = load_config(
        None,
        environ={
            "FRONTEXTRACT_SCRATCH_ROOT": str(tmp_path / "env-scratch"),
            "FRONTEXTRACT_CACHE_MAX_ENTRIES": "7",
        },
    )

    assert config.scratch.root == tmp_path / "env-scratch"
    assert config.scratch.resolved_root() == tmp_path / "env-scratch"
    assert config.cache.max_entries == 7
