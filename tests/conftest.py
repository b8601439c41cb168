from __future__ import annotations

from pathlib import Path

import pytest

from frontextract.config import FrontExtractConfig
from frontextract.governor import ResourceGovernor
from frontextract.stores.transform_cache import TransformCache
from tests._fixtures.archive_builder import ContainerBuilder, FakeSampler


@pytest.fixture
def container_builder(tmp_path: Path) -> ContainerBuilder:
    """Provide a reusable container builder rooted at the pytest tmp_path."""
    return ContainerBuilder(tmp_path)


@pytest.fixture
def governor() -> ResourceGovernor:
    """Governor with a healthy fixed sample so tests never depend on the host."""
    return ResourceGovernor(sampler=FakeSampler())


@pytest.fixture
def cache() -> TransformCache:
    return TransformCache(max_entries=10).init()


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def config(scratch_root: Path) -> FrontExtractConfig:
    config = FrontExtractConfig()
    config.scratch.root = scratch_root
    return config
