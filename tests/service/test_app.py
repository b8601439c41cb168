"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("fastapi not installed", allow_module_level=True)

from frontextract.config import FrontExtractConfig
from frontextract.governor import ResourceGovernor
from frontextract.pipeline import Pipeline
from frontextract.service import create_app
from frontextract.service.app import _default_pipeline
from frontextract.stores import default_tracker
from tests._fixtures.archive_builder import ContainerBuilder, FakeSampler, make_sample


def _factory(scratch_root: Path, *, memory_free: int | None = None):
    def _build() -> Pipeline:
        config = FrontExtractConfig()
        config.scratch.root = scratch_root
        sample = make_sample() if memory_free is None else make_sample(memory_free=memory_free)
        return Pipeline(config, governor=ResourceGovernor(sampler=FakeSampler(sample)), monitor=False)

    return _build


@pytest.fixture
def client(scratch_root: Path) -> TestClient:
    return TestClient(create_app(_factory(scratch_root)))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_formats_endpoint(client: TestClient) -> None:
    response = client.get("/formats")
    assert response.status_code == 200
    assert response.json()["formats"]["installer"] == [".exe", ".dmg", ".deb", ".rpm"]


def test_inspect_endpoint(client: TestClient, container_builder: ContainerBuilder) -> None:
    source = container_builder.zip({"a.js": "1"}, name="bundle.asar")

    response = client.post("/inspect", json={"path": str(source)})

    assert response.status_code == 200
    data = response.json()
    assert data["format"] == "asar"
    assert data["family"] == "zip"


def test_extract_endpoint(
    client: TestClient, container_builder: ContainerBuilder, tmp_path: Path
) -> None:
    source = container_builder.zip({"index.html": "<p>hi</p>", "style.css": "a{}"})
    output = tmp_path / "site.zip"

    response = client.post(
        "/extract", json={"input": str(source), "output": str(output), "kind": "archive"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["kind"] == "archive"
    assert data["file_count"] == 2
    assert data["events"][-1]["stage"] == "completed"
    assert output.is_file()


def test_unsupported_format_maps_to_400(client: TestClient, tmp_path: Path) -> None:
    response = client.post(
        "/extract", json={"input": str(tmp_path / "notes.txt"), "output": str(tmp_path / "out")}
    )

    assert response.status_code == 400
    assert response.json()["category"] == "unsupported_format"


def test_missing_input_maps_to_404(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/inspect", json={"path": str(tmp_path / "missing.zip")})

    assert response.status_code == 404
    assert response.json()["category"] == "not_found"


def test_insufficient_resources_map_to_507(
    scratch_root: Path, container_builder: ContainerBuilder, tmp_path: Path
) -> None:
    client = TestClient(create_app(_factory(scratch_root, memory_free=1)))
    source = container_builder.zip({"index.html": "<p>hi</p>"})

    response = client.post(
        "/extract", json={"input": str(source), "output": str(tmp_path / "site")}
    )

    assert response.status_code == 507
    body = response.json()
    assert body["category"] == "resource_insufficient"
    assert "Insufficient memory" in body["detail"]


def test_default_pipeline_reads_working_directory_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "frontextract.yml").write_text("scan:\n  batch_size: 7\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FRONTEXTRACT_SCRATCH_ROOT", str(tmp_path / "scratch"))

    pipeline = _default_pipeline()

    assert pipeline.config.scan.batch_size == 7
    assert pipeline.scratch_root == tmp_path / "scratch"


def test_startup_starts_scratch_housekeeping(scratch_root: Path) -> None:
    with TestClient(create_app(_factory(scratch_root))) as client:
        assert client.get("/health").status_code == 200
        assert default_tracker().running is True
