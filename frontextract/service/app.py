"""FastAPI application entrypoint for frontextract service mode."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import Depends, FastAPI
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    Depends = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]
    _FASTAPI_AVAILABLE = False

from ..config import load_config
from ..errors import FrontExtractError, ResourceInsufficient
from ..formats import detect_container, supported_extensions
from ..models import PackageKind, PipelineResult
from ..pipeline import Pipeline
from ..progress import RecordingObserver


class ExtractRequest(BaseModel):
    input: str
    output: str
    kind: str = PackageKind.DIRECTORY.value


class ExtractResponse(BaseModel):
    status: str
    path: str
    kind: str
    framework: str
    file_count: int
    size: int
    size_label: str
    warnings: List[str] = []
    events: List[Dict[str, Any]] = []


class InspectRequest(BaseModel):
    path: str


class InspectResponse(BaseModel):
    path: str
    format: str
    family: str
    size: int


class FormatsResponse(BaseModel):
    formats: Dict[str, List[str]]


class HealthResponse(BaseModel):
    status: str


def _default_pipeline() -> Pipeline:
    return Pipeline(load_config(Path.cwd()))


def _error_status(exc: FrontExtractError) -> int:
    if isinstance(exc, ResourceInsufficient):
        return 507
    return 400


def create_app(
    pipeline_factory: Callable[[], Pipeline] = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing frontextract operations."""

    if not _FASTAPI_AVAILABLE:  # pragma: no cover - validated via unit tests
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    @asynccontextmanager
    async def lifespan(_: Any) -> AsyncIterator[None]:
        # Sweep stale scratch trees for as long as the service is up.
        housekeeper = pipeline_factory()
        housekeeper.tracker.start(system_root=housekeeper.scratch_root)
        try:
            yield
        finally:
            housekeeper.shutdown()

    app = FastAPI(title="frontextract service", version="0.1.0", lifespan=lifespan)

    async def get_pipeline() -> Pipeline:
        # Fresh pipeline per request so runs never share scratch state.
        return pipeline_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/formats", response_model=FormatsResponse)
    async def formats() -> FormatsResponse:
        return FormatsResponse(formats=supported_extensions())

    @app.post("/inspect", response_model=InspectResponse)
    async def inspect_container(payload: InspectRequest) -> InspectResponse:
        container = detect_container(payload.path)
        return InspectResponse(
            path=str(container.path),
            format=container.format.value,
            family=container.family.value,
            size=container.size,
        )

    @app.post("/extract", response_model=ExtractResponse)
    async def extract(
        payload: ExtractRequest,
        pipeline: Pipeline = Depends(get_pipeline),
    ) -> ExtractResponse:
        observer = RecordingObserver()

        def _run_extract() -> PipelineResult:
            try:
                return pipeline.run(payload.input, payload.output, payload.kind, observer=observer)
            finally:
                pipeline.shutdown()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:  # pragma: no cover
            result = _run_extract()
        else:
            result = await loop.run_in_executor(None, _run_extract)

        artifact = result.artifact
        return ExtractResponse(
            status="ok",
            path=str(artifact.path),
            kind=artifact.kind.value,
            framework=result.framework,
            file_count=result.file_count,
            size=artifact.size,
            size_label=artifact.size_label,
            warnings=list(result.warnings),
            events=[event.to_dict() for event in observer.events],
        )

    @app.exception_handler(FrontExtractError)
    async def pipeline_error_handler(_: Any, exc: FrontExtractError) -> JSONResponse:
        return JSONResponse(status_code=_error_status(exc), content=exc.to_dict())

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404, content={"category": "not_found", "detail": str(exc)}
        )

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000, *, app: Optional[Any] = None
) -> None:  # pragma: no cover - integration path
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    uvicorn.run(app or create_app(), host=host, port=port)
