"""Extract front-end web assets from application packages and installers."""

from .errors import FrontExtractError
from .models import PackageArtifact, PackageKind, PipelineResult
from .pipeline import Pipeline, run

__version__ = "0.1.0"

__all__ = [
    "FrontExtractError",
    "PackageArtifact",
    "PackageKind",
    "Pipeline",
    "PipelineResult",
    "__version__",
    "run",
]
