"""Typed failures raised by the extraction pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .models import AdmissionDecision


class FrontExtractError(RuntimeError):
    """Base class for pipeline failures with a stable category."""

    category = "error"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail or message

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category, "detail": self.detail}


class ConfigError(FrontExtractError):
    """Raised when the configuration file cannot be parsed."""

    category = "config"


class UnsupportedFormat(FrontExtractError):
    """Raised before any I/O when the container extension is not recognized."""

    category = "unsupported_format"


class UnpackFailure(FrontExtractError):
    """Raised when an archive is corrupt or an external tool fails."""

    category = "unpack_failure"

    def __init__(
        self,
        message: str,
        *,
        tool: str | None = None,
        exit_code: Optional[int] = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.tool = tool
        self.exit_code = exit_code

    def to_dict(self) -> dict[str, str]:
        payload = super().to_dict()
        if self.tool:
            payload["tool"] = self.tool
        if self.exit_code is not None:
            payload["exit_code"] = str(self.exit_code)
        return payload


class ScanFailure(FrontExtractError):
    """Raised when the scan root itself cannot be walked."""

    category = "scan_failure"


class ReorganizeFailure(FrontExtractError):
    """Raised when the canonical tree cannot be laid out."""

    category = "reorganize_failure"


class PackageFailure(FrontExtractError):
    """Raised when the final artifact cannot be written."""

    category = "package_failure"


class ValidationFailure(FrontExtractError):
    """Raised when the emitted artifact lacks its entry document."""

    category = "validation_failure"


class ResourceInsufficient(FrontExtractError):
    """Raised when the governor refuses admission."""

    category = "resource_insufficient"

    def __init__(
        self, message: str, *, decision: "AdmissionDecision | None" = None
    ) -> None:
        super().__init__(message)
        self.decision = decision


class Cancelled(FrontExtractError):
    """Raised when the pre-flight confirmation declines the run."""

    category = "cancelled"


__all__ = [
    "Cancelled",
    "ConfigError",
    "FrontExtractError",
    "PackageFailure",
    "ReorganizeFailure",
    "ResourceInsufficient",
    "ScanFailure",
    "UnpackFailure",
    "UnsupportedFormat",
    "ValidationFailure",
]
