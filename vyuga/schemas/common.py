"""Schemas shared by the health checks and the error renderer."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness check body."""

    status: HealthStatus = Field(description="Process status")
    timestamp: datetime = Field(default_factory=_utcnow)
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    """Outcome of probing one dependency."""

    name: str = Field(description="Dependency name")
    healthy: bool
    latency_ms: float | None = Field(default=None, description="Check round trip in milliseconds")
    error: str | None = Field(default=None, description="Failure reason when unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness check body; UNHEALTHY if any check failed."""

    status: HealthStatus
    timestamp: datetime = Field(default_factory=_utcnow)
    checks: list[CheckResult] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    """One entry of ``ErrorResponse.details``.

    ``loc`` names the offending field or identifier, ``msg`` carries its value
    or a description, ``type`` is a short machine-readable tag.
    """

    model_config = ConfigDict(from_attributes=True)

    loc: list[str] | None = None
    msg: str
    type: str = "error"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ErrorDetail":
        return cls(loc=raw.get("loc"), msg=str(raw.get("msg", raw)), type=raw.get("type", "error"))


class ErrorResponse(BaseModel):
    """Body of every non-2xx response produced by the error middleware."""

    model_config = ConfigDict(from_attributes=True)

    error: str = Field(description="Machine-readable error category, e.g. invalid_signature")
    message: str = Field(description="Human-readable description")
    details: list[ErrorDetail] | None = None
    request_id: str | None = Field(default=None, description="Echo of the X-Request-ID header")
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build the body for an ``APIError`` (or an ad hoc failure).

        Empty ``details`` are dropped so the field is omitted from the JSON.
        """
        return cls(
            error=error_type,
            message=message,
            details=[ErrorDetail.from_dict(d) for d in details] if details else None,
            request_id=request_id,
        )
