"""Liveness and readiness checks."""

import time
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Response, status

from vyuga.core.storage import check_storage_connection
from vyuga.core.supabase import check_database_connection
from vyuga.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse

router = APIRouter(tags=["health"])

# Checked in order; the try-on upload path needs both
DEPENDENCY_CHECKS: list[tuple[str, Callable[[], Awaitable[dict[str, Any]]]]] = [
    ("database", check_database_connection),
    ("storage", check_storage_connection),
]


async def _timed_check(name: str, check: Callable[[], Awaitable[dict[str, Any]]]) -> CheckResult:
    started = time.perf_counter()
    result = await check()
    return CheckResult(
        name=name,
        healthy=result["healthy"],
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        error=result.get("error"),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Returns 200 while the process is serving requests.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Database and storage reachable"},
        503: {"description": "A dependency is unreachable"},
    },
    summary="Readiness check",
    description="Checks the database and the try-on storage bucket.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Report per-dependency health; 503 unless every check passes."""
    checks = [await _timed_check(name, check) for name, check in DEPENDENCY_CHECKS]

    if all(check.healthy for check in checks):
        return ReadinessResponse(status=HealthStatus.HEALTHY, checks=checks)

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status=HealthStatus.UNHEALTHY, checks=checks)
