"""Per-request access log with slow-request escalation."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000
VERY_SLOW_REQUEST_MS = 3000

# Health checks and try-on status polls arrive every few seconds and would drown the log
QUIET_PATHS = ("/health", "/health/ready")
QUIET_PREFIXES = ("/api/v1/try-on/status/",)


def _is_quiet(path: str) -> bool:
    return path in QUIET_PATHS or path.startswith(QUIET_PREFIXES)


def _level_and_label(status_code: int, latency_ms: float, failed: bool, path: str) -> tuple[int, str]:
    if failed or status_code >= 500:
        return logging.ERROR, ""
    if latency_ms > VERY_SLOW_REQUEST_MS:
        return logging.ERROR, "VERY SLOW REQUEST: "
    if latency_ms > SLOW_REQUEST_MS:
        return logging.WARNING, "SLOW REQUEST: "
    if _is_quiet(path):
        return logging.DEBUG, ""
    if status_code >= 400:
        return logging.WARNING, ""
    return logging.INFO, ""


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log method, path, status and latency for every request."""
    started = time.perf_counter()
    response: Response | None = None
    failed = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        failed = True
        raise
    finally:
        latency_ms = (time.perf_counter() - started) * 1000
        status_code = response.status_code if response is not None else 500
        level, label = _level_and_label(status_code, latency_ms, failed, request.url.path)
        logger.log(
            level,
            "%s%s %s - %d - %.2fms",
            label,
            request.method,
            request.url.path,
            status_code,
            latency_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "latency_ms": round(latency_ms, 2),
                "error": failed,
            },
        )
