"""Renders every failure as an ``ErrorResponse`` body."""

import logging
import time
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from vyuga.core.config import get_settings
from vyuga.core.errors import (
    APIError,
    InvalidSignatureError,
    InvalidTransitionError,
    RateLimitError,
    UnknownOrderError,
)
from vyuga.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

# Rejected payment callbacks are kept at warning level as an audit trail
AUDITED_ERRORS = (InvalidSignatureError, UnknownOrderError)


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.

    Returns:
        JSONResponse: Formatted error response.
    """
    body = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def _log_api_error(request: Request, error: APIError, request_id: str | None) -> None:
    extra = {"request_id": request_id, "status_code": error.status_code, "path": request.url.path}

    if isinstance(error, InvalidTransitionError):
        # Two actors raced on one order or session, or a late event hit a closed one
        logger.error(
            "Invariant violation on %s %s: %s -> %s",
            error.entity,
            error.entity_id,
            error.current,
            error.target,
            extra=extra,
        )
    elif isinstance(error, AUDITED_ERRORS):
        logger.warning("Rejected payment notification: %s - %s", error.error_type, error.message, extra=extra)
    elif isinstance(error, RateLimitError):
        logger.warning("Rate limit exceeded: %s (retry after %ds)", error.message, error.retry_after, extra=extra)
    elif error.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Upstream failure: %s - %s", error.error_type, error.message, extra=extra)
    else:
        logger.warning("API error: %s - %s", error.error_type, error.message, extra=extra)


def _api_error_response(error: APIError, request_id: str | None) -> JSONResponse:
    response = create_error_response(
        error_type=error.error_type,
        message=error.message,
        status_code=error.status_code,
        details=error.details,
        request_id=request_id,
    )
    if isinstance(error, RateLimitError):
        response.headers["Retry-After"] = str(error.retry_after)
        response.headers["X-RateLimit-Limit"] = str(get_settings().rate_limit_tryon_requests)
        response.headers["X-RateLimit-Remaining"] = "0"
        response.headers["X-RateLimit-Reset"] = str(int(time.time()) + error.retry_after)
    return response


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Catch exceptions from every layer below and format them.

    Application errors keep their status and ``error_type``; anything
    unexpected becomes a 500 whose body never carries internals.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        return await call_next(request)

    except APIError as e:
        _log_api_error(request, e, request_id)
        return _api_error_response(e, request_id)

    except HTTPException as e:
        logger.warning("HTTP exception: %s - %s", e.status_code, e.detail, extra={"request_id": request_id})
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception:
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
