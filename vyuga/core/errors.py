"""Application error taxonomy.

Every error the services raise on purpose is an ``APIError`` carrying the HTTP
status and ``error_type`` the error handler middleware renders. The categories:

- caller errors (bad owner, unknown garment, empty order, not found): 4xx,
  never retried by the server;
- authenticity failures (bad signature, unknown payment reference): rejected
  without touching any row;
- external dependency failures (payment gateway, blob store, synthesis): 502,
  the caller may retry;
- invariant violations (illegal state transition): 409 with their own
  ``error_type`` so operators can tell them apart from user mistakes.
"""

from typing import Any

from fastapi import status


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            details=details,
        )


class ValidationError(APIError):
    """Request validation error."""

    def __init__(self, message: str = "Validation error", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type="validation_error",
            details=details,
        )


class AuthorizationError(APIError):
    """Authorization failure error."""

    def __init__(self, message: str = "Access denied", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_type="authorization_error",
            details=details,
        )


class InvalidOwnerError(APIError):
    """Request identified neither or both of a user and a guest session."""

    def __init__(self, message: str = "Exactly one of a user or a guest session id is required") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="invalid_owner",
        )


class UnknownGarmentError(APIError):
    """One or more referenced garments do not exist."""

    def __init__(self, garment_ids: list[str]) -> None:
        self.garment_ids = garment_ids
        super().__init__(
            message=f"Unknown garment: {', '.join(garment_ids)}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type="unknown_garment",
            details=[
                {"loc": ["garment_id"], "msg": garment_id, "type": "unknown_garment"}
                for garment_id in garment_ids
            ],
        )


class EmptyOrderError(APIError):
    """Order requested without line items."""

    def __init__(self, message: str = "Order must contain at least one item") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type="empty_order",
        )


class InvalidSignatureError(APIError):
    """Payment callback signature did not verify."""

    def __init__(self, message: str = "Invalid signature") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="invalid_signature",
        )


class UnknownOrderError(APIError):
    """Payment reference does not match any order."""

    def __init__(self, message: str = "Order not found") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="unknown_order",
        )


class InvalidTransitionError(APIError):
    """Requested state transition is not allowed from the current state."""

    def __init__(self, entity: str, entity_id: str, current: str, target: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
        super().__init__(
            message=f"Cannot move {entity} {entity_id} from {current} to {target}",
            status_code=status.HTTP_409_CONFLICT,
            error_type="invariant_violation",
        )


class PaymentGatewayError(APIError):
    """Payment gateway call failed; the order is left PENDING and can be retried."""

    def __init__(self, message: str, order_id: str | None = None) -> None:
        self.order_id = order_id
        details = None
        if order_id:
            details = [{"loc": ["order_id"], "msg": order_id, "type": "retryable"}]
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_type="payment_gateway_error",
            details=details,
        )


class ExternalServiceError(APIError):
    """Blob store or synthesis service failed while serving a request."""

    def __init__(self, message: str = "Upstream service unavailable") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_type="external_service_error",
        )


class RateLimitError(APIError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_type="rate_limit_exceeded",
            details=details,
        )
        self.retry_after = retry_after


class ConfigurationError(Exception):
    """Required configuration is missing; raised at startup."""
