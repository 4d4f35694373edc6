"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from vyuga.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from vyuga.core.errors import ConfigurationError, RateLimitError
from vyuga.core.rate_limiter import get_rate_limiter
from vyuga.core.stripe import StripePaymentGateway
from vyuga.models.owner import Owner, owner_from_identity
from vyuga.schemas.auth import UserContext
from vyuga.services.payment_service import PaymentService
from vyuga.services.tryon_service import TryOnService

SESSION_HEADER = "X-Session-Id"


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_jwt(parts[1]).to_user_context()
    except AuthError as e:
        detail = "Token has expired" if e.code == AuthErrorCode.TOKEN_EXPIRED else e.message
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> UserContext | None:
    """Current user if an Authorization header is present.

    A header that is present but invalid is still rejected with 401.
    """
    if not authorization:
        return None
    return await get_current_user(authorization)


CurrentUser = Annotated[UserContext, Depends(get_current_user)]
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]


async def get_guest_session_id(
    x_session_id: Annotated[str | None, Header(alias=SESSION_HEADER, description="Guest session id")] = None,
) -> str | None:
    """Client-held guest session id, if sent."""
    return x_session_id


GuestSessionId = Annotated[str | None, Depends(get_guest_session_id)]


async def get_owner(user: OptionalUser, session_id: GuestSessionId) -> Owner:
    """Resolve the cart/order owner for this request.

    Raises:
        InvalidOwnerError: If the request carries both or neither identity.
    """
    return owner_from_identity(user.user_id if user else None, session_id)


CurrentOwner = Annotated[Owner, Depends(get_owner)]


# Services built from application state


def get_payment_gateway(request: Request) -> StripePaymentGateway:
    """Payment gateway built during application startup."""
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise ConfigurationError("Payment gateway was not initialized")
    return gateway


def get_payment_service(
    gateway: Annotated[StripePaymentGateway, Depends(get_payment_gateway)],
) -> PaymentService:
    """Payment service bound to the startup gateway."""
    return PaymentService(gateway)


def get_tryon_service(request: Request) -> TryOnService:
    """Try-on service shared with the worker pool."""
    service = getattr(request.app.state, "tryon_service", None)
    return service or TryOnService()


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
TryOnServiceDep = Annotated[TryOnService, Depends(get_tryon_service)]


# Rate limiting dependency


async def check_tryon_rate_limit(request: Request, user: OptionalUser, session_id: GuestSessionId) -> None:
    """Limit try-on submissions per user, guest session or client address.

    Each submission is a billed synthesis call.

    Raises:
        RateLimitError: If the caller has exceeded the limit.
    """
    if user:
        key = f"user:{user.user_id}"
    elif session_id:
        key = f"guest:{session_id}"
    else:
        key = f"ip:{request.client.host if request.client else 'unknown'}"

    allowed, _, retry_after = await get_rate_limiter().check_and_increment(key)
    if not allowed:
        raise RateLimitError(
            message="Too many try-on requests. Please wait before trying again.",
            retry_after=retry_after,
        )


TryOnRateLimit = Annotated[None, Depends(check_tryon_rate_limit)]
