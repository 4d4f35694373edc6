"""JWT validation for Supabase access tokens."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK

from vyuga.core.config import get_settings
from vyuga.schemas.auth import TokenPayload


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Raised when a bearer token cannot be validated."""

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@lru_cache
def get_signing_key() -> Any:
    """Public key parsed from the configured signing key JWK."""
    jwk_json = get_settings().supabase_signing_key_jwk
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)

    try:
        jwk_data = json.loads(jwk_json)
    except json.JSONDecodeError as e:
        raise AuthError(f"Invalid signing key JWK format: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return PyJWK.from_dict(jwk_data).key


# Ordered most specific first: ExpiredSignatureError and friends subclass PyJWTError
_JWT_FAILURES: tuple[tuple[type[jwt.PyJWTError], str, AuthErrorCode], ...] = (
    (jwt.ExpiredSignatureError, "Token has expired", AuthErrorCode.TOKEN_EXPIRED),
    (jwt.InvalidSignatureError, "Invalid token signature", AuthErrorCode.INVALID_SIGNATURE),
    (jwt.MissingRequiredClaimError, "Token missing required claim: {error}", AuthErrorCode.INVALID_TOKEN),
)

REQUIRED_CLAIMS = ["exp", "iat", "sub"]


def decode_jwt(token: str) -> TokenPayload:
    """Decode and validate a Supabase access token (ES256).

    Audience is not checked; Supabase issues ``authenticated`` for every
    signed-in user and the API has no other audience.

    Raises:
        AuthError: If the token is expired, badly signed, missing a claim
            or not a JWT at all.
    """
    key = get_signing_key()
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            key,
            algorithms=["ES256"],
            options={"verify_aud": False, "require": REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError as e:
        for error_class, message, code in _JWT_FAILURES:
            if isinstance(e, error_class):
                raise AuthError(message.format(error=e), code) from e
        raise AuthError(f"Invalid token: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return TokenPayload.model_validate(claims)
