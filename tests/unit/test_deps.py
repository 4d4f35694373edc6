"""Unit tests for FastAPI dependency injection functions."""

import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from tests.conftest import USER_ID
from vyuga.api.deps import (
    check_tryon_rate_limit,
    get_current_user,
    get_optional_user,
    get_owner,
    get_payment_gateway,
    get_tryon_service,
)
from vyuga.api.middleware.auth import AuthError, AuthErrorCode
from vyuga.core.errors import ConfigurationError, InvalidOwnerError, RateLimitError
from vyuga.models.owner import GuestOwner, UserOwner
from vyuga.schemas.auth import TokenPayload, UserContext
from vyuga.services.tryon_service import TryOnService


def make_request(client_host: str | None = "203.0.113.7", **state) -> SimpleNamespace:
    return SimpleNamespace(
        app=SimpleNamespace(state=SimpleNamespace(**state)),
        client=SimpleNamespace(host=client_host) if client_host else None,
    )


def user_context() -> UserContext:
    return UserContext(user_id=USER_ID, email="asha@example.com", role="authenticated")


class TestGetCurrentUser:
    """Tests for get_current_user dependency."""

    @pytest.mark.asyncio
    @patch("vyuga.api.deps.decode_jwt")
    async def test_extracts_user_context_correctly(self, mock_decode) -> None:
        """Test get_current_user extracts UserContext from valid token."""
        mock_decode.return_value = TokenPayload(
            sub=str(USER_ID),
            email="asha@example.com",
            role="authenticated",
            exp=int(time.time()) + 3600,
            iat=int(time.time()),
        )

        user = await get_current_user("Bearer valid-token")

        assert isinstance(user, UserContext)
        assert user.user_id == USER_ID
        mock_decode.assert_called_once_with("valid-token")

    @pytest.mark.asyncio
    async def test_missing_header(self) -> None:
        """Test a missing Authorization header is a 401."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("")

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer a b"])
    async def test_malformed_header(self, header: str) -> None:
        """Test a header that is not ``Bearer <token>`` is a 401."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(header)

        assert exc_info.value.status_code == 401
        assert "Bearer <token>" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("vyuga.api.deps.decode_jwt")
    async def test_expired_token(self, mock_decode) -> None:
        """Test an expired token is reported as expired."""
        mock_decode.side_effect = AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer old-token")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"


class TestGetOptionalUser:
    """Tests for get_optional_user dependency."""

    @pytest.mark.asyncio
    async def test_no_header(self) -> None:
        """Test anonymous requests resolve to None."""
        assert await get_optional_user(None) is None

    @pytest.mark.asyncio
    @patch("vyuga.api.deps.decode_jwt")
    async def test_invalid_header_still_rejected(self, mock_decode) -> None:
        """Test a bad token is not silently treated as anonymous."""
        mock_decode.side_effect = AuthError("Invalid token", AuthErrorCode.INVALID_TOKEN)

        with pytest.raises(HTTPException):
            await get_optional_user("Bearer bad")


class TestGetOwner:
    """Tests for get_owner dependency."""

    @pytest.mark.asyncio
    async def test_user(self) -> None:
        """Test an authenticated request without a session id."""
        assert await get_owner(user_context(), None) == UserOwner(user_id=USER_ID)

    @pytest.mark.asyncio
    async def test_guest(self) -> None:
        """Test an anonymous request with a session id."""
        assert await get_owner(None, "guest-1") == GuestOwner(session_id="guest-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("with_user,session_id", [(True, "guest-1"), (False, None)])
    async def test_ambiguous_owner(self, with_user: bool, session_id: str | None) -> None:
        """Test both or neither identities are rejected."""
        with pytest.raises(InvalidOwnerError):
            await get_owner(user_context() if with_user else None, session_id)


class TestServiceDependencies:
    """Tests for service dependencies built from application state."""

    def test_payment_gateway_from_state(self) -> None:
        """Test the startup gateway is returned."""
        gateway = MagicMock()

        assert get_payment_gateway(make_request(payment_gateway=gateway)) is gateway

    def test_payment_gateway_not_initialized(self) -> None:
        """Test a missing gateway is a configuration error."""
        with pytest.raises(ConfigurationError):
            get_payment_gateway(make_request())

    def test_tryon_service_from_state(self) -> None:
        """Test the shared try-on service is reused."""
        service = MagicMock(spec=TryOnService)

        assert get_tryon_service(make_request(tryon_service=service)) is service

    def test_tryon_service_fallback(self, fake_supabase) -> None:
        """Test a fresh service is built when the lifespan did not run."""
        assert isinstance(get_tryon_service(make_request()), TryOnService)


class TestCheckTryOnRateLimit:
    """Tests for check_tryon_rate_limit dependency."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "with_user,session_id,expected_key",
        [
            (True, None, f"user:{USER_ID}"),
            (False, "guest-1", "guest:guest-1"),
            (False, None, "ip:203.0.113.7"),
        ],
    )
    async def test_keys_by_caller(self, with_user: bool, session_id: str | None, expected_key: str) -> None:
        """Test the limit is keyed by user, then guest session, then client address."""
        limiter = MagicMock()
        limiter.check_and_increment = AsyncMock(return_value=(True, 9, 0))

        with patch("vyuga.api.deps.get_rate_limiter", return_value=limiter):
            await check_tryon_rate_limit(make_request(), user_context() if with_user else None, session_id)

        limiter.check_and_increment.assert_awaited_once_with(expected_key)

    @pytest.mark.asyncio
    async def test_limit_exceeded(self) -> None:
        """Test an exhausted limit raises RateLimitError with a retry hint."""
        limiter = MagicMock()
        limiter.check_and_increment = AsyncMock(return_value=(False, 0, 42))

        with patch("vyuga.api.deps.get_rate_limiter", return_value=limiter):
            with pytest.raises(RateLimitError) as exc_info:
                await check_tryon_rate_limit(make_request(client_host=None), None, None)

        assert exc_info.value.retry_after == 42
        limiter.check_and_increment.assert_awaited_once_with("ip:unknown")
