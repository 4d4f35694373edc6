"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Generator
from contextlib import ExitStack
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("APP_URL", "https://vyuga.test")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_stripe_publishable_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("PAYMENT_CALLBACK_SECRET", "test-callback-secret")
os.environ.setdefault("HUGGINGFACE_API_KEY", "hf_test_key")
os.environ.setdefault("HUGGINGFACE_API_URL", "https://inference.test/models")
os.environ.setdefault("BACKGROUND_JOBS_ENABLED", "false")

from tests.fakes import FakeSupabase  # noqa: E402
from vyuga.core.stripe import PaymentIntent, StripePaymentGateway  # noqa: E402
from vyuga.models.owner import GuestOwner, UserOwner  # noqa: E402
from vyuga.schemas.auth import TokenPayload  # noqa: E402

KURTA_ID = "11111111-1111-4111-8111-111111111111"
SAREE_ID = "22222222-2222-4222-8222-222222222222"
USER_ID = UUID("aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa")
GUEST_SESSION_ID = "guest-session-0001"

# Modules that bind get_supabase_client at import time
SUPABASE_CONSUMERS = (
    "vyuga.core.supabase",
    "vyuga.core.storage",
    "vyuga.services.garment_service",
    "vyuga.services.cart_service",
    "vyuga.services.order_service",
    "vyuga.services.tryon_service",
    "vyuga.services.tryon_status_service",
)


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache."""
    from vyuga.core.config import get_settings

    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def fake_supabase() -> Generator[FakeSupabase, None, None]:
    """Provide an in-memory Supabase client patched into every service module."""
    fake = FakeSupabase()
    with ExitStack() as stack:
        for module in SUPABASE_CONSUMERS:
            stack.enter_context(patch(f"{module}.get_supabase_client", return_value=fake))
        yield fake


@pytest.fixture
def garments(fake_supabase: FakeSupabase) -> dict[str, dict]:
    """Seed two garments priced 1500 and 3000."""
    kurta, saree = fake_supabase.seed(
        "garments",
        {
            "id": KURTA_ID,
            "name": "Indigo Block-Print Kurta",
            "description": "Hand block-printed cotton kurta",
            "price": 1500,
            "sizes": ["S", "M", "L"],
            "in_stock": True,
            "image_url": "https://cdn.test/garments/kurta.jpg",
        },
        {
            "id": SAREE_ID,
            "name": "Banarasi Silk Saree",
            "description": "Silk saree with zari border",
            "price": 3000,
            "sizes": ["Free"],
            "in_stock": True,
            "image_url": "https://cdn.test/garments/saree.jpg",
        },
    )
    return {"kurta": kurta, "saree": saree}


@pytest.fixture
def guest_owner() -> GuestOwner:
    return GuestOwner(session_id=GUEST_SESSION_ID)


@pytest.fixture
def user_owner() -> UserOwner:
    return UserOwner(user_id=USER_ID)


@pytest.fixture
def shipping_address() -> dict[str, str]:
    """Create a sample shipping address."""
    return {
        "name": "Asha Rao",
        "phone": "+91 98450 00000",
        "address": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    }


@pytest.fixture
def mock_gateway() -> MagicMock:
    """Mock Stripe gateway that hands out one intent per order."""
    gateway = MagicMock(spec=StripePaymentGateway)
    gateway.publishable_key = "pk_test_stripe_publishable_key"

    def create_intent(amount: int, currency: str, receipt: str, idempotency_key: str, metadata=None):
        return PaymentIntent(
            id=f"pi_{receipt}",
            client_secret=f"pi_{receipt}_secret",
            amount=amount,
            currency=currency,
            status="requires_payment_method",
        )

    def retrieve_intent(intent_id: str):
        return PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            amount=0,
            currency="inr",
            status="requires_payment_method",
        )

    def cancel_intent(intent_id: str):
        return PaymentIntent(id=intent_id, client_secret=None, amount=0, currency="inr", status="canceled")

    gateway.create_intent.side_effect = create_intent
    gateway.retrieve_intent.side_effect = retrieve_intent
    gateway.cancel_intent.side_effect = cancel_intent
    return gateway


@pytest.fixture
def token_payload() -> TokenPayload:
    now = int(time.time())
    return TokenPayload(
        sub=str(USER_ID),
        email="asha@example.com",
        role="authenticated",
        exp=now + 3600,
        iat=now,
    )


@pytest.fixture
def auth_headers(token_payload: TokenPayload) -> Generator[dict[str, str], None, None]:
    """Bearer headers for a request authenticated as USER_ID."""
    with patch("vyuga.api.deps.decode_jwt", return_value=token_payload):
        yield {"Authorization": "Bearer test-token"}


@pytest.fixture
def guest_headers() -> dict[str, str]:
    return {"X-Session-Id": GUEST_SESSION_ID}


@pytest.fixture
def client(
    fake_supabase: FakeSupabase,
    mock_gateway: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[TestClient, None, None]:
    """Provide a test client backed by the fake database and mock gateway.

    The lifespan is not run, so no background workers start.
    """
    from vyuga.api.deps import get_payment_gateway
    from vyuga.core import rate_limiter
    from vyuga.main import app

    monkeypatch.setattr(rate_limiter, "_rate_limiter", None)
    app.dependency_overrides[get_payment_gateway] = lambda: mock_gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
