"""Unit tests for the Stripe payment gateway."""

import hashlib
import hmac
import json
import time
from unittest.mock import patch

import pytest
import stripe
from tenacity import wait_none

from vyuga.core.config import get_settings
from vyuga.core.errors import ConfigurationError
from vyuga.core.stripe import PaymentIntent, StripePaymentGateway, build_payment_gateway

WEBHOOK_SECRET = "whsec_unit_test"


def stripe_intent(**overrides) -> dict:
    intent = {
        "id": "pi_123",
        "object": "payment_intent",
        "client_secret": "pi_123_secret_abc",
        "amount": 6100,
        "currency": "inr",
        "status": "requires_payment_method",
    }
    intent.update(overrides)
    return intent


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def gateway() -> StripePaymentGateway:
    return StripePaymentGateway(
        secret_key="sk_test_unit",
        publishable_key="pk_test_unit",
        webhook_secret=WEBHOOK_SECRET,
    )


class TestCreateIntent:
    """Tests for create_intent."""

    @patch("vyuga.core.stripe.stripe.PaymentIntent.create")
    def test_passes_key_and_idempotency(self, mock_create, gateway: StripePaymentGateway) -> None:
        """Test the intent is created with the explicit key and idempotency key."""
        mock_create.return_value = stripe_intent()

        intent = gateway.create_intent(
            amount=6100,
            currency="inr",
            receipt="ORD-1792368000000-3FA9C1",
            idempotency_key="ORD-1792368000000-3FA9C1-intent",
            metadata={"order_id": "order-1"},
        )

        assert intent == PaymentIntent(
            id="pi_123",
            client_secret="pi_123_secret_abc",
            amount=6100,
            currency="inr",
            status="requires_payment_method",
        )
        kwargs = mock_create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_unit"
        assert kwargs["idempotency_key"] == "ORD-1792368000000-3FA9C1-intent"
        assert kwargs["amount"] == 6100
        assert kwargs["metadata"] == {"receipt": "ORD-1792368000000-3FA9C1", "order_id": "order-1"}

    @patch("vyuga.core.stripe.stripe.PaymentIntent.create")
    def test_retries_connection_errors(self, mock_create, gateway: StripePaymentGateway) -> None:
        """Test transient connection errors are retried with the same idempotency key."""
        mock_create.side_effect = [stripe.APIConnectionError("reset"), stripe_intent()]
        create_intent = StripePaymentGateway.create_intent.retry_with(wait=wait_none())

        intent = create_intent(gateway, 6100, "inr", "ORD-1", "ORD-1-intent")

        assert intent.id == "pi_123"
        assert mock_create.call_count == 2
        assert {call.kwargs["idempotency_key"] for call in mock_create.call_args_list} == {"ORD-1-intent"}

    @patch("vyuga.core.stripe.stripe.PaymentIntent.create")
    def test_does_not_retry_card_errors(self, mock_create, gateway: StripePaymentGateway) -> None:
        """Test non-transient Stripe errors propagate immediately."""
        mock_create.side_effect = stripe.InvalidRequestError("bad amount", param="amount")

        with pytest.raises(stripe.InvalidRequestError):
            gateway.create_intent(6100, "inr", "ORD-1", "ORD-1-intent")

        assert mock_create.call_count == 1


class TestRetrieveIntent:
    """Tests for retrieve_intent."""

    @patch("vyuga.core.stripe.stripe.PaymentIntent.retrieve")
    def test_retrieves_with_key(self, mock_retrieve, gateway: StripePaymentGateway) -> None:
        """Test an existing intent is fetched with the explicit key."""
        mock_retrieve.return_value = stripe_intent(status="succeeded")

        intent = gateway.retrieve_intent("pi_123")

        assert intent.status == "succeeded"
        mock_retrieve.assert_called_once_with("pi_123", api_key="sk_test_unit")


class TestCancelIntent:
    """Tests for cancel_intent."""

    @patch("vyuga.core.stripe.stripe.PaymentIntent.cancel")
    @patch("vyuga.core.stripe.stripe.PaymentIntent.retrieve")
    def test_cancels_unpaid_intent(self, mock_retrieve, mock_cancel, gateway: StripePaymentGateway) -> None:
        """Test an intent awaiting payment is cancelled with the explicit key."""
        mock_retrieve.return_value = stripe_intent()
        mock_cancel.return_value = stripe_intent(status="canceled")

        intent = gateway.cancel_intent("pi_123")

        assert intent.status == "canceled"
        mock_cancel.assert_called_once_with("pi_123", api_key="sk_test_unit", cancellation_reason="abandoned")

    @pytest.mark.parametrize("status", ["succeeded", "processing", "canceled"])
    @patch("vyuga.core.stripe.stripe.PaymentIntent.cancel")
    @patch("vyuga.core.stripe.stripe.PaymentIntent.retrieve")
    def test_leaves_settled_intents_alone(
        self, mock_retrieve, mock_cancel, gateway: StripePaymentGateway, status: str
    ) -> None:
        """Test intents that are paid, mid-payment or already cancelled are returned as they are."""
        mock_retrieve.return_value = stripe_intent(status=status)

        assert gateway.cancel_intent("pi_123").status == status
        mock_cancel.assert_not_called()

    @patch("vyuga.core.stripe.stripe.PaymentIntent.cancel")
    @patch("vyuga.core.stripe.stripe.PaymentIntent.retrieve")
    def test_paid_before_cancel(self, mock_retrieve, mock_cancel, gateway: StripePaymentGateway) -> None:
        """Test an intent paid between the lookup and the cancel is reported as succeeded."""
        mock_retrieve.side_effect = [stripe_intent(), stripe_intent(status="succeeded")]
        mock_cancel.side_effect = stripe.InvalidRequestError("unexpected state", param=None)

        assert gateway.cancel_intent("pi_123").status == "succeeded"

    @patch("vyuga.core.stripe.stripe.PaymentIntent.cancel")
    @patch("vyuga.core.stripe.stripe.PaymentIntent.retrieve")
    def test_other_rejections_propagate(self, mock_retrieve, mock_cancel, gateway: StripePaymentGateway) -> None:
        """Test a rejected cancel of a still-payable intent is raised."""
        mock_retrieve.return_value = stripe_intent()
        mock_cancel.side_effect = stripe.InvalidRequestError("no such intent", param="intent")

        with pytest.raises(stripe.InvalidRequestError):
            gateway.cancel_intent("pi_123")


class TestConstructEvent:
    """Tests for construct_event."""

    def test_valid_signature(self, gateway: StripePaymentGateway) -> None:
        """Test a correctly signed payload is returned as plain JSON."""
        payload = json.dumps(
            {"id": "evt_1", "object": "event", "type": "payment_intent.succeeded", "data": {"object": stripe_intent()}}
        ).encode()

        event = gateway.construct_event(payload, sign(payload))

        assert event["type"] == "payment_intent.succeeded"
        assert event["data"]["object"]["id"] == "pi_123"

    def test_invalid_signature(self, gateway: StripePaymentGateway) -> None:
        """Test a payload signed with another secret is rejected."""
        payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded"}'

        with pytest.raises(ValueError, match="Invalid webhook signature"):
            gateway.construct_event(payload, sign(payload, secret="whsec_other"))

    def test_tampered_payload(self, gateway: StripePaymentGateway) -> None:
        """Test a payload changed after signing is rejected."""
        payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded"}'
        header = sign(payload)

        with pytest.raises(ValueError):
            gateway.construct_event(payload.replace(b"evt_1", b"evt_2"), header)

    def test_webhooks_not_configured(self) -> None:
        """Test webhooks are rejected when no secret is configured."""
        gateway = StripePaymentGateway(secret_key="sk_test_unit")

        with pytest.raises(ValueError, match="not configured"):
            gateway.construct_event(b"{}", "t=1,v1=abc")


class TestBuildPaymentGateway:
    """Tests for build_payment_gateway."""

    def test_builds_from_settings(self) -> None:
        """Test the gateway carries the configured keys."""
        gateway = build_payment_gateway(get_settings())

        assert isinstance(gateway, StripePaymentGateway)
        assert gateway.publishable_key == get_settings().stripe_publishable_key

    @pytest.mark.parametrize("field", ["stripe_secret_key", "payment_callback_secret"])
    def test_missing_credentials(self, field: str) -> None:
        """Test startup fails when a payment credential is missing."""
        settings = get_settings().model_copy(update={field: ""})

        with pytest.raises(ConfigurationError, match=field.upper()):
            build_payment_gateway(settings)
