"""Stripe payment gateway client.

The gateway is built once at startup by ``build_payment_gateway`` and handed
to the payment service; it never reads module-level Stripe configuration.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

import stripe
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from vyuga.core.config import Settings
from vyuga.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Retry configuration for transient network errors
MAX_RETRIES = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 8

# PaymentIntent states cancel_intent leaves alone
UNCANCELLABLE_STATUSES = frozenset({"succeeded", "processing", "canceled"})


@dataclass(frozen=True)
class PaymentIntent:
    """The parts of a gateway payment intent the checkout flow needs."""

    id: str
    client_secret: str | None
    amount: int
    currency: str
    status: str


class StripePaymentGateway:
    """Creates and looks up Stripe PaymentIntents with an explicit API key."""

    def __init__(self, secret_key: str, publishable_key: str = "", webhook_secret: str = "") -> None:
        self._secret_key = secret_key
        self.publishable_key = publishable_key
        self._webhook_secret = webhook_secret

    @staticmethod
    def _to_intent(obj: Any) -> PaymentIntent:
        return PaymentIntent(
            id=obj["id"],
            client_secret=obj["client_secret"],
            amount=obj["amount"],
            currency=obj["currency"],
            status=obj["status"],
        )

    @retry(
        retry=retry_if_exception_type(stripe.APIConnectionError),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    def create_intent(
        self,
        amount: int,
        currency: str,
        receipt: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        """Create a PaymentIntent.

        The idempotency key makes retried calls return the same intent
        instead of creating a second one.

        Args:
            amount: Amount in the currency's minor unit.
            currency: Lowercase ISO currency code.
            receipt: Merchant reference shown on the payment (order number).
            idempotency_key: Stripe idempotency key.
            metadata: Extra metadata stored on the intent.

        Returns:
            PaymentIntent: The created intent.

        Raises:
            stripe.StripeError: If Stripe rejects the request.
        """
        intent = stripe.PaymentIntent.create(
            api_key=self._secret_key,
            idempotency_key=idempotency_key,
            amount=amount,
            currency=currency,
            description=receipt,
            metadata={"receipt": receipt, **(metadata or {})},
            automatic_payment_methods={"enabled": True},
        )
        logger.info("Created payment intent %s for %s (%d %s)", intent["id"], receipt, amount, currency)
        return self._to_intent(intent)

    @retry(
        retry=retry_if_exception_type(stripe.APIConnectionError),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch an existing PaymentIntent."""
        return self._to_intent(stripe.PaymentIntent.retrieve(intent_id, api_key=self._secret_key))

    @retry(
        retry=retry_if_exception_type(stripe.APIConnectionError),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    def cancel_intent(self, intent_id: str) -> PaymentIntent:
        """Void a PaymentIntent so the shopper can no longer pay it.

        Intents that already succeeded, are mid-payment or were cancelled
        are returned unchanged; callers decide from ``status``.

        Raises:
            stripe.StripeError: If Stripe rejects the cancel for any other reason.
        """
        intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self._secret_key)
        if intent["status"] in UNCANCELLABLE_STATUSES:
            return self._to_intent(intent)

        try:
            intent = stripe.PaymentIntent.cancel(
                intent_id,
                api_key=self._secret_key,
                cancellation_reason="abandoned",
            )
        except stripe.InvalidRequestError:
            # Paid between the lookup and the cancel
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self._secret_key)
            if intent["status"] not in UNCANCELLABLE_STATUSES:
                raise
            return self._to_intent(intent)

        logger.info("Cancelled payment intent %s", intent_id)
        return self._to_intent(intent)

    def construct_event(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify a Stripe webhook signature and return the event.

        Args:
            payload: Raw webhook payload bytes.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event as plain JSON.

        Raises:
            ValueError: If the signature is invalid or webhooks are not configured.
        """
        if not self._webhook_secret:
            raise ValueError("Stripe webhook secret is not configured")

        try:
            stripe.Webhook.construct_event(payload, sig_header, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise ValueError("Invalid webhook signature") from e

        return json.loads(payload)


def build_payment_gateway(settings: Settings) -> StripePaymentGateway:
    """Build the payment gateway from settings.

    Called once from the application lifespan.

    Raises:
        ConfigurationError: If Stripe or the payment callback secret is not configured.
    """
    missing = [
        name
        for name, value in (
            ("STRIPE_SECRET_KEY", settings.stripe_secret_key),
            ("PAYMENT_CALLBACK_SECRET", settings.payment_callback_secret),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Payment gateway is not configured: set {', '.join(missing)}")

    if not settings.stripe_webhook_secret:
        logger.warning("Stripe webhook secret not configured. Stripe webhooks will be rejected.")

    return StripePaymentGateway(
        secret_key=settings.stripe_secret_key,
        publishable_key=settings.stripe_publishable_key,
        webhook_secret=settings.stripe_webhook_secret,
    )
