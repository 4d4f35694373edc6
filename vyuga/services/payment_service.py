"""Payment settlement: intent creation, callback verification and settlement."""

import logging
from typing import Any

import stripe

from vyuga.core.config import get_settings
from vyuga.core.errors import (
    InvalidSignatureError,
    InvalidTransitionError,
    NotFoundError,
    PaymentGatewayError,
    UnknownOrderError,
)
from vyuga.core.stripe import PaymentIntent, StripePaymentGateway
from vyuga.models.order import ORDER_PENDING, PAYMENT_PAID
from vyuga.models.owner import owner_of_row
from vyuga.services.cart_service import CartService
from vyuga.services.order_service import OrderService
from vyuga.services.signature import verify_payment_signature

logger = logging.getLogger(__name__)

INTENT_SUCCEEDED = "succeeded"
INTENT_CANCELED = "canceled"


class PaymentService:
    """Coordinates the payment gateway with the order ledger.

    Settlement is safe to repeat: only the request that actually moves the
    order to CONFIRMED performs the follow-up cart cleanup.
    """

    def __init__(
        self,
        gateway: StripePaymentGateway,
        order_service: OrderService | None = None,
        cart_service: CartService | None = None,
    ) -> None:
        """Initialize payment service.

        Args:
            gateway: Payment gateway built at startup.
            order_service: Order ledger (defaults to a new instance).
            cart_service: Cart service used for post-settlement cleanup.
        """
        self.gateway = gateway
        self.settings = get_settings()
        self.order_service = order_service or OrderService()
        self.cart_service = cart_service or CartService()

    def _client_params(self, order: dict[str, Any], intent: PaymentIntent) -> dict[str, Any]:
        return {
            "order_id": order["id"],
            "order_number": order["order_number"],
            "payment_intent_id": intent.id,
            "client_secret": intent.client_secret,
            "publishable_key": self.gateway.publishable_key,
            "amount": order["total"],
            "currency": order["currency"],
        }

    async def initiate_payment(self, order_id: str) -> dict[str, Any]:
        """Create (or look up) the gateway intent for a PENDING order.

        Calling this again for the same order returns the intent created
        the first time; no funds move until the shopper pays.

        Args:
            order_id: The order's UUID.

        Returns:
            dict: Client parameters for driving the shopper through payment.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is no longer PENDING.
            PaymentGatewayError: If the gateway call fails; the order stays
                PENDING and the call can be retried.
        """
        order = await self.order_service.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order["status"] != ORDER_PENDING:
            raise InvalidTransitionError("order", str(order["id"]), order["status"], PAYMENT_PAID)

        try:
            if order.get("payment_id"):
                intent = self.gateway.retrieve_intent(order["payment_id"])
            else:
                # Totals are stored in the gateway's minor unit already
                intent = self.gateway.create_intent(
                    amount=order["total"],
                    currency=order["currency"],
                    receipt=order["order_number"],
                    idempotency_key=f"{order['order_number']}-intent",
                    metadata={"order_id": str(order["id"])},
                )
                order = await self.order_service.attach_payment(order["id"], intent.id)
                if order.get("payment_id") != intent.id:
                    intent = self.gateway.retrieve_intent(order["payment_id"])

        except stripe.StripeError as e:
            logger.error("Stripe error creating payment intent for order %s: %s", order["id"], str(e))
            raise PaymentGatewayError(
                "Payment could not be started. The order is saved; please retry.",
                order_id=str(order["id"]),
            ) from e

        return self._client_params(order, intent)

    async def settle_payment(
        self,
        order_reference_id: str | None,
        payment_reference_id: str | None,
        signature: str | None,
    ) -> dict[str, Any]:
        """Settle a signed payment callback.

        Args:
            order_reference_id: Gateway intent id the callback refers to.
            payment_reference_id: Gateway payment id.
            signature: HMAC-SHA256 over ``order_reference_id|payment_reference_id``.

        Returns:
            dict: The confirmed order.

        Raises:
            InvalidSignatureError: If the signature does not verify. Nothing is changed.
            UnknownOrderError: If no order carries the intent id. Nothing is changed.
            InvalidTransitionError: If the order was cancelled or has moved past CONFIRMED.
        """
        if not verify_payment_signature(
            order_reference_id,
            payment_reference_id,
            signature,
            self.settings.payment_callback_secret,
        ):
            logger.warning(
                "Rejected payment callback with invalid signature (order reference %s, payment reference %s)",
                order_reference_id,
                payment_reference_id,
            )
            raise InvalidSignatureError()

        return await self.settle_verified_intent(order_reference_id, payment_reference_id)

    async def settle_verified_intent(self, intent_id: str, payment_reference_id: str | None) -> dict[str, Any]:
        """Settle the order for an intent whose authenticity is already established.

        Used directly by the Stripe webhook, whose events are verified by Stripe's
        own signature scheme.
        """
        order = await self.order_service.get_order_by_payment_id(intent_id)
        if not order:
            logger.warning("Payment notification for unknown intent %s", intent_id)
            raise UnknownOrderError()

        order, transitioned = await self.order_service.confirm_order(order["id"], payment_reference_id)
        if transitioned:
            await self._clear_purchased_items(order)

        return order

    async def fail_intent(self, intent_id: str, reason: str) -> dict[str, Any] | None:
        """Cancel the PENDING order of a failed or abandoned intent.

        Returns:
            dict | None: The order, or None if no order carries the intent.
        """
        order = await self.order_service.get_order_by_payment_id(intent_id)
        if not order:
            logger.warning("Payment failure for unknown intent %s", intent_id)
            return None

        order, _ = await self.order_service.cancel_order(order["id"], reason)
        return order

    async def cancel_expired_orders(self, ttl_minutes: int | None = None) -> int:
        """Cancel PENDING orders left unpaid past the TTL.

        The gateway intent is voided before the order is cancelled so the
        shopper cannot pay for a cancelled order. An intent found already
        paid settles its order instead; one that is mid-payment, or whose
        gateway call fails, leaves the order PENDING for the next sweep.

        Returns:
            int: Number of orders cancelled.
        """
        ttl = ttl_minutes or self.settings.order_payment_ttl_minutes
        cancelled = 0

        for expired in await self.order_service.list_expired_orders(ttl):
            try:
                if expired.get("payment_id") and not await self._void_intent(expired):
                    continue
                order, transitioned = await self.order_service.cancel_order(
                    expired["id"], f"unpaid after {ttl} minutes"
                )
            except InvalidTransitionError:
                # Settled by a payment notification while the sweep ran
                continue

            if not transitioned:
                continue
            cancelled += 1

            # initiate_payment attached an intent after the listing
            if order.get("payment_id") and order["payment_id"] != expired.get("payment_id"):
                try:
                    self.gateway.cancel_intent(order["payment_id"])
                except stripe.StripeError as e:
                    logger.warning(
                        "Could not void intent %s of cancelled order %s: %s",
                        order["payment_id"],
                        order["id"],
                        str(e),
                    )

        if cancelled:
            logger.info("Cancelled %d orders unpaid after %d minutes", cancelled, ttl)
        return cancelled

    async def _void_intent(self, order: dict[str, Any]) -> bool:
        """Void the order's intent. Returns True if the intent can no longer be paid."""
        try:
            intent = self.gateway.cancel_intent(order["payment_id"])
        except stripe.StripeError as e:
            logger.warning("Could not void intent %s of order %s: %s", order["payment_id"], order["id"], str(e))
            return False

        if intent.status == INTENT_SUCCEEDED:
            logger.warning("Expired order %s was paid through intent %s; settling it", order["id"], intent.id)
            await self.settle_verified_intent(intent.id, None)
            return False

        if intent.status != INTENT_CANCELED:
            logger.info("Intent %s of order %s is %s; retrying next sweep", intent.id, order["id"], intent.status)
            return False

        return True

    async def _clear_purchased_items(self, order: dict[str, Any]) -> None:
        """Remove the purchased lines from the owner's cart.

        Best effort: the settlement has already happened, and a stale cart
        line is corrected on the next cart read or removal.
        """
        keys = [(item["garment_id"], item["size"]) for item in order.get("items") or []]
        try:
            removed = await self.cart_service.clear_items(owner_of_row(order), keys)
            logger.info("Removed %d cart items purchased with order %s", removed, order["id"])
        except Exception:
            logger.warning("Cart cleanup failed for order %s", order["id"], exc_info=True)
