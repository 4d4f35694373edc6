"""Webhook API routes for Stripe payment events."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from vyuga.api.deps import PaymentServiceDep
from vyuga.core.errors import InvalidTransitionError, UnknownOrderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    status_code=status.HTTP_200_OK,
    summary="Handle Stripe webhooks",
    description="Receives and processes Stripe payment intent events. Requires valid signature.",
)
async def stripe_webhook(request: Request, payment_service: PaymentServiceDep) -> dict[str, str]:
    """Handle Stripe webhook events.

    Handles:
    - payment_intent.succeeded: settles the order (same path as a signed callback)
    - payment_intent.payment_failed: cancels the PENDING order
    - payment_intent.canceled: cancels the PENDING order

    Events for unknown intents or for orders that already moved on are logged
    and acknowledged, so Stripe does not redeliver them.

    Raises:
        HTTPException: 400 if signature is missing or invalid.
    """
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    try:
        event = payment_service.gateway.construct_event(payload, sig_header)
    except ValueError as e:
        logger.error("Invalid webhook signature: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event["type"]
    intent = event["data"]["object"]
    logger.info("Processing Stripe webhook event: %s for %s", event_type, intent["id"])

    try:
        if event_type == "payment_intent.succeeded":
            await payment_service.settle_verified_intent(intent["id"], intent.get("latest_charge"))

        elif event_type == "payment_intent.payment_failed":
            error = intent.get("last_payment_error") or {}
            await payment_service.fail_intent(intent["id"], error.get("message") or "Payment failed")

        elif event_type == "payment_intent.canceled":
            await payment_service.fail_intent(intent["id"], "Payment cancelled")

        else:
            logger.debug("Unhandled webhook event type: %s", event_type)

    except UnknownOrderError:
        logger.warning("Ignoring %s for intent %s with no order", event_type, intent["id"])
    except InvalidTransitionError as e:
        logger.error("Ignoring %s: %s", event_type, e.message)

    return {"status": "received"}
