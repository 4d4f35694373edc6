"""Payment callback verification route."""

from fastapi import APIRouter

from vyuga.api.deps import PaymentServiceDep
from vyuga.schemas.order import PaymentCallback, PaymentVerifyResponse

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/verify",
    response_model=PaymentVerifyResponse,
    summary="Verify payment",
    description=(
        "Settles an order from a signed payment callback. Safe to repeat: "
        "a second call for a confirmed order returns it unchanged."
    ),
)
async def verify_payment(data: PaymentCallback, payment_service: PaymentServiceDep) -> PaymentVerifyResponse:
    """Verify the callback signature and confirm the order.

    Raises:
        InvalidSignatureError: 400, nothing is changed.
        UnknownOrderError: 404, nothing is changed.
        InvalidTransitionError: 409 if the order was already cancelled.
    """
    order = await payment_service.settle_payment(
        data.order_reference_id,
        data.payment_reference_id,
        data.signature,
    )
    return PaymentVerifyResponse(
        order_id=order["id"],
        order_number=order["order_number"],
        status=order["status"],
        payment_status=order["payment_status"],
    )
