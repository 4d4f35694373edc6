"""Order API routes: checkout, payment initiation and order lookup."""

from uuid import UUID

from fastapi import APIRouter, status

from vyuga.api.deps import CurrentOwner, PaymentServiceDep
from vyuga.core.errors import NotFoundError
from vyuga.schemas.order import (
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
    OrderResponse,
    PaymentInitResponse,
)
from vyuga.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order and start payment",
    description=(
        "Creates a PENDING order with prices frozen from the catalog and creates its payment intent. "
        "If the gateway is unavailable the order is kept and a 502 carrying the order id is returned; "
        "retry with POST /orders/{order_id}/payment."
    ),
)
async def checkout(
    data: CheckoutRequest,
    owner: CurrentOwner,
    payment_service: PaymentServiceDep,
) -> CheckoutResponse:
    """Create an order and its payment intent.

    Args:
        data: Line items and shipping address.
        owner: Order owner.
        payment_service: Payment coordinator.

    Returns:
        CheckoutResponse: The order plus client payment parameters.

    Raises:
        EmptyOrderError: 422 if there are no items.
        UnknownGarmentError: 422 naming garments that do not exist.
        PaymentGatewayError: 502 with the saved order id.
    """
    order = await payment_service.order_service.create_order(
        owner,
        [item.model_dump(mode="json") for item in data.items],
        data.shipping_address.model_dump(),
    )
    params = await payment_service.initiate_payment(order["id"])
    order = await payment_service.order_service.get_order(order["id"])

    return CheckoutResponse(**params, order=OrderResponse(**order))


async def _owned_order(order_id: UUID, owner: CurrentOwner) -> dict:
    order = await OrderService().get_order_for_owner(str(order_id), owner)
    if not order:
        raise NotFoundError("Order not found")
    return order


@router.post(
    "/{order_id}/payment",
    response_model=PaymentInitResponse,
    summary="Start or resume payment",
    description="Returns payment parameters for a PENDING order, reusing its intent if one exists.",
)
async def initiate_payment(
    order_id: UUID,
    owner: CurrentOwner,
    payment_service: PaymentServiceDep,
) -> PaymentInitResponse:
    """(Re)start payment for one of the caller's orders."""
    order = await _owned_order(order_id, owner)
    params = await payment_service.initiate_payment(order["id"])
    return PaymentInitResponse(**params)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns the caller's orders, newest first.",
)
async def list_orders(owner: CurrentOwner) -> OrderListResponse:
    """List all orders for the current user or guest session."""
    orders = await OrderService().list_orders(owner)
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order. Orders of other owners are reported as not found.",
)
async def get_order(order_id: UUID, owner: CurrentOwner) -> OrderResponse:
    """Get one of the caller's orders."""
    return OrderResponse(**await _owned_order(order_id, owner))
