"""Order ledger: order creation and order state transitions."""

import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from vyuga.core.config import get_settings
from vyuga.core.errors import (
    EmptyOrderError,
    InvalidTransitionError,
    NotFoundError,
    UnknownGarmentError,
    ValidationError,
)
from vyuga.core.supabase import get_supabase_client
from vyuga.models.order import (
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_PENDING,
    PAYMENT_FAILED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    OrderCreate,
    OrderItem,
)
from vyuga.models.owner import Owner, owner_columns
from vyuga.services.garment_service import GarmentService

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrderService:
    """Service for the order ledger.

    Every status change is a single-row update filtered on the expected
    current status. The update returns the row only if it matched, which
    tells the caller whether it won the transition.
    """

    def __init__(self, garment_service: GarmentService | None = None) -> None:
        """Initialize order service with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.garment_service = garment_service or GarmentService()

    @staticmethod
    def generate_order_number() -> str:
        """Timestamp-derived order number with a random suffix, e.g. ``ORD-1718000000000-3FA9C1``."""
        return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"

    async def create_order(
        self,
        owner: Owner,
        line_items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
    ) -> dict[str, Any]:
        """Create a PENDING order with prices frozen from the catalog.

        The order and its line items are one row, written by one insert.
        Neither the cart nor the payment gateway is touched.

        Args:
            owner: Order owner.
            line_items: Dicts with ``garment_id``, ``size`` and ``quantity``.
            shipping_address: Address snapshot stored on the order.

        Returns:
            dict: The created order.

        Raises:
            EmptyOrderError: If there are no line items.
            ValidationError: If a quantity is below 1 or a size is not offered.
            UnknownGarmentError: If any garment does not exist.
        """
        if not line_items:
            raise EmptyOrderError()

        for line in line_items:
            if int(line["quantity"]) < 1:
                raise ValidationError(f"Quantity for garment {line['garment_id']} must be at least 1")

        garments = await self.garment_service.get_garments([line["garment_id"] for line in line_items])
        missing = sorted({str(line["garment_id"]) for line in line_items} - garments.keys())
        if missing:
            raise UnknownGarmentError(missing)

        items: list[OrderItem] = []
        for line in line_items:
            garment = garments[str(line["garment_id"])]
            sizes = garment.get("sizes") or []
            if sizes and line["size"] not in sizes:
                raise ValidationError(f"Size {line['size']!r} is not available for {garment['name']}")
            items.append(
                {
                    "garment_id": str(garment["id"]),
                    "garment_name": garment["name"],
                    "size": line["size"],
                    "quantity": int(line["quantity"]),
                    "unit_price": int(garment["price"]),
                }
            )

        subtotal = sum(item["unit_price"] * item["quantity"] for item in items)
        shipping_cost = self.settings.shipping_cost

        order_data: OrderCreate = {
            **owner_columns(owner),
            "order_number": self.generate_order_number(),
            "shipping_address": dict(shipping_address),
            "items": items,
            "subtotal": subtotal,
            "shipping_cost": shipping_cost,
            "total": subtotal + shipping_cost,
            "currency": self.settings.payment_currency,
            "status": ORDER_PENDING,
            "payment_status": PAYMENT_PENDING,
        }

        response = self.client.table("orders").insert(order_data).execute()
        order = response.data[0]

        logger.info(
            "Created order %s (%s) for %s: %d items, total %d",
            order["id"],
            order["order_number"],
            owner.key,
            len(items),
            order["total"],
        )
        return order

    async def get_order(self, order_id: str) -> dict[str, Any] | None:
        """Get an order by ID.

        Args:
            order_id: The order's UUID.

        Returns:
            dict | None: The order data or None if not found.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def get_order_for_owner(self, order_id: str, owner: Owner) -> dict[str, Any] | None:
        """Get an order only if it belongs to ``owner``."""
        order = await self.get_order(order_id)
        if order and str(order.get(owner.column)) == owner.value:
            return order
        return None

    async def get_order_by_payment_id(self, payment_id: str) -> dict[str, Any] | None:
        """Find the order a gateway intent was created for."""
        response = (
            self.client.table("orders")
            .select("*")
            .eq("payment_id", payment_id)
            .limit(1)
            .execute()
        )

        return response.data[0] if response.data else None

    async def list_orders(self, owner: Owner) -> list[dict[str, Any]]:
        """Get all orders for an owner, newest first."""
        response = (
            self.client.table("orders")
            .select("*")
            .eq(owner.column, owner.value)
            .order("created_at", desc=True)
            .execute()
        )

        return response.data or []

    async def attach_payment(self, order_id: str, payment_id: str) -> dict[str, Any]:
        """Store the gateway intent id on a PENDING order that has none yet.

        Returns:
            dict: The order after the update, or as another request left it.
        """
        response = (
            self.client.table("orders")
            .update({"payment_id": payment_id, "updated_at": _now()})
            .eq("id", str(order_id))
            .eq("status", ORDER_PENDING)
            .is_("payment_id", "null")
            .execute()
        )
        if response.data:
            return response.data[0]

        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    async def confirm_order(
        self,
        order_id: str,
        payment_reference_id: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """Settle an order: PENDING -> CONFIRMED together with payment PENDING -> PAID.

        Confirming an already CONFIRMED order succeeds without changing it,
        so duplicate payment notifications are harmless.

        Args:
            order_id: The order's UUID.
            payment_reference_id: Gateway payment id recorded with the settlement.

        Returns:
            tuple: (order, transitioned) where ``transitioned`` is True only
            for the call that moved the order.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is cancelled, shipped or delivered.
        """
        now = _now()
        update_data = {
            "status": ORDER_CONFIRMED,
            "payment_status": PAYMENT_PAID,
            "confirmed_at": now,
            "updated_at": now,
        }
        if payment_reference_id:
            update_data["payment_reference_id"] = payment_reference_id

        response = (
            self.client.table("orders")
            .update(update_data)
            .eq("id", str(order_id))
            .eq("status", ORDER_PENDING)
            .execute()
        )
        if response.data:
            logger.info("Order %s marked as confirmed", order_id)
            return response.data[0], True

        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order["status"] == ORDER_CONFIRMED:
            logger.info("Order %s already confirmed; ignoring duplicate settlement", order_id)
            return order, False

        logger.error("Refusing to confirm order %s in status %s", order_id, order["status"])
        raise InvalidTransitionError("order", str(order_id), order["status"], ORDER_CONFIRMED)

    async def cancel_order(self, order_id: str, reason: str) -> tuple[dict[str, Any], bool]:
        """Cancel a PENDING order whose payment failed or never arrived.

        Returns:
            tuple: (order, transitioned). Cancelling a cancelled order is a no-op.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is already confirmed or later.
        """
        now = _now()
        response = (
            self.client.table("orders")
            .update(
                {
                    "status": ORDER_CANCELLED,
                    "payment_status": PAYMENT_FAILED,
                    "cancelled_at": now,
                    "updated_at": now,
                }
            )
            .eq("id", str(order_id))
            .eq("status", ORDER_PENDING)
            .execute()
        )
        if response.data:
            logger.info("Order %s marked as cancelled (%s)", order_id, reason)
            return response.data[0], True

        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order["status"] == ORDER_CANCELLED:
            return order, False

        logger.error("Refusing to cancel order %s in status %s (%s)", order_id, order["status"], reason)
        raise InvalidTransitionError("order", str(order_id), order["status"], ORDER_CANCELLED)

    async def list_expired_orders(self, ttl_minutes: int | None = None) -> list[dict[str, Any]]:
        """PENDING orders created more than ``ttl_minutes`` ago, oldest first.

        Returns:
            list: Rows with ``id``, ``order_number`` and ``payment_id``.
        """
        ttl = ttl_minutes or self.settings.order_payment_ttl_minutes
        cutoff = (datetime.now(timezone.utc) - timedelta(minutes=ttl)).isoformat()

        response = (
            self.client.table("orders")
            .select("id, order_number, payment_id")
            .eq("status", ORDER_PENDING)
            .lt("created_at", cutoff)
            .order("created_at")
            .execute()
        )
        return response.data or []
