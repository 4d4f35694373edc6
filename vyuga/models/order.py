"""Order model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


# Order status enum values matching database enum
OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

PaymentStatus = Literal["pending", "paid", "failed"]

ORDER_PENDING: OrderStatus = "pending"
ORDER_CONFIRMED: OrderStatus = "confirmed"
ORDER_SHIPPED: OrderStatus = "shipped"
ORDER_DELIVERED: OrderStatus = "delivered"
ORDER_CANCELLED: OrderStatus = "cancelled"

PAYMENT_PENDING: PaymentStatus = "pending"
PAYMENT_PAID: PaymentStatus = "paid"
PAYMENT_FAILED: PaymentStatus = "failed"


class ShippingAddress(TypedDict):
    """Shipping address snapshot copied onto the order."""

    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str


class OrderItem(TypedDict):
    """Structure for a single line item in an order.

    Stored as part of the items JSONB array. ``unit_price`` is frozen
    when the order is created.
    """

    garment_id: str
    garment_name: str
    size: str
    quantity: int
    unit_price: int


class Order(TypedDict):
    """Order table row representation.

    Maps directly to the database schema.
    """

    id: UUID
    order_number: str
    user_id: UUID | None
    session_id: str | None
    shipping_address: ShippingAddress
    items: list[OrderItem]
    subtotal: int
    shipping_cost: int
    total: int
    currency: str
    status: OrderStatus
    payment_id: str | None
    payment_reference_id: str | None
    payment_status: PaymentStatus
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderCreate(TypedDict, total=False):
    """Data required to create a new order."""

    order_number: str
    user_id: str | None
    session_id: str | None
    shipping_address: ShippingAddress
    items: list[OrderItem]
    subtotal: int
    shipping_cost: int
    total: int
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
