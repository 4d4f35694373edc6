"""Order and payment Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed"]


class ShippingAddressSchema(BaseModel):
    """Shipping address copied onto the order."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(min_length=1, description="Recipient name")
    phone: str = Field(min_length=1, description="Contact phone")
    address: str = Field(min_length=1, description="Street address")
    city: str = Field(min_length=1, description="City")
    state: str = Field(min_length=1, description="State")
    pincode: str = Field(min_length=1, description="Postal code")


class CheckoutItem(BaseModel):
    """One requested line item."""

    garment_id: UUID = Field(description="Garment identifier")
    size: str = Field(min_length=1, description="Size label")
    quantity: int = Field(ge=1, description="Quantity")


class CheckoutRequest(BaseModel):
    """Schema for POST /orders/checkout.

    An empty item list is accepted here and rejected by the ledger with
    an ``empty_order`` error.
    """

    items: list[CheckoutItem] = Field(description="Line items")
    shipping_address: ShippingAddressSchema = Field(description="Shipping address")


class OrderItemSchema(BaseModel):
    """Schema for a frozen order line."""

    model_config = ConfigDict(from_attributes=True)

    garment_id: str = Field(description="Garment UUID")
    garment_name: str = Field(description="Garment name at order time")
    size: str = Field(description="Size label")
    quantity: int = Field(ge=1, description="Quantity ordered")
    unit_price: int = Field(ge=0, description="Unit price frozen at order time, minor units")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID = Field(description="Order unique identifier")
    order_number: str = Field(description="Human-readable order number")
    status: OrderStatus = Field(description="Order status")
    payment_status: PaymentStatus = Field(description="Payment status")
    items: list[OrderItemSchema] = Field(description="Order line items")
    shipping_address: ShippingAddressSchema = Field(description="Shipping address snapshot")
    subtotal: int = Field(description="Sum of frozen unit price times quantity")
    shipping_cost: int = Field(description="Fixed shipping cost")
    total: int = Field(description="Subtotal plus shipping")
    currency: str = Field(description="Currency code")
    payment_id: str | None = Field(default=None, description="Gateway payment intent id")
    confirmed_at: datetime | None = Field(default=None, description="Settlement timestamp")
    created_at: datetime = Field(description="Creation timestamp")


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    items: list[OrderResponse] = Field(description="List of orders")


class PaymentInitResponse(BaseModel):
    """Client parameters for completing payment of an order."""

    order_id: UUID = Field(description="Order identifier")
    order_number: str = Field(description="Order number (gateway receipt)")
    payment_intent_id: str = Field(description="Gateway payment intent id")
    client_secret: str | None = Field(default=None, description="Intent client secret for the payment form")
    publishable_key: str = Field(description="Gateway publishable key")
    amount: int = Field(description="Amount in minor units")
    currency: str = Field(description="Currency code")


class CheckoutResponse(PaymentInitResponse):
    """Schema for POST /orders/checkout."""

    order: OrderResponse = Field(description="The created order")


class PaymentCallback(BaseModel):
    """Signed payment confirmation relayed by the client after payment.

    Fields are optional so an incomplete callback is rejected as an invalid
    signature rather than a schema error.
    """

    order_reference_id: str | None = Field(default=None, description="Gateway intent id stored on the order")
    payment_reference_id: str | None = Field(default=None, description="Gateway payment id")
    signature: str | None = Field(default=None, description="HMAC-SHA256 over order_reference_id|payment_reference_id")


class PaymentVerifyResponse(BaseModel):
    """Schema for POST /payments/verify."""

    success: bool = Field(default=True, description="Settlement succeeded")
    order_id: UUID = Field(description="Confirmed order id")
    order_number: str = Field(description="Confirmed order number")
    status: OrderStatus = Field(description="Order status after settlement")
    payment_status: PaymentStatus = Field(description="Payment status after settlement")
