"""Database model type definitions."""

from vyuga.models.cart import CartItem, CartItemWithGarment
from vyuga.models.garment import Garment
from vyuga.models.order import Order, OrderItem, ShippingAddress
from vyuga.models.owner import GuestOwner, Owner, UserOwner
from vyuga.models.tryon import TryOnSession

__all__ = [
    "CartItem",
    "CartItemWithGarment",
    "Garment",
    "GuestOwner",
    "Order",
    "OrderItem",
    "Owner",
    "ShippingAddress",
    "TryOnSession",
    "UserOwner",
]
