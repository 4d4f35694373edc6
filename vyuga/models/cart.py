"""Cart item model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID

from vyuga.models.garment import Garment


class CartItem(TypedDict):
    """Cart items table row representation.

    Exactly one of user_id and session_id is set.
    """

    id: UUID
    user_id: UUID | None
    session_id: str | None
    garment_id: UUID
    size: str
    quantity: int
    created_at: datetime
    updated_at: datetime


class CartItemWithGarment(CartItem):
    """Cart item joined with its current garment row."""

    garment: Garment
