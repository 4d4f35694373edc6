"""Garment model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Garment(TypedDict):
    """Garments table row representation.

    Owned by catalog management; the core only reads it.
    """

    id: UUID
    name: str
    description: str | None
    price: int
    sizes: list[str]
    in_stock: bool
    image_url: str
    created_at: datetime
