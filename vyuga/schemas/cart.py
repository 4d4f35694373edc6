"""Cart Pydantic schemas for API request/response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from vyuga.schemas.garment import GarmentSummary


class CartItemCreate(BaseModel):
    """Schema for adding an item via POST /cart/items."""

    model_config = ConfigDict(from_attributes=True)

    garment_id: UUID = Field(description="Garment to add")
    size: str = Field(min_length=1, max_length=32, description="Size label")
    quantity: int = Field(default=1, ge=1, description="Quantity to add")


class CartItemResponse(BaseModel):
    """Schema for a cart line."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID = Field(description="Cart item identifier")
    garment_id: UUID = Field(description="Garment identifier")
    size: str = Field(description="Size label")
    quantity: int = Field(ge=1, description="Quantity")
    garment: GarmentSummary | None = Field(default=None, description="Current garment data")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class CartResponse(BaseModel):
    """Schema for GET /cart."""

    model_config = ConfigDict(from_attributes=True)

    items: list[CartItemResponse] = Field(description="Cart lines")
    total: int = Field(description="Sum of current price times quantity, minor units")
    count: int = Field(description="Number of cart lines")


class CartItemRemovedResponse(BaseModel):
    """Schema for DELETE /cart/items/{id}."""

    success: bool = Field(default=True, description="Always true; deletion is idempotent")
    removed: bool = Field(description="Whether a row was actually deleted")
