"""Garment Pydantic schemas embedded in cart and try-on responses."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GarmentSummary(BaseModel):
    """Current catalog data for a garment."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID = Field(description="Garment unique identifier")
    name: str = Field(description="Garment name")
    price: int = Field(ge=0, description="Current price in minor currency units")
    sizes: list[str] = Field(default_factory=list, description="Available sizes")
    in_stock: bool = Field(default=True, description="Whether the garment can be ordered")
    image_url: str | None = Field(default=None, description="Garment image URL")
