"""Product Pydantic schemas for catalog responses."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProductResponse(BaseModel):
    """Schema for product API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Product identifier")
    fish_name: str = Field(description="Display name")
    price_per_kg: float = Field(ge=0, description="Unit price per kg")
    available: bool = Field(description="Whether the product can be ordered")
    is_premium: bool = Field(default=False, description="Premium catch flag")
    image_url: str | None = Field(default=None, description="Product image URL")
    last_updated: datetime | None = Field(default=None, description="Last catalog edit")


class ProductListResponse(BaseModel):
    """Schema for product list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[ProductResponse] = Field(description="Available products")
