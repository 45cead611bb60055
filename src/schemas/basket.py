"""Basket Pydantic schemas.

The basket lives on the client. Basket endpoints receive the current basket,
apply one operation and return the new basket; nothing is stored.
"""

from pydantic import BaseModel, ConfigDict, Field

from src.services.basket import Basket, BasketPolicy
from src.services.line_items import LineItem


class LineItemSchema(BaseModel):
    """Schema for a single basket slot."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(min_length=1, description="Product identifier")
    fish_name: str = Field(description="Product name captured when added")
    price_per_kg: float = Field(ge=0, allow_inf_nan=False, description="Unit price captured when added")
    quantity: float = Field(gt=0, allow_inf_nan=False, description="Quantity in kg, in steps of 0.5 or more")
    cleaning: bool = Field(default=False, description="Whether the item should be cleaned")

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_id=self.product_id,
            fish_name=self.fish_name,
            price_per_kg=self.price_per_kg,
            quantity=round(self.quantity, 1),
            cleaning=self.cleaning,
        )


class BasketSchema(BaseModel):
    """Schema for a client-held basket."""

    model_config = ConfigDict(from_attributes=True)

    items: list[LineItemSchema] = Field(default_factory=list, description="Basket slots in order")

    def to_basket(self, policy: BasketPolicy | None = None) -> Basket:
        return Basket.from_items((item.to_line_item() for item in self.items), policy)


class BasketResponse(BasketSchema):
    """Schema for basket operation responses."""

    total: float = Field(description="Basket total including cleaning surcharges")
    unit_count: float = Field(description="Sum of slot quantities")

    @classmethod
    def from_basket(cls, basket: Basket) -> "BasketResponse":
        return cls(
            items=[LineItemSchema.model_validate(item) for item in basket.items],
            total=basket.total(),
            unit_count=basket.unit_count,
        )


class BasketAddRequest(BaseModel):
    """Schema for POST /basket/add."""

    basket: BasketSchema = Field(default_factory=BasketSchema, description="Current basket")
    product_id: str = Field(min_length=1, description="Product to add")
    cleaning: bool = Field(default=False, description="Add the cleaned variant")


class BasketSlotRequest(BaseModel):
    """Schema for operations on an existing slot."""

    basket: BasketSchema = Field(description="Current basket")
    product_id: str = Field(min_length=1, description="Slot product")
    cleaning: bool = Field(default=False, description="Slot cleaning flag")


class BasketAdjustRequest(BasketSlotRequest):
    """Schema for POST /basket/adjust."""

    delta: float = Field(description="Signed quantity change, e.g. 0.5 or -1")


class BasketClearRequest(BaseModel):
    """Schema for POST /basket/clear."""

    basket: BasketSchema = Field(default_factory=BasketSchema, description="Current basket")
