"""Checkout and order Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.order import OrderStatus
from src.schemas.basket import BasketSchema


class OrderItemSchema(BaseModel):
    """Schema for a single item in an order."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str = Field(default="", description="Product identifier")
    fish_name: str = Field(description="Product name at checkout")
    price_per_kg: float = Field(ge=0, description="Unit price at checkout")
    quantity: float = Field(gt=0, description="Quantity in kg")
    cleaning: bool = Field(default=False, description="Whether the item is cleaned")


class CheckoutRequest(BaseModel):
    """Schema for placing an order via POST /checkout."""

    model_config = ConfigDict(from_attributes=True)

    customer_name: str = Field(max_length=200, description="Customer name")
    phone_number: str = Field(max_length=32, description="Customer phone number")
    delivery_address: str = Field(max_length=1000, description="Delivery address")
    basket: BasketSchema = Field(description="Basket to convert into an order")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Order identifier")
    customer_name: str = Field(description="Customer name")
    phone_number: str = Field(description="Customer phone number")
    delivery_address: str = Field(description="Delivery address")
    items: list[OrderItemSchema] = Field(description="Items snapshotted at checkout")
    total_amount: float = Field(description="Order total at checkout")
    payment_method: Literal["Cash on Delivery"] = Field(description="Settlement method")
    order_status: OrderStatus = Field(description="Fulfillment status")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="Orders, newest first")
