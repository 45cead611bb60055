"""Order model type definitions for document store operations."""

from datetime import datetime
from enum import Enum
from typing import Literal, TypedDict


class OrderStatus(str, Enum):
    """Fulfillment lifecycle values stored in ``order_status``."""

    NEW = "NEW"
    CONFIRMED = "CONFIRMED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"


# Statuses the operator surface may set directly
OPERATOR_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

PaymentMethod = Literal["Cash on Delivery"]

CASH_ON_DELIVERY: PaymentMethod = "Cash on Delivery"


class OrderItem(TypedDict):
    """Structure for a single item in an order.

    Stored as part of the ``items`` array. Prices are snapshotted at
    checkout and never follow later catalog edits.
    """

    product_id: str
    fish_name: str
    price_per_kg: float
    quantity: float
    cleaning: bool


class Order(TypedDict):
    """Order document representation.

    Field names are the persisted wire contract shared with every
    consumer of the ``orders`` collection.
    """

    id: str
    customer_name: str
    phone_number: str
    delivery_address: str
    items: list[OrderItem]
    total_amount: float
    payment_method: PaymentMethod
    order_status: OrderStatus
    created_at: datetime


class OrderCreate(TypedDict):
    """Data written when an order is materialized.

    ``created_at`` holds the store's server-timestamp sentinel until written.
    """

    customer_name: str
    phone_number: str
    delivery_address: str
    items: list[OrderItem]
    total_amount: float
    payment_method: PaymentMethod
    order_status: str
    created_at: object


class OrderUpdate(TypedDict, total=False):
    """The only field an operator may change on an existing order."""

    order_status: str
