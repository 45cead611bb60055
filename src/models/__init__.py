"""Document model type definitions."""

from src.models.order import Order, OrderItem, OrderStatus
from src.models.product import Product

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
]
