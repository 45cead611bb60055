"""Product model type definitions for catalog reads."""

from datetime import datetime
from typing import TypedDict


class Product(TypedDict, total=False):
    """Product document representation.

    Owned by the catalog; the order engine only reads it.
    """

    id: str
    fish_name: str
    price_per_kg: float
    available: bool
    is_premium: bool
    image_url: str | None
    last_updated: datetime | None
