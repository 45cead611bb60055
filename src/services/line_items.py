"""Basket line items and the rules that identify and merge them.

A slot is identified by ``(product_id, cleaning)``: the same product with and
without cleaning occupies two distinct slots. Adding to an existing slot
increments it instead of appending a duplicate.
"""

from dataclasses import dataclass, replace
from typing import Any, Mapping

from src.api.middleware.error_handler import NotFoundError
from src.models.order import OrderItem

SlotKey = tuple[str, bool]


@dataclass(frozen=True)
class LineItem:
    """A basket slot with the product fields captured when it was added."""

    product_id: str
    fish_name: str
    price_per_kg: float
    quantity: float = 1.0
    cleaning: bool = False

    @property
    def slot(self) -> SlotKey:
        return slot_key(self.product_id, self.cleaning)

    def subtotal(self, cleaning_surcharge: float) -> float:
        """Price of this slot including the cleaning surcharge when set."""
        amount = self.price_per_kg * self.quantity
        if self.cleaning:
            amount += cleaning_surcharge * self.quantity
        return amount

    def to_order_item(self) -> OrderItem:
        return OrderItem(
            product_id=self.product_id,
            fish_name=self.fish_name,
            price_per_kg=self.price_per_kg,
            quantity=self.quantity,
            cleaning=self.cleaning,
        )


def slot_key(product_id: str, cleaning: bool) -> SlotKey:
    return (str(product_id), bool(cleaning))


def normalize_quantity(value: float, minimum: float) -> float:
    """Round to one decimal and clamp to the smallest legal unit.

    Rounding first keeps repeated half-unit steps from accumulating binary
    noise such as 0.59999999.
    """
    return max(round(minimum, 1), round(value, 1))


def find_slot(items: tuple[LineItem, ...], product_id: str, cleaning: bool) -> int | None:
    """Return the index of the first slot matching ``(product_id, cleaning)``."""
    key = slot_key(product_id, cleaning)
    for index, item in enumerate(items):
        if item.slot == key:
            return index
    return None


def _require_slot(items: tuple[LineItem, ...], product_id: str, cleaning: bool) -> int:
    index = find_slot(items, product_id, cleaning)
    if index is None:
        state = "cleaned" if cleaning else "uncleaned"
        raise NotFoundError(f"No {state} slot for product {product_id} in basket")
    return index


def merge_add(
    items: tuple[LineItem, ...],
    product: Mapping[str, Any],
    cleaning: bool,
    step: float = 1.0,
) -> tuple[LineItem, ...]:
    """Add one step of a product, merging into an existing slot if present.

    A new slot snapshots the product's name and price at add time; an
    existing slot keeps the price it was first added with.
    """
    product_id = str(product["id"])
    index = find_slot(items, product_id, cleaning)
    if index is not None:
        item = items[index]
        merged = replace(item, quantity=round(item.quantity + step, 1))
        return items[:index] + (merged,) + items[index + 1:]

    new_item = LineItem(
        product_id=product_id,
        fish_name=str(product.get("fish_name", "")),
        price_per_kg=float(product["price_per_kg"]),
        quantity=round(step, 1),
        cleaning=bool(cleaning),
    )
    return items + (new_item,)


def adjust(
    items: tuple[LineItem, ...],
    product_id: str,
    cleaning: bool,
    delta: float,
    minimum: float,
) -> tuple[LineItem, ...]:
    """Apply a signed quantity delta to a slot, never going below ``minimum``."""
    index = _require_slot(items, product_id, cleaning)
    item = items[index]
    adjusted = replace(item, quantity=normalize_quantity(item.quantity + delta, minimum))
    return items[:index] + (adjusted,) + items[index + 1:]


def toggle(items: tuple[LineItem, ...], product_id: str, cleaning: bool) -> tuple[LineItem, ...]:
    """Flip the cleaning flag of a slot in place.

    This does not merge with a slot already holding the opposite flag for
    the same product, so the result may contain two slots with the same key.
    """
    index = _require_slot(items, product_id, cleaning)
    item = items[index]
    toggled = replace(item, cleaning=not item.cleaning)
    return items[:index] + (toggled,) + items[index + 1:]


def remove(items: tuple[LineItem, ...], product_id: str, cleaning: bool) -> tuple[LineItem, ...]:
    """Drop a slot. Removing a slot that is not present is a no-op."""
    index = find_slot(items, product_id, cleaning)
    if index is None:
        return items
    return items[:index] + items[index + 1:]
