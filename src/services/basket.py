"""Client-owned basket aggregate."""

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from src.models.order import OrderItem
from src.services import line_items
from src.services.line_items import LineItem


@dataclass(frozen=True)
class BasketPolicy:
    """Quantity and pricing rules applied by every basket operation."""

    quantity_step: float = 1.0
    min_quantity: float = 0.5
    cleaning_surcharge: float = 30.0

    @classmethod
    def from_settings(cls) -> "BasketPolicy":
        """Create policy from application settings."""
        from src.core.config import get_settings

        settings = get_settings()
        return cls(
            quantity_step=settings.quantity_step,
            min_quantity=settings.min_quantity,
            cleaning_surcharge=settings.cleaning_surcharge_per_unit,
        )


@dataclass(frozen=True)
class Basket:
    """Immutable basket of line items.

    Every operation returns a new basket and performs no I/O. The basket has
    no server-side representation until it is materialized into an order.
    """

    items: tuple[LineItem, ...] = ()
    policy: BasketPolicy = field(default_factory=BasketPolicy)

    @classmethod
    def from_items(cls, items: Iterable[LineItem], policy: BasketPolicy | None = None) -> "Basket":
        return cls(items=tuple(items), policy=policy or BasketPolicy())

    def _with(self, items: tuple[LineItem, ...]) -> "Basket":
        return Basket(items=items, policy=self.policy)

    def add(self, product: Mapping[str, Any], cleaning: bool = False) -> "Basket":
        return self._with(line_items.merge_add(self.items, product, cleaning, self.policy.quantity_step))

    def remove(self, product_id: str, cleaning: bool = False) -> "Basket":
        return self._with(line_items.remove(self.items, product_id, cleaning))

    def adjust_quantity(self, product_id: str, cleaning: bool, delta: float) -> "Basket":
        return self._with(
            line_items.adjust(self.items, product_id, cleaning, delta, self.policy.min_quantity)
        )

    def toggle_modifier(self, product_id: str, cleaning: bool) -> "Basket":
        return self._with(line_items.toggle(self.items, product_id, cleaning))

    def clear(self) -> "Basket":
        """Empty the basket. Clearing an empty basket returns it unchanged."""
        if not self.items:
            return self
        return self._with(())

    def total(self) -> float:
        """Sum of every slot's price plus cleaning surcharges, in currency units."""
        return round(
            sum(item.subtotal(self.policy.cleaning_surcharge) for item in self.items),
            2,
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def unit_count(self) -> float:
        return round(sum(item.quantity for item in self.items), 1)

    def to_order_items(self) -> list[OrderItem]:
        return [item.to_order_item() for item in self.items]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items)
