"""Checkout: turns a basket into a persisted order document."""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum

from src.api.middleware.error_handler import ValidationError
from src.core.config import get_settings
from src.core.document_store import SERVER_TIMESTAMP, DocumentStore
from src.core.store import get_document_store
from src.models.order import CASH_ON_DELIVERY, Order, OrderCreate, OrderStatus
from src.services.basket import Basket

logger = logging.getLogger(__name__)


class OrderIdStrategy(str, Enum):
    """How a new order's document id is chosen.

    GENERATED gives every checkout its own id and keeps full history.
    PHONE keys the order by the customer's phone number, so a later checkout
    from the same phone replaces the earlier order.
    """

    GENERATED = "generated"
    PHONE = "phone"


@dataclass(frozen=True)
class CustomerDetails:
    """Customer fields collected at checkout."""

    name: str
    phone_number: str
    delivery_address: str


class OrderMaterializer:
    """Validates a checkout and writes the resulting order."""

    def __init__(
        self,
        store: DocumentStore | None = None,
        strategy: OrderIdStrategy | str | None = None,
        phone_digits: int | None = None,
        collection: str | None = None,
    ) -> None:
        """Initialize the materializer.

        Args:
            store: Optional document store for testing.
            strategy: Order id strategy, defaults to the ``order_id_strategy`` setting.
            phone_digits: Required phone number length, defaults to settings.
            collection: Orders collection name, defaults to settings.
        """
        settings = get_settings()
        self._store = store
        self.strategy = OrderIdStrategy(strategy or settings.order_id_strategy)
        self.phone_digits = phone_digits or settings.phone_number_digits
        self.collection = collection or settings.orders_table
        self._phone_pattern = re.compile(rf"\d{{{self.phone_digits}}}")

    @property
    def store(self) -> DocumentStore:
        """Get document store."""
        if self._store is None:
            self._store = get_document_store()
        return self._store

    def validate(self, basket: Basket, customer: CustomerDetails) -> CustomerDetails:
        """Check the checkout request and return trimmed customer details.

        Raises:
            ValidationError: If the basket is empty, an item quantity is below
                the smallest unit, or a customer field is invalid.
        """
        if basket.is_empty:
            raise ValidationError("Your basket is empty")

        name = customer.name.strip()
        phone = customer.phone_number.strip()
        address = customer.delivery_address.strip()

        errors = self._item_errors(basket)
        if not name:
            errors.append({"loc": ["customer_name"], "msg": "Name is required", "type": "missing"})
        if not self._phone_pattern.fullmatch(phone):
            errors.append(
                {
                    "loc": ["phone_number"],
                    "msg": f"Phone number must be exactly {self.phone_digits} digits",
                    "type": "pattern",
                }
            )
        if not address:
            errors.append({"loc": ["delivery_address"], "msg": "Delivery address is required", "type": "missing"})

        if errors:
            raise ValidationError("Invalid checkout details", details=errors)

        return CustomerDetails(name=name, phone_number=phone, delivery_address=address)

    @staticmethod
    def _item_errors(basket: Basket) -> list[dict]:
        minimum = round(basket.policy.min_quantity, 1)
        errors = []
        for index, item in enumerate(basket.items):
            if not math.isfinite(item.price_per_kg) or item.price_per_kg < 0:
                errors.append(
                    {
                        "loc": ["basket", "items", index, "price_per_kg"],
                        "msg": "Price must be a non-negative number",
                        "type": "value_error",
                    }
                )
            if not math.isfinite(item.quantity) or round(item.quantity, 1) < minimum:
                errors.append(
                    {
                        "loc": ["basket", "items", index, "quantity"],
                        "msg": f"Quantity must be at least {minimum:g}",
                        "type": "greater_than_equal",
                    }
                )
        return errors

    def build(self, basket: Basket, customer: CustomerDetails) -> OrderCreate:
        """Snapshot the basket into an order document ready to be written."""
        return OrderCreate(
            customer_name=customer.name,
            phone_number=customer.phone_number,
            delivery_address=customer.delivery_address,
            items=basket.to_order_items(),
            total_amount=basket.total(),
            payment_method=CASH_ON_DELIVERY,
            order_status=OrderStatus.NEW.value,
            created_at=SERVER_TIMESTAMP,
        )

    async def materialize(self, basket: Basket, customer: CustomerDetails) -> Order:
        """Validate the checkout and persist the order.

        Args:
            basket: The customer's basket. It is not modified; callers clear it
                once this returns.
            customer: Customer name, phone number and address.

        Returns:
            Order: The stored order including its id and creation time.

        Raises:
            ValidationError: Before any write, if the checkout is invalid.
            StoreUnavailableError: If the store could not be reached.
        """
        customer = self.validate(basket, customer)
        order_data = self.build(basket, customer)

        if self.strategy is OrderIdStrategy.PHONE:
            doc_id = customer.phone_number
            previous = await self.store.get(self.collection, doc_id)
            order = await self.store.set(self.collection, doc_id, dict(order_data))
            if previous is not None:
                logger.info("Order %s replaced the previous order for this phone number", doc_id)
        else:
            order = await self.store.insert(self.collection, dict(order_data))

        logger.info(
            "Order %s created with %d items, total %.2f",
            order["id"],
            len(order_data["items"]),
            order_data["total_amount"],
        )
        return order  # type: ignore[return-value]
