"""Live order status for the customer tracker and the operator dashboard.

Both observers share one mechanism: a store watch whose change events are
folded into view-level updates by a reducer, exposed as a cancelable async
iterator.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.core.config import get_settings
from src.core.document_store import ChangeEvent, ChangeType, Document, DocumentStore, Filter, to_datetime
from src.core.store import get_document_store
from src.core.watch import Subscription

logger = logging.getLogger(__name__)


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def newest_first(orders: Iterable[Document]) -> list[Document]:
    """Sort orders by ``created_at`` descending; orders without one go last."""

    def created(order: Document) -> datetime:
        value = to_datetime(order.get("created_at"))
        if value is None:
            return _EPOCH
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    return sorted(orders, key=created, reverse=True)


@dataclass(frozen=True)
class OrderUpdate:
    """Current state of a tracked order."""

    order: Document
    event: str = "order"


@dataclass(frozen=True)
class OrderRemoved:
    """The tracked order no longer exists. Terminal for a tracker."""

    order_id: str
    event: str = "removed"


@dataclass(frozen=True)
class DashboardSnapshot:
    """Every order in the store, newest first, after one change."""

    orders: list[Document]
    change: ChangeType
    order_id: str | None = None
    event: str = field(default="orders")


def _tracker_reducer(order_id: str) -> Callable[[ChangeEvent], tuple[list[OrderUpdate | OrderRemoved], bool]]:
    def reduce(event: ChangeEvent) -> tuple[list[OrderUpdate | OrderRemoved], bool]:
        if event.type is ChangeType.SNAPSHOT:
            if not event.documents:
                logger.warning("Tracked order %s does not exist", order_id)
                return [OrderRemoved(order_id)], True
            return [OrderUpdate(event.documents[0])], False
        if event.type is ChangeType.REMOVED:
            logger.info("Tracked order %s was removed", order_id)
            return [OrderRemoved(order_id)], True
        return [OrderUpdate(event.document or {})], False

    return reduce


def _dashboard_reducer() -> Callable[[ChangeEvent], tuple[list[DashboardSnapshot], bool]]:
    orders: dict[str, Document] = {}

    def reduce(event: ChangeEvent) -> tuple[list[DashboardSnapshot], bool]:
        if event.type is ChangeType.SNAPSHOT:
            orders.clear()
            orders.update({doc["id"]: doc for doc in event.documents})
        elif event.type is ChangeType.REMOVED:
            orders.pop(event.doc_id or "", None)
        elif event.document is not None:
            orders[event.doc_id or event.document["id"]] = event.document
        return [DashboardSnapshot(newest_first(orders.values()), event.type, event.doc_id)], False

    return reduce


class StatusChannel:
    """Discovery and live subscriptions over the orders collection."""

    def __init__(self, store: DocumentStore | None = None, collection: str | None = None) -> None:
        """Initialize the status channel.

        Args:
            store: Optional document store for testing.
            collection: Orders collection name, defaults to settings.
        """
        self._store = store
        self.collection = collection or get_settings().orders_table

    @property
    def store(self) -> DocumentStore:
        """Get document store."""
        if self._store is None:
            self._store = get_document_store()
        return self._store

    async def discover(self, phone_number: str) -> Document:
        """Find the newest order placed with a phone number.

        The store query is unordered; sorting happens here because no
        server-side index on ``(phone_number, created_at)`` is assumed.

        Raises:
            ValidationError: If the phone number is blank.
            NotFoundError: If no order matches.
        """
        phone = phone_number.strip()
        if not phone:
            raise ValidationError("Please enter your phone number")

        matches = await self.store.query(self.collection, [Filter("phone_number", "==", phone)])
        if not matches:
            raise NotFoundError("No orders found for this phone number")

        newest = newest_first(matches)[0]
        logger.info("Resolved phone lookup to order %s (%d matches)", newest["id"], len(matches))
        return newest

    async def track_order(self, order_id: str) -> Subscription[OrderUpdate | OrderRemoved]:
        """Subscribe to one order.

        Yields the current order first, then every update, and finally an
        ``OrderRemoved`` if the order is deleted (or never existed).
        """
        watch = await self.store.watch(self.collection, doc_id=order_id)
        return Subscription(watch, _tracker_reducer(order_id))

    async def dashboard(self) -> Subscription[DashboardSnapshot]:
        """Subscribe to every order, newest first."""
        watch = await self.store.watch(self.collection)
        return Subscription(watch, _dashboard_reducer())

    async def list_orders(self) -> list[Document]:
        """One-shot listing of every order, newest first."""
        return newest_first(await self.store.query(self.collection))

    async def get_order(self, order_id: str) -> Document:
        """One-shot read of a single order.

        Raises:
            NotFoundError: If the order does not exist.
        """
        order = await self.store.get(self.collection, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order
