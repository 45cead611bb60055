"""Operator status transitions and order deletion."""

import logging

from src.api.middleware.error_handler import ConfirmationRequiredError, NotFoundError
from src.core.config import get_settings
from src.core.document_store import Document, DocumentStore
from src.core.store import get_document_store
from src.models.order import OrderStatus, OrderUpdate
from src.services.access_gate import OperatorGrant

logger = logging.getLogger(__name__)


class LifecycleController:
    """Applies operator writes to existing orders.

    Status writes are unconditional: any status may follow any other, and
    concurrent writes to the same order are last-write-wins.
    """

    def __init__(
        self,
        grant: OperatorGrant,
        store: DocumentStore | None = None,
        collection: str | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            grant: Operator grant obtained from the access gate.
            store: Optional document store for testing.
            collection: Orders collection name, defaults to settings.

        Raises:
            AuthorizationError: If the grant does not authorize operator actions.
        """
        grant.require()
        self.grant = grant
        self._store = store
        self.collection = collection or get_settings().orders_table

    @property
    def store(self) -> DocumentStore:
        """Get document store."""
        if self._store is None:
            self._store = get_document_store()
        return self._store

    async def set_status(self, order_id: str, status: OrderStatus | str) -> Document:
        """Write a new status to an order.

        Args:
            order_id: The order's id.
            status: Any lifecycle status.

        Returns:
            Document: The updated order.

        Raises:
            NotFoundError: If the order does not exist.
        """
        self.grant.require()
        new_status = OrderStatus(status)
        order = await self.store.update(
            self.collection,
            order_id,
            dict(OrderUpdate(order_status=new_status.value)),
        )
        logger.info("Order %s status set to %s by %s", order_id, new_status.value, self.grant.subject)
        return order

    async def delete_order(self, order_id: str, confirmed: bool = False) -> bool:
        """Permanently delete an order.

        Args:
            order_id: The order's id.
            confirmed: Must be True; deletion cannot be undone.

        Returns:
            bool: True if the order was deleted, False if it was already gone.

        Raises:
            ConfirmationRequiredError: If ``confirmed`` is not True.
        """
        self.grant.require()
        if not confirmed:
            raise ConfirmationRequiredError(
                "Deleting an order permanently removes it from history and must be confirmed"
            )

        deleted = await self.store.delete(self.collection, order_id)
        if deleted:
            logger.info("Order %s deleted by %s", order_id, self.grant.subject)
        else:
            logger.warning("Order %s was already absent when deletion was requested", order_id)
        return deleted

    async def get_order(self, order_id: str) -> Document:
        """Fetch an order for the operator view.

        Raises:
            NotFoundError: If the order does not exist.
        """
        order = await self.store.get(self.collection, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order
