"""Read-only access to the product catalog."""

import logging

from src.api.middleware.error_handler import NotFoundError, ValidationError
from src.core.config import get_settings
from src.core.document_store import ChangeEvent, ChangeType, Document, DocumentStore, Filter
from src.core.store import get_document_store
from src.core.watch import Subscription
from src.models.product import Product

logger = logging.getLogger(__name__)


def sort_catalog(products: list[Document]) -> list[Document]:
    """Premium products first, then by name."""
    return sorted(products, key=lambda p: (not p.get("is_premium", False), str(p.get("fish_name", "")).lower()))


def _catalog_reducer():
    products: dict[str, Document] = {}

    def reduce(event: ChangeEvent) -> tuple[list[list[Document]], bool]:
        if event.type is ChangeType.SNAPSHOT:
            products.clear()
            products.update({doc["id"]: doc for doc in event.documents})
        elif event.type is ChangeType.REMOVED:
            products.pop(event.doc_id or "", None)
        elif event.document is not None:
            products[event.doc_id or event.document["id"]] = event.document
        return [sort_catalog(list(products.values()))], False

    return reduce


class CatalogService:
    """Service for reading the product catalog.

    The catalog is maintained elsewhere; this service never writes to it.
    """

    def __init__(self, store: DocumentStore | None = None, collection: str | None = None) -> None:
        """Initialize catalog service.

        Args:
            store: Optional document store for testing.
            collection: Products collection name, defaults to settings.
        """
        self._store = store
        self.collection = collection or get_settings().products_table

    @property
    def store(self) -> DocumentStore:
        """Get document store."""
        if self._store is None:
            self._store = get_document_store()
        return self._store

    async def list_available(
        self,
        search: str | None = None,
        premium_only: bool = False,
    ) -> list[Product]:
        """List products currently available for sale.

        Premium products come first, then products by name.

        Args:
            search: Optional case-insensitive substring of the product name.
            premium_only: If True, only return premium products.

        Returns:
            list[Product]: Matching products.
        """
        products = await self.store.query(self.collection, [Filter("available", "==", True)])

        if search:
            needle = search.strip().lower()
            products = [p for p in products if needle in str(p.get("fish_name", "")).lower()]
        if premium_only:
            products = [p for p in products if p.get("is_premium")]

        return sort_catalog(products)  # type: ignore[return-value]

    async def get_product(self, product_id: str) -> Product:
        """Get a product by id.

        Raises:
            NotFoundError: If the product does not exist.
        """
        product = await self.store.get(self.collection, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product  # type: ignore[return-value]

    async def get_available_product(self, product_id: str) -> Product:
        """Get a product that can be added to a basket.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If the product is not currently available.
        """
        product = await self.get_product(product_id)
        if not product.get("available", False):
            logger.warning("Rejected unavailable product %s", product_id)
            raise ValidationError("Product is no longer available")
        return product

    async def watch_available(self) -> Subscription[list[Product]]:
        """Live subscription to available products.

        Yields the full sorted list of available products after every change.
        """
        watch = await self.store.watch(self.collection, [Filter("available", "==", True)])
        return Subscription(watch, _catalog_reducer())
