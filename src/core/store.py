"""Process-wide document store instance."""

import logging

from src.core.config import get_settings
from src.core.document_store import DocumentStore
from src.core.memory_store import InMemoryDocumentStore

logger = logging.getLogger(__name__)

# Global singleton instance
_document_store: DocumentStore | None = None


async def init_document_store() -> DocumentStore:
    """Create the configured document store. Call at app startup."""
    global _document_store
    if _document_store is not None:
        return _document_store

    settings = get_settings()
    if settings.document_store_backend == "supabase":
        from src.core.supabase import create_supabase_client
        from src.core.supabase_store import SupabaseDocumentStore

        client = await create_supabase_client()
        _document_store = SupabaseDocumentStore(
            client,
            watch_queue_size=settings.watch_queue_size,
            probe_table=settings.orders_table,
        )
    else:
        _document_store = InMemoryDocumentStore(watch_queue_size=settings.watch_queue_size)

    logger.info("Document store initialized (%s backend)", settings.document_store_backend)
    return _document_store


def get_document_store() -> DocumentStore:
    """Get the initialized document store.

    Raises:
        RuntimeError: If called before ``init_document_store``.
    """
    if _document_store is None:
        raise RuntimeError("Document store has not been initialized")
    return _document_store


def set_document_store(store: DocumentStore | None) -> None:
    """Replace the process-wide store. Used by tests and scripts."""
    global _document_store
    _document_store = store


async def shutdown_document_store() -> None:
    """Close open subscriptions and release the store. Call at app shutdown."""
    global _document_store
    if _document_store is not None:
        await _document_store.close()
        _document_store = None
