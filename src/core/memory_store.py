"""In-process document store with live subscriptions.

Used as the default backend for local development and as the store every
core test runs against. Writes are applied and fanned out to watches within
a single event-loop step, so subscribers see changes in apply order.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Iterable

from src.api.middleware.error_handler import NotFoundError, StoreUnavailableError
from src.core.document_store import (
    SERVER_TIMESTAMP,
    ChangeEvent,
    ChangeType,
    Document,
    DocumentStore,
    Filter,
    WatchTarget,
    matches_all,
    sort_documents,
)
from src.core.watch import Watch

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed document store.

    Args:
        clock: Source of server timestamps. Defaults to the current UTC time.
        watch_queue_size: Buffered events per subscriber.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        watch_queue_size: int = 256,
    ) -> None:
        self.clock = clock or _utcnow
        self.watch_queue_size = watch_queue_size
        self._collections: dict[str, dict[str, Document]] = defaultdict(dict)
        self._watches: list[Watch] = []
        self._faults: dict[str, tuple[int, Exception]] = {}

    # -------------------- fault injection --------------------

    def inject_failure(
        self,
        operation: str,
        after: int = 0,
        error: Exception | None = None,
    ) -> None:
        """Arm a one-shot failure for the named operation.

        For ``delete_batch`` the failure fires after ``after`` documents have
        been staged, which simulates a batch rejected midway.
        """
        self._faults[operation] = (after, error or StoreUnavailableError(f"Simulated {operation} failure"))

    def _maybe_fail(self, operation: str) -> None:
        fault = self._faults.get(operation)
        if fault is None:
            return
        remaining, error = fault
        if remaining > 0:
            self._faults[operation] = (remaining - 1, error)
            return
        del self._faults[operation]
        raise error

    # -------------------- helpers --------------------

    def _resolve(self, data: Document) -> Document:
        now = self.clock()
        resolved = {}
        for key, value in data.items():
            resolved[key] = now if value is SERVER_TIMESTAMP else copy.deepcopy(value)
        return resolved

    @staticmethod
    def _export(doc_id: str, data: Document) -> Document:
        document = copy.deepcopy(data)
        document["id"] = doc_id
        return document

    def _publish(
        self,
        collection: str,
        doc_id: str,
        before: Document | None,
        after: Document | None,
    ) -> None:
        for watch in list(self._watches):
            target = watch.target
            if target.collection != collection:
                continue
            was_in = target.includes(doc_id, before)
            is_in = target.includes(doc_id, after)
            if is_in and not was_in:
                watch.push(ChangeEvent(ChangeType.ADDED, doc_id, self._export(doc_id, after)))
            elif is_in and was_in:
                watch.push(ChangeEvent(ChangeType.MODIFIED, doc_id, self._export(doc_id, after)))
            elif was_in and not is_in:
                watch.push(ChangeEvent(ChangeType.REMOVED, doc_id))

    def _write(self, collection: str, doc_id: str, data: Document | None) -> None:
        docs = self._collections[collection]
        before = docs.get(doc_id)
        if data is None:
            docs.pop(doc_id, None)
        else:
            docs[doc_id] = data
        self._publish(collection, doc_id, before, data)

    # -------------------- primitives --------------------

    async def insert(self, collection: str, data: Document) -> Document:
        self._maybe_fail("insert")
        doc_id = uuid.uuid4().hex
        stored = self._resolve({k: v for k, v in data.items() if k != "id"})
        self._write(collection, doc_id, stored)
        return self._export(doc_id, stored)

    async def set(self, collection: str, doc_id: str, data: Document) -> Document:
        self._maybe_fail("set")
        stored = self._resolve({k: v for k, v in data.items() if k != "id"})
        self._write(collection, doc_id, stored)
        return self._export(doc_id, stored)

    async def update(self, collection: str, doc_id: str, fields: Document) -> Document:
        self._maybe_fail("update")
        current = self._collections[collection].get(doc_id)
        if current is None:
            raise NotFoundError(f"Document {doc_id} not found in {collection}")
        stored = {**current, **self._resolve({k: v for k, v in fields.items() if k != "id"})}
        self._write(collection, doc_id, stored)
        return self._export(doc_id, stored)

    async def delete(self, collection: str, doc_id: str) -> bool:
        self._maybe_fail("delete")
        if doc_id not in self._collections[collection]:
            return False
        self._write(collection, doc_id, None)
        return True

    async def get(self, collection: str, doc_id: str) -> Document | None:
        self._maybe_fail("get")
        data = self._collections[collection].get(doc_id)
        return self._export(doc_id, data) if data is not None else None

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        self._maybe_fail("query")
        filters = tuple(filters)
        documents = [
            self._export(doc_id, data)
            for doc_id, data in self._collections[collection].items()
            if matches_all(data, filters)
        ]
        return sort_documents(documents, order_by, descending)

    async def watch(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        doc_id: str | None = None,
    ) -> Watch:
        self._maybe_fail("watch")
        target = WatchTarget(collection=collection, doc_id=doc_id, filters=tuple(filters))
        watch = Watch(target, on_close=self._unregister, maxsize=self.watch_queue_size)

        docs = self._collections[collection]
        if doc_id is not None:
            snapshot = [self._export(doc_id, docs[doc_id])] if doc_id in docs else []
        else:
            snapshot = [
                self._export(key, data)
                for key, data in docs.items()
                if matches_all(data, target.filters)
            ]

        watch.push(ChangeEvent(ChangeType.SNAPSHOT, documents=tuple(snapshot)))
        self._watches.append(watch)
        logger.debug("Watch opened on %s (doc_id=%s)", collection, doc_id)
        return watch

    def _unregister(self, watch: Watch) -> None:
        if watch in self._watches:
            self._watches.remove(watch)
            logger.debug("Watch closed on %s", watch.target.collection)

    async def delete_batch(self, collection: str, doc_ids: Iterable[str]) -> int:
        docs = self._collections[collection]
        staged: list[str] = []
        for doc_id in dict.fromkeys(doc_ids):
            # a failure while staging discards the whole batch
            self._maybe_fail("delete_batch")
            if doc_id in docs:
                staged.append(doc_id)

        for doc_id in staged:
            self._write(collection, doc_id, None)
        return len(staged)

    async def close(self) -> None:
        for watch in list(self._watches):
            await watch.close()

    @property
    def open_watches(self) -> int:
        """Number of live subscriptions, used to detect leaked watches."""
        return len(self._watches)
