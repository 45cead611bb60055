"""Document store abstraction shared by the in-memory and Supabase backends.

A collection-of-documents store offering the primitives the order engine
relies on: insert with a generated id, insert/replace at an explicit id,
field update, delete, one-shot filtered query, live filtered subscription
and an atomic multi-document delete batch.
"""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Literal

if TYPE_CHECKING:
    from src.core.watch import Watch

Document = dict[str, Any]

FilterOp = Literal["==", "<", "<=", ">", ">="]

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


class _ServerTimestamp:
    """Sentinel replaced by the store with its own current UTC time on write."""

    _instance: "_ServerTimestamp | None" = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class ChangeType(str, Enum):
    """Kinds of change events delivered to a watch."""

    SNAPSHOT = "snapshot"
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change delivered to a subscriber.

    The first event of every watch is a SNAPSHOT carrying all matching
    documents in ``documents``. Later events carry the affected ``doc_id``
    and, except for REMOVED, the new ``document``.
    """

    type: ChangeType
    doc_id: str | None = None
    document: Document | None = None
    documents: tuple[Document, ...] = ()


@dataclass(frozen=True)
class Filter:
    """Field comparison used by queries and watches."""

    field: str
    op: FilterOp
    value: Any

    def matches(self, document: Document) -> bool:
        if self.field not in document:
            return False
        actual = document[self.field]
        if actual is None:
            return False
        try:
            return _OPERATORS[self.op](actual, self.value)
        except TypeError:
            return False


def matches_all(document: Document, filters: Iterable[Filter]) -> bool:
    """Return True if the document satisfies every filter."""
    return all(f.matches(document) for f in filters)


@dataclass(frozen=True)
class WatchTarget:
    """What a watch observes: one document by id, or a filtered collection."""

    collection: str
    doc_id: str | None = None
    filters: tuple[Filter, ...] = field(default_factory=tuple)

    def includes(self, doc_id: str, document: Document | None) -> bool:
        if document is None:
            return False
        if self.doc_id is not None:
            return doc_id == self.doc_id
        return matches_all(document, self.filters)


def sort_documents(
    documents: list[Document],
    order_by: str | None,
    descending: bool = False,
) -> list[Document]:
    """Sort documents by a field, placing documents missing it last."""
    if not order_by:
        return documents

    present = [d for d in documents if d.get(order_by) is not None]
    missing = [d for d in documents if d.get(order_by) is None]
    present.sort(key=lambda d: d[order_by], reverse=descending)
    return present + missing


class DocumentStore(ABC):
    """Abstract collection-of-documents store.

    Every operation is a coroutine. Transport failures are raised as
    ``StoreUnavailableError``; the store never retries on its own.
    """

    @abstractmethod
    async def insert(self, collection: str, data: Document) -> Document:
        """Insert a document under a store-generated id and return it."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document) -> Document:
        """Insert or fully replace the document stored at ``doc_id``."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Document) -> Document:
        """Update fields of an existing document.

        Raises:
            NotFoundError: If no document exists at ``doc_id``.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Fetch a single document by id."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        """Run a one-shot filtered query."""

    @abstractmethod
    async def watch(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        doc_id: str | None = None,
    ) -> "Watch":
        """Open a live subscription.

        The returned watch yields a SNAPSHOT first, then every change to the
        watched scope in the order the store applied it, until closed.
        """

    @abstractmethod
    async def delete_batch(self, collection: str, doc_ids: Iterable[str]) -> int:
        """Atomically delete several documents.

        Either every listed document is removed or, on failure, none are.
        Returns the number of documents removed.
        """

    async def health_check(self) -> dict[str, Any]:
        """Report whether the store is reachable."""
        return {"healthy": True}

    async def close(self) -> None:
        """Release backend resources and open subscriptions."""


def to_datetime(value: Any) -> datetime | None:
    """Normalize a stored timestamp (datetime or ISO string) to a datetime."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise TypeError(f"Unsupported timestamp value: {value!r}")
