"""Supabase-backed document store.

Documents are table rows keyed by a text ``id`` column. One-shot operations
use the PostgREST table API; live subscriptions use a realtime
``postgres_changes`` channel per watch. A multi-row delete is a single SQL
statement and therefore atomic.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import AsyncClient

from src.api.middleware.error_handler import NotFoundError, StoreUnavailableError
from src.core.document_store import (
    SERVER_TIMESTAMP,
    ChangeEvent,
    ChangeType,
    Document,
    DocumentStore,
    Filter,
    WatchTarget,
    to_datetime,
)
from src.core.supabase import check_database_connection
from src.core.watch import Watch

logger = logging.getLogger(__name__)

STORE_ERRORS = (PostgrestAPIError, httpx.HTTPError)

# PostgREST filter method for each comparison operator
_FILTER_METHODS = {
    "==": "eq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
}


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class _RealtimeRelay:
    """Translates realtime payloads into change events for one watch.

    Payloads received before the initial snapshot is published are buffered
    and replayed after it, so the snapshot is always the first event.
    """

    def __init__(
        self,
        watch: Watch,
        decode: Callable[[Document], Document],
    ) -> None:
        self.watch = watch
        self.target: WatchTarget = watch.target
        self._decode = decode
        self._members: set[str] = set()
        self._pending: list[dict[str, Any]] | None = []

    def start(self, snapshot: list[Document]) -> None:
        self._members = {doc["id"] for doc in snapshot}
        self.watch.push(ChangeEvent(ChangeType.SNAPSHOT, documents=tuple(snapshot)))
        pending, self._pending = self._pending or [], None
        for payload in pending:
            self._apply(payload)

    def handle(self, payload: dict[str, Any]) -> None:
        if self._pending is not None:
            self._pending.append(payload)
            return
        self._apply(payload)

    def _apply(self, payload: dict[str, Any]) -> None:
        data = payload.get("data", payload)
        event_type = str(data.get("type") or data.get("eventType") or "").upper()
        record = data.get("record") or data.get("new") or {}
        old_record = data.get("old_record") or data.get("old") or {}

        if event_type == "DELETE":
            doc_id = str(old_record.get("id", ""))
            if doc_id in self._members:
                self._members.discard(doc_id)
                self.watch.push(ChangeEvent(ChangeType.REMOVED, doc_id))
            return

        if event_type not in ("INSERT", "UPDATE") or "id" not in record:
            logger.warning("Dropping unrecognised realtime payload on %s", self.target.collection)
            return

        document = self._decode(record)
        doc_id = document["id"]
        was_in = doc_id in self._members
        is_in = self.target.includes(doc_id, document)

        if is_in and not was_in:
            self._members.add(doc_id)
            self.watch.push(ChangeEvent(ChangeType.ADDED, doc_id, document))
        elif is_in:
            self.watch.push(ChangeEvent(ChangeType.MODIFIED, doc_id, document))
        elif was_in:
            self._members.discard(doc_id)
            self.watch.push(ChangeEvent(ChangeType.REMOVED, doc_id))


class SupabaseDocumentStore(DocumentStore):
    """Document store over Supabase tables.

    Args:
        client: Async Supabase client.
        schema: Postgres schema holding the tables.
        timestamp_fields: Columns decoded into ``datetime`` on read.
        watch_queue_size: Buffered events per subscriber.
    """

    def __init__(
        self,
        client: AsyncClient,
        schema: str = "public",
        timestamp_fields: tuple[str, ...] = ("created_at", "last_updated"),
        watch_queue_size: int = 256,
        probe_table: str = "orders",
    ) -> None:
        self.client = client
        self.schema = schema
        self.timestamp_fields = timestamp_fields
        self.watch_queue_size = watch_queue_size
        self.probe_table = probe_table

    # -------------------- encoding --------------------

    def _encode(self, data: Document) -> Document:
        # server timestamps are assigned by this backend at write time
        now = datetime.now(timezone.utc)
        encoded = {}
        for key, value in data.items():
            if value is SERVER_TIMESTAMP:
                value = now
            encoded[key] = _encode_value(value)
        return encoded

    def _decode(self, row: Document) -> Document:
        document = dict(row)
        if "id" in document:
            document["id"] = str(document["id"])
        for field_name in self.timestamp_fields:
            if document.get(field_name) is not None:
                document[field_name] = to_datetime(document[field_name])
        return document

    def _first(self, response: Any) -> Document | None:
        rows = response.data if response is not None else None
        if not rows:
            return None
        if isinstance(rows, list):
            return self._decode(rows[0])
        return self._decode(rows)

    # -------------------- primitives --------------------

    async def insert(self, collection: str, data: Document) -> Document:
        payload = self._encode({k: v for k, v in data.items() if k != "id"})
        try:
            response = await self.client.table(collection).insert(payload).execute()
        except STORE_ERRORS as e:
            logger.error("Insert into %s failed: %s", collection, str(e))
            raise StoreUnavailableError(f"Could not write to {collection}") from e

        document = self._first(response)
        if document is None:
            raise StoreUnavailableError(f"Insert into {collection} returned no row")
        return document

    async def set(self, collection: str, doc_id: str, data: Document) -> Document:
        payload = self._encode({**data, "id": doc_id})
        try:
            response = await (
                self.client.table(collection)
                .upsert(payload, on_conflict="id")
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Upsert into %s failed: %s", collection, str(e))
            raise StoreUnavailableError(f"Could not write to {collection}") from e

        document = self._first(response)
        if document is None:
            raise StoreUnavailableError(f"Upsert into {collection} returned no row")
        return document

    async def update(self, collection: str, doc_id: str, fields: Document) -> Document:
        payload = self._encode({k: v for k, v in fields.items() if k != "id"})
        try:
            response = await (
                self.client.table(collection)
                .update(payload)
                .eq("id", doc_id)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Update of %s/%s failed: %s", collection, doc_id, str(e))
            raise StoreUnavailableError(f"Could not update {collection}") from e

        document = self._first(response)
        if document is None:
            raise NotFoundError(f"Document {doc_id} not found in {collection}")
        return document

    async def delete(self, collection: str, doc_id: str) -> bool:
        try:
            response = await (
                self.client.table(collection)
                .delete()
                .eq("id", doc_id)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Delete of %s/%s failed: %s", collection, doc_id, str(e))
            raise StoreUnavailableError(f"Could not delete from {collection}") from e

        return bool(response.data)

    async def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            response = await (
                self.client.table(collection)
                .select("*")
                .eq("id", doc_id)
                .limit(1)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Read of %s/%s failed: %s", collection, doc_id, str(e))
            raise StoreUnavailableError(f"Could not read from {collection}") from e

        return self._first(response)

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        query = self.client.table(collection).select("*")
        for f in filters:
            query = getattr(query, _FILTER_METHODS[f.op])(f.field, _encode_value(f.value))
        if order_by:
            query = query.order(order_by, desc=descending)

        try:
            response = await query.execute()
        except STORE_ERRORS as e:
            logger.error("Query on %s failed: %s", collection, str(e))
            raise StoreUnavailableError(f"Could not query {collection}") from e

        return [self._decode(row) for row in response.data or []]

    async def watch(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        doc_id: str | None = None,
    ) -> Watch:
        target = WatchTarget(collection=collection, doc_id=doc_id, filters=tuple(filters))
        channel = self.client.channel(f"{collection}-watch-{uuid.uuid4().hex[:12]}")

        async def unsubscribe(_: Watch) -> None:
            await self.client.remove_channel(channel)

        watch = Watch(target, on_close=unsubscribe, maxsize=self.watch_queue_size)
        relay = _RealtimeRelay(watch, self._decode)
        channel.on_postgres_changes(
            event="*",
            schema=self.schema,
            table=collection,
            filter=f"id=eq.{doc_id}" if doc_id is not None else None,
            callback=relay.handle,
        )

        try:
            await channel.subscribe()
            if doc_id is not None:
                document = await self.get(collection, doc_id)
                snapshot = [document] if document is not None else []
            else:
                snapshot = await self.query(collection, target.filters)
        except StoreUnavailableError:
            await watch.close()
            raise
        except Exception as e:
            await watch.close()
            logger.error("Subscribing to %s failed: %s", collection, str(e))
            raise StoreUnavailableError(f"Could not subscribe to {collection}") from e

        relay.start(snapshot)
        logger.debug("Realtime watch opened on %s (doc_id=%s)", collection, doc_id)
        return watch

    async def delete_batch(self, collection: str, doc_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(doc_ids))
        if not ids:
            return 0
        try:
            response = await (
                self.client.table(collection)
                .delete()
                .in_("id", ids)
                .execute()
            )
        except STORE_ERRORS as e:
            logger.error("Batch delete of %d rows from %s failed: %s", len(ids), collection, str(e))
            raise StoreUnavailableError(f"Batch delete on {collection} was rejected") from e

        return len(response.data or [])

    async def health_check(self) -> dict[str, Any]:
        return await check_database_connection(self.client, self.probe_table)

    async def close(self) -> None:
        await self.client.remove_all_channels()
