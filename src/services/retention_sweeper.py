"""Bulk purge of historical orders."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Literal

from src.api.middleware.error_handler import (
    BatchPartialFailureError,
    ConfirmationRequiredError,
    StoreUnavailableError,
)
from src.core.config import get_settings
from src.core.document_store import DocumentStore, Filter
from src.core.store import get_document_store
from src.services.access_gate import OperatorGrant

logger = logging.getLogger(__name__)

PURGE_ALL = "all"

PurgeCutoff = datetime | Literal["all"]


class PurgePreset(str, Enum):
    """Operator purge presets."""

    SHORT = "short"
    LONG = "long"
    ALL = "all"


@dataclass(frozen=True)
class PurgeResult:
    """Outcome of a purge."""

    matched: int
    deleted: int
    batches: int
    cutoff: datetime | None

    @property
    def noop(self) -> bool:
        return self.matched == 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetentionSweeper:
    """Deletes every order created at or before a cutoff.

    Matches are deleted in atomic batches of at most ``batch_size``
    documents. When every match fits in one batch the purge is all or
    nothing; larger purges are atomic per batch and stop at the first
    rejected batch.
    """

    def __init__(
        self,
        grant: OperatorGrant,
        store: DocumentStore | None = None,
        collection: str | None = None,
        batch_size: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the sweeper.

        Args:
            grant: Operator grant obtained from the access gate.
            store: Optional document store for testing.
            collection: Orders collection name, defaults to settings.
            batch_size: Maximum documents per atomic batch, defaults to settings.
            clock: Source of the current UTC time for window presets.

        Raises:
            AuthorizationError: If the grant does not authorize operator actions.
        """
        grant.require()
        settings = get_settings()
        self.grant = grant
        self._store = store
        self.collection = collection or settings.orders_table
        self.batch_size = batch_size or settings.purge_batch_size
        self.short_window_days = settings.purge_short_window_days
        self.long_window_days = settings.purge_long_window_days
        self.clock = clock or _utcnow

    @property
    def store(self) -> DocumentStore:
        """Get document store."""
        if self._store is None:
            self._store = get_document_store()
        return self._store

    def cutoff_for(self, days: int) -> datetime:
        """Cutoff ``days`` before now, in UTC like stored ``created_at`` values."""
        return self.clock() - timedelta(days=days)

    async def purge(self, cutoff: PurgeCutoff, confirmed: bool = False) -> PurgeResult:
        """Delete orders created at or before ``cutoff``, or every order for ``"all"``.

        Args:
            cutoff: Inclusive cutoff; naive datetimes are taken as UTC.
            confirmed: Must be True; purged orders cannot be recovered.

        Returns:
            PurgeResult: Counts of matched and deleted orders. A purge that
                matches nothing is a no-op, not an error.

        Raises:
            ConfirmationRequiredError: If ``confirmed`` is not True.
            BatchPartialFailureError: If the store rejects a batch. The
                rejected batch is not applied.
            StoreUnavailableError: If the matching query fails.
        """
        self.grant.require()
        if not confirmed:
            raise ConfirmationRequiredError("Purging orders is irreversible and must be confirmed")

        if cutoff == PURGE_ALL:
            boundary = None
            matches = await self.store.query(self.collection)
        else:
            if not isinstance(cutoff, datetime):
                raise ValueError("cutoff must be a datetime or 'all'")
            boundary = cutoff if cutoff.tzinfo else cutoff.replace(tzinfo=timezone.utc)
            matches = await self.store.query(
                self.collection,
                [Filter("created_at", "<=", boundary)],
            )

        if not matches:
            logger.info("Purge matched no orders (cutoff=%s)", boundary or PURGE_ALL)
            return PurgeResult(matched=0, deleted=0, batches=0, cutoff=boundary)

        ids = [doc["id"] for doc in matches]
        deleted = 0
        batches = 0
        for start in range(0, len(ids), self.batch_size):
            chunk = ids[start:start + self.batch_size]
            try:
                deleted += await self.store.delete_batch(self.collection, chunk)
            except StoreUnavailableError as e:
                logger.error(
                    "Purge batch %d of %d orders rejected after %d deletions: %s",
                    batches + 1,
                    len(chunk),
                    deleted,
                    e.message,
                )
                raise BatchPartialFailureError(
                    f"Purge failed; {deleted} of {len(ids)} orders were deleted before the failure",
                    committed=deleted,
                ) from e
            batches += 1

        if deleted < len(ids):
            logger.warning("%d purge targets were already absent", len(ids) - deleted)
        logger.info(
            "Purged %d orders in %d batches (cutoff=%s) by %s",
            deleted,
            batches,
            boundary or PURGE_ALL,
            self.grant.subject,
        )
        return PurgeResult(matched=len(ids), deleted=deleted, batches=batches, cutoff=boundary)

    async def purge_older_than(self, days: int, confirmed: bool = False) -> PurgeResult:
        """Delete orders created ``days`` or more days ago."""
        return await self.purge(self.cutoff_for(days), confirmed=confirmed)

    async def purge_preset(self, preset: PurgePreset | str, confirmed: bool = False) -> PurgeResult:
        """Run one of the operator presets: short window, long window or all."""
        preset = PurgePreset(preset)
        if preset is PurgePreset.ALL:
            return await self.purge(PURGE_ALL, confirmed=confirmed)
        days = self.short_window_days if preset is PurgePreset.SHORT else self.long_window_days
        return await self.purge_older_than(days, confirmed=confirmed)
