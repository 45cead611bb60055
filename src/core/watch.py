"""Live subscription handle shared by every document store backend."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

from src.api.middleware.error_handler import StoreUnavailableError
from src.core.document_store import ChangeEvent, WatchTarget

logger = logging.getLogger(__name__)

_CLOSED = object()

T = TypeVar("T")


class Watch:
    """Lazy, cancelable, open-ended async sequence of change events.

    The store pushes events with ``push``; the subscriber consumes them with
    ``async for``. Events are delivered in push order. ``close`` unregisters
    the subscription from the store and ends iteration; it is idempotent and
    also runs when the watch is used as an async context manager.

    If the subscriber falls more than ``maxsize`` events behind, the watch is
    terminated and iteration raises ``StoreUnavailableError`` so the consumer
    can resubscribe and receive a fresh snapshot.
    """

    def __init__(
        self,
        target: WatchTarget,
        on_close: Callable[["Watch"], Awaitable[None] | None] | None = None,
        maxsize: int = 256,
    ) -> None:
        self.target = target
        self._on_close = on_close
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False
        self._error: Exception | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: ChangeEvent) -> None:
        """Deliver an event to the subscriber without blocking the store."""
        if self._closed or self._error is not None:
            return
        if self._queue.qsize() >= self._maxsize:
            logger.warning(
                "Subscriber on %s fell behind by %d events, terminating watch",
                self.target.collection,
                self._maxsize,
            )
            self.fail(StoreUnavailableError("Subscription fell behind and was terminated"))
            return
        self._queue.put_nowait(event)

    def fail(self, error: Exception) -> None:
        """Terminate the watch with an error raised to the subscriber."""
        if self._closed or self._error is not None:
            return
        self._error = error
        self._queue.put_nowait(_CLOSED)

    async def close(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            result = self._on_close(self)
            if inspect.isawaitable(result):
                await result
        # pending events are dropped once the subscriber has cancelled
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Watch":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            if self._error is not None and not self._closed:
                error = self._error
                await self.close()
                raise error
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Watch":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class Subscription(Generic[T]):
    """Async iterator of view updates derived from a store watch.

    The reducer turns each change event into zero or more updates and may
    return ``done=True`` to end the subscription. Closing the subscription
    closes the underlying watch.
    """

    def __init__(self, watch: Watch, reducer: Callable[[ChangeEvent], tuple[list[T], bool]]) -> None:
        self.watch = watch
        self._reducer = reducer
        self._buffer: list[T] = []
        self._done = False

    async def close(self) -> None:
        await self.watch.close()

    @property
    def closed(self) -> bool:
        return self.watch.closed

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        while not self._buffer:
            if self._done:
                await self.close()
                raise StopAsyncIteration
            event = await self.watch.__anext__()
            updates, done = self._reducer(event)
            self._buffer.extend(updates)
            self._done = self._done or done
        return self._buffer.pop(0)

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
