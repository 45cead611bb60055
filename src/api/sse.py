"""Server-sent events streaming for live subscriptions."""

import json
import logging
from typing import AsyncIterator, Callable, TypeVar

from fastapi.responses import StreamingResponse

from src.api.middleware.error_handler import StoreUnavailableError
from src.core.watch import Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def format_event(event: str, data: str) -> str:
    """Format one server-sent event frame."""
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


async def _stream(
    subscription: Subscription[T],
    encode: Callable[[T], tuple[str, str]],
) -> AsyncIterator[str]:
    try:
        async for update in subscription:
            event, data = encode(update)
            yield format_event(event, data)
    except StoreUnavailableError as e:
        # the client is expected to reconnect and receive a fresh snapshot
        logger.warning("Event stream terminated: %s", e.message)
        yield format_event("error", json.dumps({"error": e.error_type, "message": e.message, "retryable": True}))
    finally:
        await subscription.close()
        logger.debug("Event stream closed")


def event_stream_response(
    subscription: Subscription[T],
    encode: Callable[[T], tuple[str, str]],
) -> StreamingResponse:
    """Stream a subscription to the client as ``text/event-stream``."""
    return StreamingResponse(
        _stream(subscription, encode),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
