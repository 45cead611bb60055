"""Operator API routes: order dashboard, status changes, deletion and purge.

Every route except session creation requires a bearer token from
``POST /operator/session``.
"""

import json
import time
from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import StreamingResponse

from src.api.deps import Gate, OperatorAuth
from src.api.sse import event_stream_response
from src.schemas.checkout import OrderListResponse, OrderResponse
from src.schemas.operator import (
    DeleteOrderResponse,
    OperatorSessionCreate,
    OperatorSessionResponse,
    PurgeRequest,
    PurgeResponse,
    StatusUpdateRequest,
)
from src.services.lifecycle_controller import LifecycleController
from src.services.retention_sweeper import RetentionSweeper
from src.services.status_channel import DashboardSnapshot, StatusChannel

router = APIRouter(prefix="/operator", tags=["operator"])


@router.post(
    "/session",
    response_model=OperatorSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Unlock the operator surface",
)
async def create_session(data: OperatorSessionCreate, gate: Gate) -> OperatorSessionResponse:
    """Exchange the operator passkey for a session token.

    Raises:
        AuthenticationError: 401 if the passkey is wrong.
    """
    grant = gate.authorize(data.passkey)
    return OperatorSessionResponse(
        access_token=gate.issue_token(grant),
        expires_at=grant.expires_at or int(time.time()) + gate.token_ttl_seconds,
    )


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(grant: OperatorAuth) -> OrderListResponse:
    """List every order, newest first."""
    grant.require()
    orders = await StatusChannel().list_orders()
    return OrderListResponse(items=[OrderResponse.model_validate(o) for o in orders])


def _encode_dashboard(snapshot: DashboardSnapshot) -> tuple[str, str]:
    payload = {
        "change": snapshot.change.value,
        "order_id": snapshot.order_id,
        "items": [json.loads(OrderResponse.model_validate(o).model_dump_json()) for o in snapshot.orders],
    }
    return snapshot.event, json.dumps(payload)


@router.get(
    "/orders/events",
    response_class=StreamingResponse,
    summary="Stream the order dashboard",
    description="Server-sent events: an 'orders' event with every order, newest first, after each change.",
)
async def stream_orders(grant: OperatorAuth) -> StreamingResponse:
    """Stream the full order list as it changes."""
    grant.require()
    subscription = await StatusChannel().dashboard()
    return event_stream_response(subscription, _encode_dashboard)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    data: StatusUpdateRequest,
    grant: OperatorAuth,
) -> OrderResponse:
    """Set an order's fulfillment status.

    Raises:
        NotFoundError: 404 if the order does not exist.
    """
    order = await LifecycleController(grant).set_status(order_id, data.order_status)
    return OrderResponse.model_validate(order)


@router.delete("/orders/{order_id}", response_model=DeleteOrderResponse)
async def delete_order(
    order_id: str,
    grant: OperatorAuth,
    confirm: Annotated[bool, Query(description="Must be true; deletion cannot be undone")] = False,
) -> DeleteOrderResponse:
    """Permanently delete an order.

    Deleting an order that is already gone succeeds with ``deleted=false``.

    Raises:
        ConfirmationRequiredError: 428 unless ``confirm=true``.
    """
    deleted = await LifecycleController(grant).delete_order(order_id, confirmed=confirm)
    return DeleteOrderResponse(order_id=order_id, deleted=deleted)


@router.post("/orders/purge", response_model=PurgeResponse)
async def purge_orders(data: PurgeRequest, grant: OperatorAuth) -> PurgeResponse:
    """Delete every order created at or before a cutoff.

    Use a preset (``short``, ``long`` or ``all``) or an explicit cutoff.

    Raises:
        ConfirmationRequiredError: 428 unless ``confirm`` is true.
        BatchPartialFailureError: 500 if the store rejected a batch. The
            response details report how many orders were deleted before it.
    """
    sweeper = RetentionSweeper(grant)
    if data.preset is not None:
        result = await sweeper.purge_preset(data.preset, confirmed=data.confirm)
    else:
        result = await sweeper.purge(data.cutoff, confirmed=data.confirm)
    return PurgeResponse.model_validate(result)
