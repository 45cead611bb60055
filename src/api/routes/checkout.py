"""Checkout and customer order API routes."""

import json
from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import StreamingResponse

from src.api.deps import Policy
from src.api.sse import event_stream_response
from src.schemas.checkout import CheckoutRequest, OrderResponse
from src.services.order_materializer import CustomerDetails, OrderMaterializer
from src.services.status_channel import OrderRemoved, OrderUpdate, StatusChannel

ORDER_REMOVED_MESSAGE = "This order was removed from our system."

router = APIRouter(prefix="/checkout", tags=["checkout"])

orders_router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place a cash on delivery order",
    description="Converts the submitted basket into an order. The client clears its basket after a 201.",
)
async def checkout(data: CheckoutRequest, policy: Policy) -> OrderResponse:
    """Place an order.

    Args:
        data: Customer details and the basket to check out.
        policy: Basket pricing rules.

    Returns:
        OrderResponse: The stored order.

    Raises:
        ValidationError: 422 if the basket is empty or a customer field is
            invalid. Nothing is written in that case.
        StoreUnavailableError: 503 if the order could not be stored. The
            basket should be kept so the customer can retry.
    """
    basket = data.basket.to_basket(policy)
    customer = CustomerDetails(
        name=data.customer_name,
        phone_number=data.phone_number,
        delivery_address=data.delivery_address,
    )
    order = await OrderMaterializer().materialize(basket, customer)
    return OrderResponse.model_validate(order)


@orders_router.get(
    "/lookup",
    response_model=OrderResponse,
    summary="Find the latest order for a phone number",
)
async def lookup_order(
    phone: Annotated[str, Query(max_length=32, description="Phone number used at checkout")] = "",
) -> OrderResponse:
    """Return the newest order placed with a phone number.

    Raises:
        ValidationError: 422 if the phone number is blank.
        NotFoundError: 404 if no order matches.
    """
    order = await StatusChannel().discover(phone)
    return OrderResponse.model_validate(order)


@orders_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    """Get an order by ID.

    Raises:
        NotFoundError: 404 if the order does not exist.
    """
    order = await StatusChannel().get_order(order_id)
    return OrderResponse.model_validate(order)


def _encode_tracker_update(update: OrderUpdate | OrderRemoved) -> tuple[str, str]:
    if isinstance(update, OrderRemoved):
        return update.event, json.dumps({"order_id": update.order_id, "message": ORDER_REMOVED_MESSAGE})
    return update.event, OrderResponse.model_validate(update.order).model_dump_json()


@orders_router.get(
    "/{order_id}/events",
    response_class=StreamingResponse,
    summary="Track an order live",
    description=(
        "Server-sent events: an 'order' event with the current order, another on every change, "
        "and a final 'removed' event if the order is deleted or does not exist."
    ),
)
async def track_order(order_id: str) -> StreamingResponse:
    """Stream live updates for one order."""
    subscription = await StatusChannel().track_order(order_id)
    return event_stream_response(subscription, _encode_tracker_update)
