"""Basket API routes.

Every operation takes the client's current basket and returns the new one.
The server keeps no basket state.
"""

from fastapi import APIRouter

from src.api.deps import Policy
from src.schemas.basket import (
    BasketAddRequest,
    BasketAdjustRequest,
    BasketClearRequest,
    BasketResponse,
    BasketSlotRequest,
)
from src.services.catalog_service import CatalogService

router = APIRouter(prefix="/basket", tags=["basket"])


@router.post("/add", response_model=BasketResponse)
async def add_item(data: BasketAddRequest, policy: Policy) -> BasketResponse:
    """Add one step of a product to the basket.

    The product's current name and price are captured into the slot.
    Adding a product that is already in the basket with the same cleaning
    choice increases that slot's quantity.

    Raises:
        NotFoundError: 404 if the product does not exist.
        ValidationError: 422 if the product is unavailable.
    """
    product = await CatalogService().get_available_product(data.product_id)
    basket = data.basket.to_basket(policy).add(product, cleaning=data.cleaning)
    return BasketResponse.from_basket(basket)


@router.post("/remove", response_model=BasketResponse)
async def remove_item(data: BasketSlotRequest, policy: Policy) -> BasketResponse:
    """Remove a slot. Removing a slot that is not in the basket changes nothing."""
    basket = data.basket.to_basket(policy).remove(data.product_id, cleaning=data.cleaning)
    return BasketResponse.from_basket(basket)


@router.post("/adjust", response_model=BasketResponse)
async def adjust_item(data: BasketAdjustRequest, policy: Policy) -> BasketResponse:
    """Change a slot's quantity by a signed delta, never below the minimum.

    Raises:
        NotFoundError: 404 if the slot is not in the basket.
    """
    basket = data.basket.to_basket(policy).adjust_quantity(data.product_id, data.cleaning, data.delta)
    return BasketResponse.from_basket(basket)


@router.post("/toggle-cleaning", response_model=BasketResponse)
async def toggle_cleaning(data: BasketSlotRequest, policy: Policy) -> BasketResponse:
    """Flip a slot's cleaning choice in place.

    Raises:
        NotFoundError: 404 if the slot is not in the basket.
    """
    basket = data.basket.to_basket(policy).toggle_modifier(data.product_id, data.cleaning)
    return BasketResponse.from_basket(basket)


@router.post("/clear", response_model=BasketResponse)
async def clear_basket(data: BasketClearRequest, policy: Policy) -> BasketResponse:
    """Empty the basket."""
    return BasketResponse.from_basket(data.basket.to_basket(policy).clear())
