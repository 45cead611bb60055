"""Product catalog API routes."""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from src.api.sse import event_stream_response
from src.models.product import Product
from src.schemas.product import ProductListResponse, ProductResponse
from src.services.catalog_service import CatalogService

router = APIRouter(prefix="/products", tags=["products"])


def _product_list(products: list[Product]) -> ProductListResponse:
    return ProductListResponse(items=[ProductResponse.model_validate(p) for p in products])


@router.get("", response_model=ProductListResponse)
async def list_products(
    search: Annotated[str | None, Query(max_length=100, description="Filter by product name")] = None,
    premium: Annotated[bool, Query(description="Only premium products")] = False,
) -> ProductListResponse:
    """List products currently available for sale, premium first.

    Products are publicly readable.
    """
    service = CatalogService()
    products = await service.list_available(search=search, premium_only=premium)
    return _product_list(products)


@router.get(
    "/events",
    response_class=StreamingResponse,
    summary="Stream available products",
    description="Server-sent events: one 'products' event with the full list after every catalog change.",
)
async def stream_products() -> StreamingResponse:
    """Stream the available product list as it changes."""
    subscription = await CatalogService().watch_available()
    return event_stream_response(
        subscription,
        lambda products: ("products", _product_list(products).model_dump_json()),
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    """Get a product by ID.

    Raises:
        NotFoundError: 404 if the product does not exist.
    """
    product = await CatalogService().get_product(product_id)
    return ProductResponse.model_validate(product)
