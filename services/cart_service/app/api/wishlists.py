"""API routes for customer wishlists."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Response, status

from ..dependencies import get_user_id, get_wishlist_service
from ..errors import CartServiceError
from ..models import Wishlist
from ..schemas import ProductResponse, WishlistItemCreate, WishlistResponse
from ..services import WishlistService
from .errors import to_http_exception

router = APIRouter(prefix="/wishlists/{org_id}", tags=["wishlists"])


def _serialize_wishlist(wishlist: Wishlist) -> dict[str, object]:
    return {
        "orgId": wishlist.org_id,
        "customerId": wishlist.customer_id,
        "productIds": wishlist.product_ids,
        "updatedAt": wishlist.updated_at,
    }


@router.get("", response_model=WishlistResponse)
async def get_wishlist(
    org_id: str = Path(..., min_length=1),
    customer_id: str = Depends(get_user_id),
    service: WishlistService = Depends(get_wishlist_service),
) -> WishlistResponse:
    try:
        wishlist = await service.get_wishlist(org_id, customer_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return WishlistResponse.model_validate(_serialize_wishlist(wishlist))


@router.get("/products", response_model=list[ProductResponse])
async def get_wishlist_products(
    org_id: str = Path(..., min_length=1),
    customer_id: str = Depends(get_user_id),
    service: WishlistService = Depends(get_wishlist_service),
) -> list[ProductResponse]:
    try:
        products = await service.get_wishlist_products(org_id, customer_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return [
        ProductResponse.model_validate(
            {"productId": product.id, "productName": product.name, "price": product.price}
        )
        for product in products
    ]


@router.post("/items", response_model=WishlistResponse, status_code=status.HTTP_201_CREATED)
async def add_product(
    payload: WishlistItemCreate,
    org_id: str = Path(..., min_length=1),
    customer_id: str = Depends(get_user_id),
    service: WishlistService = Depends(get_wishlist_service),
) -> WishlistResponse:
    try:
        wishlist = await service.add_product(org_id, customer_id, payload.product_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return WishlistResponse.model_validate(_serialize_wishlist(wishlist))


@router.delete("/items/{product_id}", response_model=WishlistResponse)
async def remove_product(
    org_id: str = Path(..., min_length=1),
    product_id: str = Path(..., min_length=1),
    customer_id: str = Depends(get_user_id),
    service: WishlistService = Depends(get_wishlist_service),
) -> WishlistResponse:
    try:
        wishlist = await service.remove_product(org_id, customer_id, product_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return WishlistResponse.model_validate(_serialize_wishlist(wishlist))


@router.delete("")
async def clear_wishlist(
    org_id: str = Path(..., min_length=1),
    customer_id: str = Depends(get_user_id),
    service: WishlistService = Depends(get_wishlist_service),
) -> Response:
    try:
        await service.clear_wishlist(org_id, customer_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
