"""API routes for cart management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Response, status

from ..actors import Actor
from ..dependencies import get_actor, get_cart_service, get_shipping_estimator, get_user_id
from ..errors import CartServiceError
from ..schemas import (
    CartItemCreate,
    CartItemUpdate,
    CartMergeRequest,
    CartResponse,
    ShippingEstimateResponse,
)
from ..services import CartAggregate, CartService
from ..shipping import ShippingEstimate, ShippingEstimator
from ..totals import cents_to_amount
from .errors import to_http_exception

router = APIRouter(prefix="/carts/{org_id}", tags=["carts"])


def _serialize_cart(aggregate: CartAggregate) -> dict[str, object]:
    cart = aggregate.cart
    return {
        "id": cart.id,
        "orgId": cart.org_id,
        "userId": cart.user_id,
        "guestId": cart.guest_id,
        "status": cart.status.value,
        "totalItems": cart.total_items,
        "subtotal": cents_to_amount(cart.subtotal_cents),
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "productName": item.product_name,
                "priceAtAdd": cents_to_amount(item.price_at_add_cents),
                "quantity": item.quantity,
                "itemTotal": cents_to_amount(item.item_total_cents),
                "addedAt": item.added_at,
                "lastModifiedAt": item.last_modified_at,
            }
            for item in aggregate.items
        ],
        "createdAt": cart.created_at,
        "lastModifiedAt": cart.last_modified_at,
    }


def _serialize_estimate(estimate: ShippingEstimate) -> dict[str, object]:
    return {
        "cartId": estimate.cart_id,
        "originPostalCode": estimate.origin_postal_code,
        "destinationPostalCode": estimate.destination_postal_code,
        "totalWeightKg": estimate.total_weight_kg,
        "lengthCm": estimate.length_cm,
        "widthCm": estimate.width_cm,
        "heightCm": estimate.height_cm,
        "totalVolumeCm3": estimate.total_volume_cm3,
        "estimatedCost": estimate.estimated_cost,
        "options": [
            {
                "carrierName": option.carrier_name,
                "cost": option.cost,
                "etaDays": option.eta_days,
                "best": option.best,
            }
            for option in estimate.options
        ],
    }


@router.get("", response_model=CartResponse)
async def get_cart(
    org_id: str = Path(..., min_length=1),
    actor: Actor = Depends(get_actor),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    try:
        aggregate = await service.get_cart_details(org_id, actor)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return CartResponse.model_validate(_serialize_cart(aggregate))


@router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_item(
    payload: CartItemCreate,
    org_id: str = Path(..., min_length=1),
    actor: Actor = Depends(get_actor),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    try:
        aggregate = await service.add_item(org_id, actor, payload.product_id, payload.quantity)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return CartResponse.model_validate(_serialize_cart(aggregate))


@router.put("/items/{cart_item_id}", response_model=CartResponse)
async def update_item(
    payload: CartItemUpdate,
    org_id: str = Path(..., min_length=1),
    cart_item_id: str = Path(..., min_length=1),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    try:
        aggregate = await service.update_item_quantity(org_id, cart_item_id, payload.quantity)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return CartResponse.model_validate(_serialize_cart(aggregate))


@router.delete("/items/{cart_item_id}", response_model=CartResponse)
async def remove_item(
    org_id: str = Path(..., min_length=1),
    cart_item_id: str = Path(..., min_length=1),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    try:
        aggregate = await service.remove_item(org_id, cart_item_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return CartResponse.model_validate(_serialize_cart(aggregate))


@router.delete("")
async def clear_cart(
    org_id: str = Path(..., min_length=1),
    actor: Actor = Depends(get_actor),
    service: CartService = Depends(get_cart_service),
) -> Response:
    try:
        await service.clear_cart(org_id, actor)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/merge", response_model=CartResponse)
async def merge_guest_cart(
    payload: CartMergeRequest,
    org_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_user_id),
    service: CartService = Depends(get_cart_service),
) -> CartResponse:
    try:
        aggregate = await service.merge_guest_cart(org_id, payload.guest_id, user_id)
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return CartResponse.model_validate(_serialize_cart(aggregate))


@router.get("/shipping-estimate", response_model=ShippingEstimateResponse)
async def estimate_shipping(
    org_id: str = Path(..., min_length=1),
    destination_postal_code: str = Query(..., min_length=1, alias="destinationPostalCode"),
    actor: Actor = Depends(get_actor),
    estimator: ShippingEstimator = Depends(get_shipping_estimator),
) -> ShippingEstimateResponse:
    try:
        estimate = await estimator.estimate(org_id, actor, destination_postal_code.strip())
    except CartServiceError as exc:
        raise to_http_exception(exc) from exc
    return ShippingEstimateResponse.model_validate(_serialize_estimate(estimate))
