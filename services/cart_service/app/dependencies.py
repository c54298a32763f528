"""Dependency helpers for cart service."""

from __future__ import annotations

from fastapi import Cookie, Header, HTTPException, Request, status

from .actors import Actor
from .errors import InvalidActorError
from .services import CartService, WishlistService
from .shipping import ShippingEstimator

GUEST_COOKIE = "_guest_id"
USER_HEADER = "X-User-ID"


def get_cart_service(request: Request) -> CartService:
    return request.app.state.cart_service


def get_wishlist_service(request: Request) -> WishlistService:
    return request.app.state.wishlist_service


def get_shipping_estimator(request: Request) -> ShippingEstimator:
    return request.app.state.shipping_estimator


def get_actor(
    user_id: str | None = Header(default=None, alias=USER_HEADER),
    guest_id: str | None = Cookie(default=None, alias=GUEST_COOKIE),
) -> Actor:
    """Resolve the caller from the user header or the guest cookie."""

    try:
        return Actor.from_ids(user_id=user_id, guest_id=guest_id)
    except InvalidActorError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def get_user_id(user_id: str | None = Header(default=None, alias=USER_HEADER)) -> str:
    if user_id is None or not user_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{USER_HEADER} header required")
    return user_id.strip()
