"""Data access helpers for the cart service."""

from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from .actors import Actor, ActorKind
from .models import Cart, CartItem, CartStatus, Wishlist


class CartRepository:
    """Persistence helpers for carts and their items, bound to one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_cart(self, cart_id: str) -> Cart | None:
        return await self.session.get(Cart, cart_id)

    async def find_cart(
        self,
        org_id: str,
        actor: Actor,
        statuses: Collection[CartStatus] = (CartStatus.ACTIVE,),
    ) -> Cart | None:
        """Newest cart for ``actor`` in one of ``statuses``, ACTIVE carts first."""

        owner = Cart.user_id if actor.kind is ActorKind.USER else Cart.guest_id
        active_first = case((Cart.status == CartStatus.ACTIVE, 0), else_=1)
        query = (
            select(Cart)
            .where(Cart.org_id == org_id, owner == actor.id, Cart.status.in_(list(statuses)))
            .order_by(active_first, Cart.last_modified_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_item(self, cart_item_id: str) -> CartItem | None:
        return await self.session.get(CartItem, cart_item_id)

    async def list_items(self, cart_id: str) -> list[CartItem]:
        result = await self.session.execute(
            select(CartItem)
            .where(CartItem.cart_id == cart_id)
            .order_by(CartItem.added_at, CartItem.id)
        )
        return list(result.scalars())

    def add(self, entity: Cart | CartItem) -> None:
        self.session.add(entity)

    async def delete(self, entity: Cart | CartItem) -> None:
        await self.session.delete(entity)


class WishlistRepository:
    """Persistence helpers for customer wishlists."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_wishlist(self, org_id: str, customer_id: str) -> Wishlist | None:
        result = await self.session.execute(
            select(Wishlist).where(Wishlist.org_id == org_id, Wishlist.customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_wishlist(self, org_id: str, customer_id: str) -> Wishlist:
        wishlist = await self.get_wishlist(org_id, customer_id)
        if wishlist is None:
            wishlist = Wishlist(org_id=org_id, customer_id=customer_id, items=[])
            self.session.add(wishlist)
            await self.session.flush()
        return wishlist

    async def delete(self, wishlist: Wishlist) -> None:
        await self.session.delete(wishlist)
        await self.session.flush()
