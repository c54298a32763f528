"""Service layer for cart and wishlist operations."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .actors import Actor
from .errors import (
    CartItemNotFoundError,
    CartNotFoundError,
    CartServiceError,
    InsufficientStockError,
    InvalidActorError,
    InvalidQuantityError,
    ProductNotFoundError,
)
from .gateways import CatalogGateway, InventoryGateway, Product
from .metrics import CART_OPERATIONS_TOTAL
from .models import Cart, CartItem, CartStatus, Wishlist, WishlistItem, utcnow
from .repository import CartRepository, WishlistRepository
from .store import CartStore
from .totals import CartTotals, apply_totals, substitute, to_cents

_LOGGER = logging.getLogger(__name__)

# Carts an actor can still see: the live one, else an emptied-out one.
OPEN_STATUSES = (CartStatus.ACTIVE, CartStatus.ABANDONED)


@dataclass(slots=True)
class CartAggregate:
    """A cart together with its items as of the end of one unit of work."""

    cart: Cart
    items: list[CartItem] = field(default_factory=list)

    @property
    def totals(self) -> CartTotals:
        return CartTotals(total_items=self.cart.total_items, subtotal_cents=self.cart.subtotal_cents)


@contextmanager
def _observe(operation: str) -> Iterator[None]:
    try:
        yield
    except CartServiceError:
        CART_OPERATIONS_TOTAL.labels(operation=operation, outcome="rejected").inc()
        raise
    except Exception:
        CART_OPERATIONS_TOTAL.labels(operation=operation, outcome="error").inc()
        raise
    CART_OPERATIONS_TOTAL.labels(operation=operation, outcome="ok").inc()


def _require_quantity(quantity: int) -> None:
    if quantity < 1:
        raise InvalidQuantityError(quantity)


def _owned_cart(cart: Cart | None, org_id: str) -> Cart:
    if cart is None or cart.org_id != org_id:
        raise CartNotFoundError()
    return cart


def _owned_item(item: CartItem | None, org_id: str, cart_item_id: str) -> CartItem:
    if item is None or item.org_id != org_id:
        raise CartItemNotFoundError(cart_item_id)
    return item


class CartService:
    """Keeps a cart, its items and its denormalized totals consistent."""

    def __init__(self, store: CartStore, catalog: CatalogGateway, inventory: InventoryGateway) -> None:
        self.store = store
        self.catalog = catalog
        self.inventory = inventory

    async def add_item(self, org_id: str, actor: Actor, product_id: str, quantity: int) -> CartAggregate:
        with _observe("add_item"):
            _require_quantity(quantity)
            product = await self.catalog.get_product_details(org_id, product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            return await self.store.transaction(
                lambda repository: self._add_item(repository, org_id, actor, product, quantity)
            )

    async def _add_item(
        self,
        repository: CartRepository,
        org_id: str,
        actor: Actor,
        product: Product,
        quantity: int,
    ) -> CartAggregate:
        now = utcnow()
        cart = await repository.find_cart(org_id, actor)
        if cart is None:
            cart = Cart.open(org_id, actor, now)
            repository.add(cart)
            items: list[CartItem] = []
            _LOGGER.info("Opened cart %s for %s in org %s", cart.id, actor, org_id)
        else:
            _owned_cart(cart, org_id)
            items = await repository.list_items(cart.id)

        item = next((entry for entry in items if entry.product_id == product.id), None)
        if item is None:
            item = CartItem.create(
                cart,
                product_id=product.id,
                product_name=product.name,
                price_cents=to_cents(product.price),
                quantity=quantity,
                now=now,
            )
            repository.add(item)
        else:
            # Repeat adds keep the price captured on the first add.
            item.set_quantity(item.quantity + quantity, now)

        items = substitute(items, item)
        totals = apply_totals(cart, items)
        cart.touch(now)
        _LOGGER.debug("Cart %s totals now %s items / %s cents", cart.id, totals.total_items, totals.subtotal_cents)
        return CartAggregate(cart, items)

    async def update_item_quantity(self, org_id: str, cart_item_id: str, new_quantity: int) -> CartAggregate:
        with _observe("update_item_quantity"):
            _require_quantity(new_quantity)
            return await self.store.transaction(
                lambda repository: self._update_item_quantity(repository, org_id, cart_item_id, new_quantity)
            )

    async def _update_item_quantity(
        self,
        repository: CartRepository,
        org_id: str,
        cart_item_id: str,
        new_quantity: int,
    ) -> CartAggregate:
        item = _owned_item(await repository.get_item(cart_item_id), org_id, cart_item_id)
        cart = _owned_cart(await repository.get_cart(item.cart_id), org_id)

        # Read-only lookup; safe to repeat when the transaction is re-run.
        available = await self.inventory.get_stock(org_id, item.product_id)
        if available is None or available < new_quantity:
            raise InsufficientStockError(item.product_id, new_quantity, available)

        now = utcnow()
        item.set_quantity(new_quantity, now)
        items = substitute(await repository.list_items(cart.id), item)
        totals = apply_totals(cart, items)
        cart.touch(now)
        _LOGGER.debug("Cart %s totals now %s items / %s cents", cart.id, totals.total_items, totals.subtotal_cents)
        return CartAggregate(cart, items)

    async def remove_item(self, org_id: str, cart_item_id: str) -> CartAggregate:
        with _observe("remove_item"):
            return await self.store.transaction(
                lambda repository: self._remove_item(repository, org_id, cart_item_id)
            )

    async def _remove_item(self, repository: CartRepository, org_id: str, cart_item_id: str) -> CartAggregate:
        item = _owned_item(await repository.get_item(cart_item_id), org_id, cart_item_id)
        cart = _owned_cart(await repository.get_cart(item.cart_id), org_id)

        await repository.delete(item)
        cart.total_items -= item.quantity
        cart.subtotal_cents -= item.item_total_cents
        if cart.total_items <= 0:
            cart.total_items = 0
            cart.subtotal_cents = 0
            cart.transition_to(CartStatus.ABANDONED)
            _LOGGER.info("Cart %s abandoned after its last item was removed", cart.id)
        cart.touch()
        remaining = [entry for entry in await repository.list_items(cart.id) if entry.id != item.id]
        return CartAggregate(cart, remaining)

    async def clear_cart(self, org_id: str, actor: Actor) -> CartAggregate:
        with _observe("clear_cart"):
            return await self.store.transaction(lambda repository: self._clear_cart(repository, org_id, actor))

    async def _clear_cart(self, repository: CartRepository, org_id: str, actor: Actor) -> CartAggregate:
        cart = _owned_cart(await repository.find_cart(org_id, actor, OPEN_STATUSES), org_id)
        for item in await repository.list_items(cart.id):
            await repository.delete(item)
        cart.total_items = 0
        cart.subtotal_cents = 0
        cart.transition_to(CartStatus.CLEARED)
        cart.touch()
        _LOGGER.info("Cleared cart %s for %s", cart.id, actor)
        return CartAggregate(cart, [])

    async def merge_guest_cart(self, org_id: str, guest_id: str, user_id: str) -> CartAggregate:
        with _observe("merge_guest_cart"):
            if not (guest_id and guest_id.strip()) or not (user_id and user_id.strip()):
                msg = "Both a guest id and a user id are required to merge carts"
                raise InvalidActorError(msg)
            guest = Actor.guest(guest_id)
            user = Actor.user(user_id)
            return await self.store.transaction(lambda repository: self._merge(repository, org_id, guest, user))

    async def _merge(self, repository: CartRepository, org_id: str, guest: Actor, user: Actor) -> CartAggregate:
        now = utcnow()
        user_cart = await repository.find_cart(org_id, user)
        if user_cart is None:
            user_cart = Cart.open(org_id, user, now)
            repository.add(user_cart)
            user_items: list[CartItem] = []
            _LOGGER.info("Opened cart %s for %s in org %s", user_cart.id, user, org_id)
        else:
            _owned_cart(user_cart, org_id)
            user_items = await repository.list_items(user_cart.id)

        # Merged guest carts are no longer ACTIVE, so a repeat merge ends here.
        guest_cart = await repository.find_cart(org_id, guest)
        if guest_cart is None or guest_cart.org_id != org_id:
            return CartAggregate(user_cart, user_items)

        guest_items = await repository.list_items(guest_cart.id)
        if not guest_items:
            await repository.delete(guest_cart)
            _LOGGER.info("Dropped empty guest cart %s", guest_cart.id)
            return CartAggregate(user_cart, user_items)

        by_product = {item.product_id: item for item in user_items}
        for guest_item in guest_items:
            existing = by_product.get(guest_item.product_id)
            if existing is not None:
                existing.set_quantity(existing.quantity + guest_item.quantity, now)
            else:
                copied = CartItem.create(
                    user_cart,
                    product_id=guest_item.product_id,
                    product_name=guest_item.product_name,
                    price_cents=guest_item.price_at_add_cents,
                    quantity=guest_item.quantity,
                    now=now,
                )
                repository.add(copied)
                user_items.append(copied)
                by_product[copied.product_id] = copied
            await repository.delete(guest_item)

        totals = apply_totals(user_cart, user_items)
        user_cart.guest_id = None
        user_cart.touch(now)

        guest_cart.total_items = 0
        guest_cart.subtotal_cents = 0
        guest_cart.transition_to(CartStatus.MERGED_TO_USER_CART)
        guest_cart.touch(now)
        _LOGGER.info(
            "Merged guest cart %s into cart %s (%s items)", guest_cart.id, user_cart.id, totals.total_items
        )
        return CartAggregate(user_cart, user_items)

    async def get_cart_details(self, org_id: str, actor: Actor) -> CartAggregate:
        with _observe("get_cart_details"):
            return await self.store.read(lambda repository: self._get_cart_details(repository, org_id, actor))

    async def _get_cart_details(self, repository: CartRepository, org_id: str, actor: Actor) -> CartAggregate:
        cart = _owned_cart(await repository.find_cart(org_id, actor, OPEN_STATUSES), org_id)
        items = await repository.list_items(cart.id)
        _LOGGER.debug("Loaded cart %s with %s lines", cart.id, len(items))
        return CartAggregate(cart, items)


class WishlistService:
    """Per-customer saved products, kept as an ordered set of product ids."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], catalog: CatalogGateway) -> None:
        self._session_factory = session_factory
        self.catalog = catalog

    @staticmethod
    def _require_customer(customer_id: str) -> str:
        cleaned = (customer_id or "").strip()
        if not cleaned:
            msg = "A customer id is required"
            raise InvalidActorError(msg)
        return cleaned

    async def get_wishlist(self, org_id: str, customer_id: str) -> Wishlist:
        customer = self._require_customer(customer_id)
        async with self._session_factory() as session:
            wishlist = await WishlistRepository(session).get_wishlist(org_id, customer)
        return wishlist or Wishlist(org_id=org_id, customer_id=customer, items=[])

    async def add_product(self, org_id: str, customer_id: str, product_id: str) -> Wishlist:
        customer = self._require_customer(customer_id)
        async with self._session_factory() as session, session.begin():
            repository = WishlistRepository(session)
            wishlist = await repository.get_or_create_wishlist(org_id, customer)
            if product_id not in wishlist.product_ids:
                wishlist.items.append(WishlistItem(product_id=product_id, added_at=utcnow()))
                wishlist.updated_at = utcnow()
                await session.flush()
                _LOGGER.info("Added product %s to wishlist of %s", product_id, customer)
        return wishlist

    async def remove_product(self, org_id: str, customer_id: str, product_id: str) -> Wishlist:
        customer = self._require_customer(customer_id)
        async with self._session_factory() as session, session.begin():
            wishlist = await WishlistRepository(session).get_wishlist(org_id, customer)
            if wishlist is None:
                return Wishlist(org_id=org_id, customer_id=customer, items=[])
            entry = next((item for item in wishlist.items if item.product_id == product_id), None)
            if entry is not None:
                wishlist.items.remove(entry)
                wishlist.updated_at = utcnow()
                await session.flush()
        return wishlist

    async def clear_wishlist(self, org_id: str, customer_id: str) -> None:
        customer = self._require_customer(customer_id)
        async with self._session_factory() as session, session.begin():
            repository = WishlistRepository(session)
            wishlist = await repository.get_wishlist(org_id, customer)
            if wishlist is not None:
                await repository.delete(wishlist)
                _LOGGER.info("Cleared wishlist of %s", customer)

    async def get_wishlist_products(self, org_id: str, customer_id: str) -> list[Product]:
        wishlist = await self.get_wishlist(org_id, customer_id)
        product_ids = wishlist.product_ids
        if not product_ids:
            return []
        return await self.catalog.get_products_by_ids(org_id, product_ids)
