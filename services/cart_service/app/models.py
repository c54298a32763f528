"""SQLAlchemy models for the cart service."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .actors import Actor
from .errors import InvalidCartStateError
from .totals import item_total


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for cart ORM models."""


class CartStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ABANDONED = "ABANDONED"
    CLEARED = "CLEARED"
    MERGED_TO_USER_CART = "MERGED_TO_USER_CART"

    def can_become(self, target: CartStatus) -> bool:
        return target in _TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]


_TRANSITIONS: dict[CartStatus, frozenset[CartStatus]] = {
    CartStatus.ACTIVE: frozenset(
        {CartStatus.ABANDONED, CartStatus.CLEARED, CartStatus.MERGED_TO_USER_CART}
    ),
    CartStatus.ABANDONED: frozenset({CartStatus.CLEARED}),
    CartStatus.CLEARED: frozenset(),
    CartStatus.MERGED_TO_USER_CART: frozenset(),
}

# Only ACTIVE carts take part in the one-cart-per-actor rule.
_ACTIVE_ONLY = text("status = 'ACTIVE'")


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (guest_id IS NULL)",
            name="ck_carts_single_owner",
        ),
        CheckConstraint("total_items >= 0", name="ck_carts_total_items_non_negative"),
        Index(
            "uq_carts_active_user",
            "org_id",
            "user_id",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
        Index(
            "uq_carts_active_guest",
            "org_id",
            "guest_id",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    guest_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[CartStatus] = mapped_column(
        SAEnum(CartStatus, native_enum=False, length=32, validate_strings=True),
        nullable=False,
    )
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def open(cls, org_id: str, actor: Actor, now: datetime | None = None) -> Cart:
        """A fresh ACTIVE cart with zero totals; the only way a cart becomes ACTIVE."""

        timestamp = now or utcnow()
        return cls(
            id=_new_id(),
            org_id=org_id,
            user_id=actor.user_id,
            guest_id=actor.guest_id,
            status=CartStatus.ACTIVE,
            total_items=0,
            subtotal_cents=0,
            created_at=timestamp,
            last_modified_at=timestamp,
        )

    def transition_to(self, target: CartStatus) -> None:
        if self.status is target:
            return
        if not self.status.can_become(target):
            msg = f"Cart {self.id} cannot move from {self.status.value} to {target.value}"
            raise InvalidCartStateError(msg)
        self.status = target

    def touch(self, now: datetime | None = None) -> None:
        self.last_modified_at = now or utcnow()


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),
        CheckConstraint("quantity > 0", name="ck_cart_item_quantity_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    cart_id: Mapped[str] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_at_add_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    item_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def create(
        cls,
        cart: Cart,
        *,
        product_id: str,
        product_name: str,
        price_cents: int,
        quantity: int,
        now: datetime | None = None,
    ) -> CartItem:
        """A new line in ``cart`` priced at the ``price_cents`` snapshot."""

        timestamp = now or utcnow()
        return cls(
            id=_new_id(),
            org_id=cart.org_id,
            cart_id=cart.id,
            product_id=product_id,
            product_name=product_name,
            price_at_add_cents=price_cents,
            quantity=quantity,
            item_total_cents=item_total(price_cents, quantity),
            added_at=timestamp,
            last_modified_at=timestamp,
        )

    def set_quantity(self, quantity: int, now: datetime | None = None) -> None:
        self.quantity = quantity
        self.item_total_cents = item_total(self.price_at_add_cents, quantity)
        self.last_modified_at = now or utcnow()


class Wishlist(Base):
    __tablename__ = "wishlists"
    __table_args__ = (UniqueConstraint("org_id", "customer_id", name="uq_wishlists_customer"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_id: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    items: Mapped[list[WishlistItem]] = relationship(
        back_populates="wishlist",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WishlistItem.id",
    )

    @property
    def product_ids(self) -> list[str]:
        return [item.product_id for item in self.items]


class WishlistItem(Base):
    __tablename__ = "wishlist_items"
    __table_args__ = (UniqueConstraint("wishlist_id", "product_id", name="uq_wishlist_item_product"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wishlist_id: Mapped[int] = mapped_column(
        ForeignKey("wishlists.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    wishlist: Mapped[Wishlist] = relationship(back_populates="items")
