"""Denormalized cart totals derived from cart items."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Cart, CartItem


@dataclass(frozen=True, slots=True)
class CartTotals:
    total_items: int = 0
    subtotal_cents: int = 0

    @property
    def subtotal(self) -> Decimal:
        return cents_to_amount(self.subtotal_cents)


def to_cents(amount: Decimal) -> int:
    return int((amount * Decimal("100")).to_integral_value(rounding=ROUND_HALF_UP))


def cents_to_amount(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal("100")).quantize(Decimal("0.01"))


def item_total(price_cents: int, quantity: int) -> int:
    return price_cents * quantity


def compute_totals(items: Iterable[CartItem]) -> CartTotals:
    total_items = 0
    subtotal_cents = 0
    for item in items:
        total_items += item.quantity
        subtotal_cents += item.item_total_cents
    return CartTotals(total_items=total_items, subtotal_cents=subtotal_cents)


def substitute(items: Iterable[CartItem], replacement: CartItem) -> list[CartItem]:
    """Return ``items`` with the entry sharing ``replacement.id`` swapped out, or ``replacement`` appended."""

    result: list[CartItem] = []
    replaced = False
    for item in items:
        if item.id == replacement.id:
            result.append(replacement)
            replaced = True
        else:
            result.append(item)
    if not replaced:
        result.append(replacement)
    return result


def apply_totals(cart: Cart, items: Iterable[CartItem]) -> CartTotals:
    totals = compute_totals(items)
    cart.total_items = totals.total_items
    cart.subtotal_cents = totals.subtotal_cents
    return totals
