"""Domain errors raised by the cart service core."""

from __future__ import annotations

from collections.abc import Sequence


class CartServiceError(Exception):
    """Base class for every error the cart core raises."""


class NotFoundError(CartServiceError, LookupError):
    pass


class CartNotFoundError(NotFoundError):
    def __init__(self, detail: str = "Cart not found") -> None:
        super().__init__(detail)


class CartItemNotFoundError(NotFoundError):
    def __init__(self, cart_item_id: str) -> None:
        super().__init__(f"Cart item {cart_item_id} not found")
        self.cart_item_id = cart_item_id


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class ValidationError(CartServiceError, ValueError):
    pass


class InvalidActorError(ValidationError):
    pass


class InvalidQuantityError(ValidationError):
    def __init__(self, quantity: int) -> None:
        super().__init__(f"Quantity must be at least 1, got {quantity}")
        self.quantity = quantity


class InvalidCartStateError(ValidationError):
    pass


class EmptyCartError(ValidationError):
    def __init__(self, cart_id: str) -> None:
        super().__init__(f"Cart {cart_id} has no items")
        self.cart_id = cart_id


class InsufficientStockError(CartServiceError):
    def __init__(self, product_id: str, requested: int, available: int | None) -> None:
        if available is None:
            detail = f"Stock for product {product_id} is unknown"
        else:
            detail = f"Only {available} units of product {product_id} available, {requested} requested"
        super().__init__(detail)
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ServiceUnavailableError(CartServiceError):
    """A collaborator (catalog, inventory, delivery) could not be reached or answered garbage."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(f"{service} unavailable: {detail}")
        self.service = service


class TransactionConflictError(CartServiceError):
    def __init__(self, attempts: int) -> None:
        super().__init__(f"Cart update kept conflicting after {attempts} attempts")
        self.attempts = attempts


class IncompleteProductDataError(CartServiceError):
    def __init__(self, product_ids: Sequence[str]) -> None:
        self.product_ids = list(product_ids)
        super().__init__("Product data unavailable for: " + ", ".join(self.product_ids))


class InsufficientPhysicalDataError(CartServiceError):
    def __init__(self, cart_id: str) -> None:
        super().__init__(f"Cart {cart_id} has neither weight nor volume to quote")
        self.cart_id = cart_id


class OriginNotConfiguredError(CartServiceError):
    def __init__(self, org_id: str) -> None:
        super().__init__(f"No shipping origin configured for organisation {org_id}")
        self.org_id = org_id


class NoDeliveryOptionsError(CartServiceError):
    def __init__(self, destination_postal_code: str) -> None:
        super().__init__(f"No delivery options to {destination_postal_code}")
        self.destination_postal_code = destination_postal_code
