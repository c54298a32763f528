"""Shipping estimates for a cart: product lookup fan-out, package sizing, quote selection."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from time import perf_counter

from services.common.fanout import MissingResult, fan_out
from services.common.tracing import get_tracer

from .actors import Actor
from .errors import (
    CartServiceError,
    EmptyCartError,
    IncompleteProductDataError,
    InsufficientPhysicalDataError,
    NoDeliveryOptionsError,
    OriginNotConfiguredError,
    ServiceUnavailableError,
)
from .gateways import CatalogGateway, DeliveryOption, DeliveryQuoteGateway, Product, QuoteRequest
from .metrics import SHIPPING_ESTIMATE_SECONDS, SHIPPING_PRODUCT_LOOKUP_FAILURES_TOTAL
from .services import CartService
from .tenancy import TenantDirectory
from .totals import cents_to_amount
from .units import length_to_cm, weight_to_kg

_LOGGER = logging.getLogger(__name__)
_TRACER = get_tracer(__name__)

_ZERO = Decimal("0")


@dataclass(slots=True)
class PackageProfile:
    """Physical size of everything in the cart, before any floors are applied."""

    total_weight_kg: Decimal = _ZERO
    total_volume_cm3: Decimal = _ZERO
    length_cm: Decimal = _ZERO
    width_cm: Decimal = _ZERO
    height_cm: Decimal = _ZERO

    def add(self, product: Product, quantity: int) -> None:
        weight = product.weight
        dims = product.dimensions
        weight_kg = weight_to_kg(weight.value, weight.unit) if weight else _ZERO
        length = length_to_cm(dims.length, dims.unit) if dims else _ZERO
        width = length_to_cm(dims.width, dims.unit) if dims else _ZERO
        height = length_to_cm(dims.height, dims.unit) if dims else _ZERO

        self.total_weight_kg += weight_kg * quantity
        self.total_volume_cm3 += length * width * height * quantity
        self.length_cm = max(self.length_cm, length)
        self.width_cm = max(self.width_cm, width)
        self.height_cm = max(self.height_cm, height)

    @property
    def is_empty(self) -> bool:
        return self.total_weight_kg <= _ZERO and self.total_volume_cm3 <= _ZERO


@dataclass(slots=True)
class ShippingEstimate:
    cart_id: str
    destination_postal_code: str
    origin_postal_code: str
    total_weight_kg: Decimal
    length_cm: Decimal
    width_cm: Decimal
    height_cm: Decimal
    total_volume_cm3: Decimal
    estimated_cost: Decimal
    options: list[DeliveryOption] = field(default_factory=list)


def _failure_reason(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    if isinstance(exc, MissingResult):
        return "not_found"
    if isinstance(exc, ServiceUnavailableError):
        return "unavailable"
    return "error"


def flag_cheapest(options: list[DeliveryOption]) -> tuple[list[DeliveryOption], DeliveryOption | None]:
    """Mark the cheapest option as best; the earliest one wins a tie. Input order is kept."""

    if not options:
        return [], None
    best_index = min(range(len(options)), key=lambda index: options[index].cost)
    flagged = [option.model_copy(update={"best": index == best_index}) for index, option in enumerate(options)]
    return flagged, flagged[best_index]


class ShippingEstimator:
    """Builds one shipping quote request for a whole cart and picks the cheapest carrier."""

    def __init__(
        self,
        carts: CartService,
        catalog: CatalogGateway,
        delivery: DeliveryQuoteGateway,
        tenants: TenantDirectory,
        *,
        lookup_timeout: float = 2.0,
        default_dimension_cm: Decimal = Decimal("10"),
        min_weight_kg: Decimal = Decimal("0.5"),
    ) -> None:
        self.carts = carts
        self.catalog = catalog
        self.delivery = delivery
        self.tenants = tenants
        self.lookup_timeout = lookup_timeout
        self.default_dimension_cm = default_dimension_cm
        self.min_weight_kg = min_weight_kg

    async def estimate(self, org_id: str, actor: Actor, destination_postal_code: str) -> ShippingEstimate:
        started = perf_counter()
        outcome = "ok"
        try:
            with _TRACER.start_as_current_span("cart.shipping_estimate") as span:
                span.set_attribute("cart.org_id", org_id)
                return await self._estimate(org_id, actor, destination_postal_code)
        except CartServiceError:
            outcome = "rejected"
            raise
        except Exception:
            outcome = "error"
            raise
        finally:
            SHIPPING_ESTIMATE_SECONDS.labels(outcome=outcome).observe(perf_counter() - started)

    async def _estimate(self, org_id: str, actor: Actor, destination_postal_code: str) -> ShippingEstimate:
        aggregate = await self.carts.get_cart_details(org_id, actor)
        cart = aggregate.cart
        if not aggregate.items:
            raise EmptyCartError(cart.id)

        product_ids = list(dict.fromkeys(item.product_id for item in aggregate.items))
        lookups = await fan_out(
            product_ids,
            lambda product_id: self.catalog.get_product_details(org_id, product_id),
            timeout=self.lookup_timeout,
        )
        if lookups.failures:
            for product_id, exc in lookups.failures.items():
                reason = _failure_reason(exc)
                SHIPPING_PRODUCT_LOOKUP_FAILURES_TOTAL.labels(reason=reason).inc()
                _LOGGER.warning("Product %s lookup failed for cart %s: %s", product_id, cart.id, reason)
            raise IncompleteProductDataError([pid for pid in product_ids if pid in lookups.failures])

        package = PackageProfile()
        for item in aggregate.items:
            package.add(lookups.values[item.product_id], item.quantity)
        if package.is_empty:
            raise InsufficientPhysicalDataError(cart.id)

        length = package.length_cm if package.length_cm > _ZERO else self.default_dimension_cm
        width = package.width_cm if package.width_cm > _ZERO else self.default_dimension_cm
        height = package.height_cm if package.height_cm > _ZERO else self.default_dimension_cm
        weight = max(package.total_weight_kg, self.min_weight_kg)

        origin = self.tenants.origin_postal_code(org_id)
        if not origin:
            raise OriginNotConfiguredError(org_id)

        quotes = await self.delivery.get_quotes(
            QuoteRequest(
                origin_postal_code=origin,
                destination_postal_code=destination_postal_code,
                weight_kg=weight,
                length_cm=length,
                width_cm=width,
                height_cm=height,
                declared_value=cents_to_amount(cart.subtotal_cents),
                cash_on_delivery=False,
            )
        )
        options, best = flag_cheapest(list(quotes or []))
        if best is None:
            raise NoDeliveryOptionsError(destination_postal_code)

        _LOGGER.info(
            "Shipping estimate for cart %s to %s: %s via %s",
            cart.id,
            destination_postal_code,
            best.cost,
            best.carrier_name,
        )
        return ShippingEstimate(
            cart_id=cart.id,
            destination_postal_code=destination_postal_code,
            origin_postal_code=origin,
            total_weight_kg=weight,
            length_cm=length,
            width_cm=width,
            height_cm=height,
            total_volume_cm3=package.total_volume_cm3,
            estimated_cost=best.cost,
            options=options,
        )
