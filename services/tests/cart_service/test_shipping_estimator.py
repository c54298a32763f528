import asyncio
from decimal import Decimal

import pytest
from conftest import FakeDelivery, MetricTracker, make_product

from services.cart_service.app.actors import Actor
from services.cart_service.app.errors import (
    EmptyCartError,
    IncompleteProductDataError,
    InsufficientPhysicalDataError,
    NoDeliveryOptionsError,
    OriginNotConfiguredError,
)
from services.cart_service.app.gateways import DeliveryOption
from services.cart_service.app.shipping import ShippingEstimator, flag_cheapest
from services.cart_service.app.tenancy import SettingsTenantDirectory

ORG = "org-1"
USER = Actor.user("user-1")


def _options(*costs: str) -> list[DeliveryOption]:
    return [
        DeliveryOption(carrier_name=f"carrier-{index}", cost=Decimal(cost), eta_days=index + 1)
        for index, cost in enumerate(costs)
    ]


def _estimator(cart_service, catalog, delivery, origins=None, lookup_timeout: float = 1.0) -> ShippingEstimator:
    return ShippingEstimator(
        cart_service,
        catalog,
        delivery,
        SettingsTenantDirectory({ORG: "560001"} if origins is None else origins),
        lookup_timeout=lookup_timeout,
    )


def test_flag_cheapest_prefers_first_of_equal_costs() -> None:
    flagged, best = flag_cheapest(_options("120", "95", "95"))

    assert [option.best for option in flagged] == [False, True, False]
    assert best is flagged[1]
    assert best.cost == Decimal("95")
    assert flag_cheapest([]) == ([], None)


@pytest.mark.asyncio
async def test_estimate_aggregates_package_and_picks_cheapest(cart_service, catalog) -> None:
    catalog.put(make_product("p-1", "10.00", weight=("500", "g"), dimensions=("10", "20", "5", "cm")))
    catalog.put(make_product("p-2", "2.50", weight=("2", "lb"), dimensions=("300", "40", "20", "mm")))
    await cart_service.add_item(ORG, USER, "p-1", 2)
    await cart_service.add_item(ORG, USER, "p-2", 1)
    delivery = FakeDelivery(*_options("120", "95", "95"))

    estimate = await _estimator(cart_service, catalog, delivery).estimate(ORG, USER, "110001")

    assert estimate.estimated_cost == Decimal("95")
    assert [option.best for option in estimate.options] == [False, True, False]
    assert [option.carrier_name for option in estimate.options] == ["carrier-0", "carrier-1", "carrier-2"]
    # 2 x 0.5 kg + 0.907 kg
    assert estimate.total_weight_kg == Decimal("1.907")
    assert (estimate.length_cm, estimate.width_cm, estimate.height_cm) == (
        Decimal("30"),
        Decimal("20"),
        Decimal("5"),
    )
    assert estimate.total_volume_cm3 == Decimal("2") * 1000 + Decimal("30") * 4 * 2
    assert estimate.origin_postal_code == "560001"

    [request] = delivery.requests
    assert request.origin_postal_code == "560001"
    assert request.destination_postal_code == "110001"
    assert request.declared_value == Decimal("22.50")
    assert request.cash_on_delivery is False


@pytest.mark.asyncio
async def test_failed_lookup_names_exactly_the_missing_product(cart_service, catalog) -> None:
    await cart_service.add_item(ORG, USER, "p-1", 1)
    await cart_service.add_item(ORG, USER, "p-2", 1)
    catalog.unavailable.add("p-2")
    failures = MetricTracker("shipping_product_lookup_failures_total", {"reason": "unavailable"})
    delivery = FakeDelivery(*_options("50"))

    with pytest.raises(IncompleteProductDataError) as excinfo:
        await _estimator(cart_service, catalog, delivery).estimate(ORG, USER, "110001")

    assert excinfo.value.product_ids == ["p-2"]
    assert "p-1" in catalog.calls
    assert failures.delta() == 1
    assert delivery.requests == []


@pytest.mark.asyncio
async def test_lookup_that_returns_nothing_or_hangs_counts_as_missing(cart_service, catalog) -> None:
    await cart_service.add_item(ORG, USER, "p-1", 1)
    await cart_service.add_item(ORG, USER, "p-2", 1)
    await cart_service.add_item(ORG, USER, "p-3", 1)
    del catalog.products["p-1"]

    original = catalog.get_product_details

    async def slow_for_p3(org_id: str, product_id: str):
        if product_id == "p-3":
            await asyncio.sleep(5)
        return await original(org_id, product_id)

    catalog.get_product_details = slow_for_p3

    with pytest.raises(IncompleteProductDataError) as excinfo:
        await _estimator(cart_service, catalog, FakeDelivery(), lookup_timeout=0.05).estimate(
            ORG, USER, "110001"
        )

    assert excinfo.value.product_ids == ["p-1", "p-3"]


@pytest.mark.asyncio
async def test_floors_apply_to_tiny_packages(cart_service, catalog) -> None:
    catalog.put(make_product("p-1", "1.00", weight=("100", "g"), dimensions=None))
    await cart_service.add_item(ORG, USER, "p-1", 1)
    delivery = FakeDelivery(*_options("40"))

    estimate = await _estimator(cart_service, catalog, delivery).estimate(ORG, USER, "110001")

    assert estimate.total_weight_kg == Decimal("0.5")
    assert (estimate.length_cm, estimate.width_cm, estimate.height_cm) == (
        Decimal("10"),
        Decimal("10"),
        Decimal("10"),
    )
    assert delivery.requests[0].weight_kg == Decimal("0.5")


@pytest.mark.asyncio
async def test_no_physical_data_is_rejected(cart_service, catalog) -> None:
    catalog.put(make_product("p-1", "1.00", weight=None, dimensions=None))
    await cart_service.add_item(ORG, USER, "p-1", 1)

    with pytest.raises(InsufficientPhysicalDataError):
        await _estimator(cart_service, catalog, FakeDelivery(*_options("40"))).estimate(ORG, USER, "110001")


@pytest.mark.asyncio
async def test_missing_origin_and_missing_quotes(cart_service, catalog) -> None:
    await cart_service.add_item(ORG, USER, "p-1", 1)

    with pytest.raises(OriginNotConfiguredError):
        await _estimator(cart_service, catalog, FakeDelivery(*_options("40")), origins={}).estimate(
            ORG, USER, "110001"
        )

    with pytest.raises(NoDeliveryOptionsError):
        await _estimator(cart_service, catalog, FakeDelivery()).estimate(ORG, USER, "110001")


@pytest.mark.asyncio
async def test_empty_cart_is_rejected(cart_service, catalog) -> None:
    aggregate = await cart_service.add_item(ORG, USER, "p-1", 1)
    await cart_service.remove_item(ORG, aggregate.items[0].id)

    with pytest.raises(EmptyCartError):
        await _estimator(cart_service, catalog, FakeDelivery(*_options("40"))).estimate(ORG, USER, "110001")
