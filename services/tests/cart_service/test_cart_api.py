import asyncio
import importlib
import warnings
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient, MockTransport, Request, Response

from services.cart_service.app.api import errors as api_errors
from services.cart_service.app.errors import (
    IncompleteProductDataError,
    InsufficientPhysicalDataError,
    OriginNotConfiguredError,
)
from services.cart_service.app.main import create_app
from services.cart_service.app.models import Base
from services.common import ServiceSettings, create_engine, dispose_engines

ORG = "org-1"
USER_HEADERS = {"X-User-ID": "user-1"}
GUEST_HEADERS = {"Cookie": "_guest_id=guest-1"}

_PRODUCTS: dict[str, dict[str, Any]] = {
    "SKU-1": {
        "productId": "SKU-1",
        "productName": "Product SKU-1",
        "mrp": "5.00",
        "weight": {"value": 400, "unit": "g"},
        "dimensions": {"length": 10, "width": 10, "height": 10, "unit": "cm"},
    },
    "SKU-2": {
        "productId": "SKU-2",
        "productName": "Product SKU-2",
        "mrp": "3.25",
        "weight": {"value": 1, "unit": "kg"},
        "dimensions": {"length": 20, "width": 10, "height": 5, "unit": "cm"},
    },
}


def _upstream(request: Request) -> Response:
    path = request.url.path
    if request.url.host == "catalog":
        product_id = path.split("/")[-2]
        if product_id in _PRODUCTS:
            return Response(200, json=_PRODUCTS[product_id])
        return Response(404)
    if request.url.host == "inventory":
        return Response(200, json={"stock": 10})
    if request.url.host == "delivery":
        return Response(
            200,
            json=[
                {"carrierName": "Slow", "cost": "120.00", "etaDays": 6},
                {"carrierName": "Cheap", "cost": "95.00", "etaDays": 4},
                {"carrierName": "AlsoCheap", "cost": "95.00", "etaDays": 3},
            ],
        )
    return Response(500)


def _run(coro):
    return asyncio.run(coro)


async def _prepare_app(tmp_path) -> FastAPI:
    db_file = tmp_path / "cart.db"
    database_url = f"sqlite+aiosqlite:///{db_file}"

    engine = create_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await dispose_engines()

    settings = ServiceSettings(
        app_name="Cart Service Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=database_url,
        catalog_service_url="http://catalog",
        inventory_service_url="http://inventory",
        delivery_service_url="http://delivery",
        shipping_origin_postal_codes={ORG: "560001"},
    )
    return create_app(settings, transport=MockTransport(_upstream))


@asynccontextmanager
async def _client(app: FastAPI):
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


def test_add_and_get_cart(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            add_response = await client.post(
                f"/carts/{ORG}/items", json={"productId": "SKU-1", "quantity": 2}, headers=USER_HEADERS
            )
            assert add_response.status_code == 201
            payload = add_response.json()
            assert payload["userId"] == "user-1"
            assert payload["status"] == "ACTIVE"
            assert payload["subtotal"] == "10.00"
            assert payload["totalItems"] == 2

            get_response = await client.get(f"/carts/{ORG}", headers=USER_HEADERS)
            assert get_response.status_code == 200
            cart = get_response.json()
            assert len(cart["items"]) == 1
            assert cart["items"][0]["productId"] == "SKU-1"
            assert cart["items"][0]["priceAtAdd"] == "5.00"

    _run(body())


def test_actor_must_be_exactly_one_of_header_or_cookie(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            missing = await client.get(f"/carts/{ORG}")
            assert missing.status_code == 400

            both = await client.get(f"/carts/{ORG}", headers={**USER_HEADERS, **GUEST_HEADERS})
            assert both.status_code == 400

            guest_add = await client.post(
                f"/carts/{ORG}/items", json={"productId": "SKU-2", "quantity": 1}, headers=GUEST_HEADERS
            )
            assert guest_add.status_code == 201
            assert guest_add.json()["guestId"] == "guest-1"
            assert guest_add.json()["userId"] is None

    _run(body())


def test_update_and_remove_item(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            added = await client.post(
                f"/carts/{ORG}/items", json={"productId": "SKU-2", "quantity": 2}, headers=USER_HEADERS
            )
            item_id = added.json()["items"][0]["id"]

            update_response = await client.put(f"/carts/{ORG}/items/{item_id}", json={"quantity": 3})
            assert update_response.status_code == 200
            assert update_response.json()["subtotal"] == "9.75"

            too_many = await client.put(f"/carts/{ORG}/items/{item_id}", json={"quantity": 11})
            assert too_many.status_code == 409

            remove_response = await client.delete(f"/carts/{ORG}/items/{item_id}")
            assert remove_response.status_code == 200
            emptied = remove_response.json()
            assert emptied["items"] == []
            assert emptied["status"] == "ABANDONED"

            missing = await client.put(f"/carts/{ORG}/items/{item_id}", json={"quantity": 1})
            assert missing.status_code == 404

    _run(body())


def test_clear_cart(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            await client.post(f"/carts/{ORG}/items", json={"productId": "SKU-1", "quantity": 1}, headers=USER_HEADERS)

            clear_response = await client.delete(f"/carts/{ORG}", headers=USER_HEADERS)
            assert clear_response.status_code == 204

            gone = await client.get(f"/carts/{ORG}", headers=USER_HEADERS)
            assert gone.status_code == 404

    _run(body())


def test_merge_guest_cart(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            await client.post(f"/carts/{ORG}/items", json={"productId": "SKU-1", "quantity": 3}, headers=USER_HEADERS)
            await client.post(
                f"/carts/{ORG}/items",
                json={"productId": "SKU-1", "quantity": 2},
                headers={"Cookie": "_guest_id=guest-7"},
            )

            merge_response = await client.post(
                f"/carts/{ORG}/merge", json={"guestId": "guest-7"}, headers=USER_HEADERS
            )
            assert merge_response.status_code == 200
            merged = merge_response.json()
            assert merged["userId"] == "user-1"
            assert merged["totalItems"] == 5
            assert merged["items"][0]["quantity"] == 5

            repeat = await client.post(f"/carts/{ORG}/merge", json={"guestId": "guest-7"}, headers=USER_HEADERS)
            assert repeat.json()["totalItems"] == 5

            no_user = await client.post(f"/carts/{ORG}/merge", json={"guestId": "guest-7"})
            assert no_user.status_code == 400

    _run(body())


def test_shipping_estimate(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            await client.post(f"/carts/{ORG}/items", json={"productId": "SKU-1", "quantity": 1}, headers=USER_HEADERS)
            await client.post(f"/carts/{ORG}/items", json={"productId": "SKU-2", "quantity": 1}, headers=USER_HEADERS)

            estimate = await client.get(
                f"/carts/{ORG}/shipping-estimate",
                params={"destinationPostalCode": "110001"},
                headers=USER_HEADERS,
            )
            assert estimate.status_code == 200
            payload = estimate.json()
            assert payload["estimatedCost"] == "95.00"
            assert [option["best"] for option in payload["options"]] == [False, True, False]
            assert payload["originPostalCode"] == "560001"

            other_org = await client.get(
                "/carts/org-2/shipping-estimate",
                params={"destinationPostalCode": "110001"},
                headers=USER_HEADERS,
            )
            assert other_org.status_code == 404

    _run(body())


def test_unknown_product_returns_404(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            missing = await client.post(
                f"/carts/{ORG}/items", json={"productId": "SKU-UNKNOWN", "quantity": 1}, headers=USER_HEADERS
            )
            assert missing.status_code == 404

            invalid = await client.post(
                f"/carts/{ORG}/items", json={"productId": "SKU-1", "quantity": 0}, headers=USER_HEADERS
            )
            assert invalid.status_code == 422

    _run(body())


def test_wishlist_routes(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            added = await client.post(f"/wishlists/{ORG}/items", json={"productId": "SKU-2"}, headers=USER_HEADERS)
            assert added.status_code == 201
            assert added.json()["productIds"] == ["SKU-2"]

            listing = await client.get(f"/wishlists/{ORG}", headers=USER_HEADERS)
            assert listing.json()["productIds"] == ["SKU-2"]

            removed = await client.delete(f"/wishlists/{ORG}/items/SKU-2", headers=USER_HEADERS)
            assert removed.json()["productIds"] == []

            cleared = await client.delete(f"/wishlists/{ORG}", headers=USER_HEADERS)
            assert cleared.status_code == 204

            anonymous = await client.get(f"/wishlists/{ORG}")
            assert anonymous.status_code == 400

    _run(body())


def test_health(tmp_path) -> None:
    app = _run(_prepare_app(tmp_path))

    async def body() -> None:
        async with _client(app) as client:
            response = await client.get("/health")
            assert response.status_code == 200
            assert response.json()["status"] == "ok"

    _run(body())


def test_shipping_data_errors_map_to_422_without_warnings() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        to_http_exception = importlib.reload(api_errors).to_http_exception
        incomplete = to_http_exception(IncompleteProductDataError(["SKU-1", "SKU-2"]))
        physical = to_http_exception(InsufficientPhysicalDataError("cart-1"))
        origin = to_http_exception(OriginNotConfiguredError(ORG))

    assert incomplete.status_code == 422
    assert incomplete.detail["productIds"] == ["SKU-1", "SKU-2"]
    assert physical.status_code == 422
    assert origin.status_code == 422
