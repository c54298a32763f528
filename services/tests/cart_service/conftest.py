from collections.abc import AsyncIterator, Sequence
from decimal import Decimal

import pytest
import pytest_asyncio
from prometheus_client import REGISTRY
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.cart_service.app.errors import ServiceUnavailableError
from services.cart_service.app.gateways import DeliveryOption, Dimensions, Product, QuoteRequest, Weight
from services.cart_service.app.models import Base
from services.cart_service.app.services import CartService, WishlistService
from services.cart_service.app.store import CartStore
from services.common import create_schema, dispose_engines, get_session_factory


def make_product(
    product_id: str,
    price: str = "10.00",
    *,
    name: str | None = None,
    weight: tuple[str, str] | None = ("500", "g"),
    dimensions: tuple[str, str, str, str] | None = ("10", "20", "5", "cm"),
) -> Product:
    return Product(
        id=product_id,
        name=name or f"Product {product_id}",
        price=Decimal(price),
        weight=Weight(value=Decimal(weight[0]), unit=weight[1]) if weight else None,
        dimensions=(
            Dimensions(
                length=Decimal(dimensions[0]),
                width=Decimal(dimensions[1]),
                height=Decimal(dimensions[2]),
                unit=dimensions[3],
            )
            if dimensions
            else None
        ),
    )


class FakeCatalog:
    def __init__(self, *products: Product) -> None:
        self.products = {product.id: product for product in products}
        self.unavailable: set[str] = set()
        self.calls: list[str] = []

    def put(self, product: Product) -> None:
        self.products[product.id] = product

    async def get_product_details(self, org_id: str, product_id: str) -> Product | None:
        self.calls.append(product_id)
        if product_id in self.unavailable:
            raise ServiceUnavailableError("catalog", "connection refused")
        return self.products.get(product_id)

    async def get_products_by_ids(self, org_id: str, product_ids: Sequence[str]) -> list[Product]:
        self.calls.extend(product_ids)
        return [self.products[pid] for pid in product_ids if pid in self.products]


class FakeInventory:
    def __init__(self, stock: dict[str, int] | None = None) -> None:
        self.stock = dict(stock or {})

    async def get_stock(self, org_id: str, product_id: str) -> int | None:
        return self.stock.get(product_id)


class FakeDelivery:
    def __init__(self, *options: DeliveryOption) -> None:
        self.options = list(options)
        self.requests: list[QuoteRequest] = []

    async def get_quotes(self, request: QuoteRequest) -> list[DeliveryOption]:
        self.requests.append(request)
        return list(self.options)


class MetricTracker:
    def __init__(self, name: str, labels: dict[str, str] | None = None) -> None:
        self.name = name
        self.labels = labels or {}
        baseline = REGISTRY.get_sample_value(name, self.labels)
        self._baseline = baseline if baseline is not None else 0.0

    def delta(self) -> float:
        current = REGISTRY.get_sample_value(self.name, self.labels)
        value = current if current is not None else 0.0
        return value - self._baseline


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'cart.db'}"
    await create_schema(database_url, Base.metadata)
    try:
        yield get_session_factory(database_url)
    finally:
        await dispose_engines()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog(
        make_product("p-1", "10.00"),
        make_product("p-2", "2.50"),
        make_product("p-3", "7.25"),
    )


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory({"p-1": 100, "p-2": 5, "p-3": 100})


@pytest.fixture
def cart_store(session_factory) -> CartStore:
    return CartStore(session_factory, max_attempts=3, backoff_seconds=0.001)


@pytest.fixture
def cart_service(cart_store, catalog, inventory) -> CartService:
    return CartService(cart_store, catalog, inventory)


@pytest.fixture
def wishlist_service(session_factory, catalog) -> WishlistService:
    return WishlistService(session_factory, catalog)
