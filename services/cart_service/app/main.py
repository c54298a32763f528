import logging
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI

from services.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
    create_schema,
    dispose_engines,
    get_session_factory,
    get_settings,
    resolve_database_url,
)

from .api.carts import router as carts_router
from .api.health import router as health_router
from .api.wishlists import router as wishlists_router
from .gateways import HttpCatalogGateway, HttpDeliveryQuoteGateway, HttpInventoryGateway
from .models import Base
from .services import CartService, WishlistService
from .shipping import ShippingEstimator
from .store import CartStore
from .tenancy import SettingsTenantDirectory

SERVICE_NAME = "Cart Service"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./cart_service.db"

_LOGGER = logging.getLogger(__name__)


def create_app(
    settings: ServiceSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create the Cart Service FastAPI application.

    ``transport`` replaces the network transport of the outbound client used for
    catalog, inventory and delivery calls.
    """

    resolved_settings = settings or get_settings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)
    session_factory = get_session_factory(database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if resolved_settings.database_auto_create:
            await create_schema(database_url, Base.metadata)
        http_client = httpx.AsyncClient(timeout=resolved_settings.gateway_timeout_seconds, transport=transport)
        retry_attempts = resolved_settings.gateway_retry_attempts
        catalog = HttpCatalogGateway(
            http_client, resolved_settings.catalog_service_url, retry_attempts=retry_attempts
        )
        inventory = HttpInventoryGateway(
            http_client, resolved_settings.inventory_service_url, retry_attempts=retry_attempts
        )
        delivery = HttpDeliveryQuoteGateway(
            http_client, resolved_settings.delivery_service_url, retry_attempts=retry_attempts
        )
        store = CartStore(session_factory, max_attempts=resolved_settings.cart_transaction_max_attempts)
        cart_service = CartService(store, catalog, inventory)

        app.state.session_factory = session_factory
        app.state.http_client = http_client
        app.state.cart_service = cart_service
        app.state.wishlist_service = WishlistService(session_factory, catalog)
        app.state.shipping_estimator = ShippingEstimator(
            cart_service,
            catalog,
            delivery,
            SettingsTenantDirectory(resolved_settings.shipping_origin_postal_codes),
            lookup_timeout=resolved_settings.gateway_timeout_seconds,
            default_dimension_cm=resolved_settings.shipping_default_dimension_cm,
            min_weight_kg=resolved_settings.shipping_min_weight_kg,
        )
        _LOGGER.info("%s started (%s)", resolved_settings.app_name, resolved_settings.environment)
        try:
            yield
        finally:
            await http_client.aclose()
            await dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(carts_router)
    app.include_router(wishlists_router)
    return app


app = create_app()


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(app, host=_settings.service_host, port=_settings.service_port)
