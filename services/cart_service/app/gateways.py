"""HTTP clients for the catalog, inventory and delivery services."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import ServiceUnavailableError
from .metrics import GATEWAY_REQUESTS_TOTAL

_LOGGER = logging.getLogger(__name__)


class Weight(BaseModel):
    value: Decimal | None = None
    unit: str | None = None


class Dimensions(BaseModel):
    length: Decimal | None = None
    width: Decimal | None = None
    height: Decimal | None = None
    unit: str | None = None


class Product(BaseModel):
    id: str = Field(alias="productId")
    name: str = Field(alias="productName")
    price: Decimal = Field(alias="mrp", ge=Decimal("0"))
    weight: Weight | None = None
    dimensions: Dimensions | None = None

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class DeliveryOption(BaseModel):
    carrier_name: str = Field(alias="carrierName")
    cost: Decimal
    eta_days: int | None = Field(default=None, alias="etaDays")
    best: bool = False

    model_config = ConfigDict(populate_by_name=True)


class QuoteRequest(BaseModel):
    origin_postal_code: str = Field(alias="originPincode")
    destination_postal_code: str = Field(alias="destinationPincode")
    weight_kg: Decimal = Field(alias="weight")
    length_cm: Decimal = Field(alias="length")
    width_cm: Decimal = Field(alias="breadth")
    height_cm: Decimal = Field(alias="height")
    declared_value: Decimal = Field(alias="declaredValue")
    cash_on_delivery: bool = Field(alias="cod")

    model_config = ConfigDict(populate_by_name=True)


class CatalogGateway(Protocol):
    async def get_product_details(self, org_id: str, product_id: str) -> Product | None: ...

    async def get_products_by_ids(self, org_id: str, product_ids: Sequence[str]) -> list[Product]: ...


class InventoryGateway(Protocol):
    async def get_stock(self, org_id: str, product_id: str) -> int | None: ...


class DeliveryQuoteGateway(Protocol):
    async def get_quotes(self, request: QuoteRequest) -> list[DeliveryOption]: ...


def _normalize_base(url: str) -> str:
    return url.rstrip("/")


class _HttpGateway:
    """Shared request handling: transport retry, 404 as absence, everything else as unavailability."""

    service = "upstream"

    def __init__(self, client: httpx.AsyncClient, base_url: str, *, retry_attempts: int = 2) -> None:
        self._client = client
        self._base_url = _normalize_base(base_url)
        self._retry_attempts = retry_attempts

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=0.05, max=0.5),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        return await retrying(self._client.request, method, f"{self._base_url}{path}", **kwargs)

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any | None:
        """Return the decoded body, or ``None`` when the resource does not exist."""

        try:
            response = await self._send(method, path, **kwargs)
            if response.status_code == httpx.codes.NOT_FOUND:
                GATEWAY_REQUESTS_TOTAL.labels(service=self.service, outcome="not_found").inc()
                return None
            response.raise_for_status()
            payload = response.json() if response.content else None
        except httpx.HTTPError as exc:
            GATEWAY_REQUESTS_TOTAL.labels(service=self.service, outcome="error").inc()
            _LOGGER.warning("%s %s %s failed: %s", self.service, method, path, exc)
            raise ServiceUnavailableError(self.service, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            GATEWAY_REQUESTS_TOTAL.labels(service=self.service, outcome="error").inc()
            _LOGGER.warning("%s %s %s returned malformed JSON", self.service, method, path)
            raise ServiceUnavailableError(self.service, "malformed response") from exc
        GATEWAY_REQUESTS_TOTAL.labels(service=self.service, outcome="ok").inc()
        return payload

    def _malformed(self, exc: Exception) -> ServiceUnavailableError:
        _LOGGER.warning("%s returned an unexpected payload: %s", self.service, exc)
        return ServiceUnavailableError(self.service, "unexpected payload")


class HttpCatalogGateway(_HttpGateway):
    service = "catalog"

    async def get_product_details(self, org_id: str, product_id: str) -> Product | None:
        payload = await self._request_json(
            "GET", f"/api/internal/storefront/{org_id}/product/{product_id}/details"
        )
        if payload is None:
            return None
        try:
            return Product.model_validate(payload)
        except ValidationError as exc:
            raise self._malformed(exc) from exc

    async def get_products_by_ids(self, org_id: str, product_ids: Sequence[str]) -> list[Product]:
        if not product_ids:
            return []
        payload = await self._request_json(
            "GET",
            f"/api/internal/storefront/{org_id}/products",
            params={"ids": ",".join(product_ids)},
        )
        if payload is None:
            return []
        try:
            return [Product.model_validate(entry) for entry in payload]
        except (TypeError, ValidationError) as exc:
            raise self._malformed(exc) from exc


class HttpInventoryGateway(_HttpGateway):
    service = "inventory"

    async def get_stock(self, org_id: str, product_id: str) -> int | None:
        payload = await self._request_json(
            "GET", f"/api/internal/inventory/{org_id}/product/{product_id}/stock"
        )
        if payload is None:
            return None
        if isinstance(payload, dict):
            payload = payload.get("stock")
        if payload is None:
            return None
        try:
            return int(payload)
        except (TypeError, ValueError) as exc:
            raise self._malformed(exc) from exc


class HttpDeliveryQuoteGateway(_HttpGateway):
    service = "delivery"

    async def get_quotes(self, request: QuoteRequest) -> list[DeliveryOption]:
        payload = await self._request_json(
            "POST",
            "/api/internal/serviceability",
            json=request.model_dump(mode="json", by_alias=True),
        )
        if not payload:
            return []
        try:
            return [DeliveryOption.model_validate(entry) for entry in payload]
        except (TypeError, ValidationError) as exc:
            raise self._malformed(exc) from exc
