"""Pydantic schemas for the cart service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator


class _Identifier(BaseModel):
    @field_validator("product_id", "guest_id", check_fields=False)
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            msg = "value must be non-empty"
            raise ValueError(msg)
        return cleaned


class CartItemCreate(_Identifier):
    product_id: str = Field(min_length=1, max_length=128, alias="productId")
    quantity: PositiveInt

    model_config = ConfigDict(populate_by_name=True)


class CartItemUpdate(BaseModel):
    quantity: PositiveInt

    model_config = ConfigDict(populate_by_name=True)


class CartMergeRequest(_Identifier):
    guest_id: str = Field(min_length=1, max_length=128, alias="guestId")

    model_config = ConfigDict(populate_by_name=True)


class CartItemResponse(BaseModel):
    id: str
    product_id: str = Field(alias="productId")
    product_name: str = Field(alias="productName")
    price_at_add: Decimal = Field(alias="priceAtAdd")
    quantity: PositiveInt
    item_total: Decimal = Field(alias="itemTotal")
    added_at: datetime = Field(alias="addedAt")
    last_modified_at: datetime = Field(alias="lastModifiedAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class CartResponse(BaseModel):
    id: str
    org_id: str = Field(alias="orgId")
    user_id: str | None = Field(default=None, alias="userId")
    guest_id: str | None = Field(default=None, alias="guestId")
    status: str
    total_items: int = Field(alias="totalItems")
    subtotal: Decimal
    items: list[CartItemResponse]
    created_at: datetime = Field(alias="createdAt")
    last_modified_at: datetime = Field(alias="lastModifiedAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class DeliveryOptionResponse(BaseModel):
    carrier_name: str = Field(alias="carrierName")
    cost: Decimal
    eta_days: int | None = Field(default=None, alias="etaDays")
    best: bool

    model_config = ConfigDict(populate_by_name=True)


class ShippingEstimateResponse(BaseModel):
    cart_id: str = Field(alias="cartId")
    origin_postal_code: str = Field(alias="originPostalCode")
    destination_postal_code: str = Field(alias="destinationPostalCode")
    total_weight_kg: Decimal = Field(alias="totalWeightKg")
    length_cm: Decimal = Field(alias="lengthCm")
    width_cm: Decimal = Field(alias="widthCm")
    height_cm: Decimal = Field(alias="heightCm")
    total_volume_cm3: Decimal = Field(alias="totalVolumeCm3")
    estimated_cost: Decimal = Field(alias="estimatedCost")
    options: list[DeliveryOptionResponse]

    model_config = ConfigDict(populate_by_name=True)


class WishlistItemCreate(_Identifier):
    product_id: str = Field(min_length=1, max_length=128, alias="productId")

    model_config = ConfigDict(populate_by_name=True)


class WishlistResponse(BaseModel):
    org_id: str = Field(alias="orgId")
    customer_id: str = Field(alias="customerId")
    product_ids: list[str] = Field(alias="productIds")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ProductResponse(BaseModel):
    product_id: str = Field(alias="productId")
    product_name: str = Field(alias="productName")
    price: Decimal

    model_config = ConfigDict(populate_by_name=True)
