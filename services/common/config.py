from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "ecommerce-service"


class ServiceSettings(BaseSettings):
    """Base settings shared by all FastAPI services."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8000)
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    database_url: str | None = Field(default=None)
    database_auto_create: bool = Field(default=False)
    catalog_service_url: str = Field(default="http://localhost:8081")
    inventory_service_url: str = Field(default="http://localhost:8082")
    delivery_service_url: str = Field(default="http://localhost:8083")
    gateway_timeout_seconds: float = Field(default=2.0, gt=0.0)
    gateway_retry_attempts: int = Field(default=2, ge=1)
    cart_transaction_max_attempts: int = Field(default=5, ge=1)
    shipping_origin_postal_codes: dict[str, str] = Field(default_factory=dict)
    shipping_default_dimension_cm: Decimal = Field(default=Decimal("10"), gt=0)
    shipping_min_weight_kg: Decimal = Field(default=Decimal("0.5"), gt=0)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="SERVICE_", extra="ignore"
    )


@lru_cache
def get_settings() -> ServiceSettings:
    """Return cached service settings."""

    return ServiceSettings()
