"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://storefront:storefront_dev_password@db:5432/storefront"

    # Authentication
    jwt_secret: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # Payment provider (OPay)
    opay_secret_key: str = "dev-opay-secret-change-in-production"
    payment_page_url: str = "http://localhost:3000/payment"
    webhook_signature_required: bool = True

    # Pricing
    vat_rate: Decimal = Decimal("0.075")
    shipping_flat_rate: Decimal = Decimal("2500")
    currency: str = "NGN"

    # Orders
    order_prefix: str = "VT"
    order_status_policy: Literal["strict", "permissive"] = "strict"

    # Cart
    cart_ttl_days: int = 30

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Logging
    log_level: str = "INFO"


settings = Settings()
