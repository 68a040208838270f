"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Poster Storefront API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (postgresql:// is rewritten to postgresql+asyncpg://)
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_echo: bool = False

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Public site
    site_url: str = "https://posters.example.com"
    account_url: Optional[str] = None
    catalog_path: str = "data/posters.json"

    # Identity tokens
    auth_jwt_secret: Optional[str] = None
    auth_jwt_algorithm: str = "HS256"
    auth_cookie_name: str = "session"

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_api_version: str = "2024-06-20"
    checkout_currency: str = "usd"
    shipping_countries_str: str = Field(
        default="US,CA,GB,IE,SE,NO,DK,FI,DE,FR,NL,BE,ES,IT,AT,CH,PL,PT,AU,NZ",
        alias="SHIPPING_COUNTRIES",
    )

    @property
    def shipping_countries(self) -> List[str]:
        """Countries offered at checkout for shipping address collection."""
        return [c.strip().upper() for c in self.shipping_countries_str.split(",") if c.strip()]

    # Prodigi (print fulfillment)
    prodigi_api_key: Optional[str] = None
    prodigi_api_base: str = "https://api.prodigi.com/v4.0"
    prodigi_shipping_method: str = "Budget"
    prodigi_timeout: float = 20.0
    prodigi_sku_blp_12x18: Optional[str] = None
    prodigi_sku_blp_18x24: Optional[str] = None
    prodigi_sku_fap_12x18: Optional[str] = None
    prodigi_sku_fap_18x24: Optional[str] = None
    prodigi_sku_fap_a2: Optional[str] = None
    prodigi_sku_fap_a3: Optional[str] = None

    # Merchant reference sent to Prodigi is prefix + payment session id
    merchant_reference_prefix: str = "ps_"

    # Fulfillment webhook authentication
    fulfillment_webhook_secret: Optional[str] = None
    require_fulfillment_signature: bool = False

    # Notifications
    resend_api_key: Optional[str] = None
    mail_from: Optional[str] = None
    brand_name: str = "Poster Storefront"

    # Operator endpoints
    admin_api_key: Optional[str] = None

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
