"""Application configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="portfresh-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=256 * 1024, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Document store
    document_store_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Document store backend (memory/supabase)",
    )
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_secret_key: str = Field(default="", description="Supabase secret key for backend operations")
    orders_table: str = Field(default="orders", description="Table holding order documents")
    products_table: str = Field(default="products", description="Table holding catalog products")
    watch_queue_size: int = Field(default=256, ge=1, description="Buffered change events per subscriber")

    # Checkout
    order_id_strategy: Literal["generated", "phone"] = Field(
        default="generated",
        description="Order identity policy: 'generated' keeps every order, 'phone' keeps only the latest order per phone",
    )
    phone_number_digits: int = Field(default=10, ge=1, description="Exact digit count of a valid phone number")
    cleaning_surcharge_per_unit: float = Field(default=30.0, ge=0, description="Surcharge per unit for cleaned items")
    quantity_step: float = Field(default=1.0, gt=0, description="Quantity added per repeated add")
    min_quantity: float = Field(default=0.5, gt=0, description="Smallest legal slot quantity")

    # Retention
    purge_batch_size: int = Field(default=500, ge=1, description="Maximum documents deleted per atomic batch")
    purge_short_window_days: int = Field(default=7, ge=0, description="Short purge preset window in days")
    purge_long_window_days: int = Field(default=30, ge=0, description="Long purge preset window in days")

    # Operator access
    operator_passkey: str = Field(..., description="Passkey that unlocks the operator surface")
    operator_token_secret: str = Field(default="", description="Secret used to sign operator session tokens")
    operator_token_ttl_seconds: int = Field(default=12 * 3600, description="Operator session token lifetime in seconds")

    @model_validator(mode="after")
    def check_backend_credentials(self) -> "Settings":
        """Require Supabase credentials only when the Supabase backend is selected.

        Outside production, falls back to the passkey as token secret if no
        dedicated secret was set. Production requires a dedicated secret.
        """
        if self.document_store_backend == "supabase":
            if not self.supabase_url or not self.supabase_secret_key:
                raise ValueError(
                    "SUPABASE_URL and SUPABASE_SECRET_KEY are required when DOCUMENT_STORE_BACKEND=supabase"
                )

        if not self.operator_token_secret:
            if self.is_production:
                raise ValueError("OPERATOR_TOKEN_SECRET is required when APP_ENV=production")
            logger.warning("OPERATOR_TOKEN_SECRET is not set; signing operator tokens with the passkey")
            self.operator_token_secret = self.operator_passkey

        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
